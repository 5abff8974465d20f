"""
Core Data Model

Structures shared by the intent parser, router, executor and kernel:
- Intent and conversation Context
- RouteDecision variants (direct, plan, clarify, respond)
- Plan / PlanStep with their wire-shape converters
- Step and execution results
- Progress updates streamed while a plan runs
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ============================================================================
# INTENT & CONTEXT
# ============================================================================

class Complexity(str, Enum):
    """How much orchestration an intent is expected to need."""
    SIMPLE = "simple"
    COMPLEX = "complex"


@dataclass(frozen=True)
class Intent:
    """
    Structured interpretation of one natural-language request.

    Attributes:
        action: Normalized verb (e.g. "read", "fetch", "unknown")
        target: File path, URL, quoted text or directory the action applies to
        parameters: Extra key/value options extracted from the request
        complexity: Whether a single tool call is likely enough
        confidence: Score in [0, 1]
        needs_clarification: True when the request is too ambiguous to act on
        clarification_questions: Questions to put back to the user
    """
    action: str
    target: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    complexity: Complexity = Complexity.SIMPLE
    confidence: float = 0.0
    needs_clarification: bool = False
    clarification_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "target": self.target,
            "parameters": dict(self.parameters),
            "complexity": self.complexity.value,
            "confidence": self.confidence,
            "needsClarification": self.needs_clarification,
            "clarificationQuestions": list(self.clarification_questions),
        }


@dataclass
class Message:
    """One conversation turn."""
    role: str  # "system" | "user" | "assistant"
    content: str
    timestamp: int = field(default_factory=now_ms)


@dataclass
class Context:
    """Conversation context handed to the router and kernel."""
    thread_id: str = "default"
    user_id: str = "local"
    history: List[Message] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def last_assistant_message(self) -> Optional[Message]:
        for message in reversed(self.history):
            if message.role == "assistant":
                return message
        return None


# ============================================================================
# ROUTE DECISIONS
# ============================================================================

@dataclass(frozen=True)
class DirectRoute:
    """Execute a single tool operation right away."""
    tool: str
    operation: str
    inputs: Dict[str, Any] = field(default_factory=dict)

    type = "direct"


@dataclass(frozen=True)
class PlanRoute:
    """Hand the goal to the planner and execute the resulting plan."""
    goal: str
    available_tools: List[str] = field(default_factory=list)

    type = "plan"


@dataclass(frozen=True)
class ClarifyRoute:
    """Ask the user follow-up questions before doing anything."""
    questions: List[str] = field(default_factory=list)

    type = "clarify"


@dataclass(frozen=True)
class RespondRoute:
    """Reply conversationally without touching any tool."""
    message: str

    type = "respond"


RouteDecision = Union[DirectRoute, PlanRoute, ClarifyRoute, RespondRoute]


# ============================================================================
# PLANS
# ============================================================================

@dataclass
class PlanStep:
    """
    One tool invocation inside a plan.

    String values in ``inputs`` may contain ``${step_<id>.<path>}`` tokens that
    the executor resolves against earlier step outputs.
    """
    id: int
    action: str
    tool: str
    inputs: Dict[str, Any] = field(default_factory=dict)
    depends_on: Optional[List[int]] = None
    estimated_time_ms: int = 0
    rationale: str = ""

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PlanStep":
        depends_on = payload.get("dependsOn", payload.get("depends_on"))
        inputs = payload.get("inputs") or {}
        if not isinstance(inputs, dict):
            raise ValueError(f"Step inputs must be an object, got {type(inputs).__name__}")
        return cls(
            id=int(payload["id"]),
            action=str(payload.get("action", "")),
            tool=str(payload.get("tool", "")),
            inputs=dict(inputs),
            depends_on=[int(d) for d in depends_on] if depends_on else None,
            estimated_time_ms=int(payload.get("estimatedTimeMs", payload.get("estimated_time_ms", 0)) or 0),
            rationale=str(payload.get("rationale") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "action": self.action,
            "tool": self.tool,
            "inputs": dict(self.inputs),
            "dependsOn": list(self.depends_on) if self.depends_on else None,
            "estimatedTimeMs": self.estimated_time_ms,
        }
        if self.rationale:
            data["rationale"] = self.rationale
        return data


@dataclass
class Plan:
    """
    Dependency graph of steps with cost and time estimates.

    ``parallelizable`` is advisory metadata from the planner; the executor
    always runs steps one at a time.
    """
    steps: List[PlanStep] = field(default_factory=list)
    total_estimated_time_ms: int = 0
    total_estimated_cost: float = 0.0
    parallelizable: bool = False
    risks: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Plan":
        raw_steps = payload.get("steps") or []
        if not isinstance(raw_steps, list):
            raise ValueError("Plan 'steps' must be a list")
        steps = [PlanStep.from_dict(step) for step in raw_steps]
        return cls(
            steps=steps,
            total_estimated_time_ms=int(
                payload.get("totalEstimatedTimeMs")
                or sum(step.estimated_time_ms for step in steps)
            ),
            total_estimated_cost=float(payload.get("totalEstimatedCost") or 0.0),
            parallelizable=bool(payload.get("parallelizable", False)),
            risks=[str(risk) for risk in payload.get("risks") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": [step.to_dict() for step in self.steps],
            "totalEstimatedTimeMs": self.total_estimated_time_ms,
            "totalEstimatedCost": self.total_estimated_cost,
            "parallelizable": self.parallelizable,
            "risks": list(self.risks),
        }


# ============================================================================
# EXECUTION RESULTS
# ============================================================================

@dataclass
class StepResult:
    """Outcome of one plan step (after all retry attempts)."""
    step_id: int
    success: bool
    output: Any = None
    error: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepId": self.step_id,
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "durationMs": self.duration_ms,
        }


@dataclass
class ExecutionResult:
    """Terminal outcome of running a plan."""
    results: List[StepResult] = field(default_factory=list)
    summary: str = ""
    total_duration_ms: int = 0
    total_cost: float = 0.0
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """True only when the plan ran to the end and every step succeeded."""
        return bool(self.results) and not self.cancelled and all(r.success for r in self.results)


# ============================================================================
# PROGRESS UPDATES
# ============================================================================

class StepStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    step_id: int
    step_total: int
    action: str
    status: StepStatus

    type = "progress"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "stepId": self.step_id,
            "stepTotal": self.step_total,
            "action": self.action,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class RetryEvent:
    step_id: int
    attempt: int
    reason: str

    type = "retry"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "stepId": self.step_id,
            "attempt": self.attempt,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CompleteEvent:
    results: List[StepResult]
    summary: str

    type = "complete"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary,
        }


ProgressUpdate = Union[ProgressEvent, RetryEvent, CompleteEvent]


# ============================================================================
# KERNEL RESPONSE
# ============================================================================

class ResponseType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CLARIFICATION = "clarification"


@dataclass
class Response:
    """Formatted answer returned by the kernel for one input turn."""
    type: ResponseType
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    execution: Optional[ExecutionResult] = None
