"""
Orchestration Errors

Exception hierarchy raised by the intent-to-action pipeline. Route-level
ambiguity is never an exception (it is a ClarifyRoute); everything here
represents a genuine failure of planning, execution or event delivery.
"""

from typing import List, Optional


class OrchestrationError(Exception):
    """Base class for every error raised by the orchestration engine."""


class CircularDependencyError(OrchestrationError):
    """Raised when a plan's dependency graph cannot be ordered."""

    def __init__(self, remaining_ids: Optional[List[int]] = None):
        self.remaining_ids = list(remaining_ids or [])
        message = "Circular dependency detected in plan"
        if self.remaining_ids:
            message += f" (unresolved steps: {', '.join(str(i) for i in self.remaining_ids)})"
        super().__init__(message)


class ToolNotFoundError(OrchestrationError):
    """Raised when a step references a tool the registry does not know."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class ToolExecutionError(OrchestrationError):
    """Raised when a tool reports an unsuccessful ToolResult."""

    def __init__(
        self,
        tool_name: str,
        code: str,
        message: str,
        recoverable: bool = False,
    ):
        self.tool_name = tool_name
        self.code = code
        self.recoverable = recoverable
        super().__init__(message)


class StepTimeoutError(OrchestrationError):
    """Raised when a single tool attempt exceeds the configured timeout."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Execution timeout after {timeout_ms}ms")


class ExecutionCancelledError(OrchestrationError):
    """Raised when a cancellation token is tripped while waiting."""

    def __init__(self, message: str = "Execution cancelled"):
        super().__init__(message)


class PlanValidationError(OrchestrationError):
    """Raised when a plan violates its structural invariants."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid plan: " + "; ".join(self.problems))


class PlanningError(OrchestrationError):
    """Raised when no plan can be produced for a goal."""


class EventTimeoutError(OrchestrationError, TimeoutError):
    """Raised by MessageBus.wait_for when no event arrives in time."""

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Timeout waiting for event: {event_type}")
