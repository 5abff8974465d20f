"""
Core Orchestration Module

This module contains the brain of intentflow:
- Intent parsing: Understands what the user wants
- Routing: Picks direct execution, planning, clarification or a reply
- Planning and execution: Runs dependency-ordered tool steps with retries
- Message bus and state store: Lifecycle events and task tracking

The kernel ties these together in a parse-route-act-respond loop.
"""

from .errors import (
    OrchestrationError,
    CircularDependencyError,
    ToolNotFoundError,
    ToolExecutionError,
    StepTimeoutError,
    ExecutionCancelledError,
    PlanValidationError,
    PlanningError,
    EventTimeoutError,
)

from .types import (
    Complexity,
    Intent,
    Message,
    Context,
    DirectRoute,
    PlanRoute,
    ClarifyRoute,
    RespondRoute,
    RouteDecision,
    PlanStep,
    Plan,
    StepResult,
    ExecutionResult,
    StepStatus,
    ProgressEvent,
    RetryEvent,
    CompleteEvent,
    ProgressUpdate,
    ResponseType,
    Response,
)

from .intent_parser import IntentParser, extract_json_object
from .router import Router, ToolKind
from .executor import Executor, ExecutorConfig, CancellationToken, interpolate
from .message_bus import Event, MessageBus
from .state_store import Task, StateStore
from .planner import Planner
from .kernel import Kernel

__all__ = [
    # Errors
    "OrchestrationError",
    "CircularDependencyError",
    "ToolNotFoundError",
    "ToolExecutionError",
    "StepTimeoutError",
    "ExecutionCancelledError",
    "PlanValidationError",
    "PlanningError",
    "EventTimeoutError",

    # Data model
    "Complexity",
    "Intent",
    "Message",
    "Context",
    "DirectRoute",
    "PlanRoute",
    "ClarifyRoute",
    "RespondRoute",
    "RouteDecision",
    "PlanStep",
    "Plan",
    "StepResult",
    "ExecutionResult",
    "StepStatus",
    "ProgressEvent",
    "RetryEvent",
    "CompleteEvent",
    "ProgressUpdate",
    "ResponseType",
    "Response",

    # Components
    "IntentParser",
    "extract_json_object",
    "Router",
    "ToolKind",
    "Executor",
    "ExecutorConfig",
    "CancellationToken",
    "interpolate",
    "Event",
    "MessageBus",
    "Task",
    "StateStore",
    "Planner",
    "Kernel",
]
