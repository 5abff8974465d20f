"""
Plan Executor

Drives a Plan to completion:
1. Orders steps so every step runs after the steps it depends on
2. Runs them one at a time, interpolating earlier outputs into later inputs
3. Races every tool attempt against a timeout
4. Retries transient failures with exponential backoff
5. Stops at the first unrecoverable failure (fail-fast)

Progress is reported through an optional ``on_progress`` callback and, when a
message bus is attached, as ``tool.*`` / ``error.occurred`` events.

Steps always run sequentially, even when ``plan.parallelizable`` is set.
"""

import asyncio
import inspect
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from tools.base import ToolRegistry

from .errors import (
    CircularDependencyError,
    ExecutionCancelledError,
    StepTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
)
from .message_bus import ERROR_OCCURRED, TOOL_CALLED, TOOL_COMPLETED, MessageBus
from .types import (
    CompleteEvent,
    ExecutionResult,
    Plan,
    PlanStep,
    ProgressEvent,
    ProgressUpdate,
    RetryEvent,
    StepResult,
    StepStatus,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Any]


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class ExecutorConfig:
    """
    Retry and timeout policy.

    Attributes:
        max_retries: Total attempts per step (first try included)
        base_delay_ms: Backoff before the second attempt; doubles afterwards
        timeout_ms: Limit for a single tool attempt
    """
    max_retries: int = 3
    base_delay_ms: int = 1000
    timeout_ms: int = 30000


RETRYABLE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"timeout",
        r"rate limit",
        r"network",
        r"temporarily unavailable",
        r"ECONNRESET",
        r"ETIMEDOUT",
        r"503",
        r"429",
    )
]


def is_retryable_error(error: BaseException) -> bool:
    """Whether a failed attempt is worth retrying."""
    if isinstance(error, (ToolNotFoundError, ExecutionCancelledError)):
        return False
    message = str(error)
    return any(pattern.search(message) for pattern in RETRYABLE_PATTERNS)


# ============================================================================
# CANCELLATION
# ============================================================================

class CancellationToken:
    """Cooperative cancellation signal shared between a caller and the executor."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def cancellable_sleep(delay_ms: int, token: Optional[CancellationToken] = None) -> None:
    """
    Sleep for ``delay_ms`` unless ``token`` is cancelled first.

    Raises:
        ExecutionCancelledError: If the token fires during the wait
    """
    if token is None:
        await asyncio.sleep(delay_ms / 1000)
        return
    if token.cancelled:
        raise ExecutionCancelledError("Cancelled during backoff")
    try:
        await asyncio.wait_for(token.wait(), timeout=delay_ms / 1000)
    except asyncio.TimeoutError:
        return
    raise ExecutionCancelledError("Cancelled during backoff")


# ============================================================================
# INTERPOLATION
# ============================================================================

_TOKEN_RE = re.compile(r"\$\{step_(\d+)\.([^}]+)\}")
_INDEXED_RE = re.compile(r"^([^\[\]]+)((?:\[\d+\])+)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

_MISSING = object()


def _lookup(container: Any, key: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(key, _MISSING)
    if key.startswith("_"):
        return _MISSING
    value = getattr(container, key, _MISSING)
    # Methods such as str.title or list.count are not output fields.
    return _MISSING if callable(value) else value


def get_nested_value(value: Any, path: str) -> Any:
    """
    Resolve a dotted path such as ``items[0].name`` against ``value``.

    Returns the module-private ``_MISSING`` sentinel when any segment is absent.
    """
    current = value
    for part in path.split("."):
        if current is None or current is _MISSING:
            return _MISSING

        indexed = _INDEXED_RE.match(part)
        if indexed:
            current = _lookup(current, indexed.group(1))
            for index in _INDEX_RE.findall(indexed.group(2)):
                if not isinstance(current, (list, tuple)):
                    return _MISSING
                position = int(index)
                if position >= len(current):
                    return _MISSING
                current = current[position]
        else:
            current = _lookup(current, part)
    return current


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def interpolate(value: Any, outputs: Mapping[int, Any]) -> Any:
    """
    Replace ``${step_<id>.<path>}`` tokens with values from earlier steps.

    A string that is exactly one resolvable token yields the raw value (so a
    list stays a list); tokens embedded in longer text are stringified.
    Unresolvable tokens are left untouched. Lists and dicts are walked
    recursively.
    """
    if isinstance(value, str):
        whole = _TOKEN_RE.fullmatch(value)
        if whole:
            resolved = _resolve(whole, outputs)
            return value if resolved is _MISSING else resolved

        def substitute(match: "re.Match[str]") -> str:
            resolved = _resolve(match, outputs)
            return match.group(0) if resolved is _MISSING else _stringify(resolved)

        return _TOKEN_RE.sub(substitute, value)

    if isinstance(value, list):
        return [interpolate(item, outputs) for item in value]

    if isinstance(value, dict):
        return {key: interpolate(item, outputs) for key, item in value.items()}

    return value


def _resolve(match: "re.Match[str]", outputs: Mapping[int, Any]) -> Any:
    step_id = int(match.group(1))
    if step_id not in outputs:
        return _MISSING
    return get_nested_value(outputs[step_id], match.group(2))


# ============================================================================
# EXECUTOR
# ============================================================================

class Executor:
    """
    Sequential plan executor with retry, timeout and interpolation.

    The tool registry and message bus are injected; nothing here is global.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        config: Optional[ExecutorConfig] = None,
        message_bus: Optional[MessageBus] = None,
    ):
        self.tool_registry = tool_registry
        self.config = config or ExecutorConfig()
        self.message_bus = message_bus

    async def execute_plan(
        self,
        plan: Plan,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExecutionResult:
        """
        Execute every step of ``plan`` in dependency order.

        Args:
            plan: Plan to run (never mutated)
            on_progress: Receives ProgressEvent / RetryEvent / CompleteEvent
            cancel_token: Prevents further steps from starting once cancelled

        Returns:
            ExecutionResult holding only the steps that actually ran

        Raises:
            CircularDependencyError: Before any step runs, if the plan cannot
                be ordered
        """
        order = self.build_execution_order(plan)

        started = time.monotonic()
        step_total = len(plan.steps)
        results: List[StepResult] = []
        outputs: Dict[int, Any] = {}
        cancelled_before: Optional[int] = None

        logger.info(f"📋 Executing plan with {step_total} step(s)")

        for step in order:
            if cancel_token is not None and cancel_token.cancelled:
                cancelled_before = step.id
                logger.warning(f"⚠️  Plan cancelled before step {step.id}")
                break

            await self._notify(on_progress, ProgressEvent(step.id, step_total, step.action, StepStatus.RUNNING))

            inputs = interpolate(step.inputs, outputs)
            result = await self._execute_step_with_retry(step, inputs, on_progress, cancel_token)
            results.append(result)

            if result.success:
                outputs[step.id] = result.output
                await self._notify(
                    on_progress, ProgressEvent(step.id, step_total, step.action, StepStatus.COMPLETE)
                )
            else:
                logger.error(f"❌ Step {step.id} ({step.tool}) failed: {result.error}")
                await self._notify(
                    on_progress, ProgressEvent(step.id, step_total, step.action, StepStatus.ERROR)
                )
                break

        summary = self.generate_summary(results)
        if cancelled_before is not None:
            summary += f". Cancelled before step {cancelled_before}"

        await self._notify(on_progress, CompleteEvent(results=list(results), summary=summary))

        return ExecutionResult(
            results=results,
            summary=summary,
            total_duration_ms=int((time.monotonic() - started) * 1000),
            total_cost=self.calculate_cost(results),
            cancelled=cancelled_before is not None,
        )

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def build_execution_order(self, plan: Plan) -> List[PlanStep]:
        """
        Topologically order the plan's steps.

        Repeated scans over the remaining steps; a step is placed once every id
        in its ``depends_on`` has been placed. Quadratic in the number of
        steps, which stays in the tens.

        Raises:
            CircularDependencyError: If a scan places nothing while steps remain
        """
        order: List[PlanStep] = []
        placed = set()
        remaining = list(range(len(plan.steps)))

        while remaining:
            progressed = False
            for index in list(remaining):
                step = plan.steps[index]
                if all(dep in placed for dep in step.depends_on or []):
                    order.append(step)
                    placed.add(step.id)
                    remaining.remove(index)
                    progressed = True

            if not progressed:
                raise CircularDependencyError([plan.steps[i].id for i in remaining])

        return order

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    async def _execute_step_with_retry(
        self,
        step: PlanStep,
        inputs: Dict[str, Any],
        on_progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> StepResult:
        step_started = time.monotonic()
        max_attempts = max(1, self.config.max_retries)
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            await self._publish(
                TOOL_CALLED,
                {"step_id": step.id, "tool": step.tool, "action": step.action, "attempt": attempt},
            )
            try:
                output = await self._execute_with_timeout(step, inputs)
            except Exception as e:
                last_error = e
                if not is_retryable_error(e) or attempt >= max_attempts:
                    break

                logger.warning(
                    f"⚠️  Step {step.id} failed (attempt {attempt}/{max_attempts}): {e}. Retrying..."
                )
                await self._notify(on_progress, RetryEvent(step_id=step.id, attempt=attempt, reason=str(e)))
                try:
                    await cancellable_sleep(self.config.base_delay_ms * 2 ** (attempt - 1), cancel_token)
                except ExecutionCancelledError as cancelled:
                    last_error = cancelled
                    break
                continue

            duration_ms = int((time.monotonic() - step_started) * 1000)
            await self._publish(
                TOOL_COMPLETED,
                {"step_id": step.id, "tool": step.tool, "success": True, "duration_ms": duration_ms},
            )
            return StepResult(step_id=step.id, success=True, output=output, error=None, duration_ms=duration_ms)

        message = str(last_error) if last_error is not None else "Unknown error"
        duration_ms = int((time.monotonic() - step_started) * 1000)
        await self._publish(ERROR_OCCURRED, {"step_id": step.id, "tool": step.tool, "error": message})
        return StepResult(step_id=step.id, success=False, output=None, error=message, duration_ms=duration_ms)

    async def _execute_with_timeout(self, step: PlanStep, inputs: Dict[str, Any]) -> Any:
        tool = self.tool_registry.get(step.tool)
        if tool is None:
            raise ToolNotFoundError(step.tool)

        payload = dict(inputs)
        payload.setdefault("operation", step.action)
        if not tool.supports(payload["operation"]):
            raise ToolNotFoundError(f"{step.tool}.{payload['operation']}")

        try:
            result = await asyncio.wait_for(tool.execute(payload), timeout=self.config.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise StepTimeoutError(self.config.timeout_ms)

        if not result.success:
            error = result.error
            raise ToolExecutionError(
                tool_name=step.tool,
                code=error.code if error else "TOOL_ERROR",
                message=error.message if error else f"Tool '{step.tool}' reported failure",
                recoverable=error.recoverable if error else False,
            )
        return result.output

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def generate_summary(results: Sequence[StepResult]) -> str:
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        total_duration = sum(r.duration_ms for r in results)

        summary = f"Executed {len(results)} steps: {successful} successful, {failed} failed ({total_duration}ms total)"
        if failed:
            errors = "; ".join(f"Step {r.step_id}: {r.error}" for r in results if not r.success and r.error)
            summary += f". Errors: {errors}"
        return summary

    @staticmethod
    def calculate_cost(results: Sequence[StepResult]) -> float:
        # Extension point: tools do not report cost yet.
        return 0.0

    async def _notify(self, on_progress: Optional[ProgressCallback], update: ProgressUpdate) -> None:
        if on_progress is None:
            return
        outcome = on_progress(update)
        if inspect.isawaitable(outcome):
            await outcome

    async def _publish(self, event_type: str, data: Dict[str, Any]) -> None:
        if self.message_bus is None:
            return
        try:
            await self.message_bus.emit(event_type, data)
        except Exception as e:
            logger.warning(f"⚠️  Handler for '{event_type}' failed: {e}")
