"""
Kernel - Main Orchestration Loop

Implements the request lifecycle:
1. Parse: Turn the raw input into an Intent
2. Route: Decide between direct execution, planning, clarification or a reply
3. Act: Run the single tool call or the planned steps through the executor
4. Remember: Record the turn in the conversation context
5. Respond: Format everything into a Response

Every request is tracked as a task in the state store and broadcast on the
message bus (agent.started, intent.parsed, memory.updated, agent.completed,
error.occurred).
"""

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from ai.types import ModelAdapter, Prompt
from config.prompts import RESPOND_PROMPT, SYSTEM_PROMPT, format_prompt
from tools.base import ToolRegistry

from .executor import CancellationToken, Executor, ExecutorConfig, ProgressCallback
from .intent_parser import DEFAULT_CONFIDENCE_THRESHOLD, IntentParser
from .message_bus import (
    AGENT_COMPLETED,
    AGENT_STARTED,
    ERROR_OCCURRED,
    INTENT_PARSED,
    MEMORY_UPDATED,
    MessageBus,
)
from .planner import Planner
from .router import Router
from .state_store import DEFAULT_MAX_AGE_MS, StateStore
from .types import (
    ClarifyRoute,
    Context,
    DirectRoute,
    ExecutionResult,
    Message,
    Plan,
    PlanRoute,
    PlanStep,
    RespondRoute,
    Response,
    ResponseType,
    RouteDecision,
)

logger = logging.getLogger(__name__)

HISTORY_TURNS = 6
MAX_OUTPUT_CHARS = 4000

CAPABILITIES_MESSAGE = (
    "I can work with files (read, write, list, search, copy, move, delete), "
    "fetch web pages and APIs, and run whitelisted commands. "
    'Try something like "list ./", "read README.md" or "fetch https://example.com".'
)

GREETINGS = {"hello", "hi", "hey", "greet"}
THANKS = {"thanks", "thank"}


class Kernel:
    """
    Coordinates parser, router, planner and executor for each request.

    Collaborators are injected; anything not supplied is built from the others
    (a bus, a store, a parser and router over ``tool_registry``...).
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        model_adapter: Optional[ModelAdapter] = None,
        message_bus: Optional[MessageBus] = None,
        state_store: Optional[StateStore] = None,
        intent_parser: Optional[IntentParser] = None,
        router: Optional[Router] = None,
        planner: Optional[Planner] = None,
        executor: Optional[Executor] = None,
        executor_config: Optional[ExecutorConfig] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        prefer_direct: bool = True,
        task_max_age_ms: int = DEFAULT_MAX_AGE_MS,
    ):
        self.tool_registry = tool_registry
        self.model_adapter = model_adapter
        self.message_bus = message_bus or MessageBus()
        self.state_store = state_store or StateStore()
        self.intent_parser = intent_parser or IntentParser(model_adapter, confidence_threshold)
        self.router = router or Router(tool_registry, prefer_direct=prefer_direct)
        self.planner = planner or Planner(
            model_adapter,
            tool_descriptions={tool.name: tool.description for tool in tool_registry.list()},
        )
        self.executor = executor or Executor(tool_registry, executor_config, self.message_bus)
        self.task_max_age_ms = task_max_age_ms
        self._cancel_tokens: Dict[str, CancellationToken] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process(
        self,
        text: str,
        context: Optional[Context] = None,
        on_progress: Optional[ProgressCallback] = None,
        task_id: Optional[str] = None,
    ) -> Response:
        """
        Handle one user input end to end.

        Never raises for processing failures; they come back as an error
        Response and an ``error.occurred`` event.
        """
        context = context if context is not None else Context()
        task_id = task_id or uuid.uuid4().hex
        started = time.time()
        token = CancellationToken()
        self._cancel_tokens[task_id] = token

        self.state_store.create(task_id, {"input": text, "thread_id": context.thread_id})
        metadata: Dict[str, Any] = {"task_id": task_id}

        try:
            await self._emit(AGENT_STARTED, {"task_id": task_id, "input": text})

            intent = await self.intent_parser.parse(text)
            metadata["intent"] = intent.to_dict()
            self.state_store.update(task_id, {"progress": 0.25, "data": {"intent": intent.action}})
            await self._emit(INTENT_PARSED, {"task_id": task_id, "intent": intent.to_dict()})

            decision = self.router.route(intent, context)
            metadata["route"] = decision.type
            logger.info(f"🎯 {intent.action} -> {decision.type} (confidence {intent.confidence:.2f})")
            self.state_store.update(task_id, {"progress": 0.5, "data": {"route": decision.type}})

            response_type, content, execution = await self._dispatch(
                decision, text, context, on_progress, token
            )

            await self._remember(task_id, text, content, context)

            metadata["duration_ms"] = int((time.time() - started) * 1000)
            if execution is not None:
                metadata["summary"] = execution.summary

            if response_type == ResponseType.ERROR:
                self.state_store.fail(task_id, execution.summary if execution else content)
            else:
                self.state_store.complete(task_id, {"route": decision.type})

            await self._emit(
                AGENT_COMPLETED,
                {"task_id": task_id, "type": response_type.value, "duration_ms": metadata["duration_ms"]},
            )
            return Response(type=response_type, content=content, metadata=metadata, execution=execution)

        except Exception as e:
            logger.error(f"❌ Processing failed for task {task_id}: {e}", exc_info=True)
            metadata["duration_ms"] = int((time.time() - started) * 1000)
            self.state_store.fail(task_id, str(e))
            await self._emit(ERROR_OCCURRED, {"task_id": task_id, "error": str(e)})
            return Response(type=ResponseType.ERROR, content=self.format_error(e), metadata=metadata)

        finally:
            self._cancel_tokens.pop(task_id, None)
            self.state_store.cleanup(self.task_max_age_ms)

    def cancel(self, task_id: str) -> bool:
        """Stop a running task from starting further steps. False if unknown."""
        token = self._cancel_tokens.get(task_id)
        if token is None:
            return False
        token.cancel()
        logger.info(f"🛑 Cancellation requested for task {task_id}")
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        decision: RouteDecision,
        text: str,
        context: Context,
        on_progress: Optional[ProgressCallback],
        token: CancellationToken,
    ) -> Tuple[ResponseType, str, Optional[ExecutionResult]]:
        if isinstance(decision, ClarifyRoute):
            return ResponseType.CLARIFICATION, self.format_clarification(decision), None

        if isinstance(decision, RespondRoute):
            return ResponseType.SUCCESS, await self._respond(decision, text, context), None

        if isinstance(decision, DirectRoute):
            plan = Plan(steps=[
                PlanStep(id=1, action=decision.operation, tool=decision.tool, inputs=dict(decision.inputs))
            ])
        elif isinstance(decision, PlanRoute):
            plan = await self.planner.create_plan(decision.goal, decision.available_tools, context)
        else:
            raise TypeError(f"Unhandled route decision: {decision!r}")

        execution = await self.executor.execute_plan(plan, on_progress=on_progress, cancel_token=token)
        response_type = ResponseType.SUCCESS if execution.success else ResponseType.ERROR
        return response_type, self.format_execution(execution), execution

    async def _respond(self, decision: RespondRoute, text: str, context: Context) -> str:
        if self.model_adapter is not None:
            history = "\n".join(
                f"{m.role}: {m.content[:300]}" for m in context.history[-HISTORY_TURNS:]
            ) or "(none)"
            prompt = format_prompt(RESPOND_PROMPT, history=history, request=text)
            try:
                output = await self.model_adapter.generate(Prompt.of(SYSTEM_PROMPT, prompt))
                if output.finish_reason != "error" and output.text.strip():
                    return output.text.strip()
                logger.warning(f"⚠️  Model reply unusable (finish_reason={output.finish_reason})")
            except Exception as e:
                logger.warning(f"⚠️  Conversational reply failed, using built-in message: {e}")

        action = decision.message.split(" ", 1)[0].lower()
        if action in GREETINGS:
            return f"Hello! {CAPABILITIES_MESSAGE}"
        if action in THANKS:
            return "You're welcome!"
        return CAPABILITIES_MESSAGE

    async def _remember(self, task_id: str, text: str, content: str, context: Context) -> None:
        context.history.append(Message(role="user", content=text))
        context.history.append(Message(role="assistant", content=content))
        await self._emit(
            MEMORY_UPDATED,
            {"task_id": task_id, "thread_id": context.thread_id, "turns": len(context.history)},
        )

    async def _emit(self, event_type: str, data: Dict[str, Any]) -> None:
        try:
            await self.message_bus.emit(event_type, data)
        except Exception as e:
            # Observer failures never change the outcome of a request.
            logger.warning(f"⚠️  Handler for '{event_type}' failed: {e}")

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def format_clarification(decision: ClarifyRoute) -> str:
        questions = "\n".join(f"- {q}" for q in decision.questions)
        return f"I need a bit more information:\n{questions}"

    @staticmethod
    def format_execution(execution: ExecutionResult) -> str:
        if not execution.results:
            return execution.summary

        if execution.success:
            body = format_output(execution.results[-1].output)
            if len(execution.results) == 1:
                return body or execution.summary
            return f"{execution.summary}\n\n{body}" if body else execution.summary

        return execution.summary

    @staticmethod
    def format_error(error: Exception) -> str:
        return f"Error: {error}"


def format_output(output: Any) -> str:
    """Render a tool output as display text."""
    if output is None:
        return ""
    if isinstance(output, str):
        text = output
    elif isinstance(output, list) and all(isinstance(item, str) for item in output):
        text = "\n".join(output) if output else "(empty)"
    elif isinstance(output, dict) and set(output) >= {"stdout", "exitCode"}:
        text = output["stdout"] or output.get("stderr", "")
    elif isinstance(output, dict) and "content" in output:
        text = str(output["content"])
    else:
        text = json.dumps(output, indent=2, default=str)

    if len(text) > MAX_OUTPUT_CHARS:
        text = text[:MAX_OUTPUT_CHARS] + f"\n... ({len(text) - MAX_OUTPUT_CHARS} more characters)"
    return text
