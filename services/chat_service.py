"""
Chat Service - Main Coordinator

Orchestrates the user interaction flow:
1. Receives the user message and session id
2. Looks up (or creates) the session's conversation context
3. Hands the message to the kernel, collecting progress updates
4. Returns a formatted ChatResponse with follow-up suggestions

This is the main entry point for the Streamlit UI.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import (
    CONFIDENCE_THRESHOLD,
    EXECUTOR_BASE_DELAY_MS,
    EXECUTOR_MAX_RETRIES,
    EXECUTOR_TIMEOUT_MS,
    GOOGLE_API_KEY,
    PREFER_DIRECT_EXECUTION,
    TASK_MAX_AGE_MS,
)
from core import Context, ExecutorConfig, Kernel, ProgressUpdate, Response, ResponseType
from core.executor import ProgressCallback

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ChatResponse:
    """
    Response from the chat service.

    Attributes:
        message: The response text to display to the user
        success: Whether the request was handled successfully
        metadata: Task id, route, duration, collected progress updates...
        suggestions: Follow-up suggestions (clarification questions included)
    """
    message: str
    success: bool
    metadata: Dict[str, Any] = field(default_factory=dict)
    suggestions: Optional[List[str]] = None


def build_kernel() -> Kernel:
    """Kernel wired from settings; uses Gemini only when an API key is set."""
    from tools import create_default_registry

    model_adapter = None
    if GOOGLE_API_KEY:
        from ai import GeminiAdapter
        model_adapter = GeminiAdapter()

    return Kernel(
        tool_registry=create_default_registry(),
        model_adapter=model_adapter,
        executor_config=ExecutorConfig(
            max_retries=EXECUTOR_MAX_RETRIES,
            base_delay_ms=EXECUTOR_BASE_DELAY_MS,
            timeout_ms=EXECUTOR_TIMEOUT_MS,
        ),
        confidence_threshold=CONFIDENCE_THRESHOLD,
        prefer_direct=PREFER_DIRECT_EXECUTION,
        task_max_age_ms=TASK_MAX_AGE_MS,
    )


# ============================================================================
# CHAT SERVICE
# ============================================================================

class ChatService:
    """
    Main chat service coordinator.

    Keeps one conversation Context per session and delegates every message to
    the kernel.
    """

    def __init__(self, kernel: Optional[Kernel] = None):
        self.kernel = kernel or build_kernel()
        self._sessions: Dict[str, Context] = {}
        logger.info("✅ ChatService initialized")

    def get_context(self, session_id: str, user_id: Optional[str] = None) -> Context:
        context = self._sessions.get(session_id)
        if context is None:
            context = Context(thread_id=session_id, user_id=user_id or "local")
            self._sessions[session_id] = context
        return context

    def reset_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def process_message(
        self,
        user_message: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ChatResponse:
        """
        Process a user message and generate a response.

        Args:
            user_message: The user's input text
            session_id: Session identifier (a new one is generated if missing)
            user_id: User identifier
            on_progress: Optional callback receiving step progress updates

        Returns:
            ChatResponse with the reply and metadata
        """
        if not session_id:
            session_id = str(uuid.uuid4())

        logger.info(f"💬 Processing message (session: {session_id[:8]}): {user_message[:50]}...")

        if not user_message.strip():
            return ChatResponse(
                message="Please type a request, for example \"list ./\".",
                success=False,
                metadata={"session_id": session_id},
                suggestions=self._default_suggestions(),
            )

        progress: List[Dict[str, Any]] = []

        async def collect(update: ProgressUpdate) -> None:
            progress.append(update.to_dict())
            if on_progress is not None:
                outcome = on_progress(update)
                if inspect.isawaitable(outcome):
                    await outcome

        context = self.get_context(session_id, user_id)
        response: Response = await self.kernel.process(user_message, context, on_progress=collect)

        metadata = dict(response.metadata)
        metadata["session_id"] = session_id
        if progress:
            metadata["progress"] = progress

        return ChatResponse(
            message=response.content,
            success=response.type != ResponseType.ERROR,
            metadata=metadata,
            suggestions=self._generate_suggestions(response),
        )

    def _generate_suggestions(self, response: Response) -> List[str]:
        """
        Contextual follow-ups: clarification questions first, then hints by route.
        """
        if response.type == ResponseType.CLARIFICATION:
            intent = response.metadata.get("intent") or {}
            return list(intent.get("clarificationQuestions") or [])[:3]

        if response.type == ResponseType.ERROR:
            return [
                "List the files in the workspace",
                "What can you do?",
            ]

        route = response.metadata.get("route")
        intent = response.metadata.get("intent") or {}
        action = intent.get("action")

        if route == "direct" and action == "list":
            suggestions = ["Read one of these files", "Search for *.py files"]
        elif route == "direct" and action in ("read", "fetch", "download", "get"):
            suggestions = ["Summarize this", "Save this to a file"]
        elif route == "direct" and action in ("run", "execute"):
            suggestions = ["Run it again", "List the files in the workspace"]
        elif route == "respond":
            suggestions = self._default_suggestions()
        else:
            suggestions = []

        return suggestions[:3]

    @staticmethod
    def _default_suggestions() -> List[str]:
        return [
            "list ./",
            "read README.md",
            "fetch https://example.com",
        ]


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def process_user_message(
    user_message: str,
    session_id: Optional[str] = None,
    service: Optional[ChatService] = None,
) -> ChatResponse:
    """
    Synchronous helper for scripts: runs one message through a ChatService.

    Must not be called from inside a running event loop.
    """
    service = service or ChatService()
    return asyncio.run(service.process_message(user_message, session_id=session_id))
