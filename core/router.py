"""
Intent Router

Decides how an Intent is handled. First matching rule wins:
1. Ambiguous intents         -> ClarifyRoute
2. Conversational requests   -> RespondRoute
3. Simple, resolvable intents -> DirectRoute (single tool call)
4. Everything else           -> PlanRoute (planner + executor)

The router never executes anything; it only reads the tool catalog.
"""

import json
import logging
import re
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from tools.base import ToolRegistry

from .intent_parser import GENERIC_QUESTION
from .types import (
    ClarifyRoute,
    Complexity,
    Context,
    DirectRoute,
    Intent,
    PlanRoute,
    RespondRoute,
    RouteDecision,
)

logger = logging.getLogger(__name__)


class ToolKind(str, Enum):
    """Closed set of tool identifiers the router can dispatch to."""
    FS = "fs"
    WEB = "web"
    PROCESS = "process"


# ============================================================================
# ROUTING TABLES
# ============================================================================

ACTION_TABLE: Dict[str, Tuple[ToolKind, str]] = {
    # File operations
    "list": (ToolKind.FS, "list"),
    "read": (ToolKind.FS, "read"),
    "write": (ToolKind.FS, "write"),
    "create": (ToolKind.FS, "write"),
    "delete": (ToolKind.FS, "delete"),
    "search": (ToolKind.FS, "search"),
    "find": (ToolKind.FS, "search"),
    "copy": (ToolKind.FS, "copy"),
    "move": (ToolKind.FS, "move"),

    # Web operations
    "fetch": (ToolKind.WEB, "fetch"),
    "download": (ToolKind.WEB, "fetch"),
    "get": (ToolKind.WEB, "fetch"),
    "post": (ToolKind.WEB, "fetch"),
    "request": (ToolKind.WEB, "fetch"),

    # Process operations
    "run": (ToolKind.PROCESS, "exec"),
    "execute": (ToolKind.PROCESS, "exec"),
    "exec": (ToolKind.PROCESS, "exec"),
    "command": (ToolKind.PROCESS, "exec"),
}

CONVERSATIONAL_ACTIONS = {
    "hello", "hi", "hey", "greet", "thanks", "thank", "help",
    "explain", "describe", "tell", "chat", "talk", "ask", "answer", "define",
}

INPUT_KEYS = {
    "read": "path",
    "write": "path",
    "delete": "path",
    "list": "directory",
    "search": "pattern",
    "fetch": "url",
    "exec": "command",
}

_SELF_REFERENCE_RE = re.compile(r"\b(you|your|capabilit\w*|help)\b", re.IGNORECASE)
_URL_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_FILE_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]{1,8}$")
_DIRECTORY_WORD_RE = re.compile(r"\bdirectory\b", re.IGNORECASE)

CONTEXT_EXCERPT_CHARS = 100


class Router:
    """
    Maps Intents to RouteDecisions.

    Args:
        tool_registry: Catalog used to check tool availability. Without one,
            every ToolKind counts as available.
        prefer_direct: Route simple intents straight to a tool when possible
    """

    def __init__(self, tool_registry: Optional[ToolRegistry] = None, prefer_direct: bool = True):
        self.tool_registry = tool_registry
        self.prefer_direct = prefer_direct

    def route(self, intent: Intent, context: Context) -> RouteDecision:
        if intent.needs_clarification:
            questions = list(intent.clarification_questions) or [GENERIC_QUESTION]
            logger.debug(f"🎯 Route: clarify ({len(questions)} question(s))")
            return ClarifyRoute(questions=questions)

        if self._is_conversational(intent):
            message = f"{intent.action} {intent.target or ''}".strip()
            logger.debug(f"🎯 Route: respond ({intent.action})")
            return RespondRoute(message=message)

        if intent.complexity == Complexity.SIMPLE and self.prefer_direct:
            resolved = self._resolve_tool(intent)
            if resolved is not None:
                kind, operation = resolved
                if self._is_available(kind.value):
                    logger.debug(f"🎯 Route: direct {kind.value}.{operation}")
                    return DirectRoute(
                        tool=kind.value,
                        operation=operation,
                        inputs=self._build_inputs(intent, operation),
                    )
                logger.info(f"ℹ️  Tool '{kind.value}' not registered, falling back to planning")

        goal = self._build_goal(intent, context)
        logger.debug(f"🎯 Route: plan ({goal[:60]})")
        return PlanRoute(goal=goal, available_tools=self.available_tools())

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    def available_tools(self) -> List[str]:
        if self.tool_registry is None:
            return [kind.value for kind in ToolKind]
        return self.tool_registry.names()

    def has_tools(self, names: Iterable[str]) -> bool:
        available = set(self.available_tools())
        return all(name in available for name in names)

    def get_tool_descriptions(self) -> str:
        if self.tool_registry is None:
            return "\n".join(f"- {kind.value}" for kind in ToolKind)
        return self.tool_registry.get_descriptions()

    def _is_available(self, name: str) -> bool:
        return name in self.available_tools()

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @staticmethod
    def _is_conversational(intent: Intent) -> bool:
        if intent.action.lower() in CONVERSATIONAL_ACTIONS:
            return True
        if not intent.target:
            return True
        return bool(_SELF_REFERENCE_RE.search(intent.target))

    @staticmethod
    def _resolve_tool(intent: Intent) -> Optional[Tuple[ToolKind, str]]:
        entry = ACTION_TABLE.get(intent.action.lower())
        if entry is not None:
            return entry

        target = (intent.target or "").strip()
        if not target:
            return None
        if _URL_SCHEME_RE.match(target):
            return ToolKind.WEB, "fetch"
        if _FILE_EXTENSION_RE.search(target):
            return ToolKind.FS, "read"
        if target.endswith("/") or _DIRECTORY_WORD_RE.search(target):
            return ToolKind.FS, "list"
        return None

    @staticmethod
    def _build_inputs(intent: Intent, operation: str) -> Dict[str, object]:
        inputs = dict(intent.parameters)
        if intent.target:
            inputs[INPUT_KEYS.get(operation, "target")] = intent.target
        return inputs

    @staticmethod
    def _build_goal(intent: Intent, context: Context) -> str:
        goal = intent.action
        if intent.target:
            goal += f" {intent.target}"
        if intent.parameters:
            goal += f" with parameters {json.dumps(intent.parameters, default=str)}"

        last = context.last_assistant_message() if context else None
        if last is not None and last.content:
            goal += f" (context: {last.content[:CONTEXT_EXCERPT_CHARS]})"
        return goal
