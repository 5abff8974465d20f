"""
Tool contract and registry.

Every capability the executor can invoke implements :class:`Tool`. Tools report
expected failures through ``ToolResult(success=False, error=ToolError(...))``
instead of raising, so the executor can classify them uniformly.
"""

import abc
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class ToolError:
    """Structured error reported by a tool."""
    code: str
    message: str
    recoverable: bool = False
    suggestions: List[str] = field(default_factory=list)


@dataclass
class ToolResult:
    """
    Result from a tool execution.

    Attributes:
        success: Whether the operation succeeded
        output: Operation payload (text, list, dict...)
        error: Populated when ``success`` is False
        metadata: At least ``duration_ms``
    """
    success: bool
    output: Any = None
    error: Optional[ToolError] = None
    metadata: Dict[str, Any] = field(default_factory=lambda: {"duration_ms": 0})

    @classmethod
    def ok(cls, output: Any, started: float) -> "ToolResult":
        return cls(success=True, output=output, metadata={"duration_ms": _elapsed_ms(started)})

    @classmethod
    def fail(
        cls,
        code: str,
        message: str,
        started: float,
        recoverable: bool = False,
    ) -> "ToolResult":
        return cls(
            success=False,
            error=ToolError(code=code, message=message, recoverable=recoverable),
            metadata={"duration_ms": _elapsed_ms(started)},
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Tool(abc.ABC):
    """Abstract capability invoked by the executor."""

    name: str = ""
    description: str = ""
    parameters: Dict[str, Any] = {}
    operations: Sequence[str] = ()

    @abc.abstractmethod
    async def execute(self, input: Dict[str, Any]) -> ToolResult:
        """Run one operation. ``input["operation"]`` selects which one."""

    def supports(self, operation: str) -> bool:
        return not self.operations or operation in self.operations


class ToolRegistry:
    """Name-keyed catalog of available tools."""

    def __init__(self, tools: Optional[Sequence[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError("Tool must define a name")
        if tool.name in self._tools:
            logger.warning(f"⚠️  Replacing already registered tool '{tool.name}'")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list(self) -> List[Tool]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def get_descriptions(self) -> str:
        """One ``- name: description`` line per tool, for prompts."""
        return "\n".join(f"- {tool.name}: {tool.description}" for tool in self._tools.values())
