"""
Process Tool - whitelisted command execution.

Commands are split with shlex and run without a shell, so pipes and
redirections are passed as literal arguments. The executable name must be on
the whitelist.
"""

import asyncio
import logging
import os
import shlex
import time
from typing import Any, Dict, List, Optional, Sequence

from .base import Tool, ToolError, ToolResult

logger = logging.getLogger(__name__)


class ProcessTool(Tool):
    """
    Args:
        whitelist: Executable names that may be run (``ls``, ``git``...)
        timeout: Default timeout in seconds; ``input["timeout"]`` (ms) overrides
        cwd: Working directory for commands
        max_output_chars: stdout/stderr are truncated to this length
    """

    name = "process"
    description = "Run whitelisted shell commands and capture stdout/stderr"
    operations = ("exec",)
    parameters = {
        "type": "object",
        "properties": {
            "operation": {"type": "string", "enum": ["exec"]},
            "command": {"type": "string", "description": "Command line or executable name"},
            "args": {"type": "array", "items": {"type": "string"}},
            "cwd": {"type": "string"},
            "timeout": {"type": "integer", "description": "Timeout in milliseconds"},
        },
        "required": ["command"],
    }

    def __init__(
        self,
        whitelist: Sequence[str],
        timeout: float = 30.0,
        cwd: Optional[str] = None,
        max_output_chars: int = 100_000,
    ):
        self.whitelist = set(whitelist)
        self.timeout = timeout
        self.cwd = cwd
        self.max_output_chars = max_output_chars

    def is_whitelisted(self, executable: str) -> bool:
        return os.path.basename(executable) in self.whitelist

    async def execute(self, input: Dict[str, Any]) -> ToolResult:
        started = time.monotonic()

        try:
            argv = self._build_argv(input)
        except ValueError as e:
            return ToolResult.fail("PROCESS_INVALID_INPUT", str(e), started)

        if not self.is_whitelisted(argv[0]):
            logger.warning(f"⚠️  Blocked command: {argv[0]}")
            return ToolResult.fail("PROCESS_NOT_ALLOWED", f"Command not whitelisted: {argv[0]}", started)

        timeout = self.timeout
        if input.get("timeout"):
            timeout = float(input["timeout"]) / 1000

        logger.info(f"🔧 Running: {shlex.join(argv)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=input.get("cwd") or self.cwd,
            )
        except OSError as e:
            return ToolResult.fail("PROCESS_ERROR", f"Failed to start {argv[0]}: {e}", started)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.CancelledError:
            # Outer timeout or cancellation: the child must not outlive the call.
            await _kill(proc)
            raise
        except asyncio.TimeoutError:
            await _kill(proc)
            return ToolResult.fail(
                "PROCESS_TIMEOUT",
                f"Command timeout after {timeout:g}s: {argv[0]}",
                started,
                recoverable=True,
            )

        output = {
            "stdout": stdout.decode("utf-8", errors="replace")[:self.max_output_chars],
            "stderr": stderr.decode("utf-8", errors="replace")[:self.max_output_chars],
            "exitCode": proc.returncode,
        }

        if proc.returncode != 0:
            detail = output["stderr"].strip() or output["stdout"].strip()
            return ToolResult(
                success=False,
                output=output,
                error=_exit_error(argv[0], proc.returncode, detail),
                metadata={"duration_ms": int((time.monotonic() - started) * 1000)},
            )

        return ToolResult.ok(output, started)

    @staticmethod
    def _build_argv(input: Dict[str, Any]) -> List[str]:
        command = input.get("command") or input.get("target")
        if not command:
            raise ValueError("Missing required parameter: command")

        argv = shlex.split(str(command))
        if not argv:
            raise ValueError("Empty command")
        extra = input.get("args") or []
        if not isinstance(extra, list):
            raise ValueError("'args' must be a list of strings")
        return argv + [str(arg) for arg in extra]


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # exited between the check and the kill
    await proc.wait()
    logger.warning(f"🛑 Killed process {proc.pid}")


def _exit_error(executable: str, code: int, detail: str) -> ToolError:
    message = f"{executable} exited with code {code}"
    if detail:
        message += f": {detail[:500]}"
    return ToolError(code="PROCESS_EXIT_CODE", message=message)
