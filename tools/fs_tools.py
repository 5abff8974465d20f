"""
Filesystem Tool - sandboxed file operations.

Operations: read, write, list, search, delete, copy, move.

Every path is resolved against the first allowed root, must stay inside one of
the allowed roots and must not match a deny pattern. PDF files are read through
pdfplumber. Blocking I/O runs in a worker thread.
"""

import asyncio
import fnmatch
import logging
import re
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from clients.pdf_client import extract_text_from_pdf

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)

FS_OPERATIONS = ("read", "write", "list", "search", "delete", "copy", "move")


class FsError(Exception):
    """Expected filesystem failure carrying a ToolError code."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class FilesystemTool(Tool):
    """
    File operations restricted to a set of sandbox roots.

    Args:
        allow_roots: Directories the tool may touch (first one is the base for
            relative paths)
        deny_patterns: Glob patterns (``**/.env``) matched against absolute paths
        max_file_size: Largest file, in bytes, that may be read or written
    """

    name = "fs"
    description = "Filesystem operations (read, write, list, search, delete, copy, move) inside the workspace"
    operations = FS_OPERATIONS
    parameters = {
        "type": "object",
        "properties": {
            "operation": {"type": "string", "enum": list(FS_OPERATIONS)},
            "path": {"type": "string", "description": "File or directory path"},
            "directory": {"type": "string", "description": "Directory to list or search in"},
            "content": {"type": "string", "description": "Content to write"},
            "pattern": {"type": "string", "description": "Regex or glob for search"},
            "destination": {"type": "string", "description": "Target path for copy/move"},
            "recursive": {"type": "boolean"},
            "limit": {"type": "integer", "description": "Maximum lines/entries to return"},
        },
        "required": ["operation"],
    }

    def __init__(
        self,
        allow_roots: Sequence[str],
        deny_patterns: Sequence[str] = (),
        max_file_size: int = 5 * 1024 * 1024,
    ):
        if not allow_roots:
            raise ValueError("FilesystemTool needs at least one allowed root")
        self.allow_roots = [Path(root).expanduser().resolve() for root in allow_roots]
        self.deny_patterns = list(deny_patterns)
        self.max_file_size = max_file_size

    async def execute(self, input: Dict[str, Any]) -> ToolResult:
        started = time.monotonic()
        operation = input.get("operation")

        try:
            if operation not in FS_OPERATIONS:
                raise FsError("FS_INVALID_INPUT", f"Unknown operation: {operation}")
            handler = getattr(self, f"_{operation}")
            output = await asyncio.to_thread(handler, input)
        except FsError as e:
            logger.warning(f"⚠️  fs.{operation} refused: {e.message}")
            return ToolResult.fail(e.code, e.message, started)
        except OSError as e:
            logger.error(f"❌ fs.{operation} failed: {e}")
            return ToolResult.fail("FS_ERROR", f"{type(e).__name__}: {e}", started)
        except ValueError as e:
            return ToolResult.fail("FS_ERROR", str(e), started)

        logger.debug(f"🔧 fs.{operation} ok")
        return ToolResult.ok(output, started)

    # ------------------------------------------------------------------
    # Sandbox
    # ------------------------------------------------------------------

    def resolve(self, raw: Optional[str]) -> Path:
        """
        Resolve ``raw`` inside the sandbox.

        Raises:
            FsError: If the path is missing, escapes every root or is denied
        """
        if not raw:
            raise FsError("FS_INVALID_INPUT", "Missing required parameter: path")

        candidate = Path(str(raw)).expanduser()
        if not candidate.is_absolute():
            candidate = self.allow_roots[0] / candidate
        resolved = candidate.resolve()

        if not any(resolved.is_relative_to(root) for root in self.allow_roots):
            raise FsError("FS_ACCESS_DENIED", f"Access denied: Path '{raw}' is outside sandbox")

        posix = resolved.as_posix()
        for pattern in self.deny_patterns:
            if fnmatch.fnmatch(posix, pattern):
                raise FsError("FS_ACCESS_DENIED", f"Access denied: Path '{raw}' is blocked by policy")

        return resolved

    def _display(self, path: Path) -> str:
        for root in self.allow_roots:
            if path.is_relative_to(root):
                return path.relative_to(root).as_posix() or "."
        return path.as_posix()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _read(self, input: Dict[str, Any]) -> str:
        path = self.resolve(input.get("path") or input.get("target"))
        if not path.is_file():
            raise FsError("FS_NOT_FOUND", f"File not found: {input.get('path')}")

        size = path.stat().st_size
        if size > self.max_file_size:
            raise FsError("FS_TOO_LARGE", f"File size ({size}) exceeds limit ({self.max_file_size})")

        limit = _as_int(input.get("limit"))
        if path.suffix.lower() == ".pdf":
            pages = limit if input.get("limitUnit") in ("page", "pages") else None
            return extract_text_from_pdf(path, max_pages=pages)

        text = path.read_text(encoding=input.get("encoding") or "utf-8", errors="replace")
        if limit and input.get("limitUnit") in (None, "line", "lines"):
            text = "\n".join(text.splitlines()[:limit])
        return text

    def _write(self, input: Dict[str, Any]) -> str:
        path = self.resolve(input.get("path") or input.get("target"))
        content = input.get("content")
        if content is None:
            raise FsError("FS_INVALID_INPUT", "Missing required parameter: content")
        if not isinstance(content, str):
            content = str(content)
        if len(content.encode("utf-8")) > self.max_file_size:
            raise FsError("FS_TOO_LARGE", f"Content size exceeds limit ({self.max_file_size})")

        path.parent.mkdir(parents=True, exist_ok=True)
        if input.get("append"):
            with path.open("a", encoding="utf-8") as handle:
                handle.write(content)
        else:
            path.write_text(content, encoding="utf-8")
        return f"Wrote {len(content)} characters to {self._display(path)}"

    def _list(self, input: Dict[str, Any]) -> List[str]:
        path = self.resolve(input.get("directory") or input.get("path") or str(self.allow_roots[0]))
        if path.is_file():
            return [path.name]
        if not path.is_dir():
            raise FsError("FS_NOT_FOUND", f"Directory not found: {self._display(path)}")

        entries = path.rglob("*") if input.get("recursive") else path.iterdir()
        names = sorted(
            entry.relative_to(path).as_posix() + ("/" if entry.is_dir() else "")
            for entry in entries
        )
        return _limit(names, input.get("limit"))

    def _search(self, input: Dict[str, Any]) -> List[str]:
        pattern = input.get("pattern") or input.get("target")
        if not pattern:
            raise FsError("FS_INVALID_INPUT", "Missing required parameter: pattern")
        root = self.resolve(input.get("directory") or input.get("path") or str(self.allow_roots[0]))
        regex = _compile_pattern(str(pattern))

        if root.is_file():
            return [root.name] if regex.search(root.name) else []
        if not root.is_dir():
            raise FsError("FS_NOT_FOUND", f"Directory not found: {self._display(root)}")

        matches = []
        for entry in sorted(root.rglob("*")):
            if not entry.is_file():
                continue
            relative = entry.relative_to(root).as_posix()
            if regex.search(entry.name) or regex.search(relative):
                matches.append(relative)
        return _limit(matches, input.get("limit"))

    def _delete(self, input: Dict[str, Any]) -> str:
        path = self.resolve(input.get("path") or input.get("target"))
        if path in self.allow_roots:
            raise FsError("FS_ACCESS_DENIED", "Refusing to delete a sandbox root")
        if not path.exists():
            raise FsError("FS_NOT_FOUND", f"Path not found: {self._display(path)}")

        if path.is_dir():
            if input.get("recursive") or input.get("force"):
                shutil.rmtree(path)
            else:
                path.rmdir()
        else:
            path.unlink()
        return f"Deleted {self._display(path)}"

    def _copy(self, input: Dict[str, Any]) -> str:
        source, destination = self._source_and_destination(input)
        destination.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, destination, dirs_exist_ok=bool(input.get("force")))
        else:
            shutil.copy2(source, destination)
        return f"Copied {self._display(source)} to {self._display(destination)}"

    def _move(self, input: Dict[str, Any]) -> str:
        source, destination = self._source_and_destination(input)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(destination))
        return f"Moved {self._display(source)} to {self._display(destination)}"

    def _source_and_destination(self, input: Dict[str, Any]):
        source = self.resolve(input.get("source") or input.get("path") or input.get("target"))
        if not source.exists():
            raise FsError("FS_NOT_FOUND", f"Path not found: {self._display(source)}")
        raw_destination = input.get("destination") or input.get("to")
        if not raw_destination:
            raise FsError("FS_INVALID_INPUT", "Missing required parameter: destination")
        destination = self.resolve(raw_destination)
        if destination.is_dir() and not source.is_dir():
            destination = destination / source.name
        return source, destination


# ============================================================================
# HELPERS
# ============================================================================

def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _limit(items: List[str], limit: Any) -> List[str]:
    count = _as_int(limit)
    return items[:count] if count and count > 0 else items


def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Regex when the pattern compiles, otherwise treated as a shell glob."""
    if any(char in pattern for char in "*?") and not any(char in pattern for char in "^$\\()|+"):
        return re.compile(fnmatch.translate(pattern))
    try:
        return re.compile(pattern)
    except re.error:
        return re.compile(fnmatch.translate(pattern))
