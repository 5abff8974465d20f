"""
Tools Module

This module contains the tools the executor can invoke. These are the
"hands" of the assistant - the actions it can take to accomplish user goals.

Each tool is designed to:
- Have a clear, single purpose (files, web, commands)
- Accept a plain dict input with an "operation" key
- Return a ToolResult instead of raising for expected failures
- Enforce its own sandbox policy
- Be independently testable

Tools are registered in a ToolRegistry handed to the router and executor.
"""

from config import (
    FS_ALLOW_ROOTS,
    FS_DENY_PATTERNS,
    FS_MAX_FILE_SIZE,
    PROCESS_MAX_OUTPUT_CHARS,
    PROCESS_TIMEOUT,
    PROCESS_WHITELIST,
    WEB_ALLOWED_HOSTS,
    WEB_MAX_RESPONSE_CHARS,
    WEB_RATE_LIMIT_REQUESTS,
    WEB_RATE_LIMIT_WINDOW,
    WEB_TIMEOUT,
    WORKSPACE_DIR,
)

from .base import (
    Tool,
    ToolError,
    ToolResult,
    ToolRegistry,
)

from .fs_tools import FilesystemTool
from .web_tools import WebTool, RateLimiter, host_allowed
from .process_tools import ProcessTool


def create_default_registry() -> ToolRegistry:
    """
    Build the registry with the filesystem, web and process tools.

    Returns:
        ToolRegistry configured from settings
    """
    return ToolRegistry([
        FilesystemTool(
            allow_roots=FS_ALLOW_ROOTS,
            deny_patterns=FS_DENY_PATTERNS,
            max_file_size=FS_MAX_FILE_SIZE,
        ),
        WebTool(
            allowed_hosts=WEB_ALLOWED_HOSTS,
            rate_limit_requests=WEB_RATE_LIMIT_REQUESTS,
            rate_limit_window=WEB_RATE_LIMIT_WINDOW,
            timeout=WEB_TIMEOUT,
            max_response_chars=WEB_MAX_RESPONSE_CHARS,
        ),
        ProcessTool(
            whitelist=PROCESS_WHITELIST,
            timeout=PROCESS_TIMEOUT,
            cwd=str(WORKSPACE_DIR),
            max_output_chars=PROCESS_MAX_OUTPUT_CHARS,
        ),
    ])


__all__ = [
    # Contract
    "Tool",
    "ToolError",
    "ToolResult",
    "ToolRegistry",

    # Tools
    "FilesystemTool",
    "WebTool",
    "ProcessTool",
    "RateLimiter",
    "host_allowed",

    # Registry
    "create_default_registry",
]
