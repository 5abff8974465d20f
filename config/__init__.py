"""
Configuration module for intentflow.

This module provides centralized configuration management including:
- Application settings (model, thresholds, executor policy, tool sandboxes)
- Prompt templates

All configurable values should be imported from this module to ensure
consistency across the application.
"""

from .settings import (
    # Paths
    BASE_DIR,
    WORKSPACE_DIR,

    # LLM Settings
    GOOGLE_API_KEY,
    GEMINI_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    LLM_MAX_RETRIES,
    LLM_RETRY_DELAY,

    # Intent & Routing
    CONFIDENCE_THRESHOLD,
    PREFER_DIRECT_EXECUTION,

    # Executor
    EXECUTOR_MAX_RETRIES,
    EXECUTOR_BASE_DELAY_MS,
    EXECUTOR_TIMEOUT_MS,
    TASK_MAX_AGE_MS,

    # Tool Policies
    FS_ALLOW_ROOTS,
    FS_DENY_PATTERNS,
    FS_MAX_FILE_SIZE,
    WEB_ALLOWED_HOSTS,
    WEB_RATE_LIMIT_REQUESTS,
    WEB_RATE_LIMIT_WINDOW,
    WEB_TIMEOUT,
    WEB_MAX_RESPONSE_CHARS,
    PROCESS_WHITELIST,
    PROCESS_TIMEOUT,
    PROCESS_MAX_OUTPUT_CHARS,

    # Debug
    DEBUG,
    LOG_LEVEL,
)

from .prompts import (
    SYSTEM_PROMPT,
    INTENT_PROMPT,
    PLANNER_PROMPT,
    RESPOND_PROMPT,
    format_prompt,
)

__all__ = [
    # Settings
    "BASE_DIR",
    "WORKSPACE_DIR",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "TEMPERATURE",
    "MAX_TOKENS",
    "LLM_MAX_RETRIES",
    "LLM_RETRY_DELAY",
    "CONFIDENCE_THRESHOLD",
    "PREFER_DIRECT_EXECUTION",
    "EXECUTOR_MAX_RETRIES",
    "EXECUTOR_BASE_DELAY_MS",
    "EXECUTOR_TIMEOUT_MS",
    "TASK_MAX_AGE_MS",
    "FS_ALLOW_ROOTS",
    "FS_DENY_PATTERNS",
    "FS_MAX_FILE_SIZE",
    "WEB_ALLOWED_HOSTS",
    "WEB_RATE_LIMIT_REQUESTS",
    "WEB_RATE_LIMIT_WINDOW",
    "WEB_TIMEOUT",
    "WEB_MAX_RESPONSE_CHARS",
    "PROCESS_WHITELIST",
    "PROCESS_TIMEOUT",
    "PROCESS_MAX_OUTPUT_CHARS",
    "DEBUG",
    "LOG_LEVEL",

    # Prompts
    "SYSTEM_PROMPT",
    "INTENT_PROMPT",
    "PLANNER_PROMPT",
    "RESPOND_PROMPT",
    "format_prompt",
]
