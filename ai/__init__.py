"""
AI Infrastructure Module

This module provides the language model layer for intentflow:
- ModelAdapter contract (Prompt, GenOptions, LLMOutput)
- Gemini adapter with retry logic and usage tracking
- Fallback adapter chaining a primary and a secondary model

The orchestration core only sees the ModelAdapter contract, never the
provider SDK.
"""

from .types import (
    ChatMessage,
    Prompt,
    GenOptions,
    Usage,
    LLMOutput,
    ModelAdapter,
)

from .llm_service import (
    GeminiAdapter,
    retry_on_error,
)

from .fallback import FallbackAdapter

__all__ = [
    # Contract
    "ChatMessage",
    "Prompt",
    "GenOptions",
    "Usage",
    "LLMOutput",
    "ModelAdapter",

    # Adapters
    "GeminiAdapter",
    "FallbackAdapter",
    "retry_on_error",
]
