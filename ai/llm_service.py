"""
LLM Service - Gemini Model Adapter

This service implements the ModelAdapter contract on top of Google's Gemini API:
- System messages become the model's system instruction
- Assistant turns are sent with the "model" role
- Automatic retry with exponential backoff on rate limits, quota and 5xx errors
- Finish reasons normalized to "stop" / "length" / "error"
- Token usage reported on every output

All Gemini calls in intentflow go through GeminiAdapter.
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple

import google.generativeai as genai
from google.generativeai.types import GenerationConfig, HarmBlockThreshold, HarmCategory

from config import (
    GEMINI_MODEL,
    GOOGLE_API_KEY,
    LLM_MAX_RETRIES,
    LLM_RETRY_DELAY,
    MAX_TOKENS,
    TEMPERATURE,
)

from .types import GenOptions, LLMOutput, Prompt, Usage

logger = logging.getLogger(__name__)

# ============================================================================
# SAFETY SETTINGS
# ============================================================================

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}

FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
}


# ============================================================================
# GENERATION CONFIGURATION
# ============================================================================

def get_generation_config(options: Optional[GenOptions] = None) -> GenerationConfig:
    """
    Create a generation configuration for a Gemini call.

    Unset option fields fall back to TEMPERATURE / MAX_TOKENS from settings.
    """
    options = options or GenOptions()
    config_dict: Dict[str, Any] = {
        "temperature": TEMPERATURE if options.temperature is None else options.temperature,
        "max_output_tokens": options.max_tokens or MAX_TOKENS,
    }
    if options.stop_sequences:
        config_dict["stop_sequences"] = list(options.stop_sequences)
    return GenerationConfig(**config_dict)


# ============================================================================
# RETRY DECORATOR
# ============================================================================

def retry_on_error(max_retries: int = LLM_MAX_RETRIES, delay: float = LLM_RETRY_DELAY):
    """
    Decorator to retry coroutine calls on transient API errors.
    Implements exponential backoff.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between attempts (seconds)
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            current_delay = delay

            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)

                except Exception as e:
                    error_type = type(e).__name__
                    error_msg = str(e)

                    retryable = any([
                        "rate limit" in error_msg.lower(),
                        "quota" in error_msg.lower(),
                        "timeout" in error_msg.lower(),
                        "503" in error_msg,
                        "429" in error_msg,
                        "500" in error_msg,
                    ])

                    if not retryable or attempt >= max_retries:
                        logger.error(f"❌ {func.__name__} failed: {error_type}: {error_msg}")
                        raise

                    logger.warning(
                        f"⚠️  {func.__name__} failed (attempt {attempt}/{max_retries}): "
                        f"{error_type}. Retrying in {current_delay}s..."
                    )

                    await asyncio.sleep(current_delay)
                    current_delay *= 2  # Exponential backoff

        return wrapper
    return decorator


# ============================================================================
# MESSAGE CONVERSION
# ============================================================================

def to_gemini_contents(prompt: Prompt) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Split a Prompt into a system instruction and Gemini ``contents``.

    Multiple system messages are joined with blank lines.
    """
    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []

    for message in prompt.messages:
        if message.role == "system":
            system_parts.append(message.content)
            continue
        role = "model" if message.role == "assistant" else "user"
        contents.append({"role": role, "parts": [message.content]})

    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


def map_finish_reason(raw: Any) -> str:
    name = getattr(raw, "name", None) or str(raw)
    return FINISH_REASONS.get(name.upper(), "error")


# ============================================================================
# ADAPTER
# ============================================================================

class GeminiAdapter:
    """
    ModelAdapter backed by google-generativeai.

    Args:
        api_key: Google API key (defaults to GOOGLE_API_KEY)
        model_name: Gemini model (defaults to GEMINI_MODEL)

    Raises:
        ValueError: If no API key is available
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        api_key = api_key or GOOGLE_API_KEY
        if not api_key:
            raise ValueError("GOOGLE_API_KEY is required for GeminiAdapter")

        genai.configure(api_key=api_key)
        self.model_name = model_name or GEMINI_MODEL
        logger.info(f"✅ Gemini adapter ready ({self.model_name})")

    @retry_on_error()
    async def generate(self, prompt: Prompt, options: Optional[GenOptions] = None) -> LLMOutput:
        system_instruction, contents = to_gemini_contents(prompt)
        if not contents:
            raise ValueError("Prompt has no user or assistant messages")

        model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=get_generation_config(options),
            safety_settings=SAFETY_SETTINGS,
            system_instruction=system_instruction,
        )

        start_time = time.time()
        response = await model.generate_content_async(contents)
        latency = time.time() - start_time

        if not response.candidates:
            raise RuntimeError("No response candidates returned from Gemini API")

        candidate = response.candidates[0]
        parts = candidate.content.parts if candidate.content else []
        text = "".join(getattr(part, "text", "") or "" for part in parts)

        usage = Usage()
        usage_metadata = getattr(response, "usage_metadata", None)
        if usage_metadata is not None:
            usage = Usage(
                prompt_tokens=usage_metadata.prompt_token_count or 0,
                completion_tokens=usage_metadata.candidates_token_count or 0,
                total_tokens=usage_metadata.total_token_count or 0,
            )

        logger.debug(
            f"📊 Tokens: {usage.prompt_tokens} in, {usage.completion_tokens} out, "
            f"⏱️  {latency:.2f}s"
        )

        return LLMOutput(
            text=text,
            finish_reason=map_finish_reason(candidate.finish_reason),
            usage=usage,
            metadata={"model": self.model_name, "latency_ms": int(latency * 1000)},
        )
