"""
Fallback model adapter.

Tries a primary adapter (usually a fast or local model) under a deadline and
falls back to a secondary adapter when the primary fails, times out or stops
for any reason other than a natural end of output.
"""

import asyncio
import logging
from typing import Optional

from .types import GenOptions, LLMOutput, ModelAdapter, Prompt

logger = logging.getLogger(__name__)


class FallbackAdapter:
    def __init__(self, primary: ModelAdapter, secondary: ModelAdapter, primary_timeout_ms: int = 5000):
        self.primary = primary
        self.secondary = secondary
        self.primary_timeout_ms = primary_timeout_ms

    async def generate(self, prompt: Prompt, options: Optional[GenOptions] = None) -> LLMOutput:
        try:
            output = await asyncio.wait_for(
                self.primary.generate(prompt, options),
                timeout=self.primary_timeout_ms / 1000,
            )
            if self.is_good_quality(output):
                return output
            logger.info(f"ℹ️  Primary model stopped with '{output.finish_reason}', using secondary")
        except asyncio.TimeoutError:
            logger.warning(f"⚠️  Primary model timed out after {self.primary_timeout_ms}ms, using secondary")
        except Exception as e:
            logger.warning(f"⚠️  Primary model failed, using secondary: {e}")

        return await self.secondary.generate(prompt, options)

    @staticmethod
    def is_good_quality(output: LLMOutput) -> bool:
        return output.finish_reason == "stop" and bool(output.text.strip())
