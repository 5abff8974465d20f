"""
Model adapter contract.

Everything that talks to a language model goes through ``ModelAdapter.generate``.
The orchestration core only depends on these types, never on a provider SDK.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol


@dataclass
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass
class Prompt:
    messages: List[ChatMessage] = field(default_factory=list)

    @classmethod
    def of(cls, system: Optional[str], user: str) -> "Prompt":
        """Build the common system + single user message prompt."""
        messages = [ChatMessage("system", system)] if system else []
        messages.append(ChatMessage("user", user))
        return cls(messages=messages)


@dataclass
class GenOptions:
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMOutput:
    """
    Generated text plus bookkeeping.

    Attributes:
        text: Generated text
        finish_reason: "stop", "length" or "error"
        usage: Token counts
        metadata: Provider-specific extras (model name, latency...)
    """
    text: str
    finish_reason: str = "stop"
    usage: Usage = field(default_factory=Usage)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ModelAdapter(Protocol):
    async def generate(self, prompt: Prompt, options: Optional[GenOptions] = None) -> LLMOutput:
        ...
