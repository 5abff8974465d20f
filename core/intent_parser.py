"""
Intent Parser

Turns a free-form request into a structured Intent:
1. Ask the model for a JSON classification (when an adapter is configured)
2. Fall back to keyword heuristics when the model is missing or misbehaves
3. Enforce the confidence threshold so low-confidence intents always ask back

``parse`` never raises; model problems only show up as a warning in the log.
"""

import dataclasses
import json
import logging
import re
from typing import Any, Dict, List, Optional

from ai.types import GenOptions, ModelAdapter, Prompt
from config.prompts import INTENT_PROMPT

from .types import Complexity, Intent

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.6
GENERIC_QUESTION = "Could you provide more details about what you need?"

# ============================================================================
# VOCABULARY
# ============================================================================

KNOWN_ACTIONS = [
    "read", "write", "create", "delete", "list", "search", "find", "copy", "move",
    "fetch", "download", "get", "post", "run", "execute",
    "summarize", "explain", "analyze", "plan", "research", "build",
    "open", "show", "display",
]

FS_TARGET_ACTIONS = {"read", "write", "create", "delete", "list", "copy", "move", "open", "show", "display"}
WEB_TARGET_ACTIONS = {"fetch", "download", "get", "post"}
COMMAND_ACTIONS = {"run", "execute"}

COMPLEX_CUES = [
    re.compile(pattern)
    for pattern in (
        r"\band then\b",
        r"\bafter that\b",
        r"\bfirst\b.*\bthen\b",
        r"\bfinally\b",
        r"\bresearch\b",
        r"\banalyz",
        r"\brefactor\b",
        r"\bconvert all\b",
        r"\bcreate a project\b",
        r"\bbuild\b.*\bwith\b",
    )
]

LIMIT_UNITS = (
    "items", "item", "results", "result", "files", "file", "lines", "line",
    "pages", "page", "entries", "entry", "rows", "row", "words", "word",
)

FLAG_ALIASES = {
    "-r": "recursive", "--recursive": "recursive",
    "-v": "verbose", "--verbose": "verbose",
    "-f": "force", "--force": "force",
}

_WORD_RE = re.compile(r"[a-z]+")
_URL_RE = re.compile(r"https?://[^\s\"'<>]+")
# The extension must contain a letter so decimals like "3.5" are not paths.
_FILE_RE = re.compile(
    r"(?<![\w/.~-])((?:~|\.{1,2})?/?[\w.\-/~]*[\w\-]\.(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{1,8})(?![\w/])"
)
_QUOTED_RE = re.compile(r"\"([^\"]+)\"|(?<!\w)'([^']+)'(?!\w)")
_DIRECTORY_RE = re.compile(r"(?<!\S)((?:~/|\./|/)[^\s]*|[^\s]+/)(?!\S)")
_KEY_VALUE_RE = re.compile(r"(?<![\w-])([A-Za-z_][\w-]*)=(\"[^\"]*\"|'[^']*'|\S+)")
_LIMIT_RE = re.compile(r"\b(\d+)\s+(" + "|".join(LIMIT_UNITS) + r")\b", re.IGNORECASE)

_TRAILING_PUNCT = ".,;:!?)]}"


# ============================================================================
# JSON EXTRACTION
# ============================================================================

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the first JSON object out of a model reply.

    Accepts a bare object, a fenced ```json block, or prose wrapped around a
    ``{...}`` span.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    candidates: List[str] = [text.strip()]
    candidates.extend(block.strip() for block in _FENCE_RE.findall(text))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ValueError(f"No JSON object found in model output: {text[:200]!r}")


# ============================================================================
# PARSER
# ============================================================================

class IntentParser:
    """
    Classifies requests into Intents.

    Usage:
        parser = IntentParser(model_adapter=GeminiAdapter())
        intent = await parser.parse("read notes.md")
    """

    def __init__(
        self,
        model_adapter: Optional[ModelAdapter] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self.model_adapter = model_adapter
        self.confidence_threshold = confidence_threshold

    async def parse(self, text: str) -> Intent:
        """Classify ``text``; the model path is preferred, heuristics are the safety net."""
        intent: Optional[Intent] = None

        if self.model_adapter is not None and text.strip():
            try:
                intent = await self._parse_with_model(text)
            except Exception as e:
                logger.warning(f"⚠️  Model intent parsing failed, using heuristics: {e}")

        if intent is None:
            intent = self.parse_heuristic(text)

        return self._apply_threshold(intent)

    async def _parse_with_model(self, text: str) -> Intent:
        output = await self.model_adapter.generate(
            Prompt.of(INTENT_PROMPT, text),
            GenOptions(temperature=0.0, max_tokens=512),
        )
        if output.finish_reason == "error":
            raise RuntimeError(f"Model reported an error: {output.text[:200]}")

        data = extract_json_object(output.text)

        action = str(data.get("action") or "").strip().lower()
        if not action:
            raise ValueError("Model output has no action")

        target = data.get("target")
        parameters = data.get("parameters") or {}
        if not isinstance(parameters, dict):
            parameters = {}

        complexity = str(data.get("complexity", "simple")).lower()
        questions = data.get("clarificationQuestions", data.get("clarification_questions")) or []

        intent = Intent(
            action=action,
            target=str(target) if target not in (None, "") else None,
            parameters=parameters,
            complexity=Complexity.COMPLEX if complexity == "complex" else Complexity.SIMPLE,
            confidence=_clamp(float(data.get("confidence", 0.5))),
            needs_clarification=bool(data.get("needsClarification", data.get("needs_clarification", False))),
            clarification_questions=[str(q) for q in questions],
        )
        logger.debug(f"🎯 Model intent: {intent.action} -> {intent.target} ({intent.confidence:.2f})")
        return intent

    def _apply_threshold(self, intent: Intent) -> Intent:
        if intent.confidence >= self.confidence_threshold:
            return intent
        questions = list(intent.clarification_questions) or [GENERIC_QUESTION]
        return dataclasses.replace(intent, needs_clarification=True, clarification_questions=questions)

    # ------------------------------------------------------------------
    # Heuristics
    # ------------------------------------------------------------------

    def parse_heuristic(self, text: str) -> Intent:
        """Keyword-based classification used when no model answer is available."""
        lowered = text.lower()
        words = _WORD_RE.findall(lowered)

        action = _detect_action(words)
        target = _extract_target(text)
        complexity = _detect_complexity(lowered, words)
        parameters = _extract_parameters(text)

        confidence = 0.3
        if action != "unknown":
            confidence += 0.3
        if target:
            confidence += 0.2
        if len(text) > 20:
            confidence += 0.1
        if "?" in text:
            confidence -= 0.1
        confidence = round(_clamp(confidence), 2)

        needs_clarification = confidence < self.confidence_threshold
        questions = _clarification_questions(action, target) if needs_clarification else []

        return Intent(
            action=action,
            target=target,
            parameters=parameters,
            complexity=complexity,
            confidence=confidence,
            needs_clarification=needs_clarification,
            clarification_questions=questions,
        )


# ============================================================================
# HEURISTIC HELPERS
# ============================================================================

def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _detect_action(words: List[str]) -> str:
    for word in words:
        if word in KNOWN_ACTIONS:
            return word
    if "what" in words or "how" in words:
        return "explain"
    if "make" in words or "generate" in words:
        return "create"
    return "unknown"


def _detect_complexity(lowered: str, words: List[str]) -> Complexity:
    if any(cue.search(lowered) for cue in COMPLEX_CUES):
        return Complexity.COMPLEX
    verbs = {word for word in words if word in KNOWN_ACTIONS}
    if len(verbs) > 1:
        return Complexity.COMPLEX
    return Complexity.SIMPLE


def _extract_target(text: str) -> Optional[str]:
    for match in _FILE_RE.finditer(text):
        candidate = match.group(1).rstrip(_TRAILING_PUNCT)
        if "://" in text[max(0, match.start() - 8):match.end()]:
            continue
        if candidate:
            return candidate

    url = _URL_RE.search(text)
    if url:
        return url.group(0).rstrip(_TRAILING_PUNCT)

    quoted = _QUOTED_RE.search(text)
    if quoted:
        return quoted.group(1) or quoted.group(2)

    directories = _DIRECTORY_RE.findall(text)
    if directories:
        return directories[-1].rstrip(".,;:!?")

    return None


def _coerce(raw: str) -> Any:
    value = raw.strip("\"'")
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _extract_parameters(text: str) -> Dict[str, Any]:
    parameters: Dict[str, Any] = {}

    for key, raw in _KEY_VALUE_RE.findall(text):
        parameters[key] = _coerce(raw)

    for token in text.split():
        flag = FLAG_ALIASES.get(token.lower())
        if flag:
            parameters[flag] = True

    limit = _LIMIT_RE.search(text)
    if limit:
        parameters["limit"] = int(limit.group(1))
        parameters["limitUnit"] = limit.group(2).lower()

    return parameters


def _clarification_questions(action: str, target: Optional[str]) -> List[str]:
    if action == "unknown":
        return ["What would you like me to do?"]
    if not target:
        if action in FS_TARGET_ACTIONS:
            return [f"Which file or directory should I {action}?"]
        if action in WEB_TARGET_ACTIONS:
            return [f"Which URL should I {action}?"]
        if action in COMMAND_ACTIONS:
            return ["Which command should I run?"]
    return [GENERIC_QUESTION]
