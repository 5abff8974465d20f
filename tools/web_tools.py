"""
Web Tool - HTTP requests with a host allowlist and rate limiting.

Only the ``fetch`` operation is exposed; ``method`` selects GET/POST/PUT/DELETE.
Error messages keep the words the executor treats as transient ("timeout",
"rate limit", "network", 429/503) so those failures are retried.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Optional, Sequence
from urllib.parse import urlparse

import httpx

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE")
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``window_seconds``."""

    def __init__(self, max_requests: int, window_seconds: float, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()

    def try_acquire(self) -> bool:
        now = self._clock()
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()
        if len(self._calls) >= self.max_requests:
            return False
        self._calls.append(now)
        return True


def host_allowed(host: str, allowed_hosts: Sequence[str]) -> bool:
    """
    Match ``host`` against allowlist entries.

    ``*`` allows everything; ``*.example.com`` allows example.com and any of
    its subdomains; anything else must match exactly (case-insensitive).
    """
    host = host.lower()
    for entry in allowed_hosts:
        entry = entry.lower()
        if entry == "*":
            return True
        if entry.startswith("*."):
            apex = entry[2:]
            if host == apex or host.endswith("." + apex):
                return True
        elif host == entry:
            return True
    return False


class WebTool(Tool):
    """
    HTTP client tool backed by httpx.

    Args:
        allowed_hosts: Host allowlist (supports ``*`` and ``*.domain``)
        rate_limit_requests: Requests allowed per window
        rate_limit_window: Window length in seconds
        timeout: Per-request timeout in seconds
        max_response_chars: Text bodies are truncated to this length
        transport: Optional httpx transport (used by tests)
    """

    name = "web"
    description = "HTTP requests (fetch pages or call JSON APIs on allow-listed hosts)"
    operations = ("fetch",)
    parameters = {
        "type": "object",
        "properties": {
            "operation": {"type": "string", "enum": ["fetch"]},
            "url": {"type": "string"},
            "method": {"type": "string", "enum": list(ALLOWED_METHODS)},
            "headers": {"type": "object"},
            "params": {"type": "object"},
            "body": {"type": ["string", "object"]},
        },
        "required": ["url"],
    }

    def __init__(
        self,
        allowed_hosts: Sequence[str] = ("*",),
        rate_limit_requests: int = 30,
        rate_limit_window: float = 60.0,
        timeout: float = 20.0,
        max_response_chars: int = 200_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.allowed_hosts = list(allowed_hosts)
        self.rate_limiter = RateLimiter(rate_limit_requests, rate_limit_window)
        self.timeout = timeout
        self.max_response_chars = max_response_chars
        self.transport = transport

    async def execute(self, input: Dict[str, Any]) -> ToolResult:
        started = time.monotonic()

        url = input.get("url") or input.get("target")
        if not url:
            return ToolResult.fail("WEB_INVALID_INPUT", "Missing required parameter: url", started)

        parsed = urlparse(str(url))
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return ToolResult.fail("WEB_INVALID_INPUT", f"Invalid URL: {url}", started)

        if not host_allowed(parsed.hostname, self.allowed_hosts):
            logger.warning(f"⚠️  Blocked request to {parsed.hostname}")
            return ToolResult.fail("WEB_HOST_DENIED", f"Host not allowed: {parsed.hostname}", started)

        method = str(input.get("method") or "GET").upper()
        if method not in ALLOWED_METHODS:
            return ToolResult.fail("WEB_INVALID_INPUT", f"Unsupported method: {method}", started)

        if not self.rate_limiter.try_acquire():
            return ToolResult.fail(
                "WEB_RATE_LIMITED",
                f"Rate limit exceeded ({self.rate_limiter.max_requests} requests per "
                f"{self.rate_limiter.window_seconds:g}s)",
                started,
                recoverable=True,
            )

        body = input.get("body")
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=input.get("headers") or None,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    str(url),
                    params=input.get("params") or None,
                    json=body if isinstance(body, (dict, list)) else None,
                    content=body if isinstance(body, str) else None,
                )
        except httpx.TimeoutException as e:
            return ToolResult.fail("WEB_TIMEOUT", f"Request timeout for {url}: {e}", started, recoverable=True)
        except httpx.RequestError as e:
            return ToolResult.fail("WEB_NETWORK_ERROR", f"Network error for {url}: {e}", started, recoverable=True)

        if response.status_code >= 400:
            return ToolResult.fail(
                "WEB_HTTP_ERROR",
                f"HTTP {response.status_code} {response.reason_phrase} for {url}",
                started,
                recoverable=response.status_code in RETRYABLE_STATUS,
            )

        logger.debug(f"🔧 {method} {url} -> {response.status_code}")
        return ToolResult.ok(self._build_output(response), started)

    def _build_output(self, response: httpx.Response) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        output: Dict[str, Any] = {
            "url": str(response.url),
            "status": response.status_code,
            "contentType": content_type,
        }
        if "json" in content_type:
            try:
                output["data"] = response.json()
                return output
            except ValueError:
                logger.debug("Response declared JSON but did not parse, returning text")

        text = response.text
        output["truncated"] = len(text) > self.max_response_chars
        output["content"] = text[:self.max_response_chars]
        return output
