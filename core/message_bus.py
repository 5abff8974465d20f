"""
Message Bus

Process-local, type-keyed publish/subscribe used by the kernel and executor to
broadcast lifecycle and progress events.

Two handler flavours are supported:
- envelope handlers (``on``) receive the full ``Event``
- data handlers (``subscribe``/``once``) receive only ``event.data``

Handlers may be plain callables or coroutines. ``emit`` runs every matching
handler concurrently and returns once all of them have settled, so callers must
not rely on the relative order in which handlers finish.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .errors import EventTimeoutError
from .types import now_ms

logger = logging.getLogger(__name__)


# Standard event vocabulary. Any other string is accepted as well.
INTENT_PARSED = "intent.parsed"
TOOL_CALLED = "tool.called"
TOOL_COMPLETED = "tool.completed"
AGENT_STARTED = "agent.started"
AGENT_COMPLETED = "agent.completed"
MEMORY_UPDATED = "memory.updated"
ERROR_OCCURRED = "error.occurred"


@dataclass(frozen=True)
class Event:
    """Envelope delivered to ``on`` handlers."""
    type: str
    data: Any = None
    timestamp: int = field(default_factory=now_ms)


EventHandler = Callable[[Event], Union[None, Awaitable[None]]]
DataHandler = Callable[[Any], Union[None, Awaitable[None]]]


async def _invoke(handler: Callable[[Any], Any], argument: Any) -> None:
    result = handler(argument)
    if inspect.isawaitable(result):
        await result


class MessageBus:
    """Async event bus with envelope and data subscribers."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._data_handlers: Dict[str, List[DataHandler]] = {}

    # ------------------------------------------------------------------
    # Envelope handlers
    # ------------------------------------------------------------------

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler that receives the full Event envelope."""
        if not event_type:
            raise ValueError("event_type must be provided")
        self._handlers.setdefault(event_type, []).append(handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        self._handlers[event_type] = [h for h in handlers if h != handler]

    # ------------------------------------------------------------------
    # Data handlers
    # ------------------------------------------------------------------

    def subscribe(self, event_type: str, handler: DataHandler) -> Callable[[], None]:
        """
        Register a handler that receives only the event data.

        Returns:
            A function that removes this handler when called
        """
        if not event_type:
            raise ValueError("event_type must be provided")
        self._data_handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            current = self._data_handlers.get(event_type)
            if current:
                self._data_handlers[event_type] = [h for h in current if h is not handler]

        return unsubscribe

    def once(self, event_type: str, handler: DataHandler) -> Callable[[], None]:
        """Subscribe for a single delivery, then unsubscribe automatically."""

        async def wrapped(data: Any) -> None:
            unsubscribe()
            await _invoke(handler, data)

        unsubscribe = self.subscribe(event_type, wrapped)
        return unsubscribe

    async def wait_for(self, event_type: str, timeout_ms: Optional[int] = None) -> Any:
        """
        Wait for the next event of ``event_type`` and return its data.

        Raises:
            EventTimeoutError: If ``timeout_ms`` elapses first
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def deliver(data: Any) -> None:
            if not future.done():
                future.set_result(data)

        unsubscribe = self.once(event_type, deliver)
        try:
            if timeout_ms is not None:
                return await asyncio.wait_for(future, timeout_ms / 1000)
            return await future
        except asyncio.TimeoutError:
            raise EventTimeoutError(event_type)
        finally:
            unsubscribe()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def emit(self, event_type: str, data: Any = None) -> Event:
        """
        Deliver an event to every matching handler concurrently.

        All handlers run to completion even when some of them fail; the first
        failure is re-raised after every handler has settled.
        """
        event = Event(type=event_type, data=data)
        # Snapshot so once-handlers unsubscribing mid-delivery are safe.
        envelope_handlers = list(self._handlers.get(event_type, []))
        data_handlers = list(self._data_handlers.get(event_type, []))

        calls = [_invoke(h, event) for h in envelope_handlers]
        calls += [_invoke(h, data) for h in data_handlers]
        if not calls:
            return event

        outcomes = await asyncio.gather(*calls, return_exceptions=True)
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        for error in errors:
            logger.error(f"❌ Handler for '{event_type}' failed: {error!r}")
        if errors:
            raise errors[0]
        return event

    async def publish(self, event_type: str, data: Any = None) -> Event:
        """Alias for :meth:`emit`."""
        return await self.emit(event_type, data)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clear(self, event_type: Optional[str] = None) -> None:
        """Remove all handlers for one event type, or for every type."""
        if event_type:
            self._handlers.pop(event_type, None)
            self._data_handlers.pop(event_type, None)
        else:
            self._handlers.clear()
            self._data_handlers.clear()

    def listener_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, [])) + len(self._data_handlers.get(event_type, []))
