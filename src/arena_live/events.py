import asyncio
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Set

Callback = Callable[[Any], Any]
Unsubscribe = Callable[[], None]

class EventBus:
    """
    In-process event bus fanning session notifications out to consumers.

    Delivery is synchronous and follows registration order. Handler errors are
    isolated - if one handler fails, the others still receive the event and
    emit() itself never raises.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callback]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()
        self.logger = logging.getLogger(__name__)

    def on(self, event_type: str, callback: Callback) -> Unsubscribe:
        """
        Subscribe a callback to an event type.

        Returns a handle that removes exactly this registration. Calling it more
        than once is harmless; off() with the same callback works as well.
        """
        event_type = _event_key(event_type)
        self._subscribers[event_type].append(callback)
        self.logger.debug(f"Subscribed handler to {event_type}")

        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if not removed:
                removed = True
                self.off(event_type, callback)

        return unsubscribe

    subscribe = on

    def off(self, event_type: str, callback: Callback) -> None:
        """Remove one registration of a callback. Unknown callbacks are ignored."""
        event_type = _event_key(event_type)
        handlers = self._subscribers.get(event_type)
        if not handlers:
            return
        for index, handler in enumerate(handlers):
            if handler == callback:
                del handlers[index]
                break
        if not handlers:
            del self._subscribers[event_type]

    def emit(self, event_type: str, data: Any = None) -> None:
        """Deliver an event to all subscribers."""
        event_type = _event_key(event_type)
        # Snapshot so handlers may unsubscribe while being notified
        handlers = list(self._subscribers.get(event_type, ()))
        if not handlers:
            self.logger.debug(f"No subscribers for event type: {event_type}")
            return

        self.logger.debug(f"Emitting {event_type} to {len(handlers)} handlers")

        for handler in handlers:
            try:
                result = handler(data)
            except Exception as e:
                self.logger.error(f"Handler {_handler_name(handler)} failed for {event_type}: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._schedule(event_type, handler, result)

    def _schedule(self, event_type: str, handler: Callback, awaitable) -> None:
        """Run an async handler's result on the loop and log its failure."""
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError:
            self.logger.error(f"Async handler {_handler_name(handler)} for {event_type} needs a running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                self.logger.error(
                    f"Async handler {_handler_name(handler)} failed for {event_type}: {error}",
                    exc_info=error,
                )

        task.add_done_callback(_done)

    def clear(self) -> None:
        """Drop every registration."""
        self._subscribers.clear()

    def get_subscriber_count(self, event_type: str) -> int:
        """Get number of subscribers for an event type (useful for testing)."""
        return len(self._subscribers.get(_event_key(event_type), ()))


def _event_key(event_type) -> str:
    return event_type.value if isinstance(event_type, Enum) else event_type


def _handler_name(handler: Callback) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
