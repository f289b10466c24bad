import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from arena_live.config import ArenaLiveConfig
from arena_live.exceptions import TransportUnavailableException
from arena_live.protocol import WireEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
ClientFactory = Callable[[], Any]

# Disconnect reasons after which the client will not reconnect on its own
SERVER_DISCONNECT_REASONS = frozenset({"server disconnect", "io server disconnect"})


class SocketTransport:
    """
    Owns the single Socket.IO connection to the coordination server.

    All public methods are synchronous. connect() and disconnect() hand their
    work to asyncio tasks, so they must be called from the event loop thread.
    Handlers registered with subscribe() are invoked in registration order with
    the event payload (None for connect/disconnect).
    """

    def __init__(self, config: ArenaLiveConfig, client_factory: Optional[ClientFactory] = None):
        self.config = config
        self._client_factory = client_factory or self._default_client
        self._client = None
        self._connected = False
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._connect_task: Optional[asyncio.Task] = None
        self._pending_sends: Set[asyncio.Task] = set()
        self._background: Set[asyncio.Task] = set()

    def _default_client(self):
        return socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=self.config.reconnection_attempts,
            reconnection_delay=self.config.reconnection_delay,
            reconnection_delay_max=self.config.reconnection_delay_max,
            logger=False,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_connecting(self) -> bool:
        return self._connect_task is not None and not self._connect_task.done()

    # --- Lifecycle ---

    def connect(self, user_id: str, auth_token: str) -> None:
        """Start connecting in the background. No-op while connected or connecting."""
        if self._connected or self.is_connecting:
            logger.debug("Already connected or connecting.")
            return

        # A client whose own reconnection gave up is replaced, not reused
        stale = self._client
        self._client = None
        if stale is not None:
            self._spawn(self._close_quietly(stale))

        auth = {"userId": user_id, "token": auth_token}
        loop = asyncio.get_running_loop()
        self._connect_task = loop.create_task(self._connect_loop(auth))
        logger.info(f"Connecting to {self.config.server_url} as {user_id}...")

    async def _connect_loop(self, auth: Dict[str, str]) -> None:
        """Run connection rounds until one succeeds or the attempt budget is spent."""
        attempts = self.config.reconnection_attempts
        delay = self.config.reconnection_delay
        round_number = 0

        while True:
            round_number += 1
            try:
                await self._connect_once(auth)
                return
            except asyncio.CancelledError:
                raise
            except TransportUnavailableException as e:
                message = str(e)
            except Exception as e:
                logger.error(f"Unexpected error in connection attempt {round_number}: {e}", exc_info=True)
                message = f"{type(e).__name__}: {e}"
                client, self._client = self._client, None
                if client is not None:
                    await self._close_quietly(client)

            will_retry = attempts == 0 or round_number < attempts
            logger.warning(f"Connection attempt {round_number} failed ({message}). Retrying: {will_retry}")
            self._dispatch(WireEvent.CONNECT_ERROR.value, {"message": message, "will_retry": will_retry})
            if not will_retry:
                return

            await asyncio.sleep(delay)
            delay = min(delay * 2, self.config.reconnection_delay_max)

    async def _connect_once(self, auth: Dict[str, str]) -> None:
        """Try every configured transport mode in order, each on a fresh client."""
        last_error: Optional[TransportUnavailableException] = None

        for mode in self.config.transports:
            client = self._client_factory()
            self._attach(client)
            self._client = client
            try:
                await client.connect(
                    self.config.server_url,
                    auth=auth,
                    transports=[mode],
                    socketio_path=self.config.socketio_path,
                    wait_timeout=self.config.connect_timeout,
                )
                logger.info(f"Connected using {mode} transport.")
                return
            except (SocketConnectionError, asyncio.TimeoutError, OSError) as e:
                logger.debug(f"{mode} transport failed: {e}")
                last_error = TransportUnavailableException(mode, str(e))
                self._client = None
                await self._close_quietly(client)

        raise last_error or TransportUnavailableException("none", "no transport modes configured")

    def disconnect(self) -> None:
        """Tear the connection down and release every handler. Safe to call repeatedly."""
        self._handlers.clear()

        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        self._connect_task = None

        for task in list(self._pending_sends):
            task.cancel()
        self._pending_sends.clear()

        client = self._client
        self._client = None
        was_connected = self._connected
        self._connected = False

        if client is not None:
            self._spawn(self._close_quietly(client))
        if was_connected:
            logger.info("Disconnected.")

    async def _close_quietly(self, client) -> None:
        try:
            await client.disconnect()
        except Exception as e:
            logger.debug(f"Error while closing Socket.IO client: {e}")

    # --- Messaging ---

    def send(self, event: str, payload: Any = None) -> None:
        """Emit an event without waiting for delivery. Dropped when not connected."""
        event_name = _event_name(event)
        if not self._connected or self._client is None:
            logger.debug(f"Dropping '{event_name}': not connected")
            return

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._emit(self._client, event_name, payload))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)

    async def _emit(self, client, event_name: str, payload: Any) -> None:
        try:
            await client.emit(event_name, payload)
        except Exception as e:
            logger.warning(f"Failed to emit '{event_name}': {e}")

    def subscribe(self, event: str, handler: Handler) -> None:
        """Register a handler for an inbound event. Several handlers per event are allowed."""
        event_name = _event_name(event)
        is_new = event_name not in self._handlers
        self._handlers[event_name].append(handler)
        if is_new and self._client is not None:
            self._register(self._client, event_name)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        """Remove one registration of a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(_event_name(event))
        if not handlers:
            return
        for index, registered in enumerate(handlers):
            if registered == handler:
                del handlers[index]
                break

    # --- Dispatch ---

    def _attach(self, client) -> None:
        """Route every known event of a new client through _dispatch."""
        names = set(self._handlers) | {event.value for event in (WireEvent.CONNECT, WireEvent.DISCONNECT)}
        for event_name in names:
            self._register(client, event_name)

    def _register(self, client, event_name: str) -> None:
        if event_name == WireEvent.CONNECT.value:
            client.on(event_name, lambda *args: self._on_connect(client))
        elif event_name == WireEvent.DISCONNECT.value:
            client.on(event_name, lambda *args: self._on_disconnect(client, args[0] if args else None))
        elif event_name == WireEvent.CONNECT_ERROR.value:
            # Reported by _connect_loop; the client's own connect_error would duplicate it
            return
        else:
            client.on(event_name, lambda *args: self._dispatch(event_name, args[0] if args else None))

    def _on_connect(self, client) -> None:
        if client is not self._client:
            return
        self._connected = True
        self._dispatch(WireEvent.CONNECT.value, None)

    def _on_disconnect(self, client, reason: Optional[str] = None) -> None:
        if client is not self._client or not self._connected:
            return
        self._connected = False

        if reason in SERVER_DISCONNECT_REASONS:
            # python-socketio does not reconnect after the server closes the session
            logger.warning(f"Disconnected by the server ({reason}); not reconnecting.")
            self._dispatch(WireEvent.DISCONNECT.value, None)
            self._dispatch(
                WireEvent.CONNECT_ERROR.value,
                {"message": f"disconnected by server: {reason}", "will_retry": False},
            )
            return

        logger.warning("Connection lost; waiting for reconnection.")
        self._dispatch(WireEvent.DISCONNECT.value, None)

    def _dispatch(self, event_name: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event_name, ())):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Handler for '{event_name}' failed: {e}", exc_info=True)

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


def _event_name(event) -> str:
    return event.value if isinstance(event, WireEvent) else str(event)
