from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from arena_live.binding import SessionBinding
from arena_live.config import ArenaLiveConfig, Identity
from arena_live.coordinator import SessionCoordinator
from arena_live.events import EventBus
from arena_live.exceptions import CoordinatorNotProvidedException
from arena_live.transport import SocketTransport

_current_coordinator: ContextVar[Optional[SessionCoordinator]] = ContextVar("arena_live_coordinator", default=None)

def create_coordinator(config: Optional[ArenaLiveConfig] = None) -> SessionCoordinator:
    """Build the process-wide transport, event bus and coordinator."""
    config = config or ArenaLiveConfig.from_env()
    transport = SocketTransport(config)
    return SessionCoordinator(transport, EventBus(), config)

@contextmanager
def provide_coordinator(coordinator: SessionCoordinator) -> Iterator[SessionCoordinator]:
    """Make the shared coordinator available to get_coordinator() within this context."""
    token = _current_coordinator.set(coordinator)
    try:
        yield coordinator
    finally:
        _current_coordinator.reset(token)

def get_coordinator() -> SessionCoordinator:
    """Dependency provider to get the shared SessionCoordinator instance."""
    coordinator = _current_coordinator.get()
    if coordinator is None:
        raise CoordinatorNotProvidedException("get_coordinator() must be used within provide_coordinator()")
    return coordinator

def use_session(identity: Optional[Identity] = None) -> SessionBinding:
    """Create a binding on the shared coordinator. Mount it to start observing."""
    return SessionBinding(get_coordinator(), identity)
