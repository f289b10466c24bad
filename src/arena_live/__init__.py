"""
arena_live - Real-time session coordinator

Client runtime that keeps a live Socket.IO connection to the collaboration
server and reconciles presence rooms, duels and team missions into
observable local state.
"""

from .events import EventBus
from .coordinator import SessionCoordinator
from .binding import SessionBinding, ReactiveCell
from .dependencies import create_coordinator, provide_coordinator, get_coordinator, use_session

__all__ = [
    'EventBus',
    'SessionCoordinator',
    'SessionBinding',
    'ReactiveCell',
    'create_coordinator',
    'provide_coordinator',
    'get_coordinator',
    'use_session',
]
