"""
Pytest configuration and shared fixtures for the session runtime tests.
"""

import logging
from typing import Any, Dict, List, Tuple

import pytest

from arena_live import EventBus, SessionCoordinator
from arena_live.config import ArenaLiveConfig, Identity
from fakes import LOCAL_USER, FakeTransport, event_name

# Configure logging for tests
logging.basicConfig(level=logging.INFO)


@pytest.fixture
def config() -> ArenaLiveConfig:
    """Configuration with instant retries."""
    return ArenaLiveConfig(
        server_url="http://arena.test",
        reconnection_attempts=2,
        reconnection_delay=0.0,
        reconnection_delay_max=0.0,
    )

@pytest.fixture
def event_bus() -> EventBus:
    """Create a fresh EventBus for each test."""
    return EventBus()

@pytest.fixture
def transport(config: ArenaLiveConfig) -> FakeTransport:
    return FakeTransport(config)

@pytest.fixture
def coordinator(transport: FakeTransport, event_bus: EventBus) -> SessionCoordinator:
    """A started coordinator on a fake transport."""
    coordinator = SessionCoordinator(transport, event_bus)
    coordinator.start()
    yield coordinator
    coordinator.stop()

@pytest.fixture
def connected(coordinator: SessionCoordinator, transport: FakeTransport) -> SessionCoordinator:
    """A coordinator whose connection is established."""
    coordinator.connect(LOCAL_USER, "token-123")
    transport.simulate_connect()
    return coordinator

@pytest.fixture
def identity() -> Identity:
    return Identity(user_id=LOCAL_USER, token="token-123")

@pytest.fixture
def recorder(event_bus: EventBus):
    """Collects (event, data) pairs for the given bus events."""
    records: List[Tuple[str, Any]] = []

    def watch(*events):
        for event in events:
            event_bus.on(event, lambda data, event=event: records.append((event_name(event), data)))
        return records

    return watch

@pytest.fixture
def sample_duel() -> Dict[str, Any]:
    return {
        "id": "d1",
        "challengeName": "Speed Quiz",
        "participants": [
            {"userId": LOCAL_USER, "progress": 30},
            {"userId": "u-rival", "progress": 10, "name": "Rival"},
        ],
        "startTime": 1_700_000_000_000,
        "endTime": 4_102_444_800_000,  # 2100-01-01
    }

@pytest.fixture
def sample_team() -> Dict[str, Any]:
    return {
        "teamId": "t1",
        "members": [
            {"userId": LOCAL_USER, "name": "Me"},
            {"userId": "u-mate", "name": "Mate"},
        ],
    }
