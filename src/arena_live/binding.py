import logging
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from arena_live.config import Identity
from arena_live.coordinator import SessionCoordinator
from arena_live.protocol import SessionEventType

logger = logging.getLogger(__name__)

T = TypeVar("T")
Unsubscribe = Callable[[], None]


class ReactiveCell(Generic[T]):
    """A value that notifies its watchers when it changes."""

    def __init__(self, value: T):
        self._value = value
        self._watchers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Store a new value. Watchers run only if it differs. Returns whether it changed."""
        if value == self._value:
            return False
        self._value = value
        for watcher in list(self._watchers):
            try:
                watcher(value)
            except Exception as e:
                logger.error(f"Cell watcher failed: {e}", exc_info=True)
        return True

    def watch(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._watchers.append(callback)

        def unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return unwatch


class SessionBinding:
    """
    Adapts the shared coordinator to a mount/unmount lifecycle.

    On mount the binding seeds its cells from the coordinator, registers one
    listener per notification and connects when an identity is known. On
    unmount it removes exactly the listeners it registered and disconnects.

    Command attributes are created once per binding, so consumers can keep
    references to them across re-renders.
    """

    def __init__(self, coordinator: SessionCoordinator, identity: Optional[Identity] = None):
        self.coordinator = coordinator
        self.identity = identity
        self._mounted = False
        self._registrations: List[Tuple[SessionEventType, Callable[[Any], None]]] = []
        self._renderers: List[Callable[["SessionBinding"], None]] = []

        self.connected = ReactiveCell(False)
        self.reconnecting = ReactiveCell(False)
        self.participants = ReactiveCell([])
        self.duel = ReactiveCell(None)
        self.team = ReactiveCell(None)
        self.invitations = ReactiveCell([])
        self.room_state = ReactiveCell(None)

        for cell in self._cells():
            cell.watch(self._on_cell_changed)

        # Identity-stable commands
        self.join_room = coordinator.join_room
        self.leave_room = coordinator.leave_room
        self.send_update = coordinator.send_update
        self.challenge_to_duel = coordinator.challenge_to_duel
        self.reject_duel = coordinator.reject_duel
        self.update_duel_progress = coordinator.update_duel_progress
        self.join_team = coordinator.join_team
        self.leave_team = coordinator.leave_team
        self.start_team_mission = coordinator.start_team_mission
        self.update_team_mission_progress = coordinator.update_team_mission_progress
        self.accept_duel = self._accept_duel

    def _cells(self) -> List[ReactiveCell]:
        return [
            self.connected,
            self.reconnecting,
            self.participants,
            self.duel,
            self.team,
            self.invitations,
            self.room_state,
        ]

    def _accept_duel(self, duel_id: str) -> None:
        # Optimistic: the invitation disappears before the server confirms
        self.coordinator.dismiss_invitation(duel_id)
        self.coordinator.accept_duel(duel_id)

    # --- Lifecycle ---

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        self._refresh_all()

        self._listen(SessionEventType.CONNECTED, self._handle_connected)
        self._listen(SessionEventType.DISCONNECTED, self._handle_disconnected)
        self._listen(SessionEventType.STATUS_CHANGED, self._handle_status)
        self._listen(SessionEventType.PARTICIPANTS_UPDATED, self._handle_participants)
        self._listen(SessionEventType.ROOM_STATE, self._handle_room_state)
        self._listen(SessionEventType.INVITATIONS_UPDATED, self._handle_invitations)
        self._listen(SessionEventType.DUEL_STARTED, self._handle_duel)
        self._listen(SessionEventType.DUEL_PROGRESS, self._handle_duel)
        self._listen(SessionEventType.DUEL_FINISHED, self._handle_duel_finished)
        self._listen(SessionEventType.TEAM_UPDATED, self._handle_team)

        if self.identity is not None:
            self.coordinator.connect(self.identity.user_id, self.identity.token)
        logger.debug(f"Binding mounted with {len(self._registrations)} listeners")

    def unmount(self) -> None:
        if not self._mounted:
            return
        for event, callback in self._registrations:
            self.coordinator.events.off(event, callback)
        self._registrations = []
        self._mounted = False
        self.coordinator.disconnect()
        logger.debug("Binding unmounted")

    def __enter__(self) -> "SessionBinding":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    def _listen(self, event: SessionEventType, callback: Callable[[Any], None]) -> None:
        self.coordinator.events.on(event, callback)
        self._registrations.append((event, callback))

    @property
    def listener_count(self) -> int:
        return len(self._registrations)

    # --- Re-render hook ---

    def subscribe(self, renderer: Callable[["SessionBinding"], None]) -> Unsubscribe:
        """Call renderer(binding) after any cell changes."""
        self._renderers.append(renderer)

        def unsubscribe() -> None:
            if renderer in self._renderers:
                self._renderers.remove(renderer)

        return unsubscribe

    def _on_cell_changed(self, _value: Any) -> None:
        for renderer in list(self._renderers):
            try:
                renderer(self)
            except Exception as e:
                logger.error(f"Renderer failed: {e}", exc_info=True)

    # --- Listeners ---

    def _refresh_all(self) -> None:
        self.connected.set(self.coordinator.is_connected)
        self.reconnecting.set(self.coordinator.is_reconnecting)
        self.participants.set(self.coordinator.participants)
        self.duel.set(self.coordinator.duel)
        self.team.set(self.coordinator.team)
        self.invitations.set(self.coordinator.pending_invitations)
        self.room_state.set(self.coordinator.room_state)

    def _handle_connected(self, _data: Any) -> None:
        self.connected.set(True)
        self.reconnecting.set(False)

    def _handle_disconnected(self, _data: Any) -> None:
        self.connected.set(False)
        self.participants.set([])

    def _handle_status(self, _status: Any) -> None:
        self.reconnecting.set(self.coordinator.is_reconnecting)

    def _handle_participants(self, participants: Any) -> None:
        self.participants.set(participants)

    def _handle_room_state(self, state: Any) -> None:
        self.room_state.set(state)

    def _handle_invitations(self, invitations: Any) -> None:
        self.invitations.set(invitations)

    def _handle_duel(self, duel: Any) -> None:
        self.duel.set(duel)

    def _handle_duel_finished(self, _data: Any) -> None:
        self.duel.set(None)

    def _handle_team(self, team: Any) -> None:
        self.team.set(team)
