import copy
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from arena_live.config import ArenaLiveConfig
from arena_live.events import EventBus
from arena_live.merge import deep_merge
from arena_live.models import (
    ChallengeConfig,
    ConnectionStatus,
    Duel,
    DuelInvitation,
    DuelStatus,
    MissionConfig,
    Participant,
    Team,
    TeamMission,
    WireModel,
    now_ms,
)
from arena_live.protocol import (
    ChallengeDuelCommand,
    DuelDecisionCommand,
    DuelProgressCommand,
    JoinRoomCommand,
    LeaveRoomCommand,
    MissionProgressCommand,
    RoomUpdateCommand,
    SessionEventType,
    StartMissionCommand,
    TeamMembershipCommand,
    WireEvent,
)
from arena_live.transport import SocketTransport

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class SessionCoordinator:
    """
    Reconciles presence, duels and team missions into local state.

    Responsibilities:
    - Track the connection status and restore room membership on reconnect
    - Translate inbound wire events into state transitions
    - Translate local commands into outbound wire events
    - Publish every state change on the event bus

    Does NOT handle:
    - Transport framing or reconnection (handled by SocketTransport)
    - Presentation lifecycle (handled by SessionBinding)
    - Arbitration between duels (the server is authoritative)

    Commands are best-effort: nothing is acknowledged, retried or queued, and a
    command issued while disconnected is dropped. Accessors return copies.
    """

    def __init__(
        self,
        transport: SocketTransport,
        event_bus: Optional[EventBus] = None,
        config: Optional[ArenaLiveConfig] = None,
    ):
        self.transport = transport
        self.events = event_bus or EventBus()
        self.config = config or transport.config

        self._running = False
        self._transport_bound = False
        self._status = ConnectionStatus.DISCONNECTED
        self._user_id: Optional[str] = None
        self._connection_requested = False

        self._room_request: Optional[JoinRoomCommand] = None
        self._participants: Dict[str, Participant] = {}  # user_id -> Participant
        self._room_state: Any = None
        self._duel: Optional[Duel] = None
        self._invitations: List[DuelInvitation] = []  # oldest first
        self._team: Optional[Team] = None

        # Built once so the same references can be unsubscribed later
        self._inbound = {
            WireEvent.CONNECT: self._handle_connect,
            WireEvent.DISCONNECT: self._handle_disconnect,
            WireEvent.CONNECT_ERROR: self._handle_connect_error,
            WireEvent.PARTICIPANT_JOINED: self._handle_participant_joined,
            WireEvent.PARTICIPANT_LEFT: self._handle_participant_left,
            WireEvent.ROOM_STATE: self._handle_room_state,
            WireEvent.DUEL_INVITE: self._handle_duel_invite,
            WireEvent.DUEL_STARTED: self._handle_duel_started,
            WireEvent.DUEL_UPDATED: self._handle_duel_updated,
            WireEvent.DUEL_ENDED: self._handle_duel_ended,
            WireEvent.TEAM_JOINED: self._handle_team_joined,
            WireEvent.TEAM_MISSION_UPDATED: self._handle_team_mission_updated,
        }

    # --- Lifecycle ---

    def start(self) -> None:
        """Make the coordinator ready to accept connect()."""
        if self._running:
            return
        self._running = True
        logger.info("Session coordinator started")

    def stop(self) -> None:
        """Disconnect, forget all session state and drop every bus listener."""
        if not self._running:
            return
        self.disconnect()
        self._room_state = None
        self._duel = None
        self._invitations = []
        self._team = None
        self.events.clear()
        self._running = False
        logger.info("Session coordinator stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # --- Connection ---

    def connect(self, user_id: str, token: str) -> None:
        """Start connecting with the given credentials. No-op while connected or connecting."""
        if not self._running:
            logger.warning("connect() called before start(); ignoring")
            return
        if self.transport.is_connected or self.transport.is_connecting:
            logger.debug("Connection already established or in progress")
            return

        self._user_id = user_id
        self._connection_requested = True
        self._bind_transport()
        self._set_status(ConnectionStatus.CONNECTING)
        self.transport.connect(user_id, token)

    def disconnect(self) -> None:
        """Close the connection on purpose. The room request is forgotten as well."""
        self.transport.disconnect()
        self._transport_bound = False
        self._connection_requested = False
        self._user_id = None
        self._room_request = None
        self._clear_roster()
        self._set_status(ConnectionStatus.DISCONNECTED)

    def _bind_transport(self) -> None:
        if self._transport_bound:
            return
        for event, handler in self._inbound.items():
            self.transport.subscribe(event, handler)
        self._transport_bound = True

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        previous = self._status
        self._status = status
        logger.debug(f"Connection status: {previous.value} -> {status.value}")
        self.events.emit(SessionEventType.STATUS_CHANGED, status)
        if status == ConnectionStatus.DISCONNECTED:
            self.events.emit(SessionEventType.DISCONNECTED, None)

    def _handle_connect(self, _payload: Any) -> None:
        self._set_status(ConnectionStatus.CONNECTED)
        logger.info(f"Session connected for user {self._user_id}")
        self.events.emit(SessionEventType.CONNECTED, {"userId": self._user_id})

        if self._room_request is not None:
            logger.info(f"Joining room {self._room_request.room_id}")
            self._send(WireEvent.JOIN_ROOM, self._room_request)

    def _handle_disconnect(self, _payload: Any) -> None:
        self._clear_roster()
        self._set_status(ConnectionStatus.DISCONNECTED)

    def _handle_connect_error(self, payload: Any) -> None:
        details = payload if isinstance(payload, dict) else {}
        logger.warning(f"Connection error: {details.get('message', payload)}")
        if not details.get("will_retry", True):
            self._connection_requested = False
            self._set_status(ConnectionStatus.DISCONNECTED)

    # --- Presence ---

    def join_room(self, room_id: str, user_id: str, user_info: Optional[Dict[str, Any]] = None) -> None:
        """
        Switch presence to a room.

        The previous roster is cleared immediately. When offline, the join is
        sent as soon as the connection is established.
        """
        request = self._build(
            WireEvent.JOIN_ROOM, JoinRoomCommand, room_id=room_id, user_id=user_id, user_info=user_info
        )
        if request is None:
            return

        self._clear_roster()
        self._room_state = None
        self._room_request = request

        if self.is_connected:
            self._send(WireEvent.JOIN_ROOM, self._room_request)
        else:
            logger.debug(f"Room {room_id} will be joined once connected")

    def leave_room(self) -> None:
        """Leave the current room, if any."""
        if self._room_request is None:
            return
        self._send_command(WireEvent.LEAVE_ROOM, LeaveRoomCommand, room_id=self._room_request.room_id)
        self._room_request = None
        self._room_state = None
        self._clear_roster()

    def send_update(self, update: Any) -> None:
        """Forward an arbitrary payload to the current room."""
        if self._room_request is None:
            logger.debug("Ignoring room update: no room joined")
            return
        self._send_command(WireEvent.ROOM_UPDATE, RoomUpdateCommand, room_id=self._room_request.room_id, update=update)

    def _in_current_room(self, payload: Any) -> bool:
        if self._room_request is None:
            return False
        room_id = payload.get("roomId") if isinstance(payload, dict) else None
        return room_id is None or room_id == self._room_request.room_id

    def _handle_participant_joined(self, payload: Any) -> None:
        if not self._in_current_room(payload):
            logger.debug("Ignoring participant from another room")
            return
        participant = self._parse(Participant, payload, WireEvent.PARTICIPANT_JOINED)
        if participant is None:
            return
        self._participants[participant.user_id] = participant
        self.events.emit(SessionEventType.PARTICIPANTS_UPDATED, self.participants)

    def _handle_participant_left(self, payload: Any) -> None:
        if not self._in_current_room(payload):
            return
        user_id = payload.get("userId") if isinstance(payload, dict) else None
        if self._participants.pop(user_id, None) is not None:
            self.events.emit(SessionEventType.PARTICIPANTS_UPDATED, self.participants)

    def _handle_room_state(self, payload: Any) -> None:
        if not self._in_current_room(payload):
            return
        self._room_state = payload
        self.events.emit(SessionEventType.ROOM_STATE, self.room_state)

    def _clear_roster(self) -> None:
        if self._participants:
            self._participants.clear()
            self.events.emit(SessionEventType.PARTICIPANTS_UPDATED, [])

    # --- Duels ---

    def challenge_to_duel(
        self, target_user_id: str, config: Union[ChallengeConfig, Dict[str, Any], None] = None
    ) -> None:
        """Challenge another user. No local state is created for the challenger."""
        self._send_command(
            WireEvent.CHALLENGE_DUEL,
            ChallengeDuelCommand,
            target_user_id=target_user_id,
            challenge_config=config,
            timestamp=now_ms(),
        )

    def accept_duel(self, duel_id: str) -> None:
        """Accept an invitation. The duel becomes active when the server starts it."""
        self._send_command(WireEvent.ACCEPT_DUEL, DuelDecisionCommand, duel_id=duel_id)

    def reject_duel(self, duel_id: str) -> None:
        """Reject an invitation and drop it from the pending list."""
        self._send_command(WireEvent.REJECT_DUEL, DuelDecisionCommand, duel_id=duel_id)
        self.dismiss_invitation(duel_id)

    def dismiss_invitation(self, duel_id: str) -> bool:
        """Remove a pending invitation locally. Returns whether one was removed."""
        remaining = [invitation for invitation in self._invitations if invitation.id != duel_id]
        if len(remaining) == len(self._invitations):
            return False
        self._invitations = remaining
        self.events.emit(SessionEventType.INVITATIONS_UPDATED, self.pending_invitations)
        return True

    def update_duel_progress(self, progress: float) -> None:
        """Report local progress for the active duel. No-op without one."""
        if self.duel_status != DuelStatus.ACTIVE:
            logger.debug("Ignoring duel progress: no active duel")
            return
        self._send_command(WireEvent.DUEL_PROGRESS, DuelProgressCommand, duel_id=self._duel.id, progress=progress)

    def _handle_duel_invite(self, payload: Any) -> None:
        invitation = self._parse(DuelInvitation, payload, WireEvent.DUEL_INVITE)
        if invitation is None:
            return
        if any(pending.id == invitation.id for pending in self._invitations):
            logger.debug(f"Duplicate invitation {invitation.id} ignored")
            return
        self._invitations.append(invitation)
        logger.info(f"Duel invitation {invitation.id} from {invitation.from_user_name or invitation.from_user_id}")
        self.events.emit(SessionEventType.DUEL_INVITATION, invitation.model_copy(deep=True))
        self.events.emit(SessionEventType.INVITATIONS_UPDATED, self.pending_invitations)

    def _handle_duel_started(self, payload: Any) -> None:
        duel = self._parse(Duel, payload, WireEvent.DUEL_STARTED)
        if duel is None:
            return
        if self._duel is not None and self._duel.id != duel.id:
            logger.info(f"Duel {self._duel.id} replaced by {duel.id}")
        self._duel = duel

        # The started duel either answers a pending invitation or supersedes all of them
        if self._invitations:
            self._invitations = []
            self.events.emit(SessionEventType.INVITATIONS_UPDATED, [])

        logger.info(f"Duel {duel.id} started")
        self.events.emit(SessionEventType.DUEL_STARTED, self.duel)

    def _handle_duel_updated(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring malformed '{WireEvent.DUEL_UPDATED.value}' payload: {payload!r}")
            return
        if self._duel is None:
            logger.debug("Ignoring duel update: no duel held")
            return
        duel_id = payload.get("id")
        if duel_id is not None and duel_id != self._duel.id:
            logger.debug(f"Ignoring update for unknown duel {duel_id}")
            return

        merged = self._parse(Duel, deep_merge(self._duel.model_dump(by_alias=True), payload), WireEvent.DUEL_UPDATED)
        if merged is None:
            return
        self._duel = merged
        self.events.emit(SessionEventType.DUEL_PROGRESS, self.duel)

    def _handle_duel_ended(self, payload: Any) -> None:
        duel_id = payload.get("id") if isinstance(payload, dict) else None
        if self._duel is None:
            # A challenge withdrawn before it was accepted
            if duel_id is not None:
                self.dismiss_invitation(duel_id)
            return
        if duel_id is not None and duel_id != self._duel.id:
            logger.debug(f"Ignoring end of unknown duel {duel_id}")
            return

        final = self._duel
        self._duel = None
        logger.info(f"Duel {final.id} finished")
        self.events.emit(SessionEventType.DUEL_FINISHED, {"duel": final, "result": payload})

    # --- Teams ---

    def join_team(self, team_id: str, user_id: str) -> None:
        self._send_command(WireEvent.JOIN_TEAM, TeamMembershipCommand, team_id=team_id, user_id=user_id)

    def leave_team(self, team_id: str) -> None:
        self._send_command(WireEvent.LEAVE_TEAM, TeamMembershipCommand, team_id=team_id, user_id=self._user_id)

    def start_team_mission(
        self, team_id: str, config: Union[MissionConfig, Dict[str, Any], None] = None
    ) -> None:
        self._send_command(WireEvent.START_MISSION, StartMissionCommand, team_id=team_id, mission_config=config)

    def update_team_mission_progress(self, team_id: str, mission_id: str, progress: float) -> None:
        self._send_command(
            WireEvent.MISSION_PROGRESS,
            MissionProgressCommand,
            team_id=team_id,
            mission_id=mission_id,
            progress=progress,
        )

    def _handle_team_joined(self, payload: Any) -> None:
        team = self._parse(Team, payload, WireEvent.TEAM_JOINED)
        if team is None:
            return
        self._team = team
        logger.info(f"Joined team {team.team_id} ({len(team.members)} members)")
        self.events.emit(SessionEventType.TEAM_UPDATED, self.team)

    def _handle_team_mission_updated(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring malformed '{WireEvent.TEAM_MISSION_UPDATED.value}' payload: {payload!r}")
            return
        if self._team is None:
            logger.debug("Ignoring mission update: not in a team")
            return
        team_id = payload.get("teamId")
        if team_id is not None and team_id != self._team.team_id:
            logger.debug(f"Ignoring mission update for team {team_id}")
            return

        patch = {key: value for key, value in payload.items() if key not in ("teamId", "missionId")}
        if "missionId" in payload and "id" not in patch:
            patch["id"] = payload["missionId"]

        current = self._team.active_mission
        new_mission = current is None or (
            patch.get("id") is not None and current.id is not None and patch["id"] != current.id
        )
        base = {} if new_mission else current.model_dump(by_alias=True)

        mission = self._parse(TeamMission, deep_merge(base, patch), WireEvent.TEAM_MISSION_UPDATED)
        if mission is None:
            return
        if new_mission:
            logger.info(f"Team {self._team.team_id} mission started: {mission.name or mission.id}")
        self._team = self._team.model_copy(update={"active_mission": mission})
        self.events.emit(SessionEventType.TEAM_MISSION_PROGRESS, mission.model_copy(deep=True))
        self.events.emit(SessionEventType.TEAM_UPDATED, self.team)

    # --- Helpers ---

    def _send(self, event: WireEvent, command: WireModel) -> None:
        if not self.transport.is_connected:
            logger.debug(f"Dropping '{event.value}': not connected")
            return
        self.transport.send(event, command.to_wire())

    def _send_command(self, event: WireEvent, command_model: Type[WireModel], **fields: Any) -> None:
        """Build and send a command. Never raises: offline or invalid commands are dropped."""
        if not self.transport.is_connected:
            logger.debug(f"Dropping '{event.value}': not connected")
            return
        command = self._build(event, command_model, **fields)
        if command is not None:
            self.transport.send(event, command.to_wire())

    def _build(self, event: WireEvent, command_model: Type[ModelT], **fields: Any) -> Optional[ModelT]:
        try:
            return command_model(**fields)
        except ValidationError as e:
            logger.warning(f"Dropping '{event.value}' with invalid arguments: {e}")
            return None

    def _parse(self, model: Type[ModelT], payload: Any, event: WireEvent) -> Optional[ModelT]:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed '{event.value}' payload: {e}")
            return None

    # --- Read accessors (snapshots) ---

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def is_reconnecting(self) -> bool:
        """A connection was requested and not dropped on purpose, but is not up."""
        return self._connection_requested and self._status != ConnectionStatus.CONNECTED

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def current_room(self) -> Optional[str]:
        return self._room_request.room_id if self._room_request else None

    @property
    def participants(self) -> List[Participant]:
        return [participant.model_copy(deep=True) for participant in self._participants.values()]

    @property
    def room_state(self) -> Any:
        return copy.deepcopy(self._room_state)

    @property
    def duel(self) -> Optional[Duel]:
        return self._duel.model_copy(deep=True) if self._duel else None

    @property
    def duel_status(self) -> DuelStatus:
        if self._duel is not None:
            return DuelStatus.FINISHED if self._duel.is_finished() else DuelStatus.ACTIVE
        if self._invitations:
            return DuelStatus.PENDING_INVITE
        return DuelStatus.NONE

    @property
    def pending_invitations(self) -> List[DuelInvitation]:
        return [invitation.model_copy(deep=True) for invitation in self._invitations]

    @property
    def team(self) -> Optional[Team]:
        return self._team.model_copy(deep=True) if self._team else None
