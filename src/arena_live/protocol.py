"""
Wire protocol shared with the coordination server.

Event names are declared here once so a renamed server event shows up as a
single diff instead of a silent string mismatch.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from arena_live.models import WireModel, ChallengeConfig, MissionConfig


class WireEvent(str, Enum):
    """Socket.IO event names exchanged with the server."""
    # Transport lifecycle (inbound)
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    CONNECT_ERROR = "connect_error"

    # Presence (inbound)
    PARTICIPANT_JOINED = "collaborator:joined"
    PARTICIPANT_LEFT = "collaborator:left"
    ROOM_STATE = "collaboration:state"

    # Duels (inbound)
    DUEL_INVITE = "duel:invite"
    DUEL_STARTED = "duel:start"
    DUEL_UPDATED = "duel:update"
    DUEL_ENDED = "duel:end"

    # Teams (inbound)
    TEAM_JOINED = "team:joined"
    TEAM_MISSION_UPDATED = "team:mission:update"

    # Presence (outbound)
    JOIN_ROOM = "collaboration:join"
    LEAVE_ROOM = "collaboration:leave"
    ROOM_UPDATE = "collaboration:update"

    # Duels (outbound)
    CHALLENGE_DUEL = "duel:challenge"
    ACCEPT_DUEL = "duel:accept"
    REJECT_DUEL = "duel:reject"
    DUEL_PROGRESS = "duel:progress"

    # Teams (outbound)
    JOIN_TEAM = "team:join"
    LEAVE_TEAM = "team:leave"
    START_MISSION = "team:mission:start"
    MISSION_PROGRESS = "team:mission:progress"


class SessionEventType(str, Enum):
    """Notifications published on the in-process event bus."""
    CONNECTED = "session:connected"
    DISCONNECTED = "session:disconnected"
    STATUS_CHANGED = "session:status"
    PARTICIPANTS_UPDATED = "collaborator:update"
    ROOM_STATE = "state:update"
    DUEL_INVITATION = "duel:invitation"
    INVITATIONS_UPDATED = "duel:invitations"
    DUEL_STARTED = "duel:started"
    DUEL_PROGRESS = "duel:progress"
    DUEL_FINISHED = "duel:finished"
    TEAM_UPDATED = "team:update"
    TEAM_MISSION_PROGRESS = "team:mission:progress"


# --- Outbound commands ---

class JoinRoomCommand(WireModel):
    room_id: str
    user_id: str
    user_info: Optional[Dict[str, Any]] = None

class LeaveRoomCommand(WireModel):
    room_id: str

class RoomUpdateCommand(WireModel):
    room_id: str
    update: Any = None

class ChallengeDuelCommand(WireModel):
    target_user_id: str
    challenge_config: Optional[ChallengeConfig] = None
    timestamp: int = Field(..., description="Epoch milliseconds when the challenge was issued")

class DuelDecisionCommand(WireModel):
    """Payload of both accept and reject."""
    duel_id: str

class DuelProgressCommand(WireModel):
    duel_id: str
    progress: float

class TeamMembershipCommand(WireModel):
    """Payload of both team join and team leave."""
    team_id: str
    user_id: Optional[str] = None

class StartMissionCommand(WireModel):
    team_id: str
    mission_config: Optional[MissionConfig] = None

class MissionProgressCommand(WireModel):
    team_id: str
    mission_id: str
    progress: float
