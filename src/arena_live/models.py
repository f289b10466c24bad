import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# --- Enums ---

class ConnectionStatus(Enum):
    """Lifecycle of the connection to the coordination server."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"

class DuelStatus(Enum):
    """Derived status of the local duel state."""
    NONE = "none"
    PENDING_INVITE = "pending_invite"
    ACTIVE = "active"
    FINISHED = "finished"

# --- Base ---

class WireModel(BaseModel):
    """
    Base for every model that travels over the wire.

    Fields are snake_case in Python and camelCase on the wire. Unknown keys are
    kept so that server-side additions survive a merge and a re-dump.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump to a camelCase dict, dropping unset optional values."""
        return self.model_dump(by_alias=True, exclude_none=True)

def _clamp_percentage(v: float) -> float:
    return max(0.0, min(100.0, float(v)))

def now_ms() -> int:
    """Current time in epoch milliseconds, the unit the server uses for timestamps."""
    return int(time.time() * 1000)

# --- Presence ---

class Participant(WireModel):
    """A member of the currently joined room."""
    user_id: str = Field(..., min_length=1, description="Unique participant identifier")
    name: Optional[str] = Field(None, description="Display name")
    color: Optional[str] = Field(None, description="Avatar color")
    status: Optional[str] = Field(None, description="Free-form presence status (e.g. 'active', 'idle')")

# --- Duels ---

class ChallengeConfig(WireModel):
    """Settings sent along with a duel challenge."""
    challenge_type: Optional[str] = None
    duration: Optional[int] = Field(None, description="Duel duration in seconds")

class DuelParticipant(WireModel):
    """Progress of one participant within a duel."""
    user_id: str = Field(..., min_length=1)
    progress: float = Field(0.0, description="Progress percentage, 0 to 100")
    name: Optional[str] = None

    @field_validator("progress")
    @classmethod
    def clamp_progress(cls, v: float) -> float:
        return _clamp_percentage(v)

class Duel(WireModel):
    """A timed, head-to-head competitive session."""
    id: str = Field(..., min_length=1)
    participants: List[DuelParticipant] = Field(default_factory=list)
    challenge_name: Optional[str] = None
    start_time: Optional[int] = Field(None, description="Epoch milliseconds")
    end_time: Optional[int] = Field(None, description="Epoch milliseconds")

    def is_finished(self, at_ms: Optional[int] = None) -> bool:
        """Whether the duel's end time has passed."""
        if self.end_time is None:
            return False
        return self.end_time <= (at_ms if at_ms is not None else now_ms())

    def progress_of(self, user_id: str) -> Optional[float]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant.progress
        return None

class DuelInvitation(WireModel):
    """A challenge received from another user and not yet acted upon."""
    id: str = Field(..., min_length=1)
    from_user_id: Optional[str] = None
    from_user_name: Optional[str] = None
    challenge_config: Optional[ChallengeConfig] = None

# --- Teams ---

class MissionConfig(WireModel):
    """Settings sent when starting a team mission."""
    name: Optional[str] = None
    duration: Optional[int] = Field(None, description="Mission duration in seconds")

class MissionContribution(WireModel):
    """Points contributed by one member to the active mission."""
    user_id: str = Field(..., min_length=1)
    points: float = 0.0

class TeamMission(WireModel):
    """A cooperative objective with aggregate and per-member progress."""
    id: Optional[str] = None
    name: Optional[str] = None
    overall_progress: float = Field(0.0, description="Overall progress percentage, 0 to 100")
    contributions: List[MissionContribution] = Field(default_factory=list)

    @field_validator("overall_progress")
    @classmethod
    def clamp_overall_progress(cls, v: float) -> float:
        return _clamp_percentage(v)

class Team(WireModel):
    """The team the local user belongs to."""
    team_id: str = Field(..., min_length=1)
    members: List[Participant] = Field(default_factory=list)
    # Sent as "mission" by the server
    active_mission: Optional[TeamMission] = Field(
        None,
        validation_alias=AliasChoices("mission", "activeMission", "active_mission"),
        serialization_alias="mission",
    )
