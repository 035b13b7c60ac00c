from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union
import uuid

from pydantic import BaseModel, ConfigDict, Field

from focus_voyage.services.errors import EventStateError


class SignalType(str, Enum):
    """Category of detector that raised a distraction"""
    TAB_SWITCH = "tab_switch"
    IDLE = "idle"
    CONTENT_IRRELEVANT = "content_irrelevant"
    PRESENCE_ABSENCE = "presence_absence"
    BLACKLISTED_CONTENT = "blacklisted_content"


class UserResponse(str, Enum):
    RETURNED = "returned"
    EXPLORING = "exploring"
    IGNORED = "ignored"


class DistractionEvent(BaseModel):
    """A recorded episode where a signal indicated disengagement"""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    session_id: str = Field(description="Owning session id")
    signal_type: SignalType
    detected_at: float = Field(description="Monotonic detection timestamp in ms")
    detected_wall_time: datetime = Field(default_factory=datetime.now)
    duration_ms: Optional[float] = Field(
        default=None,
        ge=0,
        description="Episode length in ms, absent while ongoing"
    )
    resolved: bool = False
    user_response: Optional[UserResponse] = None

    def resolve(self, duration_ms: float) -> None:
        """Close the episode; an event can only be resolved once"""
        if self.resolved:
            raise EventStateError(f"Distraction event {self.id} is already resolved")
        self.duration_ms = max(0.0, duration_ms)
        self.resolved = True


@dataclass(frozen=True)
class DistractionStarted:
    signal_type: SignalType
    timestamp: float  # when the episode actually began


@dataclass(frozen=True)
class DistractionEnded:
    signal_type: SignalType
    timestamp: float  # when the episode was observed to end
    duration_ms: float


Transition = Union[DistractionStarted, DistractionEnded]


@dataclass
class SignalState:
    """Live, unpersisted state of one detector"""
    threshold_ms: float
    active: bool = False
    armed_at: Optional[float] = None
    last_activity: Optional[float] = None
    distracted_since: Optional[float] = None

    @property
    def distracted(self) -> bool:
        return self.distracted_since is not None

    def reset(self) -> None:
        self.active = False
        self.armed_at = None
        self.last_activity = None
        self.distracted_since = None
