from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel, Field

from focus_voyage.models.events import SignalType
from focus_voyage.services.errors import SessionStateError

LOCAL_ID_PREFIX = "local-"


def make_local_id() -> str:
    """Synthetic id for a session the store never confirmed"""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(session_id: str) -> bool:
    return session_id.startswith(LOCAL_ID_PREFIX)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class PersistenceTag(str, Enum):
    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


class SessionStatistics(BaseModel):
    """Final metrics for a finished session"""
    focus_quality: int = Field(ge=0, le=100, description="Percent of the session not lost to distraction")
    most_common_type: Optional[SignalType] = None
    average_duration_ms: float = Field(default=0.0, ge=0)
    total_distraction_ms: float = Field(default=0.0, ge=0)
    return_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    completion_percentage: int = Field(default=100, ge=0)
    event_count: int = Field(default=0, ge=0)


class NewSession(BaseModel):
    """Parameters for creating a session in the store"""
    owner_id: str = Field(min_length=1)
    destination_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=datetime.now)
    start_mark: float
    planned_duration_minutes: Optional[int] = Field(default=None, ge=0)


class Session(BaseModel):
    """One timed focus period (a voyage) tied to a destination"""
    id: str
    owner_id: str
    destination_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    start_mark: float = Field(description="Monotonic start timestamp in ms")
    end_time: Optional[datetime] = None
    end_mark: Optional[float] = None
    planned_duration_minutes: Optional[int] = Field(default=None, ge=0)
    actual_duration_ms: Optional[float] = Field(default=None, ge=0)
    distraction_count: int = Field(default=0, ge=0)
    status: SessionStatus = SessionStatus.ACTIVE
    persistence: PersistenceTag = PersistenceTag.REMOTE
    synced: bool = True
    statistics: Optional[SessionStatistics] = None

    @property
    def is_local(self) -> bool:
        return self.persistence == PersistenceTag.LOCAL_ONLY

    @property
    def planned_duration_ms(self) -> Optional[float]:
        if self.planned_duration_minutes is None:
            return None
        return self.planned_duration_minutes * 60000.0

    def transition_to(self, status: SessionStatus) -> None:
        """Move out of the active state; sessions never return to active"""
        status = SessionStatus(status)
        if self.status != SessionStatus.ACTIVE or status == SessionStatus.ACTIVE:
            raise SessionStateError(
                f"Cannot move session {self.id} from {self.status.value} to {status.value}"
            )
        self.status = status


class SessionSnapshot(BaseModel):
    """What consumers observe about the live session"""
    status: Optional[SessionStatus] = None  # None while idle
    session_id: Optional[str] = None
    distraction_count: int = 0
    is_currently_distracted: bool = False
    exploring: bool = False
    elapsed_ms: float = 0.0
