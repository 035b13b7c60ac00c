"""Contract between the session engine and whatever store keeps sessions"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from focus_voyage.models.events import DistractionEvent, SignalType, UserResponse
from focus_voyage.models.session import NewSession, Session


class PersistenceAdapter(ABC):
    """Asynchronous session store.

    Every method may fail; callers in the engine contain and log those
    failures so that local counters stay authoritative.
    """

    @abstractmethod
    async def create_session(self, params: NewSession) -> Session:
        """Create a session and return it with its store-assigned id"""

    @abstractmethod
    async def update_session(self, session_id: str, patch: Dict[str, Any]) -> Session:
        """Apply ``patch`` to a session and return the stored result"""

    @abstractmethod
    async def insert_event(self, event: DistractionEvent) -> None:
        """Insert a distraction event record"""

    @abstractmethod
    async def resolve_event(self, session_id: str, signal_type: SignalType, patch: Dict[str, Any]) -> bool:
        """Resolve the latest unresolved event of ``signal_type``.

        Returns False when there was no matching record.
        """

    @abstractmethod
    async def list_completed_sessions(self, owner_id: str) -> List[Session]:
        """Completed sessions of an owner, newest first"""

    @abstractmethod
    async def update_event_response(self, event_id: str, response: UserResponse) -> None:
        """Attach the user's response to an event"""

    @abstractmethod
    async def list_session_events(self, session_id: str) -> List[DistractionEvent]:
        """Events of a session in detection order"""
