import pytest
import heapq
import itertools
from typing import Any, Callable, Dict, List

from focus_voyage.config.config import DetectorConfig
from focus_voyage.models.events import DistractionEvent, SignalType, UserResponse
from focus_voyage.models.session import NewSession, Session
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.database import SQLiteStore
from focus_voyage.services.errors import PersistenceError
from focus_voyage.services.monitor import SignalMonitor
from focus_voyage.services.persistence import PersistenceAdapter
from focus_voyage.services.session import SessionManager


class ManualClock:
    """Millisecond time source advanced by hand"""

    def __init__(self, start: float = 1_000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


class ManualTimer:
    def __init__(self, callback: Callable[[], None]):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Runs timer callbacks when the test advances the manual clock"""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(callback)
        due = self.clock.value + max(0.0, delay) * 1000
        heapq.heappush(self._queue, (due, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order at their due time"""
        target = self.clock.value + seconds * 1000
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.clock.value = max(self.clock.value, due)
            timer.callback()
        self.clock.value = target

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)


class MemoryStore(PersistenceAdapter):
    """In-memory store recording every call"""

    def __init__(self):
        self.sessions: Dict[str, Session] = {}
        self.events: Dict[str, DistractionEvent] = {}
        self.calls: List[str] = []
        self._next_id = itertools.count(1)

    async def create_session(self, params: NewSession) -> Session:
        self.calls.append("create_session")
        session = Session(id=f"s{next(self._next_id)}", **params.model_dump())
        self.sessions[session.id] = session.model_copy()
        return session

    async def update_session(self, session_id: str, patch: Dict[str, Any]) -> Session:
        self.calls.append("update_session")
        stored = self.sessions[session_id].model_copy(update=patch)
        self.sessions[session_id] = stored
        return stored.model_copy()

    async def insert_event(self, event: DistractionEvent) -> None:
        self.calls.append("insert_event")
        self.events[event.id] = event.model_copy()

    async def resolve_event(self, session_id: str, signal_type: SignalType, patch: Dict[str, Any]) -> bool:
        self.calls.append("resolve_event")
        for event in reversed(list(self.events.values())):
            if event.session_id == session_id and event.signal_type == signal_type and not event.resolved:
                event.duration_ms = patch["duration_ms"]
                event.resolved = True
                return True
        return False

    async def list_completed_sessions(self, owner_id: str) -> List[Session]:
        self.calls.append("list_completed_sessions")
        return [s for s in self.sessions.values() if s.owner_id == owner_id and s.status == "completed"]

    async def update_event_response(self, event_id: str, response: UserResponse) -> None:
        self.calls.append("update_event_response")
        self.events[event_id].user_response = response

    async def list_session_events(self, session_id: str) -> List[DistractionEvent]:
        self.calls.append("list_session_events")
        return [e for e in self.events.values() if e.session_id == session_id]


class FailingStore(PersistenceAdapter):
    """Store whose every call raises"""

    def __init__(self):
        self.calls: List[str] = []

    def _fail(self, name: str):
        self.calls.append(name)
        raise PersistenceError(f"{name} unavailable")

    async def create_session(self, params):
        self._fail("create_session")

    async def update_session(self, session_id, patch):
        self._fail("update_session")

    async def insert_event(self, event):
        self._fail("insert_event")

    async def resolve_event(self, session_id, signal_type, patch):
        self._fail("resolve_event")

    async def list_completed_sessions(self, owner_id):
        self._fail("list_completed_sessions")

    async def update_event_response(self, event_id, response):
        self._fail("update_event_response")

    async def list_session_events(self, session_id):
        self._fail("list_session_events")


@pytest.fixture
def manual_clock():
    return ManualClock()

@pytest.fixture
def clock(manual_clock):
    """PrecisionClock driven by the manual time source"""
    return PrecisionClock(source=manual_clock)

@pytest.fixture
def scheduler(manual_clock):
    return ManualScheduler(manual_clock)

@pytest.fixture
def config():
    """Detector thresholds shortened for tests"""
    return DetectorConfig(
        debounce_window=10.0,
        attention_grace=0.0,
        idle_threshold=15.0,
        blacklist_threshold=5.0,
        blacklist=["youtube.com/watch", "reddit.com"],
        whitelist=["github.com"],
        flush_timeout=1.0,
    )

@pytest.fixture
def memory_store():
    return MemoryStore()

@pytest.fixture
def failing_store():
    return FailingStore()

@pytest.fixture
def sqlite_store():
    """Provide an in-memory SQLite store"""
    store = SQLiteStore(":memory:")
    yield store
    store.close()

@pytest.fixture
def monitor(config, clock, scheduler):
    return SignalMonitor.from_config(config, clock, scheduler)

@pytest.fixture
def manager(monitor, memory_store, clock):
    return SessionManager(monitor, store=memory_store, clock=clock, flush_timeout=1.0)
