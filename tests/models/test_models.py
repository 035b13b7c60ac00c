import pytest
from pydantic import ValidationError as PydanticValidationError

from focus_voyage.models.events import DistractionEvent, SignalState, SignalType
from focus_voyage.models.session import (
    NewSession,
    Session,
    SessionStatus,
    is_local_id,
    make_local_id,
)
from focus_voyage.models.verdict import Verdict
from focus_voyage.services.errors import EventStateError, SessionStateError


def test_event_resolves_once():
    event = DistractionEvent(session_id="s1", signal_type=SignalType.IDLE, detected_at=1000.0)
    assert event.duration_ms is None

    event.resolve(16000.0)
    assert event.resolved
    assert event.duration_ms == 16000.0

    with pytest.raises(EventStateError):
        event.resolve(1.0)

def test_event_duration_is_never_negative():
    event = DistractionEvent(session_id="s1", signal_type=SignalType.IDLE, detected_at=1000.0)
    event.resolve(-5.0)
    assert event.duration_ms == 0.0

    with pytest.raises(PydanticValidationError):
        event.duration_ms = -1.0

def test_event_ids_are_unique():
    events = [DistractionEvent(session_id="s1", signal_type="idle", detected_at=0.0) for _ in range(3)]
    assert len({e.id for e in events}) == 3

def test_signal_state_reset():
    state = SignalState(threshold_ms=15000, active=True, distracted_since=1000.0)
    assert state.distracted
    state.reset()
    assert not state.distracted
    assert not state.active
    assert state.threshold_ms == 15000

def test_local_ids():
    local_id = make_local_id()
    assert is_local_id(local_id)
    assert not is_local_id("3f2a9c")

def test_session_transitions():
    session = Session(id="s1", owner_id="o", destination_id="d", start_mark=0.0, planned_duration_minutes=25)
    assert session.planned_duration_ms == 1500000.0

    session.transition_to(SessionStatus.COMPLETED)
    assert session.status == SessionStatus.COMPLETED

    with pytest.raises(SessionStateError):
        session.transition_to(SessionStatus.ABANDONED)

def test_session_cannot_transition_to_active():
    session = Session(id="s1", owner_id="o", destination_id="d", start_mark=0.0)
    with pytest.raises(SessionStateError):
        session.transition_to(SessionStatus.ACTIVE)

def test_new_session_requires_identifiers():
    with pytest.raises(PydanticValidationError):
        NewSession(owner_id="", destination_id="d", start_mark=0.0)

def test_verdict_confidence_bounds():
    assert Verdict(relevant=True).confidence == 0.5
    with pytest.raises(PydanticValidationError):
        Verdict(relevant=True, confidence=1.5)
