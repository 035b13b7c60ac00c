import pytest
import asyncio
import os
from click.testing import CliRunner
from unittest.mock import patch

from focus_voyage.cli.service import cli
from focus_voyage.models.events import DistractionEvent, SignalType
from focus_voyage.models.session import NewSession, Session, SessionStatus
from focus_voyage.services.database import SQLiteStore

@pytest.fixture(autouse=True)
def no_log_files():
    with patch('focus_voyage.cli.service.setup_logging'):
        yield

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")

@pytest.fixture
def seeded(db_path):
    """One completed session with an unresolved tab switch"""
    store = SQLiteStore(db_path)

    async def seed():
        session = await store.create_session(NewSession(
            owner_id="owner", destination_id="thesis", start_mark=0.0
        ))
        await store.insert_event(DistractionEvent(
            session_id=session.id, signal_type=SignalType.TAB_SWITCH, detected_at=1000.0
        ))
        return await store.update_session(session.id, {
            "status": SessionStatus.COMPLETED,
            "actual_duration_ms": 65250.0,
            "distraction_count": 1,
        })

    return asyncio.run(seed())

def test_history(db_path, seeded):
    result = CliRunner().invoke(cli, ['--db', db_path, 'history', '--owner', 'owner'])
    assert result.exit_code == 0
    assert "thesis" in result.output
    assert "01:05.25" in result.output

def test_history_empty(db_path):
    result = CliRunner().invoke(cli, ['--db', db_path, 'history', '--owner', 'nobody'])
    assert result.exit_code == 0
    assert "No completed voyages" in result.output

def test_events(db_path, seeded):
    result = CliRunner().invoke(cli, ['--db', db_path, 'events', seeded.id])
    assert result.exit_code == 0
    assert "ongoing" in result.output

def test_events_unknown_session(db_path):
    result = CliRunner().invoke(cli, ['--db', db_path, 'events', 'missing'])
    assert result.exit_code == 1
    assert "not found" in result.output

def test_run_prints_summary(db_path):
    finished = Session(
        id="s1", owner_id="owner", destination_id="thesis", start_mark=0.0,
        status=SessionStatus.COMPLETED, actual_duration_ms=1500000.0,
    )
    with patch('focus_voyage.services.runner.run_session', return_value=finished) as run_session:
        result = CliRunner().invoke(cli, [
            '--db', db_path, 'run', '--destination', 'thesis', '--owner', 'owner',
            '--minutes', '25', '--no-screen',
        ])

    assert result.exit_code == 0, result.output
    kwargs = run_session.call_args.kwargs
    assert kwargs["planned_minutes"] == 25
    assert kwargs["use_screen"] is False
    assert "Voyage completed" in result.output

def test_run_rejects_zero_minutes(db_path):
    result = CliRunner().invoke(cli, ['--db', db_path, 'run', '--destination', 'd', '--owner', 'o', '--minutes', '0'])
    assert result.exit_code == 2

def test_stats(db_path, seeded):
    result = CliRunner().invoke(cli, ['--db', db_path, 'stats'])
    assert result.exit_code == 0
    assert "sessions" in result.output

def test_web_serves_the_selected_database(db_path, monkeypatch):
    from focus_voyage.web import app as web_app

    monkeypatch.setenv('DEFAULT_DB_PATH', 'unused.db')
    with patch('focus_voyage.cli.service.uvicorn.run') as run, patch.object(web_app, '_store', None):
        result = CliRunner().invoke(cli, ['--db', db_path, 'web', '--port', '8123'])
        store = web_app.get_store()

    assert result.exit_code == 0
    assert store.db_path == db_path
    assert run.call_args.kwargs['port'] == 8123
    assert os.environ['DEFAULT_DB_PATH'] == db_path
