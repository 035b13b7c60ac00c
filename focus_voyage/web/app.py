from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from focus_voyage.config.settings import settings
from focus_voyage.models.events import DistractionEvent
from focus_voyage.models.session import Session, SessionStatistics
from focus_voyage.services.database import SQLiteStore
from focus_voyage.services.errors import DatabaseError
from focus_voyage.services.statistics import StatisticsEngine

logger = logging.getLogger(__name__)
app = FastAPI(title="Focus Voyage API")

_store: Optional[SQLiteStore] = None

def get_store() -> SQLiteStore:
    """Store shared by all requests, opened on first use"""
    global _store
    if _store is None:
        _store = SQLiteStore(settings.DEFAULT_DB_PATH)
    return _store

def configure_store(db_path) -> SQLiteStore:
    """Point the API at another database file"""
    global _store
    _store = SQLiteStore(db_path)
    return _store

async def _require_session(store: SQLiteStore, session_id: str) -> Session:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session

@app.get("/api/health")
async def health():
    return {"status": "ok"}

@app.get("/api/sessions", response_model=List[Session])
async def list_sessions(owner: str, store: SQLiteStore = Depends(get_store)):
    """Completed sessions of an owner, newest first"""
    if not owner.strip():
        raise HTTPException(status_code=400, detail="owner is required")
    try:
        return await store.list_completed_sessions(owner)
    except DatabaseError as e:
        logger.error(f"Error listing sessions: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str, store: SQLiteStore = Depends(get_store)):
    try:
        return await _require_session(store, session_id)
    except DatabaseError as e:
        logger.error(f"Error getting session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/sessions/{session_id}/events", response_model=List[DistractionEvent])
async def get_session_events(session_id: str, store: SQLiteStore = Depends(get_store)):
    try:
        await _require_session(store, session_id)
        return await store.list_session_events(session_id)
    except DatabaseError as e:
        logger.error(f"Error getting events for {session_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.get("/api/sessions/{session_id}/statistics", response_model=SessionStatistics)
async def get_session_statistics(session_id: str, store: SQLiteStore = Depends(get_store)):
    """Statistics recomputed from the stored events"""
    try:
        session = await _require_session(store, session_id)
        events = await store.list_session_events(session_id)
        return StatisticsEngine.summarize(
            session.actual_duration_ms or 0.0,
            events,
            session.planned_duration_ms,
        )
    except DatabaseError as e:
        logger.error(f"Error computing statistics for {session_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@app.exception_handler(500)
async def server_error_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)}
    )
