from datetime import datetime
from enum import Enum
import sqlite3
from pathlib import Path
import logging
import threading
from typing import List, Dict, Optional, Any
import json
import uuid
import asyncio

from pydantic import BaseModel

from focus_voyage.config.settings import settings
from focus_voyage.models.events import DistractionEvent, SignalType, UserResponse
from focus_voyage.models.session import NewSession, Session, SessionStatus
from focus_voyage.services.errors import DatabaseError
from focus_voyage.services.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

MIGRATIONS = [
    """
    -- Focus sessions (voyages)
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        destination_id TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL,
        start_mark REAL NOT NULL,
        end_time TIMESTAMP,
        end_mark REAL,
        planned_duration_minutes INTEGER,
        actual_duration_ms REAL,
        distraction_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'active',
        statistics TEXT
    );

    -- Distraction episodes within a session
    CREATE TABLE IF NOT EXISTS distraction_events (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        signal_type TEXT NOT NULL,
        detected_at REAL NOT NULL,
        detected_wall_time TIMESTAMP NOT NULL,
        duration_ms REAL,
        resolved INTEGER NOT NULL DEFAULT 0,
        user_response TEXT,
        seq INTEGER,
        FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id, status);
    CREATE INDEX IF NOT EXISTS idx_events_session ON distraction_events(session_id, signal_type, resolved);
    """
]

SESSION_PATCH_COLUMNS = (
    "end_time",
    "end_mark",
    "actual_duration_ms",
    "distraction_count",
    "status",
    "statistics",
)

class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails"""
    pass

class QueryError(DatabaseError):
    """Exception raised when a database query fails"""
    pass

class RecordNotFoundError(DatabaseError):
    """Exception raised when a session does not exist"""
    pass


def _to_column(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


class SQLiteStore(PersistenceAdapter):
    """Session store backed by a local SQLite database"""

    def __init__(self, db_path=None):
        """Initialize the store and run migrations"""
        self.db_path = str(db_path or settings.DEFAULT_DB_PATH)
        self._lock = threading.Lock()
        self._shared: Optional[sqlite3.Connection] = None
        if self.db_path == ":memory:":
            # A memory database only lives as long as its connection
            self._shared = sqlite3.connect(":memory:", check_same_thread=False)
            self._configure(self._shared)
        logger.info(f"Initialized SQLiteStore with db_path: {self.db_path}")
        self.initialize()

    def initialize(self):
        """Initialize database schema"""
        try:
            with self._connection() as conn:
                for migration in MIGRATIONS:
                    conn.executescript(migration)
                conn.commit()
            logger.info("Database initialization complete")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError(f"Failed to initialize database: {e}")

    def _configure(self, conn: sqlite3.Connection) -> None:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")

    def get_connection(self) -> sqlite3.Connection:
        """Get a fresh connection for the calling thread"""
        try:
            db_path = Path(self.db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(db_path))
            self._configure(conn)
            return conn
        except Exception as e:
            raise DatabaseConnectionError(f"Failed to connect to {self.db_path}: {e}")

    def _connection(self):
        return _ConnectionScope(self)

    async def _run(self, description: str, func, *args):
        """Run a blocking query in a worker thread, wrapping failures"""
        try:
            return await asyncio.to_thread(func, *args)
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Failed to {description}: {e}")
            raise QueryError(f"Failed to {description}: {e}")

    # Sessions

    async def create_session(self, params: NewSession) -> Session:
        session = Session(
            id=uuid.uuid4().hex,
            owner_id=params.owner_id,
            destination_id=params.destination_id,
            created_at=params.created_at,
            start_mark=params.start_mark,
            planned_duration_minutes=params.planned_duration_minutes,
        )
        await self._run("create session", self._insert_session, session)
        logger.info(f"Created session {session.id} for destination {session.destination_id}")
        return session

    def _insert_session(self, session: Session) -> None:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO sessions (
                    id, owner_id, destination_id, created_at, start_mark,
                    planned_duration_minutes, distraction_count, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, [
                session.id,
                session.owner_id,
                session.destination_id,
                _to_column(session.created_at),
                session.start_mark,
                session.planned_duration_minutes,
                session.distraction_count,
                _to_column(session.status),
            ])
            conn.commit()

    async def update_session(self, session_id: str, patch: Dict[str, Any]) -> Session:
        unknown = set(patch) - set(SESSION_PATCH_COLUMNS)
        if unknown:
            raise QueryError(f"Cannot update session columns: {sorted(unknown)}")
        return await self._run("update session", self._update_session, session_id, patch)

    def _update_session(self, session_id: str, patch: Dict[str, Any]) -> Session:
        with self._connection() as conn:
            if patch:
                assignments = ", ".join(f"{column} = ?" for column in patch)
                cursor = conn.execute(
                    f"UPDATE sessions SET {assignments} WHERE id = ?",
                    [_to_column(value) for value in patch.values()] + [session_id]
                )
                if cursor.rowcount == 0:
                    raise RecordNotFoundError(f"Session {session_id} not found")
                conn.commit()
            session = self._fetch_session(conn, session_id)
        if session is None:
            raise RecordNotFoundError(f"Session {session_id} not found")
        return session

    async def get_session(self, session_id: str) -> Optional[Session]:
        return await self._run("get session", self._get_session, session_id)

    def _get_session(self, session_id: str) -> Optional[Session]:
        with self._connection() as conn:
            return self._fetch_session(conn, session_id)

    def _fetch_session(self, conn: sqlite3.Connection, session_id: str) -> Optional[Session]:
        row = conn.execute("SELECT * FROM sessions WHERE id = ?", [session_id]).fetchone()
        return self._row_to_session(row) if row else None

    async def list_completed_sessions(self, owner_id: str) -> List[Session]:
        return await self._run("list completed sessions", self._list_completed_sessions, owner_id)

    def _list_completed_sessions(self, owner_id: str) -> List[Session]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT * FROM sessions
                WHERE owner_id = ? AND status = ?
                ORDER BY created_at DESC
            """, [owner_id, SessionStatus.COMPLETED.value]).fetchall()
        return [self._row_to_session(row) for row in rows]

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        data = dict(row)
        if data.get("statistics"):
            data["statistics"] = json.loads(data["statistics"])
        return Session(**data)

    # Events

    async def insert_event(self, event: DistractionEvent) -> None:
        await self._run("insert event", self._insert_event, event)

    def _insert_event(self, event: DistractionEvent) -> None:
        with self._connection() as conn:
            conn.execute("""
                INSERT INTO distraction_events (
                    id, session_id, signal_type, detected_at, detected_wall_time,
                    duration_ms, resolved, user_response, seq
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?,
                    (SELECT COALESCE(MAX(seq), 0) + 1 FROM distraction_events WHERE session_id = ?))
            """, [
                event.id,
                event.session_id,
                _to_column(event.signal_type),
                event.detected_at,
                _to_column(event.detected_wall_time),
                event.duration_ms,
                _to_column(event.resolved),
                _to_column(event.user_response),
                event.session_id,
            ])
            conn.commit()

    async def resolve_event(self, session_id: str, signal_type: SignalType, patch: Dict[str, Any]) -> bool:
        return await self._run("resolve event", self._resolve_event, session_id, signal_type, patch)

    def _resolve_event(self, session_id: str, signal_type: SignalType, patch: Dict[str, Any]) -> bool:
        with self._connection() as conn:
            row = conn.execute("""
                SELECT id FROM distraction_events
                WHERE session_id = ? AND signal_type = ? AND resolved = 0
                ORDER BY seq DESC
                LIMIT 1
            """, [session_id, _to_column(SignalType(signal_type))]).fetchone()
            if row is None:
                return False
            conn.execute(
                "UPDATE distraction_events SET duration_ms = ?, resolved = ? WHERE id = ?",
                [patch.get("duration_ms"), _to_column(patch.get("resolved", True)), row["id"]]
            )
            conn.commit()
            return True

    async def update_event_response(self, event_id: str, response: UserResponse) -> None:
        await self._run("update event response", self._update_event_response, event_id, response)

    def _update_event_response(self, event_id: str, response: UserResponse) -> None:
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE distraction_events SET user_response = ? WHERE id = ?",
                [_to_column(UserResponse(response)), event_id]
            )
            if cursor.rowcount == 0:
                raise RecordNotFoundError(f"Distraction event {event_id} not found")
            conn.commit()

    async def list_session_events(self, session_id: str) -> List[DistractionEvent]:
        return await self._run("list session events", self._list_session_events, session_id)

    def _list_session_events(self, session_id: str) -> List[DistractionEvent]:
        with self._connection() as conn:
            rows = conn.execute("""
                SELECT id, session_id, signal_type, detected_at, detected_wall_time,
                       duration_ms, resolved, user_response
                FROM distraction_events
                WHERE session_id = ?
                ORDER BY seq
            """, [session_id]).fetchall()
        return [DistractionEvent(**dict(row)) for row in rows]

    def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics"""
        try:
            with self._connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    SELECT
                        name,
                        (SELECT COUNT(*) FROM sqlite_master WHERE type='index' AND tbl_name=m.name) as index_count
                    FROM sqlite_master m
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """)

                tables = {}
                for table_name, index_count in cursor.fetchall():
                    cursor.execute(f"SELECT COUNT(*) FROM {table_name}")
                    tables[table_name] = {
                        "row_count": cursor.fetchone()[0],
                        "index_count": index_count
                    }

                cursor.execute("""
                    SELECT
                        MIN(created_at) as oldest,
                        MAX(created_at) as newest,
                        COUNT(*) as total
                    FROM sessions
                """)
                time_range = cursor.fetchone()

            # Handle in-memory database size
            if self.db_path == ":memory:":
                db_size = 0
            else:
                db_size = Path(self.db_path).stat().st_size / (1024 * 1024)

            return {
                "tables": tables,
                "database_size_mb": db_size,
                "time_range": {
                    "oldest": time_range[0],
                    "newest": time_range[1],
                    "total_sessions": time_range[2]
                }
            }
        except Exception as e:
            logger.error(f"Failed to get database stats: {e}")
            raise DatabaseError(f"Failed to get database stats: {e}")

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None


class _ConnectionScope:
    """Per-call connection, or the shared one for memory databases"""

    def __init__(self, store: SQLiteStore):
        self.store = store
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        if self.store._shared is not None:
            self.store._lock.acquire()
            self.conn = self.store._shared
        else:
            self.conn = self.store.get_connection()
        return self.conn

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.conn.rollback()
        if self.store._shared is not None:
            self.store._lock.release()
        else:
            self.conn.close()
