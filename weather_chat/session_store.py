"""Per-conversation context that outlives a single request.

Sessions hold the last resolved city and date so follow-ups like "and
tomorrow?" can be answered. Two backends share one interface: a process-local
map with idle expiry and a size cap, and a SQLite table for deployments that
restart often.
"""

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import fields, replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable

from .config import BASE_DIR, SESSION_BACKEND, SESSION_DB_PATH, SESSION_MAX_ENTRIES, SESSION_TTL_SECONDS
from .schemas import DATE_TYPE_CURRENT, DATE_TYPES, SessionContext

LOGGER = logging.getLogger("weather_chat.sessions")

DEFAULT_SESSION_ID = "anonymous"
SESSION_FIELDS = frozenset(field.name for field in fields(SessionContext))


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def normalize_session_id(session_id: str | None) -> str:
    raw = str(session_id or "").strip()
    if not raw:
        return DEFAULT_SESSION_ID
    cleaned = "".join(ch for ch in raw if ch.isalnum() or ch in ("-", "_", ".", ":"))
    cleaned = cleaned[:64].strip()
    return cleaned or DEFAULT_SESSION_ID


def derive_session_id(
    explicit: str | None,
    forwarded_for: str | None,
    real_ip: str | None,
    user_agent: str | None,
) -> str:
    """Key a conversation by client address and user agent unless the caller names one."""
    if isinstance(explicit, str) and explicit.strip():
        return normalize_session_id(explicit)

    ip = ""
    if isinstance(forwarded_for, str) and forwarded_for.strip():
        ip = forwarded_for.split(",")[0].strip()
    if not ip:
        ip = str(real_ip or "").strip() or "unknown"
    agent = str(user_agent or "").strip() or "unknown"
    return f"{ip}-{agent}"[:50]


def _check_changes(changes: dict[str, Any]) -> None:
    unknown = set(changes) - SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields: {', '.join(sorted(unknown))}")
    date_type = changes.get("last_date_type")
    if date_type is not None and date_type not in DATE_TYPES:
        raise ValueError(f"Unknown date type: {date_type!r}")


class SessionStore(ABC):
    """Key-value store of SessionContext records.

    ``get`` never returns None: an unknown or expired id yields a fresh
    context dated today. ``update`` merges the given fields over the stored
    record and leaves the rest untouched.
    """

    def __init__(self, today: Callable[[], date] = _utc_today):
        self._today = today
        self._lock = threading.RLock()

    def default_context(self) -> SessionContext:
        return SessionContext(last_date=self._today(), last_date_type=DATE_TYPE_CURRENT)

    def get(self, session_id: str) -> SessionContext:
        key = normalize_session_id(session_id)
        with self._lock:
            stored = self._read(key)
            if stored is None:
                stored = self.default_context()
                self._create(key, stored)
            return replace(stored)

    def put(self, session_id: str, context: SessionContext) -> None:
        with self._lock:
            self._write(normalize_session_id(session_id), replace(context))

    def update(self, session_id: str, **changes: Any) -> SessionContext:
        _check_changes(changes)
        key = normalize_session_id(session_id)
        with self._lock:
            current = self._read(key) or self.default_context()
            merged = replace(current, **changes)
            self._write(key, merged)
            return replace(merged)

    @abstractmethod
    def _read(self, key: str) -> SessionContext | None: ...

    @abstractmethod
    def _write(self, key: str, context: SessionContext) -> None: ...

    def _create(self, key: str, context: SessionContext) -> None:
        self._write(key, context)


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        max_entries: int = SESSION_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = _utc_today,
    ):
        super().__init__(today=today)
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, SessionContext]] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return normalize_session_id(str(session_id)) in self._entries

    def _expired(self, touched_at: float) -> bool:
        return self.ttl_seconds > 0 and self._clock() - touched_at > self.ttl_seconds

    def _read(self, key: str) -> SessionContext | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        touched_at, context = entry
        if self._expired(touched_at):
            del self._entries[key]
            LOGGER.debug("session_expired id=%s", key)
            return None
        self._entries[key] = (self._clock(), context)
        self._entries.move_to_end(key)
        return context

    def _write(self, key: str, context: SessionContext) -> None:
        self._entries[key] = (self._clock(), context)
        self._entries.move_to_end(key)
        self._evict()

    def _evict(self) -> None:
        for key in [key for key, (touched_at, _) in self._entries.items() if self._expired(touched_at)]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug("session_evicted id=%s", evicted)


class SqliteSessionStore(SessionStore):
    def __init__(
        self,
        db_path: str | Path | None = None,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = _utc_today,
    ):
        super().__init__(today=today)
        self.db_path = Path(db_path) if db_path else BASE_DIR / "sessions.db"
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    last_city TEXT,
                    last_country TEXT,
                    last_date TEXT,
                    last_date_type TEXT,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()

    def _read(self, key: str) -> SessionContext | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT last_city, last_country, last_date, last_date_type, updated_at
                FROM sessions
                WHERE session_id = ?
                """,
                (key,),
            ).fetchone()
            if row is None:
                return None
            if self.ttl_seconds > 0 and self._clock() - float(row["updated_at"]) > self.ttl_seconds:
                conn.execute("DELETE FROM sessions WHERE session_id = ?", (key,))
                conn.commit()
                return None

        return SessionContext(
            last_city=row["last_city"],
            last_country=row["last_country"],
            last_date=date.fromisoformat(row["last_date"]) if row["last_date"] else None,
            last_date_type=row["last_date_type"],
        )

    def _write(self, key: str, context: SessionContext) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sessions (session_id, last_city, last_country, last_date, last_date_type, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id)
                DO UPDATE SET
                    last_city=excluded.last_city,
                    last_country=excluded.last_country,
                    last_date=excluded.last_date,
                    last_date_type=excluded.last_date_type,
                    updated_at=excluded.updated_at
                """,
                (
                    key,
                    context.last_city,
                    context.last_country,
                    context.last_date.isoformat() if context.last_date else None,
                    context.last_date_type,
                    self._clock(),
                ),
            )
            conn.commit()

    def _create(self, key: str, context: SessionContext) -> None:
        # Nothing is persisted until the first real update.
        return None


def create_session_store(backend: str | None = None, db_path: str | Path | None = None) -> SessionStore:
    kind = str(backend or SESSION_BACKEND).strip().lower()
    if kind == "sqlite":
        path = db_path or (SESSION_DB_PATH.strip() if isinstance(SESSION_DB_PATH, str) and SESSION_DB_PATH.strip() else None)
        LOGGER.info("session_store backend=sqlite path=%s", path or BASE_DIR / "sessions.db")
        return SqliteSessionStore(path)
    if kind != "memory":
        LOGGER.warning("unknown SESSION_BACKEND=%s; using memory", kind)
    return InMemorySessionStore()
