"""Durable, append-only log of chat sessions and their messages."""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Union

from .messages import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRecord:
    id: str
    created_at: str


class SessionStore(ABC):
    """Interface for persisting sessions and their messages."""

    @abstractmethod
    def create_session(self, session_id: str) -> None:
        """Register *session_id*; a no-op if it already exists."""

    @abstractmethod
    def append_message(self, session_id: str, role: str, content: str) -> None:
        """Append one message to the end of the session's log."""

    @abstractmethod
    def load_history(self, session_id: str) -> List[Message]:
        """Return the session's messages in the order they were appended."""

    @abstractmethod
    def list_sessions(self) -> List[SessionRecord]:
        """Return all sessions, newest first."""

    def export_session(self, session_id: str, directory: Union[str, Path] = ".") -> Path:
        """Write the session as ``role: content`` lines and return the file path."""
        path = Path(directory) / f"session_{session_id}.txt"
        lines = [f"{m.role}: {m.content}\n" for m in self.load_history(session_id)]
        path.write_text("".join(lines), encoding="utf-8")
        logger.debug("Exported %d messages to %s", len(lines), path)
        return path

    def close(self) -> None:
        pass


class SQLiteSessionStore(SessionStore):
    """Session store backed by a local SQLite database file."""

    def __init__(self, path: Union[str, Path]):
        if str(path) != ":memory:":
            path = Path(path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(str(path))
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT,
                    role TEXT,
                    content TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(session_id) REFERENCES sessions(id)
                )
                """
            )

    def create_session(self, session_id: str) -> None:
        with self._conn:
            self._conn.execute("INSERT OR IGNORE INTO sessions (id) VALUES (?)", (session_id,))
        logger.debug("Session %s registered", session_id)

    def append_message(self, session_id: str, role: str, content: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO messages (session_id, role, content) VALUES (?, ?, ?)",
                (session_id, role, content),
            )
        logger.debug("Stored %s message for session %s", role, session_id)

    def load_history(self, session_id: str) -> List[Message]:
        rows = self._conn.execute(
            "SELECT role, content FROM messages WHERE session_id = ? ORDER BY id ASC",
            (session_id,),
        ).fetchall()
        return [Message(row["role"], row["content"]) for row in rows]

    def list_sessions(self) -> List[SessionRecord]:
        # rowid breaks ties between sessions created within the same second
        rows = self._conn.execute(
            "SELECT id, created_at FROM sessions ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [SessionRecord(row["id"], str(row["created_at"])) for row in rows]

    def close(self) -> None:
        self._conn.close()


class InMemorySessionStore(SessionStore):
    """Keeps sessions in process memory; nothing survives a restart."""

    def __init__(self):
        self._sessions: Dict[str, SessionRecord] = {}
        self._messages: Dict[str, List[Message]] = {}

    def create_session(self, session_id: str) -> None:
        if session_id in self._sessions:
            return
        created_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        self._sessions[session_id] = SessionRecord(session_id, created_at)
        self._messages[session_id] = []

    def append_message(self, session_id: str, role: str, content: str) -> None:
        self._messages.setdefault(session_id, []).append(Message(role, content))

    def load_history(self, session_id: str) -> List[Message]:
        return list(self._messages.get(session_id, []))

    def list_sessions(self) -> List[SessionRecord]:
        return list(reversed(list(self._sessions.values())))
