"""Quiz session state and its persistence boundary.

A `QuizSessionManager` owns exactly one `QuizSession` and writes it to a
`SessionStore` after every mutation, so a reloaded client resumes where it
left off. Stores hold serialized JSON text under a single key; concurrent
writers to the same key race and the last one wins.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional, Sequence

from pydantic import ValidationError

from .config import settings
from .database import get_db_connection
from .errors import PersistenceError, SessionNotStartedError
from .models import ALL_DIFFICULTIES, AnswerRecord, QuizSession, VocabItem

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# --- Stores ---
class SessionStore(ABC):
    """Key/value store for serialized sessions."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemorySessionStore(SessionStore):
    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SQLiteSessionStore(SessionStore):
    """Durable store backed by the `session_store` table."""

    def get(self, key: str) -> Optional[str]:
        conn = get_db_connection()
        try:
            row = conn.execute(
                "SELECT value FROM session_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read session {key}") from e
        finally:
            conn.close()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = get_db_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO session_store (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write session {key}") from e
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = get_db_connection()
        try:
            with conn:
                conn.execute("DELETE FROM session_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to remove session {key}") from e
        finally:
            conn.close()


def session_key(client_id: str) -> str:
    return f"{settings.SESSION_KEY}:{client_id}"


# --- State machine ---
class QuizSessionManager:
    def __init__(self, store: SessionStore, key: Optional[str] = None):
        self.store = store
        self.key = key if key is not None else settings.SESSION_KEY
        self.session: Optional[QuizSession] = None

    @property
    def state(self) -> SessionState:
        if self.session is None:
            return SessionState.UNINITIALIZED
        if self.is_completed:
            return SessionState.COMPLETED
        return SessionState.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        session = self.session
        if session is None or not session.selected_items:
            return False
        return (
            session.current_index == session.last_index
            and session.last_index in session.answers
        )

    def _require_session(self) -> QuizSession:
        if self.session is None:
            raise SessionNotStartedError("No quiz session in progress")
        return self.session

    def _persist(self) -> None:
        """Writes the session out; a failed write leaves it in memory only."""
        try:
            self.store.set(self.key, self._require_session().model_dump_json())
        except PersistenceError as e:
            logger.error(f"Error saving session {self.key}: {e}")

    def load(self) -> Optional[QuizSession]:
        """Restores the stored session, dropping broken or expired entries."""
        try:
            raw = self.store.get(self.key)
        except PersistenceError as e:
            logger.error(f"Error reading session {self.key}: {e}")
            raw = None
        if raw is None:
            self.session = None
            return None

        try:
            session = QuizSession.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable session {self.key}: {e}")
            self.reset()
            return None

        timeout = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
        if utcnow() - session.start_time > timeout:
            logger.info(f"Session {self.key} expired.")
            self.reset()
            return None

        self.session = session
        return session

    def initialize(
        self, items: Sequence[VocabItem], difficulty: str = ALL_DIFFICULTIES
    ) -> QuizSession:
        self.session = QuizSession(
            current_index=0,
            score=0,
            selected_items=list(items),
            answers={},
            start_time=utcnow(),
            difficulty=difficulty,
        )
        self._persist()
        logger.info(
            f"New session: {self.key} [Difficulty: {difficulty}, Questions: {len(items)}]"
        )
        return self.session

    def record_answer(
        self, index: int, selected_answer: str, is_correct: bool
    ) -> AnswerRecord:
        """
        Stores the answer for `index`, replacing any earlier one.

        The score only grows on the first recording of an index; overwriting
        an answer never changes it.
        """
        session = self._require_session()
        if not (0 <= index < session.total_questions):
            raise IndexError(f"Question index {index} out of range")

        first_recording = index not in session.answers
        record = AnswerRecord(selected_answer=selected_answer, correct=is_correct)
        session.answers[index] = record
        if is_correct and first_recording:
            session.score += 1
        self._persist()
        return record

    def advance(self) -> int:
        session = self._require_session()
        if session.current_index < session.last_index:
            session.current_index += 1
            self._persist()
        return session.current_index

    def mark_saved(self) -> None:
        self._require_session().saved = True
        self._persist()

    def reset(self) -> None:
        self.session = None
        try:
            self.store.remove(self.key)
        except PersistenceError as e:
            logger.error(f"Error clearing session {self.key}: {e}")
