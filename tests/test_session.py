from datetime import datetime, timedelta, timezone

import pytest

from vocabtest.config import settings
from vocabtest.database import get_db_connection
from vocabtest.errors import PersistenceError, SessionNotStartedError
from vocabtest.models import QuizSession
from vocabtest.session import (
    MemorySessionStore,
    QuizSessionManager,
    SessionState,
    SQLiteSessionStore,
)


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def manager(store):
    return QuizSessionManager(store, "test-key")


def test_initialize_starts_in_progress_and_persists(manager, store, pool):
    assert manager.state == SessionState.UNINITIALIZED

    session = manager.initialize(pool[:3], "easy")

    assert manager.state == SessionState.IN_PROGRESS
    assert session.current_index == 0
    assert session.score == 0
    assert session.answers == {}
    assert session.difficulty == "easy"
    assert store.get("test-key") is not None


def test_record_answer_is_idempotent(manager, pool):
    manager.initialize(pool[:3])

    manager.record_answer(0, pool[0].meaning, True)
    manager.record_answer(0, pool[0].meaning, True)

    assert manager.session.score == 1
    assert len(manager.session.answers) == 1


def test_overwriting_answer_keeps_first_score(manager, pool):
    manager.initialize(pool[:3])

    manager.record_answer(0, pool[0].meaning, True)
    manager.record_answer(0, "wrong", False)
    assert manager.session.score == 1
    assert manager.session.answers[0].selected_answer == "wrong"

    manager.record_answer(1, "wrong", False)
    manager.record_answer(1, pool[1].meaning, True)
    assert manager.session.score == 1


def test_record_answer_requires_session(manager):
    with pytest.raises(SessionNotStartedError):
        manager.record_answer(0, "x", True)


def test_record_answer_rejects_unknown_index(manager, pool):
    manager.initialize(pool[:2])

    with pytest.raises(IndexError):
        manager.record_answer(2, "x", False)


def test_advance_stops_at_last_question(manager, pool):
    manager.initialize(pool[:2])

    assert manager.advance() == 1
    assert manager.advance() == 1
    assert manager.session.current_index == 1


def test_completion_needs_answer_on_last_question(manager, pool):
    manager.initialize(pool[:2])
    manager.record_answer(0, pool[0].meaning, True)
    manager.advance()
    assert manager.state == SessionState.IN_PROGRESS

    manager.record_answer(1, "wrong", False)

    assert manager.state == SessionState.COMPLETED
    assert manager.is_completed


def test_reload_restores_index_score_and_answers(manager, store, pool):
    manager.initialize(pool[:3], "medium")
    manager.record_answer(0, pool[0].meaning, True)
    manager.advance()
    manager.record_answer(1, "wrong", False)

    reloaded = QuizSessionManager(store, "test-key")
    session = reloaded.load()

    assert session.current_index == manager.session.current_index
    assert session.score == manager.session.score
    assert session.answers == manager.session.answers
    assert session.selected_items == manager.session.selected_items
    assert session.start_time == manager.session.start_time


def test_reset_clears_store(manager, store, pool):
    manager.initialize(pool[:3])
    manager.reset()

    assert manager.state == SessionState.UNINITIALIZED
    assert store.get("test-key") is None
    assert QuizSessionManager(store, "test-key").load() is None


def test_expired_session_is_dropped(store, pool):
    stale = QuizSession(
        selected_items=pool[:2],
        start_time=datetime.now(timezone.utc) - timedelta(days=1),
    )
    store.set("test-key", stale.model_dump_json())

    assert QuizSessionManager(store, "test-key").load() is None
    assert store.get("test-key") is None


def test_unreadable_session_is_dropped(store):
    store.set("test-key", "{not json")

    assert QuizSessionManager(store, "test-key").load() is None
    assert store.get("test-key") is None


def test_sqlite_store_round_trip(db, pool):
    store = SQLiteSessionStore()
    manager = QuizSessionManager(store, "sqlite-key")
    manager.initialize(pool[:2])
    manager.record_answer(0, pool[0].meaning, True)

    session = QuizSessionManager(store, "sqlite-key").load()

    assert session.score == 1
    assert session.answers[0].correct is True

    store.remove("sqlite-key")
    assert store.get("sqlite-key") is None


def drop_session_table():
    conn = get_db_connection()
    with conn:
        conn.execute("DROP TABLE session_store")
    conn.close()


def test_sqlite_store_wraps_errors(db):
    drop_session_table()
    store = SQLiteSessionStore()

    with pytest.raises(PersistenceError):
        store.get("missing-table")
    with pytest.raises(PersistenceError):
        store.set("missing-table", "{}")
    with pytest.raises(PersistenceError):
        store.remove("missing-table")


def test_store_failure_keeps_session_in_memory(db, pool):
    drop_session_table()
    manager = QuizSessionManager(SQLiteSessionStore(), "broken-key")

    manager.initialize(pool[:2])
    manager.record_answer(0, pool[0].meaning, True)
    manager.advance()

    assert manager.session.score == 1
    assert manager.session.current_index == 1
    assert QuizSessionManager(SQLiteSessionStore(), "broken-key").load() is None

    manager.reset()
    assert manager.state == SessionState.UNINITIALIZED


def test_default_key_follows_settings(store, monkeypatch):
    monkeypatch.setattr(settings, "SESSION_KEY", "other-state")

    assert QuizSessionManager(store).key == "other-state"
