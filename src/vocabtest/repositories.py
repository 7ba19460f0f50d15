import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .database import get_db_connection
from .errors import PersistenceError
from .models import Profile, TestResult, UserStatistics

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_result(row: sqlite3.Row) -> TestResult:
    data = dict(row)
    data["answers"] = json.loads(data["answers"] or "[]")
    return TestResult(**data)


class ProfileRepository:
    def get(self, user_id: str) -> Optional[Profile]:
        conn = get_db_connection()
        try:
            row = conn.execute(
                "SELECT * FROM profiles WHERE id = ?", (user_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read profile {user_id}") from e
        finally:
            conn.close()
        return Profile(**dict(row)) if row else None

    def ensure(self, user_id: str, email: str = "", full_name: str = "") -> Profile:
        """Creates the profile on first sight of a user, like a sign-up hook."""
        now = _now()
        conn = get_db_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO profiles (id, email, full_name, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO NOTHING
                    """,
                    (user_id, email, full_name, now, now),
                )
                row = conn.execute(
                    "SELECT * FROM profiles WHERE id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to create profile {user_id}") from e
        finally:
            conn.close()
        return Profile(**dict(row))


class TestResultRepository:
    __test__ = False

    def insert(
        self,
        user_id: str,
        score: int,
        total_questions: int,
        difficulty: str,
        time_taken_seconds: int,
        answers: List[Dict[str, Any]],
    ) -> TestResult:
        result = TestResult(
            id=str(uuid.uuid4()),
            user_id=user_id,
            score=score,
            total_questions=total_questions,
            difficulty=difficulty,
            time_taken_seconds=time_taken_seconds,
            answers=answers,
            created_at=datetime.now(timezone.utc),
        )
        conn = get_db_connection()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO test_results (id, user_id, score, total_questions,
                        difficulty, time_taken_seconds, answers, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        result.id,
                        result.user_id,
                        result.score,
                        result.total_questions,
                        result.difficulty,
                        result.time_taken_seconds,
                        json.dumps(result.answers),
                        result.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError("Failed to insert test result") from e
        finally:
            conn.close()
        return result

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[TestResult]:
        """Newest first."""
        query = (
            "SELECT * FROM test_results WHERE user_id = ? "
            "ORDER BY created_at DESC, rowid DESC"
        )
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)

        conn = get_db_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read history for {user_id}") from e
        finally:
            conn.close()
        return [_row_to_result(row) for row in rows]

    def delete(self, result_ids: List[str]) -> int:
        if not result_ids:
            return 0
        placeholders = ", ".join("?" for _ in result_ids)
        conn = get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    f"DELETE FROM test_results WHERE id IN ({placeholders})",
                    result_ids,
                )
        except sqlite3.Error as e:
            raise PersistenceError("Failed to delete test results") from e
        finally:
            conn.close()
        return cursor.rowcount

    def delete_for_user(self, user_id: str) -> int:
        conn = get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM test_results WHERE user_id = ?", (user_id,)
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear history for {user_id}") from e
        finally:
            conn.close()
        return cursor.rowcount

    def prune(self, user_id: str, keep: int) -> int:
        """Deletes everything older than the `keep` newest results."""
        excess = self.list_for_user(user_id)[keep:]
        deleted = self.delete([result.id for result in excess])
        if deleted:
            logger.info(f"Pruned {deleted} old results for user {user_id}")
        return deleted


class UserStatsRepository:
    def _read(self, conn: sqlite3.Connection, user_id: str) -> Optional[UserStatistics]:
        row = conn.execute(
            "SELECT * FROM user_stats WHERE user_id = ?", (user_id,)
        ).fetchone()
        return UserStatistics(**dict(row)) if row else None

    def _write(self, conn: sqlite3.Connection, stats: UserStatistics) -> None:
        conn.execute(
            """
            INSERT INTO user_stats (user_id, total_tests, total_questions,
                correct_answers, accuracy_percentage, average_score, best_score,
                created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                total_tests = excluded.total_tests,
                total_questions = excluded.total_questions,
                correct_answers = excluded.correct_answers,
                accuracy_percentage = excluded.accuracy_percentage,
                average_score = excluded.average_score,
                best_score = excluded.best_score,
                updated_at = excluded.updated_at
            """,
            (
                stats.user_id,
                stats.total_tests,
                stats.total_questions,
                stats.correct_answers,
                stats.accuracy_percentage,
                stats.average_score,
                stats.best_score,
                stats.created_at.isoformat(),
                stats.updated_at.isoformat(),
            ),
        )

    def get(self, user_id: str) -> Optional[UserStatistics]:
        conn = get_db_connection()
        try:
            return self._read(conn, user_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read stats for {user_id}") from e
        finally:
            conn.close()

    def fold(self, user_id: str, total_questions: int, score: int) -> UserStatistics:
        """
        Folds one completed quiz into the user's record.

        The read and the full-record write share one IMMEDIATE transaction,
        so two completions for the same user cannot both start from the
        same baseline.
        """
        conn = get_db_connection()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            current = self._read(conn, user_id) or UserStatistics.zero(user_id)
            now = datetime.now(timezone.utc)
            updated = current.fold(total_questions, score).model_copy(
                update={"created_at": current.created_at or now, "updated_at": now}
            )
            self._write(conn, updated)
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise PersistenceError(f"Failed to update stats for {user_id}") from e
        finally:
            conn.close()
        return updated

    def reset(self, user_id: str) -> UserStatistics:
        """Zeroes the record, keeping its creation time."""
        conn = get_db_connection()
        try:
            with conn:
                current = self._read(conn, user_id)
                now = datetime.now(timezone.utc)
                zeroed = UserStatistics.zero(user_id).model_copy(
                    update={
                        "created_at": current.created_at if current else now,
                        "updated_at": now,
                    }
                )
                self._write(conn, zeroed)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to reset stats for {user_id}") from e
        finally:
            conn.close()
        return zeroed
