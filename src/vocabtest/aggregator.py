import logging
from datetime import datetime, timezone
from typing import List, Optional

from .config import settings
from .errors import PersistenceError
from .models import ProgressPoint, QuizSession, ResultSummary, TestResult, UserStatistics
from .repositories import TestResultRepository, UserStatsRepository

logger = logging.getLogger(__name__)

PERFORMANCE_BANDS = [
    (90, "Outstanding!"),
    (80, "Excellent!"),
    (70, "Great job!"),
    (60, "Good work!"),
    (50, "Keep learning!"),
]


def performance_message(percentage: int) -> str:
    for threshold, message in PERFORMANCE_BANDS:
        if percentage >= threshold:
            return message
    return "Practice makes perfect!"


def elapsed_seconds(session: QuizSession, end_time: Optional[datetime] = None) -> int:
    end_time = end_time or datetime.now(timezone.utc)
    return round((end_time - session.start_time).total_seconds())


def summarize(session: QuizSession, end_time: Optional[datetime] = None) -> ResultSummary:
    """Score card for a finished (or abandoned) session."""
    total = session.total_questions
    percentage = round(session.score / total * 100) if total else 0
    seconds = elapsed_seconds(session, end_time)
    return ResultSummary(
        score=session.score,
        total_questions=total,
        percentage=percentage,
        time_taken_seconds=seconds,
        time_taken_minutes=round(seconds / 60),
        message=performance_message(percentage),
        difficulty=session.difficulty,
        answers=session.answers_payload(),
    )


class ResultsAggregator:
    """Writes finished quizzes to the result log and keeps user stats current."""

    def __init__(
        self,
        results: Optional[TestResultRepository] = None,
        stats: Optional[UserStatsRepository] = None,
        history_limit: Optional[int] = None,
    ):
        self.results = results or TestResultRepository()
        self.stats = stats or UserStatsRepository()
        self._history_limit = history_limit

    @property
    def history_limit(self) -> int:
        if self._history_limit is None:
            return settings.HISTORY_LIMIT
        return self._history_limit

    def save_result(
        self,
        session: QuizSession,
        user_id: str,
        difficulty: str,
        end_time: Optional[datetime] = None,
    ) -> Optional[TestResult]:
        """
        Appends the session to the user's history and folds it into their
        statistics. Returns None when the result row could not be written;
        statistics are then left untouched.
        """
        try:
            result = self.results.insert(
                user_id=user_id,
                score=session.score,
                total_questions=session.total_questions,
                difficulty=difficulty,
                time_taken_seconds=elapsed_seconds(session, end_time),
                answers=session.answers_payload(),
            )
        except PersistenceError as e:
            logger.error(f"Error saving test result for {user_id}: {e}")
            return None

        logger.info(
            f"Saved result {result.id} for {user_id}: {result.score}/{result.total_questions}"
        )
        self.update_user_stats(user_id, session.total_questions, session.score)
        self.prune_history(user_id)
        return result

    def update_user_stats(
        self, user_id: str, total_questions: int, score: int
    ) -> Optional[UserStatistics]:
        try:
            return self.stats.fold(user_id, total_questions, score)
        except PersistenceError as e:
            logger.error(f"Error updating user stats for {user_id}: {e}")
            return None

    def prune_history(self, user_id: str) -> int:
        try:
            return self.results.prune(user_id, self.history_limit)
        except PersistenceError as e:
            logger.error(f"Error pruning history for {user_id}: {e}")
            return 0

    def get_user_stats(self, user_id: str) -> Optional[UserStatistics]:
        try:
            return self.stats.get(user_id)
        except PersistenceError as e:
            logger.error(f"Error fetching user stats for {user_id}: {e}")
            return None

    def get_user_history(self, user_id: str, limit: int = 10) -> List[TestResult]:
        try:
            return self.results.list_for_user(user_id, limit)
        except PersistenceError as e:
            logger.error(f"Error fetching test history for {user_id}: {e}")
            return []

    def get_progress(self, user_id: str, limit: int = 10) -> List[ProgressPoint]:
        """Score and accuracy of the latest tests, oldest first."""
        history = self.get_user_history(user_id, limit)
        return [
            ProgressPoint(
                date=result.created_at,
                score=result.score,
                accuracy=(
                    round(result.score / result.total_questions * 100)
                    if result.total_questions
                    else 0
                ),
            )
            for result in reversed(history)
        ]

    def reset_history(self, user_id: str) -> Optional[UserStatistics]:
        """Deletes every stored result for the user and zeroes their stats."""
        try:
            deleted = self.results.delete_for_user(user_id)
            stats = self.stats.reset(user_id)
        except PersistenceError as e:
            logger.error(f"Error resetting history for {user_id}: {e}")
            return None
        logger.info(f"Reset history for {user_id}: {deleted} results removed")
        return stats
