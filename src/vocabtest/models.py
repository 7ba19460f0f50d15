from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ALL_DIFFICULTIES = "all"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class VocabItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str
    meaning: str
    example: str = ""
    difficulty: Difficulty


class AnswerRecord(BaseModel):
    selected_answer: str
    correct: bool


class QuizSession(BaseModel):
    current_index: int = Field(default=0, ge=0)
    score: int = Field(default=0, ge=0)
    selected_items: List[VocabItem]
    answers: Dict[int, AnswerRecord] = Field(default_factory=dict)
    start_time: datetime
    difficulty: str = ALL_DIFFICULTIES
    saved: bool = False

    @property
    def total_questions(self) -> int:
        return len(self.selected_items)

    @property
    def last_index(self) -> int:
        return self.total_questions - 1

    def answers_payload(self) -> List[Dict[str, Any]]:
        """Answers in question order, the shape stored with a test result."""
        return [
            {
                "question_index": index,
                "word": self.selected_items[index].word,
                "selected_answer": record.selected_answer,
                "correct": record.correct,
            }
            for index, record in sorted(self.answers.items())
        ]


class UserStatistics(BaseModel):
    user_id: str
    total_tests: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    accuracy_percentage: float = 0.0
    average_score: float = 0.0
    best_score: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def zero(cls, user_id: str) -> "UserStatistics":
        return cls(user_id=user_id)

    def fold(self, total_questions: int, score: int) -> "UserStatistics":
        """Return a copy with one more completed quiz folded in."""
        total_tests = self.total_tests + 1
        questions = self.total_questions + total_questions
        correct = self.correct_answers + score
        return self.model_copy(
            update={
                "total_tests": total_tests,
                "total_questions": questions,
                "correct_answers": correct,
                "accuracy_percentage": (correct / questions * 100) if questions else 0.0,
                "average_score": correct / total_tests,
                "best_score": max(self.best_score, score),
            }
        )


class TestResult(BaseModel):
    __test__ = False

    id: str
    user_id: str
    score: int
    total_questions: int
    difficulty: str
    time_taken_seconds: int
    answers: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime


class Profile(BaseModel):
    id: str
    email: str
    full_name: str = ""
    avatar_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Question(BaseModel):
    word: str
    options: List[str]
    current_index: int
    total_questions: int
    answer_record: Optional[AnswerRecord] = None
    example: Optional[str] = None


class ProgressPoint(BaseModel):
    date: datetime
    score: int
    accuracy: int


class ResultSummary(BaseModel):
    score: int
    total_questions: int
    percentage: int
    time_taken_seconds: int
    time_taken_minutes: int
    message: str
    difficulty: str
    answers: List[Dict[str, Any]]
