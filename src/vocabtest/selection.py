import random
from typing import List, Optional, Sequence, TypeVar

from .config import settings
from .models import ALL_DIFFICULTIES, AnswerRecord, QuizSession, Question, VocabItem

T = TypeVar("T")


def shuffle_items(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Returns a Fisher-Yates shuffled copy of `items`."""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def select_random_words(
    pool: Sequence[VocabItem],
    count: int,
    difficulty: str = ALL_DIFFICULTIES,
    rng: Optional[random.Random] = None,
) -> List[VocabItem]:
    """
    Picks `count` distinct items for a quiz.

    When fewer than `count` items match `difficulty` the whole pool is used
    instead, so a full-length quiz wins over the difficulty filter. A pool
    smaller than `count` gives a short quiz.
    """
    eligible = list(pool)
    if difficulty != ALL_DIFFICULTIES:
        eligible = [item for item in pool if item.difficulty.value == difficulty]

    if len(eligible) < count:
        eligible = list(pool)

    return shuffle_items(eligible, rng)[:count]


def generate_wrong_answers(
    correct_item: VocabItem,
    pool: Sequence[VocabItem],
    count: int = 3,
    rng: Optional[random.Random] = None,
) -> List[str]:
    candidates = [item for item in pool if item.word != correct_item.word]
    return [item.meaning for item in shuffle_items(candidates, rng)[:count]]


def create_multiple_choice_options(
    correct_item: VocabItem,
    pool: Sequence[VocabItem],
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Correct meaning plus up to NUM_DISTRACTORS decoys, in random order."""
    wrong_answers = generate_wrong_answers(
        correct_item, pool, settings.NUM_DISTRACTORS, rng
    )
    return shuffle_items([correct_item.meaning] + wrong_answers, rng)


class QuizGenerator:
    """Builds quiz item lists and question views from one word pool."""

    def __init__(self, pool: Sequence[VocabItem], seed: Optional[int] = None):
        self.pool = list(pool)
        self.rng = random.Random(seed)

    def generate(self, difficulty: str, count: int) -> List[VocabItem]:
        return select_random_words(self.pool, count, difficulty, self.rng)

    def build_question(self, session: QuizSession) -> Question:
        index = session.current_index
        item = session.selected_items[index]
        record: Optional[AnswerRecord] = session.answers.get(index)
        return Question(
            word=item.word,
            options=create_multiple_choice_options(item, self.pool, self.rng),
            current_index=index,
            total_questions=session.total_questions,
            answer_record=record,
            example=item.example if record else None,
        )
