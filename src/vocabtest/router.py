import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, Form, Header, Query
from fastapi.responses import JSONResponse

from .aggregator import summarize
from .config import settings
from .errors import PersistenceError
from .globals import aggregator, profiles, session_store, vocab_manager
from .models import ALL_DIFFICULTIES, Difficulty, UserStatistics
from .selection import QuizGenerator
from .session import QuizSessionManager, session_key

logger = logging.getLogger(__name__)

router = APIRouter()

VALID_DIFFICULTIES = {ALL_DIFFICULTIES} | {level.value for level in Difficulty}


# --- Dependencies ---
def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME)
) -> Optional[str]:
    return session_id


def get_user_id(
    user_id: Optional[str] = Header(None, alias=settings.USER_ID_HEADER)
) -> Optional[str]:
    return user_id


def get_user_email(
    email: Optional[str] = Header(None, alias=settings.USER_EMAIL_HEADER)
) -> str:
    return email or ""


def get_active_session(
    session_id: Optional[str] = Depends(get_session_id),
) -> Optional[QuizSessionManager]:
    if not session_id:
        return None
    manager = QuizSessionManager(session_store, session_key(session_id))
    if manager.load() is None:
        return None
    return manager


def _no_session() -> JSONResponse:
    return JSONResponse({"error": "Session invalid"}, status_code=404)


def _no_questions() -> JSONResponse:
    return JSONResponse({"error": "Quiz has no questions"}, status_code=409)


def _no_user() -> JSONResponse:
    return JSONResponse({"error": "Sign in required"}, status_code=401)


def _state_payload(manager: QuizSessionManager) -> Dict[str, Any]:
    session = manager.session
    return {
        "state": manager.state.value,
        "current_index": session.current_index,
        "score": session.score,
        "total_questions": session.total_questions,
        "difficulty": session.difficulty,
        "start_time": session.start_time.isoformat(),
        "answers": {str(k): v.model_dump() for k, v in session.answers.items()},
        "saved": session.saved,
    }


# --- Catalog ---
@router.get("/api/difficulties")
async def get_difficulties():
    return vocab_manager.get_difficulties()


# --- Quiz ---
@router.post("/api/quiz/start")
def start_quiz(
    difficulty: str = Form(ALL_DIFFICULTIES),
    session_id: Optional[str] = Depends(get_session_id),
):
    if difficulty not in VALID_DIFFICULTIES:
        return JSONResponse({"error": "Unknown difficulty"}, status_code=400)

    pool = vocab_manager.get_words()
    generator = QuizGenerator(pool, settings.QUIZ_SEED)
    items = generator.generate(difficulty, settings.TEST_SIZE)

    if session_id:
        QuizSessionManager(session_store, session_key(session_id)).reset()

    new_id = str(uuid.uuid4())
    manager = QuizSessionManager(session_store, session_key(new_id))
    manager.initialize(items, difficulty)

    response = JSONResponse(_state_payload(manager))
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    return response


@router.get("/api/quiz")
def get_quiz_state(manager=Depends(get_active_session)):
    if not manager:
        return _no_session()
    return _state_payload(manager)


@router.get("/api/quiz/question")
def get_question(manager=Depends(get_active_session)):
    if not manager:
        return _no_session()
    if not manager.session.selected_items:
        return _no_questions()
    generator = QuizGenerator(vocab_manager.get_words(), settings.QUIZ_SEED)
    return generator.build_question(manager.session)


@router.post("/api/quiz/answer")
def submit_answer(
    answer: str = Form(...),
    manager=Depends(get_active_session),
):
    if not manager:
        return _no_session()

    session = manager.session
    if not session.selected_items:
        return _no_questions()
    index = session.current_index
    if index in session.answers:
        return JSONResponse({"error": "Already answered"}, status_code=400)

    item = session.selected_items[index]
    is_correct = answer == item.meaning
    record = manager.record_answer(index, answer, is_correct)

    return {
        **record.model_dump(),
        "question_index": index,
        "correct_answer": item.meaning,
        "example": item.example,
        "score": session.score,
        "state": manager.state.value,
    }


@router.post("/api/quiz/next")
def next_question(manager=Depends(get_active_session)):
    if not manager:
        return _no_session()
    if manager.session.current_index not in manager.session.answers:
        return JSONResponse({"error": "Answer the current question first"}, status_code=400)
    manager.advance()
    return _state_payload(manager)


@router.post("/api/reset")
def reset_session(
    manager=Depends(get_active_session),
):
    if manager:
        manager.reset()
    response = JSONResponse({"status": "success"})
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


# --- Results ---
@router.get("/api/result")
def get_result(manager=Depends(get_active_session)):
    if not manager:
        return _no_session()
    return summarize(manager.session)


@router.post("/api/result")
def save_result(
    background_tasks: BackgroundTasks,
    wait: bool = Query(True),
    manager=Depends(get_active_session),
    user_id: Optional[str] = Depends(get_user_id),
    email: str = Depends(get_user_email),
):
    """
    Stores the finished quiz for the signed-in user.

    With `wait=false` the write runs after the response as a background
    task and the caller only learns that it was scheduled.
    """
    if not user_id:
        return _no_user()
    if not manager:
        return _no_session()
    if not manager.is_completed:
        return JSONResponse({"error": "Quiz not completed"}, status_code=409)
    if manager.session.saved:
        return JSONResponse({"error": "Result already saved"}, status_code=409)

    try:
        profiles.ensure(user_id, email)
    except PersistenceError as e:
        logger.error(f"Error ensuring profile for {user_id}: {e}")

    end_time = datetime.now(timezone.utc)
    manager.mark_saved()
    session = manager.session.model_copy(deep=True)

    if not wait:
        background_tasks.add_task(
            aggregator.save_result, session, user_id, session.difficulty, end_time
        )
        return JSONResponse({"status": "scheduled"}, status_code=202)

    result = aggregator.save_result(session, user_id, session.difficulty, end_time)
    if result is None:
        return {"status": "not_saved", "result": None}
    return {"status": "saved", "result": result}


# --- Statistics ---
@router.get("/api/stats")
def get_stats(user_id: Optional[str] = Depends(get_user_id)):
    if not user_id:
        return _no_user()
    return aggregator.get_user_stats(user_id) or UserStatistics.zero(user_id)


@router.get("/api/history")
def get_history(
    limit: int = Query(10, ge=1),
    user_id: Optional[str] = Depends(get_user_id),
):
    if not user_id:
        return _no_user()
    return aggregator.get_user_history(user_id, min(limit, settings.HISTORY_LIMIT))


@router.get("/api/progress")
def get_progress(
    limit: int = Query(10, ge=1),
    user_id: Optional[str] = Depends(get_user_id),
):
    if not user_id:
        return _no_user()
    return aggregator.get_progress(user_id, min(limit, settings.HISTORY_LIMIT))


@router.delete("/api/history")
def reset_history(user_id: Optional[str] = Depends(get_user_id)):
    if not user_id:
        return _no_user()
    stats = aggregator.reset_history(user_id)
    if stats is None:
        return JSONResponse({"error": "Could not reset history"}, status_code=500)
    return stats


@router.get("/api/profile")
def get_profile(
    user_id: Optional[str] = Depends(get_user_id),
    email: str = Depends(get_user_email),
):
    if not user_id:
        return _no_user()
    try:
        return profiles.ensure(user_id, email)
    except PersistenceError as e:
        logger.error(f"Error loading profile for {user_id}: {e}")
        return JSONResponse({"error": "Profile unavailable"}, status_code=500)
