import os
from typing import Optional


def _optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value else None


class Settings:
    PROJECT_NAME: str = "vocabtest"
    DEBUG: bool = os.environ.get("DEBUG", "False").lower() == "true"
    LOG_DIR: str = os.environ.get("LOG_DIR", "log")
    LOG_FILE: str = "vocabtest.log"
    DB_DIR: str = os.environ.get("DB_DIR", "db")
    DB_FILE: str = "vocabtest.db"
    VOCAB_FILE: str = os.environ.get("VOCAB_FILE", "vocabulary/words.json")
    TEST_SIZE: int = int(os.environ.get("TEST_SIZE", "20"))
    NUM_DISTRACTORS: int = 3
    HISTORY_LIMIT: int = 20
    QUIZ_SEED: Optional[int] = _optional_int("QUIZ_SEED")
    SESSION_KEY: str = "vocabtest-state"
    SESSION_COOKIE_NAME: str = "quiz_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    USER_ID_HEADER: str = "X-User-Id"
    USER_EMAIL_HEADER: str = "X-User-Email"
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")


settings = Settings()
