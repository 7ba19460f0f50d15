import json
import logging

import pytest
from fastapi.testclient import TestClient

from vocabtest.app import create_app
from vocabtest.config import settings
from vocabtest.database import init_db
from vocabtest.globals import vocab_manager
from vocabtest.models import VocabItem

WORDS = [
    {"word": "brief", "meaning": "lasting a short time", "example": "A brief talk.", "difficulty": "easy"},
    {"word": "eager", "meaning": "keen to do something", "example": "Eager to help.", "difficulty": "easy"},
    {"word": "vivid", "meaning": "clear and strong", "example": "A vivid dream.", "difficulty": "easy"},
    {"word": "frugal", "meaning": "careful with money", "example": "A frugal meal.", "difficulty": "medium"},
    {"word": "deter", "meaning": "to discourage", "example": "Fences deter thieves.", "difficulty": "medium"},
    {"word": "tedious", "meaning": "dull and tiresome", "example": "Tedious paperwork.", "difficulty": "medium"},
    {"word": "ephemeral", "meaning": "lasting a very short time", "example": "Ephemeral fame.", "difficulty": "hard"},
    {"word": "quixotic", "meaning": "unrealistically idealistic", "example": "A quixotic plan.", "difficulty": "hard"},
    {"word": "zealous", "meaning": "full of energy for a cause", "example": "A zealous fan.", "difficulty": "hard"},
    {"word": "ubiquitous", "meaning": "found everywhere", "example": "Ubiquitous phones.", "difficulty": "hard"},
]

MEANINGS = {w["word"]: w["meaning"] for w in WORDS}


@pytest.fixture(autouse=True)
def detach_log_handlers():
    yield
    logger = logging.getLogger("vocabtest")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def pool():
    return [VocabItem(**w) for w in WORDS]


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_DIR", str(tmp_path / "db"))
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "log"))
    init_db()
    return tmp_path


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "words.json"
    path.write_text(json.dumps(WORDS), encoding="utf-8")
    return path


@pytest.fixture
def client(db, catalog_file, monkeypatch):
    monkeypatch.setattr(settings, "TEST_SIZE", 5)
    monkeypatch.setattr(vocab_manager, "path", str(catalog_file))
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
