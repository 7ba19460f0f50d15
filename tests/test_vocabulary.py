import json

import pytest

from vocabtest.errors import CatalogUnavailableError
from vocabtest.models import Difficulty
from vocabtest.vocabulary import VocabularyManager


def test_load_json_catalog(catalog_file):
    manager = VocabularyManager(str(catalog_file))
    words = manager.load_all()

    assert len(words) == 10
    assert words[0].word == "brief"
    assert words[0].difficulty == Difficulty.EASY
    assert manager.get_words() is words


def test_load_csv_catalog(tmp_path):
    path = tmp_path / "words.csv"
    path.write_text(
        "word,meaning,example,difficulty\n"
        "brief,lasting a short time,A brief talk.,easy\n"
        "deter,to discourage,,medium\n",
        encoding="utf-8",
    )

    words = VocabularyManager(str(path)).load_all()

    assert [w.word for w in words] == ["brief", "deter"]
    assert words[1].example == ""


def test_missing_file_is_unavailable(tmp_path):
    with pytest.raises(CatalogUnavailableError):
        VocabularyManager(str(tmp_path / "nope.json")).load_all()


def test_missing_columns_are_rejected(tmp_path):
    path = tmp_path / "words.json"
    path.write_text(json.dumps([{"word": "brief", "translation": "short"}]), encoding="utf-8")

    with pytest.raises(CatalogUnavailableError):
        VocabularyManager(str(path)).load_all()


def test_unknown_difficulty_is_rejected(tmp_path):
    path = tmp_path / "words.json"
    path.write_text(
        json.dumps([{"word": "brief", "meaning": "short", "example": "", "difficulty": "extreme"}]),
        encoding="utf-8",
    )

    with pytest.raises(CatalogUnavailableError):
        VocabularyManager(str(path)).load_all()


def test_words_unavailable_before_load(catalog_file):
    with pytest.raises(CatalogUnavailableError):
        VocabularyManager(str(catalog_file)).get_words()


def test_difficulty_counts(catalog_file):
    manager = VocabularyManager(str(catalog_file))
    manager.load_all()

    counts = {d["id"]: d["count"] for d in manager.get_difficulties()}

    assert counts == {"all": 10, "easy": 3, "medium": 3, "hard": 4}
