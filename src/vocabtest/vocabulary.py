import logging
import os
from collections import Counter
from typing import Dict, List, Optional

import pandas as pd
from pydantic import ValidationError

from .config import settings
from .errors import CatalogUnavailableError
from .models import ALL_DIFFICULTIES, Difficulty, VocabItem

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("word", "meaning", "example", "difficulty")


class VocabularyManager:
    """Loads the static word catalog and hands it out to quiz sessions."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.words: Optional[List[VocabItem]] = None

    @property
    def source(self) -> str:
        return self.path or settings.VOCAB_FILE

    def _read_frame(self) -> pd.DataFrame:
        if self.source.lower().endswith(".json"):
            return pd.read_json(self.source, orient="records", dtype=False)
        return pd.read_csv(self.source, encoding="utf-8", dtype=str)

    def load_all(self) -> List[VocabItem]:
        self.words = None
        if not os.path.exists(self.source):
            logger.error(f"Catalog file {self.source} not found.")
            raise CatalogUnavailableError(f"Catalog file {self.source} not found")

        try:
            df = self._read_frame()
        except ValueError as e:
            logger.error(f"Failed to read {self.source}: {e}")
            raise CatalogUnavailableError(f"Failed to read {self.source}") from e

        missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            logger.error(f"Skipping {self.source}: Missing columns {missing}.")
            raise CatalogUnavailableError(f"Catalog is missing columns {missing}")

        df = df.fillna({"example": ""})
        try:
            words = [
                VocabItem(**record)
                for record in df[list(REQUIRED_COLUMNS)].to_dict("records")
            ]
        except ValidationError as e:
            logger.error(f"Invalid catalog entry in {self.source}: {e}")
            raise CatalogUnavailableError("Catalog contains invalid entries") from e

        if not words:
            logger.error(f"Catalog {self.source} is empty.")
            raise CatalogUnavailableError("Catalog is empty")

        self.words = words
        logger.info(f"Loaded {len(words)} words from {self.source}")
        return words

    def get_words(self) -> List[VocabItem]:
        if self.words is None:
            raise CatalogUnavailableError("Catalog has not been loaded")
        return self.words

    def get_difficulties(self) -> List[Dict[str, object]]:
        counts = Counter(item.difficulty.value for item in self.get_words())
        difficulties = [
            {"id": ALL_DIFFICULTIES, "name": "All Levels", "count": len(self.words)}
        ]
        for level in Difficulty:
            difficulties.append(
                {"id": level.value, "name": level.value.title(), "count": counts[level.value]}
            )
        return difficulties
