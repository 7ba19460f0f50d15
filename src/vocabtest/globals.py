from .aggregator import ResultsAggregator
from .repositories import ProfileRepository
from .session import SQLiteSessionStore
from .vocabulary import VocabularyManager

vocab_manager = VocabularyManager()
session_store = SQLiteSessionStore()
aggregator = ResultsAggregator()
profiles = ProfileRepository()
