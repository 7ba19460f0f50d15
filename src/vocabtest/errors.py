class VocabTestError(Exception):
    """Base class for all vocabtest errors."""


class CatalogUnavailableError(VocabTestError):
    """The word catalog could not be loaded; a quiz cannot start."""


class PersistenceError(VocabTestError):
    """A storage call failed. Callers log it and carry on."""


class SessionNotStartedError(VocabTestError):
    """A session operation was attempted before `initialize`."""
