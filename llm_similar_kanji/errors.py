"""Exception types raised by the similar-kanji pipeline."""
from typing import Optional


class SimilarKanjiError(Exception):
    pass


class ConfigError(SimilarKanjiError):
    pass


class FetchError(SimilarKanjiError):
    """Base for failures of a paginated fetch. Always terminal for that fetch."""


class RemoteUnavailable(FetchError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MalformedResponse(FetchError):
    pass


class RoundNotReady(SimilarKanjiError):
    pass


class NoMoreRounds(Exception):
    """No eligible kanji remain. An end-of-content signal, not a failure."""
