from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    PAGE_FETCH_FAILED = "PAGE_FETCH_FAILED"
    INDEX_FETCH_FAILED = "INDEX_FETCH_FAILED"
    DETAIL_NOT_FOUND = "DETAIL_NOT_FOUND"
    DETAIL_FETCH_FAILED = "DETAIL_FETCH_FAILED"
    SPECIES_NOT_FOUND = "SPECIES_NOT_FOUND"
    SPECIES_FETCH_FAILED = "SPECIES_FETCH_FAILED"
    EVOLUTION_NOT_FOUND = "EVOLUTION_NOT_FOUND"
    EVOLUTION_FETCH_FAILED = "EVOLUTION_FETCH_FAILED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    FAVORITE_READ_FAILED = "FAVORITE_READ_FAILED"
    FAVORITE_WRITE_FAILED = "FAVORITE_WRITE_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    QUERY_FAILED = "QUERY_FAILED"


class DexSyncError(Exception):
    """Raised for all expected failure conditions of a query or mutation.

    The Cache Coordinator records it on the failing key only, and server.py
    serialises it into the tool error response. Business logic does not catch
    it except to translate one stage's code into another's.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
