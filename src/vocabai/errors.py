"""Error types and classification for external calls."""
import asyncio
from datetime import datetime, UTC
from enum import Enum
from typing import Optional

import httpx


class ErrorType(Enum):
    """Classes of failures from external services."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    VALIDATION = "validation"
    SERVER = "server"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


# Retrying cannot fix these.
NON_RETRYABLE = frozenset({ErrorType.AUTHENTICATION, ErrorType.VALIDATION})


class APIError(Exception):
    """Structured error raised by provider and speech adapters."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNKNOWN,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(UTC)

    @property
    def retryable(self) -> bool:
        return self.error_type not in NON_RETRYABLE

    @classmethod
    def from_status(cls, status_code: int, message: str) -> "APIError":
        return cls(message, classify_status(status_code), status_code)

    def __repr__(self) -> str:
        return f"APIError({self.error_type.value}, status={self.status_code}, {self.message!r})"


class ChallengeValidationError(APIError):
    """The challenge provider answered with a malformed or incomplete payload."""

    def __init__(self, message: str):
        super().__init__(message, ErrorType.VALIDATION)


class RecognitionError(Exception):
    """A listening session ended without a transcript."""
    NO_SPEECH = "no-speech"
    UNSUPPORTED = "unsupported"
    CANCELLED = "cancelled"
    ABORTED = "aborted"

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or f"Speech recognition error: {reason}")
        self.reason = reason


class InvalidActionError(ValueError):
    """An external action arrived in a state that does not accept it."""


class EngineInvariantError(RuntimeError):
    """Internal state is inconsistent; the session cannot continue."""


def classify_status(status_code: int) -> ErrorType:
    """Map an HTTP status code to an error type."""
    if status_code in (401, 403):
        return ErrorType.AUTHENTICATION
    if status_code == 429:
        return ErrorType.RATE_LIMIT
    if status_code == 402:
        return ErrorType.QUOTA_EXCEEDED
    if 400 <= status_code < 500:
        return ErrorType.VALIDATION
    if status_code >= 500:
        return ErrorType.SERVER
    return ErrorType.UNKNOWN


def classify_exception(error: BaseException) -> ErrorType:
    """Map any exception raised by an external call to an error type."""
    if isinstance(error, APIError):
        return error.error_type
    if isinstance(error, httpx.HTTPStatusError):
        return classify_status(error.response.status_code)
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorType.TIMEOUT
    if isinstance(error, httpx.RequestError):
        return ErrorType.NETWORK
    return ErrorType.UNKNOWN


def to_api_error(error: BaseException, context: str = "") -> APIError:
    """Wrap an arbitrary exception in an APIError, keeping existing ones."""
    if isinstance(error, APIError):
        return error
    status_code = None
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
    prefix = f"{context}: " if context else ""
    return APIError(f"{prefix}{error}", classify_exception(error), status_code, error)
