"""Typed failure taxonomy for inference calls."""

from __future__ import annotations

import asyncio
from enum import Enum

import httpx
import ollama
import openai


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED = "quota_exceeded"
    TIMEOUT = "timeout"
    TRANSIENT = "transient"
    MALFORMED_RESPONSE = "malformed_response"


class InferenceError(Exception):
    """Base class for every error the orchestrator reasons about."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    @property
    def recoverable(self) -> bool:
        return self.kind is not ErrorKind.INVALID_CREDENTIAL


class InvalidCredentialError(InferenceError):
    kind = ErrorKind.INVALID_CREDENTIAL


class QuotaExceededError(InferenceError):
    kind = ErrorKind.QUOTA_EXCEEDED


class InferenceTimeoutError(InferenceError):
    kind = ErrorKind.TIMEOUT


class TransientInferenceError(InferenceError):
    kind = ErrorKind.TRANSIENT


class MalformedResponseError(InferenceError):
    """The model answered, but not in the requested shape. Never retried."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, message: str, *, cost: float = 0.0) -> None:
        super().__init__(message)
        self.cost = cost


class RetriesExhaustedError(InferenceError):
    """Raised once every retry slot has been spent."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        reason = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"Inference failed after {attempts} attempts. Last error: {reason}")

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        if isinstance(self.last_error, InferenceError):
            return self.last_error.kind
        return ErrorKind.TRANSIENT


INVALID_CREDENTIAL_MARKERS = ("api key not valid", "invalid api key", "incorrect api key", "unauthorized")
QUOTA_MARKERS = ("429", "quota", "resource exhausted", "resource_exhausted", "rate limit")


def classify_error(exc: BaseException) -> InferenceError:
    """Translate any client-side failure into the typed taxonomy.

    Library exception types and HTTP status codes are checked first; message
    substrings are only consulted for errors that carry nothing better.
    """
    if isinstance(exc, InferenceError):
        return exc

    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, openai.APITimeoutError)):
        return InferenceTimeoutError(message)

    if isinstance(exc, openai.AuthenticationError):
        return InvalidCredentialError(message)
    if isinstance(exc, openai.RateLimitError):
        return QuotaExceededError(message)
    if isinstance(exc, openai.APIConnectionError):
        return TransientInferenceError(message)

    status_code = _status_code_of(exc)
    if status_code in (401, 403):
        return InvalidCredentialError(message)
    if status_code == 429:
        return QuotaExceededError(message)

    lowered = message.lower()
    if any(marker in lowered for marker in INVALID_CREDENTIAL_MARKERS):
        return InvalidCredentialError(message)
    if any(marker in lowered for marker in QUOTA_MARKERS):
        return QuotaExceededError(message)

    return TransientInferenceError(message)


def _status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, ollama.ResponseError):
        return exc.status_code
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None
