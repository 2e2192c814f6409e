#!/usr/bin/env python3
"""Error types shared across the extraction pipeline.

Every error carries a display-safe ``user_message``. Attempt-level errors are
collected by the coordinator and only surface, wrapped in AllAttemptsFailed,
once every strategy has failed.
"""

from typing import List, Optional


def _with_hint(message: str, hint: str) -> str:
    if not hint:
        return message
    return f"{message.rstrip('.')}. {hint}"


class ExtractionError(Exception):
    """Base class for all extraction failures.

    Attributes:
        message: Human-readable description of the failure.
        strategy: Name of the retrieval strategy that produced it, if any.
    """

    def __init__(self, message: str, strategy: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.strategy = strategy

    @property
    def user_message(self) -> str:
        return self.message


class NetworkError(ExtractionError):
    """Non-2xx response or transport failure."""

    def __init__(self, message: str, status: Optional[int] = None, strategy: Optional[str] = None):
        super().__init__(message, strategy=strategy)
        self.status = status


class FetchTimeoutError(ExtractionError):
    """Common parent for attempt timeouts and the overall deadline."""


class AttemptTimeout(FetchTimeoutError):
    def __init__(self, timeout: float, strategy: Optional[str] = None):
        super().__init__(f"Request timed out after {timeout:.1f}s", strategy=strategy)
        self.timeout = timeout


class DeadlineExceeded(FetchTimeoutError):
    """The overall deadline ended the race.

    Carries the attempt failures recorded before the deadline, in strategy
    order, and the same display hint as AllAttemptsFailed.
    """

    def __init__(self, deadline: float, failures: Optional[List[ExtractionError]] = None, hint: str = ""):
        super().__init__(f"No source answered within {deadline:.1f}s")
        self.deadline = deadline
        self.failures = list(failures or [])
        self.hint = hint

    @property
    def user_message(self) -> str:
        return _with_hint(self.message, self.hint)


class ExtractionCancelled(ExtractionError):
    """The caller withdrew the request (e.g. navigated away).

    Callers must not present this as a content error.
    """

    def __init__(self, message: str = "Extraction cancelled"):
        super().__init__(message)


class EnvelopeError(ExtractionError):
    """A proxy returned a JSON envelope carrying an error, or malformed JSON."""


class ClassificationEmpty(ExtractionError):
    """The payload held nothing interpretable as HTML or Markdown."""

    def __init__(self, message: str = "No readable content in response", strategy: Optional[str] = None):
        super().__init__(message, strategy=strategy)


class ExtractionEmpty(ExtractionError):
    """No content candidate cleared the minimum bar."""

    def __init__(self, message: str = "Could not find the article text", strategy: Optional[str] = None):
        super().__init__(message, strategy=strategy)


class AllAttemptsFailed(ExtractionError):
    """Every retrieval strategy failed.

    The message is taken from the first failure in strategy order and the
    configured hint is appended for display.
    """

    def __init__(self, failures: List[ExtractionError], hint: str = ""):
        first = failures[0] if failures else None
        base = first.message if first else "Unable to fetch the article"
        super().__init__(base, strategy=first.strategy if first else None)
        self.failures = list(failures)
        self.first_failure = first
        self.hint = hint

    @property
    def user_message(self) -> str:
        return _with_hint(self.message, self.hint)


def is_user_visible(error: BaseException) -> bool:
    """Return False for failures that should be swallowed silently by a UI."""
    return not isinstance(error, ExtractionCancelled)


__all__ = [
    "ExtractionError",
    "NetworkError",
    "FetchTimeoutError",
    "AttemptTimeout",
    "DeadlineExceeded",
    "ExtractionCancelled",
    "EnvelopeError",
    "ClassificationEmpty",
    "ExtractionEmpty",
    "AllAttemptsFailed",
    "is_user_visible",
]
