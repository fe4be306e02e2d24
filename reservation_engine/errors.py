from __future__ import annotations

from typing import Any


class ReservationError(Exception):
    """Base class for every outcome the engine reports as an exception."""


class ValidationError(ReservationError, ValueError):
    """Input the caller can correct. Raised before any lock is taken."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ReservationConflictError(ReservationError):
    """The requested slot overlaps a confirmed reservation."""


class CredentialNotFoundError(ReservationError):
    """No live reservation matches the credential (unknown or already used)."""


class AlreadyCancelledError(ReservationError):
    def __init__(self, message: str, summary: Any = None) -> None:
        super().__init__(message)
        self.summary = summary


class PersistenceError(ReservationError, RuntimeError):
    pass
