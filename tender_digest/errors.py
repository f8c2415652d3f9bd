"""Typed error taxonomy shared by fetch, storage and notification layers."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Category used by callers to branch on failures."""

    VALIDATION = "validation"
    TRANSIENT_FETCH = "transient_fetch"
    DUPLICATE = "duplicate"
    PERSISTENCE_FATAL = "persistence_fatal"
    NOTIFICATION_FAILED = "notification_failed"


class TenderDigestError(Exception):
    """Base class for every error raised by the package."""

    kind: ErrorKind = ErrorKind.PERSISTENCE_FATAL


class ValidationError(TenderDigestError):
    """Rejected input (date range, query parameters) before any I/O."""

    kind = ErrorKind.VALIDATION


class FetchError(TenderDigestError):
    """Remote source failure: network, timeout, bad status or payload."""

    kind = ErrorKind.TRANSIENT_FETCH

    def __init__(self, message: str, *, page: int | None = None) -> None:
        super().__init__(message)
        self.page = page


class DuplicateRecordError(TenderDigestError):
    """A record already exists for the (id, business line) pair."""

    kind = ErrorKind.DUPLICATE

    def __init__(self, tender_id: int, business_line_id: str) -> None:
        super().__init__(f"Tender {tender_id} already stored for {business_line_id}")
        self.tender_id = tender_id
        self.business_line_id = business_line_id


class PersistenceError(TenderDigestError):
    """Storage failure other than a uniqueness violation."""

    kind = ErrorKind.PERSISTENCE_FATAL


class NotConnectedError(PersistenceError):
    """Store used while disconnected."""

    def __init__(self, message: str = "Database not connected") -> None:
        super().__init__(message)


class NotificationError(TenderDigestError):
    """Delivery endpoint rejected or could not receive a message."""

    kind = ErrorKind.NOTIFICATION_FAILED

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "DuplicateRecordError",
    "ErrorKind",
    "FetchError",
    "NotConnectedError",
    "NotificationError",
    "PersistenceError",
    "TenderDigestError",
    "ValidationError",
]
