"""Neural Synth - Record store error taxonomy.

Setup operations never raise on "already exists", so there is no
duplicate-setup error.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class RecordStoreErrorCode(StrEnum):
    """Error codes surfaced by the audio-request record store."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class RecordStoreError(Exception):
    """Base exception for record store errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class ValidationError(RecordStoreError):
    """A required field is missing or empty, or a field has the wrong shape."""

    def __init__(self, fields: Sequence[str], reason: str | None = None):
        self.fields = list(fields)
        detail = reason or "missing or empty required field(s)"
        super().__init__(
            RecordStoreErrorCode.VALIDATION_FAILED,
            f"{detail}: {', '.join(self.fields)}" if self.fields else detail,
        )


class NotFoundError(RecordStoreError):
    """No record with the requested id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(RecordStoreErrorCode.NOT_FOUND, f"Audio request not found: {record_id}")


class StoreUnavailableError(RecordStoreError):
    """The underlying database could not be reached or timed out."""

    def __init__(self, reason: str):
        super().__init__(RecordStoreErrorCode.STORE_UNAVAILABLE, f"Store unavailable: {reason}")
