"""Neural Synth - Audio-request record store.

Core store operations:
- Create with required-field validation (all-or-nothing)
- Point lookup by id, lookup by inference_request_id (insertion order)
- Metadata-only updates
- Idempotent setup of the collection and its secondary index

Every operation is a single request/response against the database.
Nothing is retried here; connectivity failures surface as
StoreUnavailableError and retrying is the caller's decision.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import pydantic
from sqlalchemy import Engine, Index, inspect, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from neural_synth.config import COLLECTION_NAME, INFERENCE_REQUEST_INDEX_NAME
from neural_synth.errors import NotFoundError, StoreUnavailableError, ValidationError
from neural_synth.models import AudioRequestRecord, SynthType, now_ms
from neural_synth.schemas import METADATA_NOT_JSON, NewAudioRequest, is_json_serializable

logger = logging.getLogger(__name__)

# Exceptions that mean "could not talk to the database", not "bad request"
_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)

# Pydantic error types that amount to "missing or empty"
_MISSING_OR_EMPTY = frozenset({"missing", "string_too_short", "bytes_too_short", "value_error"})

# Example document inserted by the setup procedure
SMOKE_INFERENCE_REQUEST_ID = "abc-123"
SMOKE_AUDIO_PAYLOAD = b"smoke-test-audio"
SMOKE_PRESET_PAYLOAD = b"smoke-test-preset"

METADATA_FIELDS = ("preset_metadata", "other_metadata")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class SetupResult:
    """What ensure_indexes created on this call."""

    collection_created: bool
    index_created: bool

    @property
    def already_initialized(self) -> bool:
        return not (self.collection_created or self.index_created)


def generate_record_id() -> str:
    """Generate a unique record ID.

    Uses UUID4 for uniqueness. Format: uuid4 hex (32 chars).
    """
    return uuid.uuid4().hex


# --- Validation ---


def validate_new_audio_request(record: Mapping[str, Any] | NewAudioRequest) -> NewAudioRequest:
    """Validate a creation payload.

    Args:
        record: Mapping of field name to value, or an already-built NewAudioRequest.

    Returns:
        The validated NewAudioRequest.

    Raises:
        ValidationError: If a required field is missing or empty, an unknown
            field is present, or a field has the wrong type.
    """
    if isinstance(record, NewAudioRequest):
        return record
    if not isinstance(record, Mapping):
        raise ValidationError([], f"record must be a mapping, got {type(record).__name__}")

    try:
        return NewAudioRequest.model_validate(dict(record))
    except pydantic.ValidationError as e:
        fields: list[str] = []
        only_missing_or_empty = True
        for err in e.errors():
            name = str(err["loc"][0]) if err["loc"] else "<record>"
            if name not in fields:
                fields.append(name)
            if err["type"] not in _MISSING_OR_EMPTY:
                only_missing_or_empty = False
        if any(err["type"] == METADATA_NOT_JSON for err in e.errors()):
            reason = "metadata must be JSON-serializable"
        elif only_missing_or_empty:
            reason = None
        else:
            reason = "invalid field(s)"
        raise ValidationError(fields, reason) from e


def _validate_metadata_value(name: str, value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError([name], "metadata must be a mapping")
    if not is_json_serializable(value):
        raise ValidationError([name], "metadata must be JSON-serializable")
    return dict(value)


# --- Error translation ---


def _describe(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


@contextmanager
def _store_call(session: Session | None = None) -> Iterator[None]:
    """Roll back on failure and translate connectivity errors."""
    try:
        yield
    except _UNAVAILABLE_ERRORS as e:
        if session is not None:
            session.rollback()
        raise StoreUnavailableError(_describe(e)) from e
    except Exception:
        if session is not None:
            session.rollback()
        raise


# --- Store Operations ---


def create_audio_request(session: Session, record: Mapping[str, Any] | NewAudioRequest) -> str:
    """Create one audio-request record.

    Validation happens before the database is touched, so a rejected
    payload never leaves a partial record behind.

    Args:
        session: Active database session.
        record: Creation payload (see NewAudioRequest).

    Returns:
        The generated record id.

    Raises:
        ValidationError: If a required field is missing or empty.
        StoreUnavailableError: If the database cannot be reached.

    Note:
        This function commits the session on success.
    """
    payload = validate_new_audio_request(record)

    record_id = generate_record_id()
    now = now_ms()
    row = AudioRequestRecord(
        id=record_id,
        inference_request_id=payload.inference_request_id,
        synth=payload.synth,
        audio_compressed=payload.audio_compressed,
        preset_file=payload.preset_file,
        preset_metadata=payload.preset_metadata,
        other_metadata=payload.other_metadata,
        created_at=now,
        updated_at=now,
    )

    with _store_call(session):
        session.add(row)
        session.commit()

    logger.debug(
        "Created audio request id=%s inference_request_id=%s synth=%s",
        record_id,
        payload.inference_request_id,
        payload.synth,
    )
    return record_id


def get_audio_request(session: Session, record_id: str) -> AudioRequestRecord:
    """Fetch one record by id.

    Raises:
        NotFoundError: If no record has this id.
        StoreUnavailableError: If the database cannot be reached.
    """
    stmt = select(AudioRequestRecord).where(AudioRequestRecord.id == record_id)
    with _store_call(session):
        row = session.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFoundError(record_id)
    return row


def list_audio_requests(session: Session, inference_request_id: str) -> list[AudioRequestRecord]:
    """List records sharing one inference_request_id, in insertion order.

    Each call re-queries; the result may be empty.

    Raises:
        StoreUnavailableError: If the database cannot be reached.
    """
    stmt = (
        select(AudioRequestRecord)
        .where(AudioRequestRecord.inference_request_id == inference_request_id)
        .order_by(AudioRequestRecord.seq)
    )
    with _store_call(session):
        return list(session.execute(stmt).scalars())


def update_audio_request_metadata(
    session: Session,
    record_id: str,
    *,
    preset_metadata: Any = UNSET,
    other_metadata: Any = UNSET,
) -> AudioRequestRecord:
    """Replace a record's metadata mapping(s) and bump updated_at.

    Fields left as UNSET are not touched; None clears a field. Payloads,
    id and created_at never change.

    Raises:
        ValidationError: If nothing is supplied or a value is not a mapping.
        NotFoundError: If no record has this id.
        StoreUnavailableError: If the database cannot be reached.

    Note:
        This function commits the session on success.
    """
    supplied = {
        name: value
        for name, value in zip(METADATA_FIELDS, (preset_metadata, other_metadata), strict=True)
        if value is not UNSET
    }
    if not supplied:
        raise ValidationError(list(METADATA_FIELDS), "no metadata field supplied")
    changes = {name: _validate_metadata_value(name, value) for name, value in supplied.items()}

    row = get_audio_request(session, record_id)
    with _store_call(session):
        for name, value in changes.items():
            setattr(row, name, value)
        # updated_at never moves backwards, even if the clock does
        row.updated_at = max(now_ms(), row.updated_at, row.created_at)
        session.commit()

    logger.debug("Updated %s on audio request id=%s", ", ".join(changes), record_id)
    return row


# --- Setup ---


def _inference_request_index() -> Index:
    table = AudioRequestRecord.__table__
    return next(ix for ix in table.indexes if ix.name == INFERENCE_REQUEST_INDEX_NAME)


def _has_collection(engine: Engine) -> bool:
    return inspect(engine).has_table(COLLECTION_NAME)


def _has_index(engine: Engine) -> bool:
    return any(
        ix["name"] == INFERENCE_REQUEST_INDEX_NAME
        for ix in inspect(engine).get_indexes(COLLECTION_NAME)
    )


def _create_collection_if_absent(engine: Engine) -> bool:
    if _has_collection(engine):
        return False
    try:
        # Also emits CREATE INDEX for the table's indexes.
        AudioRequestRecord.__table__.create(engine)
    except DBAPIError:
        # Lost a creation race to a concurrent caller: not an error.
        if not _has_collection(engine):
            raise
        return False
    return True


def _create_index_if_absent(engine: Engine) -> bool:
    if _has_index(engine):
        return False
    try:
        _inference_request_index().create(engine)
    except DBAPIError:
        # Same race for the index.
        if not _has_index(engine):
            raise
        return False
    return True


def ensure_indexes(engine: Engine) -> SetupResult:
    """Ensure the collection and its inference_request_id index exist.

    Idempotent and safe to call concurrently: an already-existing
    collection or index is a no-op, never an error.

    Args:
        engine: SQLAlchemy Engine (read-write role).

    Returns:
        SetupResult describing what this call created.

    Raises:
        StoreUnavailableError: If the database cannot be reached.
    """
    with _store_call():
        collection_created = _create_collection_if_absent(engine)
        index_created = collection_created or _create_index_if_absent(engine)

    result = SetupResult(collection_created=collection_created, index_created=index_created)
    if result.already_initialized:
        logger.info(
            "Collection %s and index %s already present",
            COLLECTION_NAME,
            INFERENCE_REQUEST_INDEX_NAME,
        )
    else:
        logger.info(
            "Setup of %s: collection_created=%s index_created=%s",
            COLLECTION_NAME,
            collection_created,
            index_created,
        )
    return result


def insert_smoke_document(session: Session) -> str:
    """Insert the example document used to smoke-test a fresh environment.

    Returns:
        The generated record id.
    """
    return create_audio_request(
        session,
        {
            "inference_request_id": SMOKE_INFERENCE_REQUEST_ID,
            "synth": SynthType.VITAL.value,
            "audio_compressed": SMOKE_AUDIO_PAYLOAD,
            "preset_file": SMOKE_PRESET_PAYLOAD,
            "preset_metadata": {},
            "other_metadata": {},
        },
    )
