"""Neural Synth - Audio-request API FastAPI application.

HTTP surface over the audio-request record store: multipart create,
lookups by id and by inference_request_id, raw payload download, and
metadata updates. Writes use the read-write session factory; lookups use
the read-only one.

Run with:
    uvicorn services.audio_request_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, File, Form, Query, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from neural_synth.config import get_database_url, get_readonly_database_url
from neural_synth.db import create_db_engine, create_session_factory, init_db
from neural_synth.errors import RecordStoreError, RecordStoreErrorCode
from neural_synth.schemas import (
    AudioRequestSummary,
    CreateAudioRequestResponse,
    ErrorResponse,
    MetadataUpdate,
)
from neural_synth.store import (
    create_audio_request,
    get_audio_request,
    list_audio_requests,
    update_audio_request_metadata,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "INTERNAL_ERROR"

# --- Database Setup ---

# Module-level session factories (initialized on startup)
_session_factory = None
_readonly_session_factory = None


def get_session_factory():
    """Get the read-write session factory.

    Raises:
        RuntimeError: If session factory not initialized (app lifespan not invoked).
    """
    if _session_factory is None:
        raise RuntimeError("Session factory not initialized. App lifespan not invoked?")
    return _session_factory


def get_readonly_session_factory():
    """Get the read-only session factory (falls back to read-write)."""
    if _readonly_session_factory is not None:
        return _readonly_session_factory
    return get_session_factory()


def get_db_session():
    """Dependency that provides a read-write database session."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def get_readonly_db_session():
    """Dependency that provides a read-only database session."""
    session = get_readonly_session_factory()()
    try:
        yield session
    finally:
        session.close()


# --- Lifespan ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Ensures the collection and index exist, then builds the session factories.
    Factories installed beforehand (tests) are left in place.
    """
    global _session_factory, _readonly_session_factory
    engines = []
    if _session_factory is None:
        engine, _session_factory = init_db()
        engines.append(engine)
        readonly_url = get_readonly_database_url()
        if readonly_url and readonly_url != get_database_url():
            readonly_engine = create_db_engine(readonly_url)
            engines.append(readonly_engine)
            _readonly_session_factory = create_session_factory(readonly_engine)

    yield

    for engine in engines:
        engine.dispose()


# --- FastAPI App ---


app = FastAPI(
    title="Neural Synth - Audio Request API",
    description="Audio-request record store (audio payload, preset file, metadata).",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    - VALIDATION_FAILED -> 422
    - NOT_FOUND -> 404
    - STORE_UNAVAILABLE -> 503
    - anything else -> 500
    """
    return {
        RecordStoreErrorCode.VALIDATION_FAILED: 422,
        RecordStoreErrorCode.NOT_FOUND: 404,
        RecordStoreErrorCode.STORE_UNAVAILABLE: 503,
    }.get(error_code, 500)


def make_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=error_code_to_status(error_code),
        content=ErrorResponse(
            error_code=error_code,
            error_message=error_message,
        ).model_dump(),
    )


def _validation_error_response(message: str) -> JSONResponse:
    return make_error_response(RecordStoreErrorCode.VALIDATION_FAILED, message)


def _parse_metadata_field(name: str, raw: str | None) -> dict[str, Any] | None:
    """Decode a JSON-object form field. Raises ValueError on bad input."""
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {name} JSON") from e
    if value is not None and not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object")
    return value


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests (missing form fields, bad bodies) in the error shape."""
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        if loc and loc[0] not in fields:
            fields.append(loc[0])
    message = "invalid request"
    if fields:
        message = f"missing or invalid field(s): {', '.join(fields)}"
    return _validation_error_response(message)


_ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Audio request not found"},
    422: {"model": ErrorResponse, "description": "Validation failed"},
    503: {"model": ErrorResponse, "description": "Store unavailable"},
}


# --- Endpoints ---


@app.post(
    "/v1/audio-requests",
    status_code=201,
    response_model=CreateAudioRequestResponse,
    responses={k: v for k, v in _ERROR_RESPONSES.items() if k != 404},
    summary="Create an audio request record",
    description="Store the audio payload and preset file delivered for an inference request.",
)
async def create_record(
    session: Annotated[Session, Depends(get_db_session)],
    inference_request_id: Annotated[str, Form(description="External inference request id")],
    synth: Annotated[str, Form(description="Synth engine name, e.g. 'vital'")],
    audio_compressed: Annotated[UploadFile, File(description="Compressed audio payload")],
    preset_file: Annotated[UploadFile, File(description="Preset file payload")],
    preset_metadata: Annotated[str | None, Form(description="Optional JSON object")] = None,
    other_metadata: Annotated[str | None, Form(description="Optional JSON object")] = None,
):
    """Create one record from multipart form data."""
    try:
        parsed_preset_metadata = _parse_metadata_field("preset_metadata", preset_metadata)
        parsed_other_metadata = _parse_metadata_field("other_metadata", other_metadata)
    except ValueError as e:
        return _validation_error_response(str(e))

    record = {
        "inference_request_id": inference_request_id,
        "synth": synth,
        "audio_compressed": await audio_compressed.read(),
        "preset_file": await preset_file.read(),
        "preset_metadata": parsed_preset_metadata,
        "other_metadata": parsed_other_metadata,
    }

    try:
        record_id = create_audio_request(session, record)
        return CreateAudioRequestResponse(id=record_id)
    except RecordStoreError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        # Log full exception server-side, return generic message to client
        logger.exception("Unexpected error creating audio request")
        return make_error_response(INTERNAL_ERROR, "An unexpected error occurred")


@app.get(
    "/v1/audio-requests",
    response_model=list[AudioRequestSummary],
    responses={503: _ERROR_RESPONSES[503]},
    summary="List audio requests for an inference request",
)
def list_records(
    session: Annotated[Session, Depends(get_readonly_db_session)],
    inference_request_id: Annotated[str, Query(min_length=1)],
):
    """List records for one inference_request_id, oldest first."""
    try:
        rows = list_audio_requests(session, inference_request_id)
        return [AudioRequestSummary.from_record(row) for row in rows]
    except RecordStoreError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error listing audio requests")
        return make_error_response(INTERNAL_ERROR, "An unexpected error occurred")


@app.get(
    "/v1/audio-requests/{record_id}",
    response_model=AudioRequestSummary,
    responses={k: v for k, v in _ERROR_RESPONSES.items() if k != 422},
    summary="Get an audio request record",
)
def get_record(
    record_id: str,
    session: Annotated[Session, Depends(get_readonly_db_session)],
):
    """Return one record; payloads are summarized as size and SHA256."""
    try:
        return AudioRequestSummary.from_record(get_audio_request(session, record_id))
    except RecordStoreError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error fetching audio request %s", record_id)
        return make_error_response(INTERNAL_ERROR, "An unexpected error occurred")


def _payload_response(session: Session, record_id: str, field: str) -> Response:
    try:
        row = get_audio_request(session, record_id)
    except RecordStoreError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error fetching %s of audio request %s", field, record_id)
        return make_error_response(INTERNAL_ERROR, "An unexpected error occurred")
    return Response(content=getattr(row, field), media_type="application/octet-stream")


@app.get(
    "/v1/audio-requests/{record_id}/audio",
    responses={k: v for k, v in _ERROR_RESPONSES.items() if k != 422},
    summary="Download the compressed audio payload",
)
def get_record_audio(
    record_id: str,
    session: Annotated[Session, Depends(get_readonly_db_session)],
):
    return _payload_response(session, record_id, "audio_compressed")


@app.get(
    "/v1/audio-requests/{record_id}/preset",
    responses={k: v for k, v in _ERROR_RESPONSES.items() if k != 422},
    summary="Download the preset file",
)
def get_record_preset(
    record_id: str,
    session: Annotated[Session, Depends(get_readonly_db_session)],
):
    return _payload_response(session, record_id, "preset_file")


@app.patch(
    "/v1/audio-requests/{record_id}/metadata",
    response_model=AudioRequestSummary,
    responses=_ERROR_RESPONSES,
    summary="Replace metadata on an audio request record",
)
def update_record_metadata(
    record_id: str,
    update: MetadataUpdate,
    session: Annotated[Session, Depends(get_db_session)],
):
    """Replace preset_metadata and/or other_metadata; only fields sent are touched."""
    changes = update.model_dump(include=update.model_fields_set)
    try:
        row = update_audio_request_metadata(session, record_id, **changes)
        return AudioRequestSummary.from_record(row)
    except RecordStoreError as e:
        return make_error_response(e.error_code, e.message)
    except Exception:
        logger.exception("Unexpected error updating audio request %s", record_id)
        return make_error_response(INTERNAL_ERROR, "An unexpected error occurred")


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# --- For testing: allow overriding session factories ---


def override_session_factory(factory, readonly_factory=None):
    """Override the session factories for testing."""
    global _session_factory, _readonly_session_factory
    _session_factory = factory
    _readonly_session_factory = readonly_factory
