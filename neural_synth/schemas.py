"""Neural Synth - Pydantic models for record and API validation.

Pydantic models for request/response validation corresponding to
JSON schemas in /specs. Used by the store for creation-time validation
and by FastAPI for response serialization.
"""

import json  # noqa: I001
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from neural_synth.models import AudioRequestRecord
from neural_synth.utils.hashing import sha256_bytes


METADATA_NOT_JSON = "metadata_not_json"


def is_json_serializable(value: Any) -> bool:
    """Whether value can be stored in a JSON column as-is."""
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


# --- Input Models ---


class NewAudioRequest(BaseModel):
    """Fields supplied when creating an audio-request record.

    id, created_at and updated_at are assigned by the store.
    """

    model_config = ConfigDict(extra="forbid")

    inference_request_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Foreign key to the external INFERENCE_REQUEST.id",
    )
    synth: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Synth engine that produced the preset (e.g. 'vital')",
    )
    audio_compressed: bytes = Field(
        ...,
        min_length=1,
        strict=True,
        description="Compressed audio payload (opaque)",
    )
    preset_file: bytes = Field(
        ...,
        min_length=1,
        strict=True,
        description="Preset file payload (opaque)",
    )
    preset_metadata: dict[str, Any] | None = Field(
        default=None,
        description="Optional preset metadata",
    )
    other_metadata: dict[str, Any] | None = Field(
        default=None,
        description="Optional additional metadata",
    )

    @field_validator("inference_request_id", "synth")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("preset_metadata", "other_metadata")
    @classmethod
    def _require_json(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if value is not None and not is_json_serializable(value):
            raise PydanticCustomError(METADATA_NOT_JSON, "metadata must be JSON-serializable")
        return value


class MetadataUpdate(BaseModel):
    """Request body for replacing a record's metadata mappings.

    Only fields present in the body are replaced; an explicit null clears one.
    """

    model_config = ConfigDict(extra="forbid")

    preset_metadata: dict[str, Any] | None = Field(default=None)
    other_metadata: dict[str, Any] | None = Field(default=None)


# --- Response Models ---


class CreateAudioRequestResponse(BaseModel):
    """Response for a successful create."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="success", description="Operation status")
    id: str = Field(..., description="Identifier assigned to the new record")


class ErrorResponse(BaseModel):
    """Response for failed operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    error_code: str = Field(..., description="Record store error code")
    error_message: str = Field(..., description="Human-readable error description")


class AudioRequestSummary(BaseModel):
    """Serialized audio-request record; payloads appear as size + digest.

    Corresponds to specs/audio_request_record.schema.json.
    """

    model_config = ConfigDict(extra="forbid")

    schema_id: str = Field(default="audio_request_record.v1", description="Schema identifier")
    version: str = Field(default="1.0.0", description="Schema version")
    id: str
    inference_request_id: str
    synth: str
    preset_metadata: dict[str, Any] | None = None
    other_metadata: dict[str, Any] | None = None
    created_at: int = Field(..., ge=0, description="ms since epoch")
    updated_at: int = Field(..., ge=0, description="ms since epoch")
    audio_compressed_size: int = Field(..., ge=0)
    audio_compressed_sha256: str
    preset_file_size: int = Field(..., ge=0)
    preset_file_sha256: str

    @classmethod
    def from_record(cls, record: AudioRequestRecord) -> "AudioRequestSummary":
        return cls(
            id=record.id,
            inference_request_id=record.inference_request_id,
            synth=record.synth,
            preset_metadata=record.preset_metadata,
            other_metadata=record.other_metadata,
            created_at=record.created_at,
            updated_at=record.updated_at,
            audio_compressed_size=len(record.audio_compressed),
            audio_compressed_sha256=sha256_bytes(record.audio_compressed),
            preset_file_size=len(record.preset_file),
            preset_file_sha256=sha256_bytes(record.preset_file),
        )
