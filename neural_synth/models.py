"""Neural Synth - SQLAlchemy ORM models.

One collection, stored as a table:
1. audio_request_collection

Binary payloads are opaque blobs; metadata fields are open JSON mappings.
"""

import time
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, BigInteger, Index, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from neural_synth.config import COLLECTION_NAME, INFERENCE_REQUEST_INDEX_NAME


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def now_ms() -> int:
    """Return current time as integer milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


class SynthType(StrEnum):
    """Synth engines known to the inference backend."""

    VITAL = "vital"
    DEXED = "dexed"
    SERUM = "serum"
    PHASE_PLANT = "phase_plant"
    PIGMENTS = "pigments"


class AudioRequestRecord(Base):
    """Audio artifacts and metadata delivered for one inference request.

    Corresponds to specs/audio_request_record.schema.json (serialized form).
    """

    __tablename__ = COLLECTION_NAME

    # Internal sequence; defines insertion order, never exposed as the id
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Record identifier handed to callers (uuid4 hex)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Foreign key into the external INFERENCE_REQUEST table (not enforced)
    inference_request_id: Mapped[str] = mapped_column(String(64), nullable=False)

    synth: Mapped[str] = mapped_column(String(64), nullable=False)

    # Opaque payloads
    audio_compressed: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    preset_file: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    # Open-schema metadata
    preset_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    other_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Timestamps (ms since epoch)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (Index(INFERENCE_REQUEST_INDEX_NAME, "inference_request_id"),)

    def __repr__(self) -> str:
        return (
            f"AudioRequestRecord(id={self.id!r}, "
            f"inference_request_id={self.inference_request_id!r}, synth={self.synth!r})"
        )
