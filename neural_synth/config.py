"""Neural Synth - Configuration constants.

Minimal configuration. No external config libraries.
Connection URLs come from the environment; everything else has a default.
"""

import os
from pathlib import Path

# Repository root (parent of neural_synth/)
REPO_ROOT = Path(__file__).parent.parent.resolve()

# Data directory for the default local SQLite database
DATA_DIR = REPO_ROOT / "data"

# Database path (used when no URL is configured)
DB_PATH = DATA_DIR / "neural_synth.db"

# Logical namespace and collection of the audio-request records
DATABASE_NAME = "neural_synth"
COLLECTION_NAME = "audio_request_collection"

# Name of the single secondary index (inference_request_id, ascending)
INFERENCE_REQUEST_INDEX_NAME = "ix_audio_request_inference_request_id"

# Environment variables carrying role-scoped connection URLs
DATABASE_URL_ENV = "NEURAL_SYNTH_DATABASE_URL"
READONLY_DATABASE_URL_ENV = "NEURAL_SYNTH_READONLY_DATABASE_URL"
DB_ECHO_ENV = "NEURAL_SYNTH_DB_ECHO"


def get_database_url() -> str | None:
    """Get the read-write connection URL from the environment.

    Returns:
        The URL, or None when unset (callers fall back to DB_PATH).
    """
    return os.environ.get(DATABASE_URL_ENV) or None


def get_readonly_database_url() -> str | None:
    """Get the read-only connection URL, falling back to the read-write URL."""
    return os.environ.get(READONLY_DATABASE_URL_ENV) or get_database_url()


def get_db_echo() -> bool:
    """Whether SQL statements should be echoed (NEURAL_SYNTH_DB_ECHO)."""
    return os.environ.get(DB_ECHO_ENV, "").strip().lower() in ("1", "true", "yes", "on")
