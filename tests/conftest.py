"""Shared pytest fixtures for Neural Synth tests.

Every test gets an isolated SQLite database in a temporary directory.
"""

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from neural_synth.db import create_session_factory, init_db
from services.audio_request_api.main import (
    app,
    get_db_session,
    get_readonly_db_session,
    override_session_factory,
)


@pytest.fixture
def temp_db():
    """Create a temporary, fully initialized database.

    Yields:
        tuple: (db_path, engine, SessionFactory)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        engine, SessionFactory = init_db(db_path=db_path)
        override_session_factory(SessionFactory)
        yield db_path, engine, SessionFactory
        engine.dispose()


@pytest.fixture
def session(temp_db):
    """A session on the temporary database, closed after the test."""
    _, _, SessionFactory = temp_db
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def unreachable_engine(tmp_path):
    """Engine whose database file can never be opened.

    The URL points beneath a regular file, so every connect attempt fails
    with OperationalError, the same way an unreachable server does.
    """
    blocker = tmp_path / "not-a-directory"
    blocker.write_bytes(b"")
    engine = create_engine(f"sqlite:///{blocker / 'store.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def unreachable_session(unreachable_engine):
    session = create_session_factory(unreachable_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sample_record():
    """A complete creation payload."""
    return {
        "inference_request_id": "abc-123",
        "synth": "vital",
        "audio_compressed": b"\x1f\x8b\x08\x00compressed-audio",
        "preset_file": b'{"preset_name": "Init"}',
        "preset_metadata": {"preset_name": "Init", "macros": [0.1, 0.5]},
        "other_metadata": {"model": "vital-v2"},
    }


def _session_dependency(SessionFactory):
    def get_test_session():
        session = SessionFactory()
        try:
            yield session
        finally:
            session.close()

    return get_test_session


@pytest.fixture
def client(temp_db):
    """Create a FastAPI test client with temp database.

    Overrides both the read-write and read-only session dependencies.

    Yields:
        tuple: (test_client, SessionFactory)
    """
    db_path, engine, SessionFactory = temp_db

    app.dependency_overrides[get_db_session] = _session_dependency(SessionFactory)
    app.dependency_overrides[get_readonly_db_session] = _session_dependency(SessionFactory)

    with TestClient(app) as client:
        yield client, SessionFactory

    app.dependency_overrides.clear()


@pytest.fixture
def unavailable_client(temp_db, unreachable_engine):
    """Test client whose sessions all point at an unreachable database."""
    UnreachableFactory = create_session_factory(unreachable_engine)

    app.dependency_overrides[get_db_session] = _session_dependency(UnreachableFactory)
    app.dependency_overrides[get_readonly_db_session] = _session_dependency(UnreachableFactory)

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
