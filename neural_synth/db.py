"""Neural Synth - Database engine and session management.

SQLAlchemy sync engine/session factory. SQLite by default; any SQLAlchemy
URL of the form scheme://[user:pass@]host:port/databaseName is accepted.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from neural_synth.config import DB_PATH, get_database_url, get_db_echo


def get_sqlite_url(db_path: str | None = None) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Optional path override. Defaults to config.DB_PATH.

    Returns:
        SQLite connection URL string.
    """
    path = db_path if db_path is not None else DB_PATH
    return f"sqlite:///{path}"


def resolve_database_url(url: str | None = None, db_path: str | None = None) -> str:
    """Pick the connection URL: explicit URL, then environment, then SQLite file.

    Args:
        url: Explicit SQLAlchemy URL.
        db_path: SQLite file path used when no URL is given or configured.

    Returns:
        Connection URL string.
    """
    if url:
        return url
    if db_path is not None:
        return get_sqlite_url(db_path)
    return get_database_url() or get_sqlite_url()


def create_db_engine(
    url: str | None = None,
    db_path: str | None = None,
    echo: bool | None = None,
) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        url: Optional SQLAlchemy URL. See resolve_database_url.
        db_path: Optional SQLite file path.
        echo: If True, log all SQL statements. Defaults to NEURAL_SYNTH_DB_ECHO.

    Returns:
        SQLAlchemy Engine instance.
    """
    resolved = make_url(resolve_database_url(url, db_path))
    connect_args = {}
    if resolved.get_backend_name() == "sqlite":
        # One session per unit of work, never shared across threads.
        connect_args["check_same_thread"] = False
        if resolved.database:
            # Local default lives under data/; create it on first use.
            Path(resolved.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        resolved,
        echo=get_db_echo() if echo is None else echo,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # - autoflush=False: explicit flush control
    # - expire_on_commit=False: records remain readable after the store commits
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(
    url: str | None = None,
    db_path: str | None = None,
    echo: bool | None = None,
) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, collection and index.

    This is idempotent - safe to call multiple times.

    Args:
        url: Optional SQLAlchemy URL.
        db_path: Optional SQLite file path.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).

    Raises:
        StoreUnavailableError: If the database cannot be reached.
    """
    # Local import: store depends on models/db helpers.
    from neural_synth.store import ensure_indexes

    engine = create_db_engine(url, db_path=db_path, echo=echo)
    SessionFactory = create_session_factory(engine)

    ensure_indexes(engine)

    return engine, SessionFactory
