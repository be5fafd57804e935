from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, inspect as sa_inspect, text
from sqlalchemy.orm import Session, sessionmaker

from vigyl.models import Base

_lock = threading.Lock()
_engine = None
_SessionLocal = None
_current_db_path: Path | None = None

DATA_DIR = Path(__file__).parent / "data"


def init_db(db_path: str | Path | None = None) -> None:
    global _engine, _SessionLocal, _current_db_path
    with _lock:
        if _engine is not None:
            _engine.dispose()
        if db_path is None:
            db_path = DATA_DIR / "vigyl.db"
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{db_path}"
        _engine = create_engine(url, connect_args={"check_same_thread": False})
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        _current_db_path = db_path
        _migrate_existing_db(_engine)


def _migrate_existing_db(engine) -> None:
    """Add columns that may be missing in older databases."""
    inspector = sa_inspect(engine)
    if not inspector.has_table("cached_intelligence"):
        return
    columns = {col["name"] for col in inspector.get_columns("cached_intelligence")}
    if "version" not in columns:
        with engine.begin() as conn:
            conn.execute(text(
                "ALTER TABLE cached_intelligence ADD COLUMN version INTEGER DEFAULT 0"
            ))


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


@contextmanager
def session_scope(factory=None) -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    ``factory`` defaults to :func:`get_session`; tests pass a sessionmaker
    bound to an in-memory engine::

        with session_scope() as session:
            ...
    """
    session = (factory or get_session)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def current_db_path() -> Path | None:
    return _current_db_path
