from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import DATABASE_URL
from .errors import ConflictError


class Base(DeclarativeBase):
    """ORM base for all models."""
    pass


def _make_engine(url: str) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        # the API serves requests from a threadpool; writers queue on the file lock
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    eng = create_engine(url, echo=False, future=True, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(eng, "connect")
        def _sqlite_fk_on(dbapi_conn, _record) -> None:
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return eng


engine: Engine = _make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)


def configure_engine(url: str) -> Engine:
    """Point the app at another database (tests, CLI --db)."""
    global engine
    engine.dispose()
    engine = _make_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    """Create tables if missing."""
    # registers every mapped class on Base.metadata
    from . import auth_models, models  # noqa: F401

    Base.metadata.create_all(bind=engine)


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Session scope:
    - commit if everything went fine
    - rollback on exceptions
    - always close
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def unique_value(s: Session, column, make: Callable[[], str], attempts: int = 10) -> str:
    """Draw identifiers from ``make`` until one is not yet stored in ``column``."""
    for _ in range(attempts):
        candidate = make()
        if s.execute(select(column).where(column == candidate).limit(1)).first() is None:
            return candidate
    raise ConflictError(f"Could not allocate a unique {column.key.replace('_', ' ')}. Please retry.")
