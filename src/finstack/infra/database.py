# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Engine, sessions and the FastAPI session dependency."""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

log = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")


def make_engine(database_url: str, *, pool_size: int = 5, pool_timeout: int = 30) -> Engine:
    """Create the pooled engine shared by every request."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            future=True,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(
        database_url,
        pool_size=pool_size,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        future=True,
    )


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create database tables if they do not already exist."""
    from finstack.infra import models  # noqa: F401  # Import models for metadata registration

    Base.metadata.create_all(bind=engine)


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (OperationalError, PoolTimeoutError) as exc:
        log.warning("Database ping failed: %s", exc)
        return False


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency that provides a database session."""
    with session_scope(request.app.state.session_factory) as session:
        yield session


def retry_read(fn: Callable[..., T]) -> Callable[..., T]:
    """Retry a read-only query once after a dropped connection.

    The first positional argument must be the session. Writes are never
    wrapped: replaying them could duplicate side effects.
    """

    @functools.wraps(fn)
    def wrapper(session: Session, *args, **kwargs) -> T:
        try:
            return fn(session, *args, **kwargs)
        except OperationalError as exc:
            log.warning("Transient database error in %s, retrying once: %s", fn.__name__, exc)
            session.rollback()
            return fn(session, *args, **kwargs)

    return wrapper
