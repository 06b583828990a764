"""
Engine, sessions and the declarative base for the meal_* tables

Request handlers get a session from get_db(); background jobs open one with
session_scope(). Neither commits: use cases own their transactions.
"""
from contextlib import contextmanager
from typing import Iterator

import psycopg
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from mealsub.config import get_settings


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Process-wide engine, created on first use"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.get_sqlalchemy_url(),
            pool_pre_ping=True,
            echo=settings.DEBUG,
        )
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _session_factory


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: one session per request, closed afterwards

    Usage:
        @router.get("/{sub_id}")
        def get_subscription(sub_id: int, db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for code running outside a request (scheduler jobs)"""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def check_db_connection(timeout: int = 3) -> None:
    """
    Readiness probe, bypasses the pool with a raw psycopg connection

    Raises:
        psycopg.OperationalError: database unreachable
    """
    with psycopg.connect(get_settings().DATABASE_URL, connect_timeout=timeout) as conn:
        conn.execute("SELECT 1").fetchone()
