"""
Pytest fixtures for testing
"""
import pytest
from sqlalchemy import create_engine, JSON
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.pool import StaticPool

from mealsub.infrastructure.db.session import Base
import mealsub.infrastructure.db.models  # noqa: F401  (registers tables on Base.metadata)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine for tests, with JSONB→JSON mapping.

    StaticPool keeps one connection so API tests (run in a worker thread)
    see the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # SQLite has no JSONB, remap to JSON for tests
    for table in Base.metadata.tables.values():
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
