"""
Pytest fixtures for testing
"""
import pytest
from sqlalchemy import create_engine, JSON
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.dialects.postgresql import JSONB

from famfin.infrastructure.db.session import Base
from famfin.infrastructure.db import models  # noqa: F401  (registers tables on Base.metadata)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient), JSONB mapped to JSON."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite doesn't support JSONB: remap to JSON for tests
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
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_account_id():
    """Sample account ID for tests"""
    return 1
