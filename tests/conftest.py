"""
Pytest configuration and shared fixtures for the test suite.
Ensures proper Python path and provides common fixtures for unit and integration tests.
"""
import os
import sys
import tempfile
from pathlib import Path

# Point the app at throwaway stores before any app module builds its engine or settings.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_DB_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "fluxmind-test-logs"))

import pytest
import pytest_asyncio
from apscheduler.jobstores.memory import MemoryJobStore
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root and src to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


# ----- In-memory DB (for tests that need DB without touching real DB) -----
@pytest.fixture
def in_memory_engine():
    """One shared in-memory SQLite connection, usable from any thread."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def db_session(in_memory_engine):
    """Create an in-memory database session. Uses api.config.Base for schema."""
    from api.config import Base
    import api.models.models  # noqa: F401
    Base.metadata.create_all(in_memory_engine)
    SessionLocal = sessionmaker(bind=in_memory_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest_asyncio.fixture
async def scheduler():
    """Running scheduler backed by an in-memory job store."""
    from infra.scheduler.study_scheduler import StudyScheduler
    s = StudyScheduler(jobstore=MemoryJobStore())
    s.start()
    yield s
    s.stop()
