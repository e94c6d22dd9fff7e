"""
Integration test fixtures. Overrides get_db and the chat service for API tests: in-memory DB,
in-memory scheduler job store and a scripted LLM instead of Ollama.
"""
import pytest
from apscheduler.jobstores.memory import MemoryJobStore
from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fakes import ScriptedLLM


@pytest.fixture
def session_factory():
    """Session factory over one shared in-memory connection."""
    from api.config import Base
    import api.models.models  # noqa: F401
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def override_get_db(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture
def settings():
    from api.config import Settings
    return Settings(ollama_model="test-model", confirm_tools="scheduleStudySession", agent_max_steps=5)


@pytest.fixture
def scripted_llm():
    return ScriptedLLM()


@pytest.fixture
def app_scheduler(monkeypatch):
    """Scheduler the app lifespan starts; jobs live in memory."""
    from api import bootstrap
    from infra.scheduler.study_scheduler import StudyScheduler
    s = StudyScheduler(jobstore=MemoryJobStore())
    monkeypatch.setattr(bootstrap, "_scheduler", s)
    yield s
    s.stop()


def _client(override_get_db, settings, llm, scheduler, **client_kwargs):
    from fastapi.testclient import TestClient
    from api.api import app
    from api.config import get_db
    from api.routes.chat_routes import get_chat_service
    from api.services.chat_service import ChatService

    def _get_chat_service(db=Depends(get_db)):
        return ChatService(db, settings=settings, llm=llm, scheduler=scheduler)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chat_service] = _get_chat_service
    return TestClient(app, **client_kwargs)


@pytest.fixture
def api_client(override_get_db, settings, scripted_llm, app_scheduler):
    """FastAPI TestClient with in-memory DB, scheduler and scripted LLM."""
    from api.api import app
    with _client(override_get_db, settings, scripted_llm, app_scheduler) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_client(override_get_db, app_scheduler):
    """Build a client with custom settings or LLM; server errors come back as 500 responses."""
    from api.api import app
    clients = []

    def _make(settings, llm=None):
        client = _client(override_get_db, settings, llm, app_scheduler, raise_server_exceptions=False)
        clients.append(client.__enter__())
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
    app.dependency_overrides.clear()
