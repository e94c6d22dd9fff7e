from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./fluxmind.db"
    ollama_base_url: str = "http://localhost:11434"
    # Empty disables inference; chat requests then fail with a server error.
    ollama_model: str = "llama3.1:8b"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 4096
    agent_max_steps: int = 10
    # Comma-separated tool names that only run after human confirmation.
    confirm_tools: str = ""
    scheduler_db_url: str = "sqlite:///./scheduler.db"
    scheduler_timezone: str = "UTC"
    log_level: str = "INFO"
    log_dir: str = "logs"

    @property
    def confirm_tool_names(self) -> list[str]:
        return [n.strip() for n in self.confirm_tools.split(",") if n.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


def _engine_kwargs(url: str) -> dict:
    # FastAPI runs sync dependencies in a threadpool; sqlite must allow that.
    return {"connect_args": {"check_same_thread": False}} if url.startswith("sqlite") else {}


engine = create_engine(get_settings().database_url, **_engine_kwargs(get_settings().database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def create_db():
    # Register the models on Base before creating tables.
    import api.models.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
