"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("DIALECTIC_DATA_DIR", PROJECT_ROOT / "data"))
LOGS_DIR = Path(os.getenv("DIALECTIC_LOGS_DIR", PROJECT_ROOT / "logs"))
DEFAULT_DB_PATH = DATA_DIR / "debate_log.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_LLM_MODEL = "claude-3-5-sonnet-20241022"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime limits and collaborator settings."""

    database_url: str | None = None
    max_active_debates: int = 10
    max_debate_history: int = 100
    max_debate_queue: int | None = None
    drain_queue_on_cancel: bool = False
    max_insights: int = 100
    max_learning_records: int = 5000
    bus_history_size: int = 1000
    coaching_interval_seconds: int = 60
    anthropic_api_key: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    api_host: str = "localhost"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        queue_limit = os.getenv("MAX_DEBATE_QUEUE")
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            max_active_debates=_env_int("MAX_ACTIVE_DEBATES", 10),
            max_debate_history=_env_int("MAX_DEBATE_HISTORY", 100),
            max_debate_queue=_env_int("MAX_DEBATE_QUEUE", 0) if queue_limit else None,
            drain_queue_on_cancel=_env_bool("DRAIN_QUEUE_ON_CANCEL"),
            max_insights=_env_int("MAX_INSIGHTS", 100),
            max_learning_records=_env_int("MAX_LEARNING_RECORDS", 5000),
            bus_history_size=_env_int("BUS_HISTORY_SIZE", 1000),
            coaching_interval_seconds=_env_int("COACHING_INTERVAL_SECONDS", 60),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=_env_int("API_PORT", 8000),
        )
