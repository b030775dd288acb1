import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

from server.models.ragweld_config_model import RagweldConfig

DEFAULT_CONFIG_PATH = Path(os.getenv("RAGWELD_CONFIG_PATH", "ragweld_config.json"))

_TRUTHY = {"1", "true", "yes", "on"}


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> RagweldConfig:
    """Load the global config template, or model defaults when no file exists."""
    if path.exists():
        return RagweldConfig.model_validate(json.loads(path.read_text()))
    return RagweldConfig()


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


class ServerSettings(BaseModel):
    """Process settings that are not per-scope tunables."""

    database_url: str = Field(default="", description="Postgres DSN")
    hosted: bool = Field(default=True, description="Running as the hosted demo (local providers unavailable)")
    read_only: bool = Field(default=True, description="Reject indexing and corpus deletion")
    db_pool_max_size: int = Field(default=5, ge=1, le=50, description="Shared pool size per DSN")
    log_level: str = Field(default="INFO", description="Root log level")


def load_settings() -> ServerSettings:
    dsn = (
        os.getenv("RAGWELD_DATABASE_URL")
        or os.getenv("NETLIFY_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or ""
    )
    return ServerSettings(
        database_url=dsn.strip(),
        hosted=_env_flag("RAGWELD_HOSTED", True),
        read_only=_env_flag("RAGWELD_READ_ONLY", True),
        db_pool_max_size=int(os.getenv("RAGWELD_DB_POOL_MAX", "5")),
        log_level=(os.getenv("RAGWELD_LOG_LEVEL") or "INFO").upper(),
    )
