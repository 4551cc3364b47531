"""Runtime configuration resolved from environment variables."""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Final, Mapping

DEFAULT_PORT: Final[int] = 5000
DEFAULT_GEMINI_MODEL: Final[str] = "gemini-2.5-flash"
DEFAULT_OLLAMA_MODEL: Final[str] = "llama3.1"
DEFAULT_USERS_COLLECTION: Final[str] = "users"
DEFAULT_DB_PATH: Final[Path] = Path.home() / "wellness" / "data" / "profiles.db"

SUPPORTED_STORAGE: Final[frozenset[str]] = frozenset({"firestore", "sqlite", "memory"})
SUPPORTED_PROVIDERS: Final[frozenset[str]] = frozenset({"gemini", "ollama", "local"})


def _env_text(env: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return default


def _env_number(env: Mapping[str, str], name: str, default: float, *, cast: type = float):
    raw = (env.get(name) or "").strip()
    if not raw:
        return cast(default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be numeric, got {raw!r}") from exc


def _env_list(env: Mapping[str, str], name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = env.get(name)
    if raw is None:
        return default
    items = tuple(item.strip() for item in raw.split(",") if item.strip())
    return items or default


@dataclass(slots=True, frozen=True)
class Settings:
    """Process-wide settings for the API, its document store and its language model."""

    gemini_api_key: str = ""
    llm_provider: str = "gemini"
    gemini_model: str = DEFAULT_GEMINI_MODEL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    llm_timeout: float = 60.0
    storage: str = "firestore"
    firestore_project: str | None = None
    firestore_database: str | None = None
    users_collection: str = DEFAULT_USERS_COLLECTION
    db_path: Path = DEFAULT_DB_PATH
    cors_origins: tuple[str, ...] = field(default=("*",))
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.storage not in SUPPORTED_STORAGE:
            raise ValueError(f"Unsupported storage backend: {self.storage}")
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported model provider: {self.llm_provider}")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ``)."""

        env = os.environ if env is None else env
        db_path = _env_text(env, "WELLNESS_DB_PATH")
        return cls(
            gemini_api_key=_env_text(env, "GEMINI_API_KEY", "GOOGLE_API_KEY"),
            llm_provider=_env_text(env, "WELLNESS_LLM_PROVIDER", default="gemini").lower(),
            gemini_model=_env_text(env, "WELLNESS_GEMINI_MODEL", default=DEFAULT_GEMINI_MODEL),
            ollama_model=_env_text(env, "WELLNESS_OLLAMA_MODEL", default=DEFAULT_OLLAMA_MODEL),
            llm_timeout=_env_number(env, "WELLNESS_LLM_TIMEOUT", 60.0),
            storage=_env_text(env, "WELLNESS_STORAGE", default="firestore").lower(),
            firestore_project=_env_text(env, "WELLNESS_FIRESTORE_PROJECT", "GOOGLE_CLOUD_PROJECT") or None,
            firestore_database=_env_text(env, "WELLNESS_FIRESTORE_DATABASE") or None,
            users_collection=_env_text(env, "WELLNESS_USERS_COLLECTION", default=DEFAULT_USERS_COLLECTION),
            db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
            cors_origins=_env_list(env, "WELLNESS_CORS_ORIGINS", ("*",)),
            host=_env_text(env, "WELLNESS_HOST", default="0.0.0.0"),
            port=_env_number(env, "PORT", DEFAULT_PORT, cast=int),
            log_level=_env_text(env, "WELLNESS_LOG_LEVEL", default="INFO").upper(),
        )


__all__ = ["Settings"]
