"""
Centralised config for the Bitrix24 bridge.

Client credentials and storage settings are read once from the environment
(or a ``.env`` file) and exposed through the singleton ``settings`` object.
They are treated as immutable for the lifetime of the process.
"""

import os
from pathlib import Path
from typing import Any, Callable, TypeVar

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Deployments ship a ``.env`` next to the checkout while CI relies on plain
    environment variables, so the lookup walks the parents and falls back to
    the directory holding the packaging markers.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

TOKEN_BACKENDS = ("redis", "file", "memory")

T = TypeVar("T")


class Settings(BaseSettings):
    """
    Validated application settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- OAUTH CLIENT (from environment) ---
    B24_CLIENT_ID: str
    B24_CLIENT_SECRET: SecretStr
    B24_OAUTH_URL: str = "https://oauth.bitrix.info/oauth/token/"
    B24_REQUEST_TIMEOUT: float = 30.0

    # --- TOKEN STORE ---
    B24_TOKEN_BACKEND: str = "redis"
    B24_TOKEN_KEY: str = "b24:tokens"
    B24_TOKEN_FILE: Path = Path.home() / ".config" / "b24_bridge" / "tokens.json"
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- LOGGING ---
    B24_LOG_LEVEL: str = "INFO"
    B24_LOG_TO_CONSOLE: bool = True
    B24_LOG_PATH: Path | None = None

    @field_validator("B24_TOKEN_BACKEND")
    @classmethod
    def check_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in TOKEN_BACKENDS:
            raise ValueError(
                f"B24_TOKEN_BACKEND must be one of {', '.join(TOKEN_BACKENDS)}; got {value!r}"
            )
        return backend

    @property
    def log_path(self) -> Path:
        """Path for the rotating log file, falling back to the user's home."""
        if self.B24_LOG_PATH is not None:
            return Path(self.B24_LOG_PATH)
        return Path.home() / ".config" / "b24_bridge" / "b24_bridge.log"


# Single importable instance shared by the whole process.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the ``settings`` object.
    3. The supplied ``default`` value.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = _coerce_secret(getattr(settings, name))
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        return _coerce_secret(getattr(settings, name))

    return default
