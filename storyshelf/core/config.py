"""
Configuration management with schema validation.

Settings come from an optional YAML file (data/settings.yaml unless
STORYSHELF_SETTINGS points elsewhere) with ${VAR:default} substitution,
then STORYSHELF_* environment variables override individual fields.
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..utils.exceptions import ConfigError
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SETTINGS_FILE = Path("data") / "settings.yaml"

# Development-only signing secret; deployments set STORYSHELF_TOKEN_SECRET
DEV_TOKEN_SECRET = "storyshelf-dev-secret-change-me"


class BackendSettings(BaseModel):
    kind: Literal["local", "rest"] = "local"
    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 15.0

    @model_validator(mode="after")
    def _rest_needs_url(self) -> "BackendSettings":
        if self.kind == "rest" and not self.url:
            raise ValueError("backend.url is required when backend.kind is 'rest'")
        return self


class AuthSettings(BaseModel):
    token_secret: str = DEV_TOKEN_SECRET
    token_ttl_days: int = Field(default=7, ge=1)
    algorithm: Literal["HS256"] = "HS256"


class StorageSettings(BaseModel):
    data_dir: str = "data"
    state_file: str = "local_state.json"

    @property
    def state_path(self) -> Path:
        return Path(self.data_dir) / self.state_file


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "console"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    backend: BackendSettings = Field(default_factory=BackendSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def uses_dev_secret(self) -> bool:
        return self.auth.token_secret == DEV_TOKEN_SECRET


# (section, field) <- environment variable
_ENV_OVERRIDES = {
    ("backend", "kind"): "STORYSHELF_BACKEND",
    ("backend", "url"): "STORYSHELF_BACKEND_URL",
    ("backend", "api_key"): "STORYSHELF_BACKEND_KEY",
    ("auth", "token_secret"): "STORYSHELF_TOKEN_SECRET",
    ("auth", "token_ttl_days"): "STORYSHELF_TOKEN_TTL_DAYS",
    ("storage", "data_dir"): "STORYSHELF_DATA_DIR",
    ("logging", "level"): "STORYSHELF_LOG_LEVEL",
    ("logging", "format"): "STORYSHELF_LOG_FORMAT",
    ("logging", "file_path"): "STORYSHELF_LOG_FILE",
}


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} and ${VAR:default} references"""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            var_expr = value[2:-1]
            if ":" in var_expr:
                var_name, default = var_expr.split(":", 1)
                return os.getenv(var_name.strip(), default.strip())
            return os.getenv(var_expr, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _read_settings_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Failed to read settings from {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return _substitute_env_vars(raw)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for (section, field), env_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        data.setdefault(section, {})[field] = value
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load and validate settings from file and environment"""
    load_dotenv()

    if path is None:
        path = Path(os.getenv("STORYSHELF_SETTINGS") or DEFAULT_SETTINGS_FILE)

    data = _apply_env_overrides(_read_settings_file(path))
    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}")

    if settings.uses_dev_secret:
        logger.warning("Using development token secret; set STORYSHELF_TOKEN_SECRET")
    return settings
