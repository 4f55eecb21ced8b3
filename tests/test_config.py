"""Tests for settings loading"""

import pytest

from storyshelf.core.config import DEV_TOKEN_SECRET, load_settings
from storyshelf.utils.exceptions import ConfigError

ENV_VARS = [
    "STORYSHELF_SETTINGS",
    "STORYSHELF_BACKEND",
    "STORYSHELF_BACKEND_URL",
    "STORYSHELF_BACKEND_KEY",
    "STORYSHELF_TOKEN_SECRET",
    "STORYSHELF_TOKEN_TTL_DAYS",
    "STORYSHELF_DATA_DIR",
    "STORYSHELF_LOG_LEVEL",
    "STORYSHELF_LOG_FORMAT",
    "STORYSHELF_LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # default settings path is relative to the working directory
    monkeypatch.chdir(tmp_path)


def test_defaults_without_file(tmp_path):
    settings = load_settings(tmp_path / "missing.yaml")

    assert settings.backend.kind == "local"
    assert settings.auth.token_ttl_days == 7
    assert settings.auth.token_secret == DEV_TOKEN_SECRET
    assert settings.uses_dev_secret
    assert settings.storage.state_path.name == "local_state.json"


def test_yaml_with_env_substitution(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_URL", "https://db.example.com")
    path = tmp_path / "settings.yaml"
    path.write_text(
        "backend:\n"
        "  kind: rest\n"
        "  url: ${DB_URL}\n"
        "  api_key: ${DB_KEY:anon}\n"
        "auth:\n"
        "  token_secret: s3cret\n"
        "  token_ttl_days: 3\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.backend.url == "https://db.example.com"
    assert settings.backend.api_key == "anon"
    assert settings.auth.token_ttl_days == 3
    assert not settings.uses_dev_secret


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("storage:\n  data_dir: from-file\n", encoding="utf-8")
    monkeypatch.setenv("STORYSHELF_DATA_DIR", "from-env")
    monkeypatch.setenv("STORYSHELF_TOKEN_SECRET", "env-secret")

    settings = load_settings(path)

    assert settings.storage.data_dir == "from-env"
    assert settings.auth.token_secret == "env-secret"


def test_settings_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("logging:\n  level: DEBUG\n", encoding="utf-8")
    monkeypatch.setenv("STORYSHELF_SETTINGS", str(path))

    assert load_settings().logging.level == "DEBUG"


def test_rest_backend_requires_url(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("backend:\n  kind: rest\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_non_mapping_file_rejected(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_invalid_ttl_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("STORYSHELF_TOKEN_TTL_DAYS", "0")
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "missing.yaml")
