"""
Durable client-side key/value storage.

LocalStorage is a JSON file of string keys mapped to JSON values,
rewritten atomically on every change. TokenStore keeps the session
token under a single fixed key.
"""

from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)

SESSION_TOKEN_KEY = "storyshelf.session_token"


def _atomic_write(path: Path, payload: Dict[str, Any]) -> None:
    """Atomically write JSON to the target path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
    ) as tf:
        json.dump(payload, tf, indent=2, ensure_ascii=False, default=str)
        temp_path = Path(tf.name)
    try:
        shutil.move(str(temp_path), str(path))
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


class LocalStorage:
    """File-backed stand-in for browser local storage."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Local state unreadable, starting empty", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        _atomic_write(self.path, data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            _atomic_write(self.path, data)


class TokenStore:
    """Persists the one session token string."""

    def __init__(self, storage: LocalStorage, key: str = SESSION_TOKEN_KEY):
        self.storage = storage
        self.key = key

    def read(self) -> Optional[str]:
        token = self.storage.get(self.key)
        return token if isinstance(token, str) and token else None

    def write(self, token: str) -> None:
        self.storage.set(self.key, token)

    def erase(self) -> None:
        self.storage.remove(self.key)
