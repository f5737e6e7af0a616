"""Infrastructure implementations of token persistence."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

import redis

from b24_bridge.config import Settings
from b24_bridge.domain.errors import StoreUnavailable
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.domain.token_storage import TokenStorage
from b24_bridge.infrastructure.log_utils import log_message


def _decode_record(raw: Any, source: str) -> Optional[TokenSet]:
    if raw is None:
        return None
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(payload, Mapping):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        return TokenSet.from_mapping(payload)
    except (TypeError, ValueError) as exc:
        raise StoreUnavailable(f"Stored token record in {source} is unreadable: {exc}") from exc


class RedisTokenStorage(TokenStorage):
    """Persist the TokenSet as a JSON value under a single Redis key."""

    def __init__(self, client: Any = None, *, url: str | None = None, key: str = "b24:tokens") -> None:
        self._client = client
        self._url = url
        self._key = key

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._url:
                raise StoreUnavailable("No Redis URL configured for the token store.")
            try:
                self._client = redis.Redis.from_url(self._url)
            except ValueError as exc:
                raise StoreUnavailable(f"Invalid Redis URL for the token store: {exc}") from exc
        return self._client

    def load(self) -> Optional[TokenSet]:
        try:
            raw = self._get_client().get(self._key)
        except redis.RedisError as exc:
            log_message(f"Failed to read tokens from Redis key {self._key}: {exc}", "ERROR")
            raise StoreUnavailable(f"Token store unreachable: {exc}") from exc
        return _decode_record(raw, f"Redis key {self._key}")

    def save(self, token_set: TokenSet) -> None:
        try:
            self._get_client().set(self._key, json.dumps(token_set.to_dict()))
        except redis.RedisError as exc:
            log_message(f"Failed to write tokens to Redis key {self._key}: {exc}", "ERROR")
            raise StoreUnavailable(f"Token store unreachable: {exc}") from exc
        log_message(f"Saved tokens for {token_set.domain} under {self._key}.", "INFO")


class JsonFileTokenStorage(TokenStorage):
    """Persist the TokenSet to a JSON file on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[TokenSet]:
        if not self._path.exists():
            return None
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            log_message(f"Failed to read tokens from {self._path}: {exc}", "ERROR")
            raise StoreUnavailable(f"Cannot read token file {self._path}: {exc}") from exc
        return _decode_record(raw, str(self._path))

    def save(self, token_set: TokenSet) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".tokens-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(token_set.to_dict(), handle, indent=2)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            log_message(f"Failed to write tokens to {self._path}: {exc}", "ERROR")
            raise StoreUnavailable(f"Cannot write token file {self._path}: {exc}") from exc
        log_message(f"Saved tokens for {token_set.domain} to {self._path}.", "INFO")


class InMemoryTokenStorage(TokenStorage):
    """Process-local store used by tests and dry runs."""

    def __init__(self, token_set: Optional[TokenSet] = None) -> None:
        self._token_set = token_set
        self.saves: list[TokenSet] = []

    def load(self) -> Optional[TokenSet]:
        return self._token_set

    def save(self, token_set: TokenSet) -> None:
        self._token_set = token_set
        self.saves.append(token_set)


def build_token_storage(config: Settings) -> TokenStorage:
    """Return the store selected by ``B24_TOKEN_BACKEND``."""
    backend = config.B24_TOKEN_BACKEND
    if backend == "redis":
        return RedisTokenStorage(url=config.REDIS_URL, key=config.B24_TOKEN_KEY)
    if backend == "file":
        return JsonFileTokenStorage(config.B24_TOKEN_FILE)
    if backend == "memory":
        return InMemoryTokenStorage()
    raise ValueError(f"Unknown token backend: {backend}")


__all__ = [
    "RedisTokenStorage",
    "JsonFileTokenStorage",
    "InMemoryTokenStorage",
    "build_token_storage",
]
