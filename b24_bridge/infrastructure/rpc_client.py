"""Bitrix24 REST client with one-shot token refresh on expiry."""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import requests

from b24_bridge.config import settings
from b24_bridge.domain.errors import (
    ApiError,
    ErrorKind,
    ExpiredToken,
    NotInstalled,
    TransportError,
    classify_error_code,
)
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.domain.token_storage import TokenStorage
from b24_bridge.infrastructure.log_utils import log_message


class TokenRefresher(Protocol):
    def refresh(self, refresh_token: str, *, domain: Optional[str] = None) -> TokenSet:
        """Return a new TokenSet for ``refresh_token``."""


def flatten_params(params: Mapping[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Flatten nested mappings and sequences into PHP-style form keys.

    ``{"fields": {"TITLE": "x"}}`` becomes ``[("fields[TITLE]", "x")]`` which is
    how the REST endpoint expects structured arguments in a form body.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, Mapping):
            pairs.extend(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend(flatten_params({str(i): item for i, item in enumerate(value)}, name))
        elif value is None:
            pairs.append((name, ""))
        elif isinstance(value, bool):
            pairs.append((name, "Y" if value else "N"))
        else:
            pairs.append((name, str(value)))
    return pairs


class B24RpcClient:
    """Issues authenticated REST calls for the installed tenant.

    Every call walks the same path: an authenticated attempt, then on an
    expiry signal a single refresh followed by a single retry whose outcome
    is final. No call ever issues more than two API requests.
    """

    def __init__(
        self,
        storage: TokenStorage,
        refresher: TokenRefresher,
        *,
        request_timeout: float | None = None,
        http_client: Any | None = None,
    ) -> None:
        self._storage = storage
        self._refresher = refresher
        self._request_timeout = request_timeout or settings.B24_REQUEST_TIMEOUT
        self._http = http_client or requests

    def call(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Call ``method`` with ``params`` and return the decoded response body."""
        method = method.strip().strip("/")
        if not method:
            raise ValueError("A REST method name is required.")
        params = dict(params or {})

        token_set = self._storage.load()
        if token_set is None:
            log_message(f"Call to {method} refused: no installation stored.", "ERROR")
            raise NotInstalled()

        try:
            return self._authenticated_call(method, params, token_set)
        except ExpiredToken:
            log_message(f"Access token expired during {method}; refreshing once.", "WARN")

        refreshed = self._refresh(token_set)
        return self._retry_call(method, params, refreshed)

    def _refresh(self, token_set: TokenSet) -> TokenSet:
        # RefreshFailed propagates untouched; the stored TokenSet is left as is.
        refreshed = self._refresher.refresh(token_set.refresh_token, domain=token_set.domain)
        if refreshed.member_id is None and token_set.member_id is not None:
            refreshed = replace(refreshed, member_id=token_set.member_id)
        if refreshed.domain != token_set.domain:
            log_message(
                f"Refresh moved the tenant domain from {token_set.domain} to {refreshed.domain}.",
                "WARN",
            )
        self._storage.save(refreshed)
        return refreshed

    def _retry_call(self, method: str, params: Dict[str, Any], token_set: TokenSet) -> Dict[str, Any]:
        try:
            return self._authenticated_call(method, params, token_set)
        except ExpiredToken as exc:
            log_message(f"Retried call to {method} still reports an expired token.", "ERROR")
            raise ApiError(exc.code, exc.description, http_status=exc.http_status, payload=exc.payload) from exc

    def _authenticated_call(self, method: str, params: Dict[str, Any], token_set: TokenSet) -> Dict[str, Any]:
        url = f"https://{token_set.domain}/rest/{method}"
        body = flatten_params(params) + [("auth", token_set.access_token)]

        started = time.monotonic()
        try:
            response = self._http.post(url, data=body, timeout=self._request_timeout)
        except requests.exceptions.RequestException as exc:
            log_message(f"Request to {method} on {token_set.domain} failed: {exc}", "ERROR")
            raise TransportError(f"No response from {token_set.domain} for {method}: {exc}", url=url) from exc
        elapsed_ms = (time.monotonic() - started) * 1000

        payload = self._parse_json(response)
        status = response.status_code

        if payload is not None and payload.get("error"):
            code = str(payload["error"])
            description = payload.get("error_description")
            if classify_error_code(code) is ErrorKind.EXPIRED_TOKEN:
                raise ExpiredToken(code, description, http_status=status, payload=payload)
            log_message(f"Call to {method} rejected: {code} {description or ''}".strip(), "ERROR")
            raise ApiError(code, description, http_status=status, payload=payload)

        if status >= 400:
            log_message(f"Call to {method} failed with HTTP {status}.", "ERROR")
            raise ApiError(f"http_{status}", getattr(response, "reason", None), http_status=status)

        if payload is None:
            log_message(f"Call to {method} returned a body that is not a JSON object.", "ERROR")
            raise ApiError("invalid_response", "Response body is not a JSON object.", http_status=status)

        log_message(f"Call to {method} succeeded in {elapsed_ms:.0f}ms.", "DEBUG")
        return payload

    @staticmethod
    def _parse_json(response: requests.Response) -> Optional[Dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None


__all__ = ["B24RpcClient", "TokenRefresher", "flatten_params"]
