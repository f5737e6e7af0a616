"""Exchanges a Bitrix24 refresh token for a fresh TokenSet."""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests
from pydantic import SecretStr

from b24_bridge.config import settings
from b24_bridge.domain.errors import AuthorizationFailed, ProviderError, RefreshFailed
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.infrastructure.log_utils import log_message, mask_token


def _unwrap_secret(value):
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _parse_payload(response: requests.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class OAuthTokenRefresher:
    """Client for the provider's OAuth token endpoint.

    The client id and secret default to the process-wide settings and are
    never written to the log.
    """

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | SecretStr | None = None,
        token_url: str | None = None,
        request_timeout: float | None = None,
        http_client: Any | None = None,
    ) -> None:
        self._client_id = client_id or settings.B24_CLIENT_ID
        self._client_secret = _unwrap_secret(client_secret or settings.B24_CLIENT_SECRET)
        self.token_url = token_url or settings.B24_OAUTH_URL
        self._request_timeout = request_timeout or settings.B24_REQUEST_TIMEOUT
        self._http = http_client or requests

    def refresh(self, refresh_token: str, *, domain: Optional[str] = None) -> TokenSet:
        """Return a new TokenSet minted from ``refresh_token``.

        ``domain`` is kept only when the provider's response does not name one;
        a domain in the response is authoritative.
        """
        params = {
            "grant_type": "refresh_token",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "refresh_token": refresh_token,
        }
        log_message(f"Refreshing access token with refresh token {mask_token(refresh_token)}.", "INFO")
        return self._request_tokens(params, fallback_domain=domain, context="refresh")

    def exchange_code(self, code: str, *, domain: Optional[str] = None) -> TokenSet:
        """Trade an authorization code from the install redirect for a TokenSet."""
        params = {
            "grant_type": "authorization_code",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "code": code,
        }
        log_message("Exchanging authorization code for tokens.", "INFO")
        return self._request_tokens(
            params, fallback_domain=domain, context="code exchange", error_cls=AuthorizationFailed
        )

    def _request_tokens(
        self,
        params: Dict[str, str],
        *,
        fallback_domain: Optional[str],
        context: str,
        error_cls: type[ProviderError] = RefreshFailed,
    ) -> TokenSet:
        try:
            response = self._http.post(self.token_url, data=params, timeout=self._request_timeout)
        except requests.exceptions.RequestException as exc:
            log_message(f"Token {context} request failed: {exc.__class__.__name__}", "ERROR")
            raise error_cls("network_error", f"{exc.__class__.__name__} contacting the token endpoint") from exc

        payload = _parse_payload(response)
        status = getattr(response, "status_code", None)

        if status is None or status >= 400 or payload.get("error"):
            code = str(payload.get("error") or f"http_{status}")
            description = payload.get("error_description")
            log_message(f"Token {context} rejected: {code} {description or ''}".strip(), "ERROR")
            raise error_cls(code, description, http_status=status, payload=payload)

        if not payload.get("domain") and fallback_domain:
            payload = {**payload, "domain": fallback_domain}

        try:
            token_set = TokenSet.from_mapping(payload)
        except ValueError as exc:
            log_message(f"Token {context} returned incomplete credentials: {exc}", "ERROR")
            raise error_cls("incomplete_credentials", str(exc), http_status=status) from exc

        token_set = token_set.with_expiry(payload.get("expires_in"))
        log_message(f"Token {context} succeeded for {token_set.domain}.", "INFO")
        return token_set


__all__ = ["OAuthTokenRefresher"]
