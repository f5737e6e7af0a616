"""Error taxonomy for the bridge and the mapping from provider error codes."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

EXPIRED_TOKEN_MARKER = "expired_token"


class ErrorKind(str, Enum):
    """Internal classification of provider error codes."""

    EXPIRED_TOKEN = "expired_token"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    OTHER = "other"


_AUTH_CODES = frozenset({"invalid_token", "invalid_grant", "invalid_client", "wrong_client", "no_auth_found"})
_NOT_FOUND_CODES = frozenset({"placement_handler_not_found", "error_placement_handler_not_found"})


def classify_error_code(code: Optional[str]) -> ErrorKind:
    """Map a provider error code onto an :class:`ErrorKind`.

    Matching is case-insensitive; only ``EXPIRED_TOKEN`` leads to a refresh.
    """
    normalised = str(code or "").strip().lower()
    if normalised == EXPIRED_TOKEN_MARKER:
        return ErrorKind.EXPIRED_TOKEN
    if normalised in _AUTH_CODES:
        return ErrorKind.AUTH
    if normalised in _NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND
    return ErrorKind.OTHER


class B24Error(Exception):
    """Base exception for all bridge failures."""


class NotInstalled(B24Error):
    """Raised when no TokenSet has been stored; the install flow must run first."""

    def __init__(self, message: str = "No Bitrix24 installation found; run the install flow first.") -> None:
        super().__init__(message)


class StoreUnavailable(B24Error):
    """Raised when the token store's backing medium cannot be reached."""


class TransportError(B24Error):
    """Raised when a request produced no response at all."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ProviderError(B24Error):
    """Failure reported by the provider, carrying its code and description."""

    def __init__(
        self,
        code: Optional[str],
        description: Optional[str] = None,
        *,
        http_status: Optional[int] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.code = code
        self.description = description
        self.http_status = http_status
        self.payload = dict(payload) if payload else {}
        super().__init__(self._render())

    @property
    def kind(self) -> ErrorKind:
        return classify_error_code(self.code)

    def _render(self) -> str:
        parts = [part for part in (self.code, self.description) if part]
        message = ": ".join(parts) if parts else "unknown provider error"
        if self.http_status is not None:
            message = f"{message} (HTTP {self.http_status})"
        return message


class ExpiredToken(ProviderError):
    """Access token no longer accepted. Always resolved by a refresh before surfacing."""


class ApiError(ProviderError):
    """Provider rejected the call for a reason other than token expiry."""


class RefreshFailed(ProviderError):
    """The refresh token could not be exchanged; the tenant must reauthorise."""


class AuthorizationFailed(ProviderError):
    """The authorization code exchange during installation failed."""


__all__ = [
    "EXPIRED_TOKEN_MARKER",
    "ErrorKind",
    "classify_error_code",
    "B24Error",
    "NotInstalled",
    "StoreUnavailable",
    "TransportError",
    "ProviderError",
    "ExpiredToken",
    "ApiError",
    "RefreshFailed",
    "AuthorizationFailed",
]
