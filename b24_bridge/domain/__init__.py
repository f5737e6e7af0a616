"""Domain types for the bridge: the TokenSet, its store contract and errors."""

from .errors import (
    ApiError,
    B24Error,
    ErrorKind,
    NotInstalled,
    RefreshFailed,
    StoreUnavailable,
    TransportError,
)
from .token_set import TokenSet
from .token_storage import TokenStorage

__all__ = [
    "ApiError",
    "B24Error",
    "ErrorKind",
    "NotInstalled",
    "RefreshFailed",
    "StoreUnavailable",
    "TransportError",
    "TokenSet",
    "TokenStorage",
]
