"""Domain-level protocol for persisting the tenant's TokenSet."""

from __future__ import annotations

from typing import Optional, Protocol

from b24_bridge.domain.token_set import TokenSet


class TokenStorage(Protocol):
    """Abstraction over the durable medium holding the single TokenSet."""

    def load(self) -> Optional[TokenSet]:
        """Return the stored TokenSet, or ``None`` when nothing is installed."""

    def save(self, token_set: TokenSet) -> None:
        """Replace the stored TokenSet as a whole."""


__all__ = ["TokenStorage"]
