"""The persisted OAuth credential record."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional

REQUIRED_FIELDS = ("access_token", "refresh_token", "domain")


@dataclass(frozen=True)
class TokenSet:
    """Access/refresh pair plus the tenant host, stored and replaced as one unit."""

    access_token: str
    refresh_token: str
    domain: str
    member_id: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TokenSet":
        """Build a TokenSet from a persisted record or provider payload."""
        missing = [name for name in REQUIRED_FIELDS if not str(data.get(name) or "").strip()]
        if missing:
            raise ValueError(f"Token payload is missing required fields: {', '.join(missing)}")

        expires_at = data.get("expires_at")
        member_id = data.get("member_id")
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            domain=normalise_domain(str(data["domain"])),
            member_id=str(member_id) if member_id else None,
            expires_at=int(expires_at) if expires_at is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_expiry(self, expires_in: Any, *, now: Optional[float] = None) -> "TokenSet":
        """Return a copy whose ``expires_at`` is ``expires_in`` seconds from now."""
        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError):
            return self
        current = int(now if now is not None else time.time())
        return replace(self, expires_at=current + lifetime)


def normalise_domain(domain: str) -> str:
    """Strip scheme and trailing slashes so the value can be used as a host."""
    host = domain.strip()
    for prefix in ("https://", "http://"):
        if host.lower().startswith(prefix):
            host = host[len(prefix):]
    return host.rstrip("/")


__all__ = ["TokenSet", "normalise_domain"]
