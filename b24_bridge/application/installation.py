"""Installation flows: capture the tenant's first TokenSet and bind the placement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from b24_bridge.domain.errors import B24Error, ErrorKind, ProviderError
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.domain.token_storage import TokenStorage
from b24_bridge.infrastructure.log_utils import log_message
from b24_bridge.infrastructure.rpc_client import B24RpcClient
from b24_bridge.infrastructure.token_refresher import OAuthTokenRefresher

DEFAULT_PLACEMENT = "CRM_COMPANY_DETAIL_TOOLBAR"
DEFAULT_AUTH_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class UnbindOutcome:
    """Result of the best-effort unbind step that precedes a bind."""

    removed: bool
    error_code: Optional[str] = None
    message: Optional[str] = None


def install_from_local_app(params: Mapping[str, Any], storage: TokenStorage) -> TokenSet:
    """Store the TokenSet delivered in a local-app install payload.

    The payload carries ``AUTH_ID``, ``REFRESH_ID``, ``AUTH_EXPIRES``,
    ``member_id`` and the portal host as ``DOMAIN`` or ``domain``.
    """
    domain = params.get("DOMAIN") or params.get("domain")
    expires_in = params.get("AUTH_EXPIRES")
    if expires_in is None or expires_in == "":
        expires_in = DEFAULT_AUTH_LIFETIME_SECONDS
    token_set = TokenSet.from_mapping(
        {
            "access_token": params.get("AUTH_ID"),
            "refresh_token": params.get("REFRESH_ID"),
            "domain": domain,
            "member_id": params.get("member_id"),
        }
    ).with_expiry(expires_in)

    storage.save(token_set)
    log_message(f"Installed local app for {token_set.domain}.", "INFO")
    return token_set


def exchange_authorization_code(
    code: str,
    *,
    storage: TokenStorage,
    refresher: Optional[OAuthTokenRefresher] = None,
    domain: Optional[str] = None,
) -> TokenSet:
    """Complete the OAuth install redirect by trading ``code`` for tokens."""
    refresher = refresher or OAuthTokenRefresher()
    token_set = refresher.exchange_code(code, domain=domain)
    storage.save(token_set)
    log_message(f"Installed OAuth app for {token_set.domain}.", "INFO")
    return token_set


def _unbind_ignoring_failure(client: B24RpcClient, placement: str, handler_url: str) -> UnbindOutcome:
    try:
        client.call("placement.unbind", {"PLACEMENT": placement, "HANDLER": handler_url})
    except ProviderError as exc:
        if exc.kind is ErrorKind.NOT_FOUND:
            log_message("No previous placement handler to remove; continuing.", "INFO")
        else:
            log_message(f"Ignoring placement.unbind failure: {exc}", "WARN")
        return UnbindOutcome(removed=False, error_code=exc.code, message=str(exc))
    except B24Error as exc:
        log_message(f"Ignoring placement.unbind failure: {exc}", "WARN")
        return UnbindOutcome(removed=False, message=str(exc))
    return UnbindOutcome(removed=True)


def register_placement(
    client: B24RpcClient,
    handler_url: str,
    *,
    placement: str = DEFAULT_PLACEMENT,
    title: str,
    description: str = "",
) -> UnbindOutcome:
    """Rebind ``handler_url`` to ``placement``.

    The unbind step never raises; the bind step's failures propagate.
    """
    log_message(f"Rebinding {placement} to {handler_url}.", "INFO")
    outcome = _unbind_ignoring_failure(client, placement, handler_url)

    client.call(
        "placement.bind",
        {
            "PLACEMENT": placement,
            "HANDLER": handler_url,
            "TITLE": title,
            "DESCRIPTION": description,
        },
    )
    log_message(f"Placement {placement} bound.", "INFO")
    return outcome


__all__ = [
    "DEFAULT_PLACEMENT",
    "UnbindOutcome",
    "install_from_local_app",
    "exchange_authorization_code",
    "register_placement",
]
