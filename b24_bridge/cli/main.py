"""
Command-line interface for the Bitrix24 bridge.

Stores the tenant's tokens, issues ad-hoc REST calls and reports the
installation state from a single entry point.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from b24_bridge.application import installation
from b24_bridge.config import settings
from b24_bridge.domain.errors import B24Error, NotInstalled
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.domain.token_storage import TokenStorage
from b24_bridge.infrastructure import log_utils
from b24_bridge.infrastructure.rpc_client import B24RpcClient
from b24_bridge.infrastructure.token_refresher import OAuthTokenRefresher
from b24_bridge.infrastructure.token_storage import build_token_storage

console = Console()

app = typer.Typer(
    add_completion=False,
    help="Bitrix24 bridge: token lifecycle and REST calls for the installed portal.",
)


def _build_storage() -> TokenStorage:
    return build_token_storage(settings)


def _build_client(storage: TokenStorage) -> B24RpcClient:
    return B24RpcClient(storage, OAuthTokenRefresher())


def _parse_param(raw: str) -> Tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise typer.BadParameter(f"Expected KEY=VALUE, got {raw!r}.")
    return key.strip(), value


def _format_expiry(token_set: TokenSet) -> str:
    if token_set.expires_at is None:
        return "unknown"
    moment = datetime.fromtimestamp(token_set.expires_at, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M UTC")


def _fail(exc: Exception) -> None:
    log_utils.log_message(f"CLI command failed: {exc}", "ERROR")
    typer.echo(f"Error ({exc.__class__.__name__}): {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def install(
    access_token: Annotated[str, typer.Option("--access-token", help="Initial access token (AUTH_ID).")],
    refresh_token: Annotated[str, typer.Option("--refresh-token", help="Initial refresh token (REFRESH_ID).")],
    domain: Annotated[str, typer.Option("--domain", help="Portal host, e.g. example.bitrix24.com.")],
    member_id: Annotated[Optional[str], typer.Option("--member-id", help="Portal member id.")] = None,
    expires_in: Annotated[
        int, typer.Option("--expires-in", min=0, help="Seconds until the access token expires.")
    ] = installation.DEFAULT_AUTH_LIFETIME_SECONDS,
) -> None:
    """Store the tenant's initial tokens."""
    try:
        token_set = installation.install_from_local_app(
            {
                "AUTH_ID": access_token,
                "REFRESH_ID": refresh_token,
                "DOMAIN": domain,
                "member_id": member_id,
                "AUTH_EXPIRES": expires_in,
            },
            _build_storage(),
        )
    except (B24Error, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Installed tokens for {token_set.domain}.")


@app.command(name="install-code")
def install_code(
    code: Annotated[str, typer.Argument(help="Authorization code from the install redirect.")],
    domain: Annotated[Optional[str], typer.Option("--domain", help="Portal host if the provider omits it.")] = None,
) -> None:
    """Exchange an OAuth authorization code and store the resulting tokens."""
    try:
        token_set = installation.exchange_authorization_code(code, storage=_build_storage(), domain=domain)
    except B24Error as exc:
        _fail(exc)
    typer.echo(f"Installed tokens for {token_set.domain}.")


@app.command()
def call(
    method: Annotated[str, typer.Argument(help="REST method, e.g. crm.company.get.")],
    param: Annotated[
        Optional[List[str]], typer.Option("--param", "-p", help="Call parameter as KEY=VALUE; repeatable.")
    ] = None,
) -> None:
    """Call a REST method and print the JSON response."""
    params = dict(_parse_param(raw) for raw in (param or []))
    try:
        result = _build_client(_build_storage()).call(method, params)
    except B24Error as exc:
        _fail(exc)
    typer.echo(json.dumps(result, indent=2, ensure_ascii=False))


@app.command()
def refresh() -> None:
    """Force a refresh of the stored tokens."""
    storage = _build_storage()
    try:
        current = storage.load()
        if current is None:
            raise NotInstalled()
        refreshed = OAuthTokenRefresher().refresh(current.refresh_token, domain=current.domain)
        storage.save(refreshed)
    except B24Error as exc:
        _fail(exc)
    typer.echo(f"Refreshed tokens for {refreshed.domain}; expires {_format_expiry(refreshed)}.")


@app.command()
def status() -> None:
    """Show whether tokens are installed."""
    try:
        token_set = _build_storage().load()
    except B24Error as exc:
        _fail(exc)

    table = Table(title="Bitrix24 installation")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Backend", settings.B24_TOKEN_BACKEND)
    if token_set is None:
        table.add_row("State", "NOT INSTALLED")
        console.print(table)
        raise typer.Exit(code=1)

    table.add_row("State", "installed")
    table.add_row("Domain", token_set.domain)
    table.add_row("Member", token_set.member_id or "-")
    table.add_row("Access token", log_utils.mask_token(token_set.access_token))
    table.add_row("Expires", _format_expiry(token_set))
    console.print(table)


@app.command(name="bind-placement")
def bind_placement(
    handler_url: Annotated[str, typer.Argument(help="URL the placement should open.")],
    title: Annotated[str, typer.Option("--title", help="Button title shown in the CRM.")],
    placement: Annotated[str, typer.Option("--placement")] = installation.DEFAULT_PLACEMENT,
    description: Annotated[str, typer.Option("--description")] = "",
) -> None:
    """Replace the placement handler (unbind, then bind)."""
    client = _build_client(_build_storage())
    try:
        outcome = installation.register_placement(
            client, handler_url, placement=placement, title=title, description=description
        )
    except B24Error as exc:
        _fail(exc)
    previous = "removed" if outcome.removed else "not removed"
    typer.echo(f"Bound {placement} to {handler_url} (previous handler {previous}).")


if __name__ == "__main__":  # pragma: no cover
    app()
