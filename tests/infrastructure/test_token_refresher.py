import pytest
import requests

from b24_bridge.domain.errors import AuthorizationFailed, RefreshFailed
from b24_bridge.domain.token_set import TokenSet
from b24_bridge.infrastructure.token_refresher import OAuthTokenRefresher

TOKEN_URL = "https://oauth.example/oauth/token/"


def _refresher(http_client):
    return OAuthTokenRefresher(
        client_id="client-id",
        client_secret="client-secret",
        token_url=TOKEN_URL,
        request_timeout=5,
        http_client=http_client,
    )


def test_refresh_posts_refresh_grant_with_client_credentials(http, response):
    client = http(
        response(200, {"access_token": "A2", "refresh_token": "R2", "domain": "x.example", "expires_in": 3600})
    )

    token_set = _refresher(client).refresh("R1")

    assert token_set.access_token == "A2"
    assert token_set.refresh_token == "R2"
    assert token_set.domain == "x.example"
    assert token_set.expires_at is not None

    url, kwargs = client.calls[0]
    assert url == TOKEN_URL
    assert kwargs["data"] == {
        "grant_type": "refresh_token",
        "client_id": "client-id",
        "client_secret": "client-secret",
        "refresh_token": "R1",
    }
    assert kwargs["timeout"] == 5


def test_refresh_response_domain_is_authoritative(http, response):
    client = http(response(200, {"access_token": "A2", "refresh_token": "R2", "domain": "moved.example"}))

    token_set = _refresher(client).refresh("R1", domain="x.example")

    assert token_set.domain == "moved.example"


def test_refresh_keeps_fallback_domain_when_response_omits_it(http, response):
    client = http(response(200, {"access_token": "A2", "refresh_token": "R2"}))

    token_set = _refresher(client).refresh("R1", domain="x.example")

    assert token_set == TokenSet("A2", "R2", "x.example")


def test_refresh_with_revoked_token_raises_refresh_failed(http, response):
    client = http(
        response(400, {"error": "invalid_grant", "error_description": "Refresh token is revoked"})
    )

    with pytest.raises(RefreshFailed) as excinfo:
        _refresher(client).refresh("R1")

    assert excinfo.value.code == "invalid_grant"
    assert excinfo.value.description == "Refresh token is revoked"
    assert excinfo.value.http_status == 400


def test_refresh_error_in_ok_response_is_a_failure(http, response):
    client = http(response(200, {"error": "wrong_client"}))

    with pytest.raises(RefreshFailed, match="wrong_client"):
        _refresher(client).refresh("R1")


def test_refresh_non_json_error_page(http, response):
    client = http(response(502, invalid_json=True))

    with pytest.raises(RefreshFailed) as excinfo:
        _refresher(client).refresh("R1")

    assert excinfo.value.code == "http_502"


def test_refresh_network_error_raises_refresh_failed(http):
    client = http(requests.exceptions.ConnectionError("DNS failure"))

    with pytest.raises(RefreshFailed) as excinfo:
        _refresher(client).refresh("R1")

    assert excinfo.value.code == "network_error"
    assert len(client.calls) == 1


def test_network_error_detail_never_carries_credentials(http):
    leaked_url = (
        "/oauth/token/?grant_type=refresh_token&client_id=client-id"
        "&client_secret=client-secret&refresh_token=R1-REFRESH&code=code-123"
    )
    client = http(
        requests.exceptions.ConnectionError(f"Max retries exceeded with url: {leaked_url}"),
        requests.exceptions.ConnectionError(f"Max retries exceeded with url: {leaked_url}"),
    )
    refresher = _refresher(client)

    with pytest.raises(RefreshFailed) as refresh_info:
        refresher.refresh("R1-REFRESH")
    with pytest.raises(AuthorizationFailed) as code_info:
        refresher.exchange_code("code-123")

    for message in (str(refresh_info.value), str(code_info.value)):
        assert "client-secret" not in message
        assert "R1-REFRESH" not in message
        assert "code-123" not in message
        assert "ConnectionError" in message
    assert "params" not in client.calls[0][1]


def test_refresh_with_incomplete_credentials_fails(http, response):
    client = http(response(200, {"access_token": "A2", "domain": "x.example"}))

    with pytest.raises(RefreshFailed) as excinfo:
        _refresher(client).refresh("R1")

    assert excinfo.value.code == "incomplete_credentials"


def test_exchange_code_uses_authorization_code_grant(http, response):
    client = http(
        response(200, {"access_token": "A1", "refresh_token": "R1", "domain": "x.example", "member_id": "m-1"})
    )

    token_set = _refresher(client).exchange_code("code-123")

    assert token_set.member_id == "m-1"
    params = client.calls[0][1]["data"]
    assert params["grant_type"] == "authorization_code"
    assert params["code"] == "code-123"


def test_exchange_code_failure_raises_authorization_failed(http, response):
    client = http(response(400, {"error": "invalid_grant"}))

    with pytest.raises(AuthorizationFailed):
        _refresher(client).exchange_code("stale")
