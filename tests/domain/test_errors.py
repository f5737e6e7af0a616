import pytest

from b24_bridge.domain.errors import (
    ApiError,
    B24Error,
    ErrorKind,
    NotInstalled,
    RefreshFailed,
    StoreUnavailable,
    TransportError,
    classify_error_code,
)


@pytest.mark.parametrize("code", ["expired_token", "EXPIRED_TOKEN", " Expired_Token "])
def test_expiry_marker_matches_case_insensitively(code):
    assert classify_error_code(code) is ErrorKind.EXPIRED_TOKEN


@pytest.mark.parametrize(
    "code, kind",
    [
        ("invalid_token", ErrorKind.AUTH),
        ("NO_AUTH_FOUND", ErrorKind.AUTH),
        ("ERROR_PLACEMENT_HANDLER_NOT_FOUND", ErrorKind.NOT_FOUND),
        ("QUERY_LIMIT_EXCEEDED", ErrorKind.OTHER),
        (None, ErrorKind.OTHER),
    ],
)
def test_other_codes_never_classify_as_expiry(code, kind):
    assert classify_error_code(code) is kind


def test_provider_error_carries_code_description_and_status():
    exc = ApiError("ACCESS_DENIED", "Access denied!", http_status=403, payload={"error": "ACCESS_DENIED"})

    assert exc.code == "ACCESS_DENIED"
    assert exc.description == "Access denied!"
    assert exc.http_status == 403
    assert str(exc) == "ACCESS_DENIED: Access denied! (HTTP 403)"
    assert exc.kind is ErrorKind.OTHER


@pytest.mark.parametrize(
    "exc",
    [NotInstalled(), StoreUnavailable("down"), TransportError("timeout"), RefreshFailed("invalid_grant")],
)
def test_all_errors_share_a_base(exc):
    assert isinstance(exc, B24Error)
