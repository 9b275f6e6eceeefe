"""
Tests for credential → header mapping.
"""

import pytest

from apiharness.auth_binder import BASE_HEADERS, apply_auth, build_request_headers, redact_headers
from apiharness.models import AuthToken, TestCase, TokenKind


def _token(kind, secret="s3cr3t"):
    return AuthToken(id="t1", name="dev", secret=secret, kind=kind)


@pytest.mark.parametrize(
    "kind, header, value",
    [
        (TokenKind.BEARER, "Authorization", "Bearer s3cr3t"),
        (TokenKind.API_KEY, "X-API-Key", "s3cr3t"),
        (TokenKind.BASIC, "Authorization", "Basic s3cr3t"),
    ],
)
def test_apply_auth(kind, header, value):
    headers = apply_auth({"Accept": "application/json"}, _token(kind))
    assert headers[header] == value
    assert headers["Accept"] == "application/json"


def test_basic_secret_is_used_as_is():
    headers = apply_auth({}, _token(TokenKind.BASIC, "dXNlcjpwYXNz"))
    assert headers == {"Authorization": "Basic dXNlcjpwYXNz"}


def test_api_key_does_not_set_authorization():
    assert "Authorization" not in apply_auth({}, _token(TokenKind.API_KEY))


def test_no_token_leaves_headers_alone():
    original = {"X-Trace": "1"}
    result = apply_auth(original, None)
    assert result == original
    assert result is not original


def test_input_is_not_mutated():
    original = {"X-Trace": "1"}
    apply_auth(original, _token(TokenKind.BEARER))
    assert original == {"X-Trace": "1"}


def test_build_request_headers_precedence():
    case = TestCase(
        method="GET",
        endpoint="/x",
        headers={"Content-Type": "text/plain", "Authorization": "Bearer stale", "X-Trace": "abc"},
    )
    headers = build_request_headers(case, _token(TokenKind.BEARER, "fresh"))
    assert headers == {
        "Content-Type": "text/plain",
        "Authorization": "Bearer fresh",
        "X-Trace": "abc",
    }


def test_build_request_headers_defaults():
    assert build_request_headers(TestCase(method="GET", endpoint="/x"), None) == BASE_HEADERS


def test_redact_headers():
    redacted = redact_headers({"Authorization": "Bearer x", "x-api-key": "k", "Accept": "*/*"})
    assert redacted == {"Authorization": "[REDACTED]", "x-api-key": "[REDACTED]", "Accept": "*/*"}


@pytest.mark.parametrize("raw", ["bearer", "API Key", "api_key", "api-key", "BASIC", TokenKind.BASIC])
def test_token_kind_parse(raw):
    assert isinstance(TokenKind.parse(raw), TokenKind)


def test_token_kind_parse_rejects_unknown():
    with pytest.raises(ValueError):
        TokenKind.parse("digest")


def test_header_names_merge_case_insensitively():
    case = TestCase(
        method="GET",
        endpoint="/x",
        headers={"authorization": "Bearer stale", "content-type": "text/plain"},
    )
    headers = build_request_headers(case, _token(TokenKind.BEARER, "xyz"))
    assert headers == {"content-type": "text/plain", "Authorization": "Bearer xyz"}


def test_api_key_replaces_differently_cased_key():
    headers = apply_auth({"x-api-key": "old"}, _token(TokenKind.API_KEY, "new"))
    assert headers == {"X-API-Key": "new"}
