# apiharness/auth_binder.py
"""
Maps a stored credential to the HTTP header(s) a request needs.

All functions are pure: they return new header dicts and never touch the
input mapping.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from apiharness.models import AuthToken, TestCase, TokenKind

BASE_HEADERS = {"Content-Type": "application/json"}

_SENSITIVE_KEYS = {
    "authorization", "x-api-key", "api_key", "apikey", "token",
    "access_token", "cookie", "x-auth-token", "x-access-token",
    "proxy-authorization",
}


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    """Set ``name``, dropping any existing key that differs only in case."""
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]
    headers[name] = value


def apply_auth(headers: Mapping[str, str], token: Optional[AuthToken]) -> Dict[str, str]:
    out = dict(headers)
    if token is None:
        return out

    if token.kind is TokenKind.BEARER:
        _set_header(out, "Authorization", f"Bearer {token.secret}")
    elif token.kind is TokenKind.API_KEY:
        _set_header(out, "X-API-Key", token.secret)
    elif token.kind is TokenKind.BASIC:
        # secret is stored pre-encoded
        _set_header(out, "Authorization", f"Basic {token.secret}")
    return out


def build_request_headers(test_case: TestCase, token: Optional[AuthToken]) -> Dict[str, str]:
    """JSON content type, then the test case's own headers, then auth (auth wins)."""
    merged = dict(BASE_HEADERS)
    for name, value in (test_case.headers or {}).items():
        _set_header(merged, name, value)
    return apply_auth(merged, token)


def redact_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        k: "[REDACTED]" if k.lower() in _SENSITIVE_KEYS else v
        for k, v in headers.items()
    }
