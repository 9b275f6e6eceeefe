# apiharness/models.py
"""
Core data model for the harness.

Records are plain dataclasses. Python attributes are snake_case; the JSON
wire format (import/export files, clipboard text) keeps the camelCase field
names used by existing test-case files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ==================== Exceptions ====================

class HarnessError(Exception):
    pass


class SpecLoadError(HarnessError):
    pass


# ==================== Operations ====================

def endpoint_key(method: str, path: str) -> str:
    """Selection key for an operation: ``METHOD:path``."""
    return f"{method.upper()}:{path}"


@dataclass(frozen=True)
class Operation:
    """One HTTP-method-and-path entry from an OpenAPI document."""
    path: str
    method: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: Tuple[Dict[str, Any], ...] = field(default=(), hash=False, compare=False)
    request_body: Optional[Dict[str, Any]] = field(default=None, hash=False, compare=False)
    responses: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    tags: Tuple[str, ...] = ("default",)

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.path)


@dataclass
class EndpointGroup:
    tag: str
    operations: List[Operation] = field(default_factory=list)


# ==================== Test Cases ====================

@dataclass
class TestCase:
    """A request plus its expected outcome."""
    __test__ = False  # not a pytest class

    method: str
    endpoint: str
    name: str = ""
    description: str = ""
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    expected_status: int = 200
    expected_response: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestCase":
        headers = data.get("headers")
        return cls(
            method=str(data.get("method") or "GET").upper(),
            endpoint=str(data.get("endpoint") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            headers={str(k): str(v) for k, v in headers.items()} if headers else None,
            body=data.get("body"),
            expected_status=int(data.get("expectedStatus", 200)),
            expected_response=data.get("expectedResponse"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "method": self.method,
            "endpoint": self.endpoint,
        }
        if self.headers:
            out["headers"] = dict(self.headers)
        if self.body is not None:
            out["body"] = self.body
        out["expectedStatus"] = self.expected_status
        if self.expected_response is not None:
            out["expectedResponse"] = self.expected_response
        return out


# ==================== Auth Tokens ====================

class TokenKind(str, Enum):
    BEARER = "Bearer"
    API_KEY = "API Key"
    BASIC = "Basic"

    @classmethod
    def parse(cls, value: "str | TokenKind") -> "TokenKind":
        if isinstance(value, TokenKind):
            return value
        norm = str(value).strip().lower().replace("_", "").replace("-", "").replace(" ", "")
        for kind in cls:
            if kind.value.lower().replace(" ", "") == norm:
                return kind
        raise ValueError(f"Unknown token kind: {value!r}")


@dataclass
class AuthToken:
    id: str
    name: str
    secret: str
    kind: TokenKind = TokenKind.BEARER
    description: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "token": self.secret,
            "type": self.kind.value,
            "description": self.description,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthToken":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            secret=str(data["token"]),
            kind=TokenKind.parse(data.get("type") or TokenKind.BEARER),
            description=data.get("description"),
            created_at=str(data.get("createdAt") or datetime.now().isoformat()),
        )

    def redacted(self) -> Dict[str, Any]:
        out = self.to_dict()
        out["token"] = "***" if self.secret else None
        return out


# ==================== Results ====================

@dataclass(frozen=True)
class TestResult:
    """Outcome of executing one test case exactly once."""
    __test__ = False

    test_case: TestCase
    status: int
    ok: bool
    response_body: Any
    duration_ms: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "testCase": self.test_case.to_dict(),
            "status": self.status,
            "ok": self.ok,
            "response": self.response_body,
            "duration": self.duration_ms,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class RunSummary:
    total: int = 0
    passed: int = 0
    failed: int = 0
    duration_ms: int = 0
    superseded: bool = False
    results: List[TestResult] = field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return self.total > 0 and self.passed == self.total
