"""Pytest configuration and shared fixtures for the harness tests."""

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List

import httpx
import pytest

from apiharness.config import HarnessSettings, get_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the store and exports at a temp dir and drop cached settings."""
    monkeypatch.setenv("HARNESS_STORE_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("HARNESS_EXPORT_DIR", str(tmp_path / "reports"))
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(timeout_sec=2.0, base_url="http://api.test")


@pytest.fixture
def petstore_doc() -> Dict[str, Any]:
    return {
        "openapi": "3.0.3",
        "info": {"title": "Petstore", "version": "1.2.0"},
        "servers": [{"url": "https://petstore.example.com/v1"}, {"url": "https://staging.example.com"}],
        "paths": {
            "/pets": {
                "parameters": [{"name": "trace", "in": "header"}],
                "get": {
                    "summary": "List pets",
                    "tags": ["pets"],
                    "responses": {"200": {"description": "ok"}},
                },
                "post": {
                    "operationId": "createPet",
                    "tags": ["pets", "admin"],
                    "requestBody": {
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/NewPet"}}}
                    },
                    "responses": {"201": {"description": "created"}, "400": {"description": "bad"}},
                },
            },
            "/pets/{petId}": {
                "get": {
                    "summary": "Get pet",
                    "description": "Fetch one pet by id",
                    "tags": ["pets"],
                    "responses": {"404": {}, "200": {}},
                },
                "delete": {
                    "tags": ["admin"],
                    "responses": {"204": {}},
                },
            },
            "/health": {
                "get": {"responses": {"default": {}, "503": {}}},
            },
        },
        "components": {
            "schemas": {
                "NewPet": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string", "example": "Rex"},
                        "kind": {"type": "string", "enum": ["dog", "cat"]},
                        "age": {"type": "integer"},
                    },
                }
            }
        },
    }


@pytest.fixture
def users_doc() -> Dict[str, Any]:
    return {
        "paths": {
            "/users/{id}": {
                "get": {
                    "tags": ["Users"],
                    "responses": {"200": {"description": "ok"}, "404": {"description": "missing"}},
                }
            }
        }
    }


@pytest.fixture
def recording_transport() -> Callable[..., httpx.MockTransport]:
    """
    Build a MockTransport that records every request it sees.

    The handler may return an ``httpx.Response`` or raise a transport error.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response], seen: List[httpx.Request]) -> httpx.MockTransport:
        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        return httpx.MockTransport(record)

    return factory


class _Handler(BaseHTTPRequestHandler):
    def _send(self, status: int, payload: Any, content_type: str = "application/json") -> None:
        body = payload.encode() if isinstance(payload, str) else json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):  # noqa: N802
        if self.path.startswith("/users/"):
            self._send(200, {"id": self.path.rsplit("/", 1)[-1], "name": "Ada"})
        elif self.path == "/ping":
            self._send(200, "pong", "text/plain")
        elif self.path == "/whoami":
            self._send(200, {"authorization": self.headers.get("Authorization")})
        else:
            self._send(404, {"error": "not found"})

    def do_POST(self):  # noqa: N802
        length = int(self.headers.get("Content-Length") or 0)
        data = json.loads(self.rfile.read(length) or b"null")
        self._send(201, {"created": data})

    def log_message(self, format, *args):  # noqa: A002
        pass


@pytest.fixture
def live_server():
    """Real HTTP server on a free port; yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def dead_url() -> str:
    """Base URL on a port with nothing listening."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
