"""Test bootstrap for api-harness: a small threaded users API on localhost."""

from __future__ import annotations

import json
import logging
import socketserver
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import parse_qs, urlsplit

import pytest
import structlog

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _seed_users() -> list[dict[str, Any]]:
    names = ["Leanne Graham", "Ervin Howell", "Clementine Bauch", "Patricia Lebsack", "Chelsey Dietrich"]
    return [
        {
            "id": index,
            "name": name,
            "username": name.split()[0].lower(),
            "email": f"{name.split()[0].lower()}@example.com",
        }
        for index, name in enumerate(names, start=1)
    ]


class UsersServer(socketserver.ThreadingMixIn, HTTPServer):
    """Keeps per-server state the handler can mutate (flaky counters, seen headers)."""

    daemon_threads = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _UsersHandler)
        self.users = _seed_users()
        self.flaky_failures = 0
        self.hits: dict[str, int] = {}
        self.last_headers: dict[str, str] = {}

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.server_address[1]}"


class _UsersHandler(BaseHTTPRequestHandler):
    server: UsersServer

    def do_GET(self) -> None:  # noqa: N802 - HTTP handler requirement
        self._handle()

    def do_POST(self) -> None:  # noqa: N802
        self._handle()

    def do_PUT(self) -> None:  # noqa: N802
        self._handle()

    def do_PATCH(self) -> None:  # noqa: N802
        self._handle()

    def do_DELETE(self) -> None:  # noqa: N802
        self._handle()

    def log_message(self, format: str, *args: object) -> None:  # pragma: no cover - silence logs
        return

    def _handle(self) -> None:
        parts = urlsplit(self.path)
        path = parts.path.rstrip("/")
        query = parse_qs(parts.query)
        length = int(self.headers.get("Content-Length", 0) or 0)
        raw = self.rfile.read(length) if length else b""
        payload = json.loads(raw) if raw else None
        server = self.server
        server.hits[path] = server.hits.get(path, 0) + 1
        server.last_headers = {key: value for key, value in self.headers.items()}

        if path == "/flaky":
            if server.hits[path] <= server.flaky_failures:
                return self._send(503, {"error": "unavailable"})
            return self._send(200, {"ok": True})
        if path == "/boom":
            return self._send(500, {"error": "boom"})
        if path == "/slow":
            time.sleep(0.5)
            return self._send(200, {"ok": True})
        if path == "/text":
            return self._send_raw(200, b"plain text", "text/plain")
        if path == "/empty":
            return self._send_raw(204, b"", "application/json")
        if path == "/headers":
            return self._send(200, server.last_headers)

        if path == "/users":
            if self.command == "GET":
                users = server.users
                if "_limit" in query:
                    users = users[: int(query["_limit"][0])]
                return self._send(200, users)
            if self.command == "POST":
                return self._send(201, {"id": 11, **(payload or {})})

        if path.startswith("/users/"):
            user_id = int(path.rsplit("/", 1)[1])
            user = next((item for item in server.users if item["id"] == user_id), None)
            if user is None:
                return self._send(404, {})
            if self.command == "GET":
                return self._send(200, user)
            if self.command == "PUT":
                return self._send(200, {"id": user_id, **(payload or {})})
            if self.command == "PATCH":
                return self._send(200, {**user, **(payload or {})})
            if self.command == "DELETE":
                return self._send(200, {})

        self._send(404, {"error": "not found"})

    def _send(self, status: int, body: Any) -> None:
        self._send_raw(status, json.dumps(body).encode("utf-8"), "application/json; charset=utf-8")

    def _send_raw(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)


@pytest.fixture
def users_server() -> Iterator[UsersServer]:
    server = UsersServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=2)


@pytest.fixture
def sleeps() -> list[float]:
    """Virtual clock for retry backoff: records requested delays instead of sleeping."""
    return []


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    # CLI tests bind handlers to CliRunner streams that are closed afterwards
    yield
    structlog.reset_defaults()
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)
