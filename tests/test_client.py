from __future__ import annotations

import socket

import pytest

from api_harness.client import HttpClient
from api_harness.errors import HarnessError, TransportError


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_get_returns_decoded_json_envelope(users_server) -> None:
    with HttpClient(users_server.base_url) as client:
        envelope = client.get("/users/2")

    assert envelope.status == 200
    assert envelope.ok
    assert envelope.body["name"] == "Ervin Howell"
    assert envelope.header("Content-Type").startswith("application/json")
    assert envelope.elapsed_ms >= 0


def test_post_encodes_json_body(users_server) -> None:
    with HttpClient(users_server.base_url, headers={"Content-Type": "application/json"}) as client:
        envelope = client.post("/users", body={"name": "John Doe", "job": "Software Engineer"})

    assert envelope.status == 201
    assert envelope.body == {"id": 11, "name": "John Doe", "job": "Software Engineer"}


def test_non_2xx_is_an_envelope_not_an_exception(users_server) -> None:
    with HttpClient(users_server.base_url) as client:
        missing = client.get("/users/999")
        failing = client.get("/boom")

    assert missing.status == 404
    assert missing.body == {}
    assert not missing.ok
    assert failing.status == 500


def test_per_call_headers_override_defaults(users_server) -> None:
    client = HttpClient(users_server.base_url, headers={"X-Team": "core", "Accept": "application/json"})
    try:
        envelope = client.get("/headers", headers={"x-team": "qa"})
    finally:
        client.close()

    received = {key.lower(): value for key, value in envelope.body.items()}
    assert received["x-team"] == "qa"
    assert received["accept"] == "application/json"


def test_query_parameters_are_encoded(users_server) -> None:
    with HttpClient(users_server.base_url) as client:
        envelope = client.get("/users", query={"_limit": 3})

    assert envelope.status == 200
    assert len(envelope.body) == 3


def test_text_and_empty_bodies(users_server) -> None:
    with HttpClient(users_server.base_url) as client:
        text = client.get("/text")
        empty = client.get("/empty")

    assert text.body == "plain text"
    assert empty.status == 204
    assert empty.body is None


def test_connection_refused_raises_transport_error() -> None:
    with HttpClient(f"http://127.0.0.1:{_closed_port()}", timeout_ms=2000) as client:
        with pytest.raises(TransportError) as excinfo:
            client.get("/users")

    assert excinfo.value.method == "GET"
    assert excinfo.value.url.endswith("/users")


def test_timeout_raises_transport_error(users_server) -> None:
    with HttpClient(users_server.base_url, timeout_ms=100) as client:
        with pytest.raises(TransportError):
            client.get("/slow")


def test_closed_client_rejects_calls(users_server) -> None:
    client = HttpClient(users_server.base_url)
    client.close()
    client.close()

    assert client.closed
    with pytest.raises(HarnessError):
        client.get("/users")


def test_build_url_joins_base_and_path() -> None:
    client = HttpClient("https://api.example.com/v1/")

    assert client.build_url("users") == "https://api.example.com/v1/users"
    assert client.build_url("/users?page=2", {"limit": 5}) == "https://api.example.com/v1/users?page=2&limit=5"
    assert client.build_url("http://other.example.com/x") == "http://other.example.com/x"
