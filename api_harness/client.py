"""HTTP client adapter bound to a base URL and default headers."""

from __future__ import annotations

import http.client
import json
import socket
import time
from typing import Any, Mapping
from urllib import error, parse, request

import structlog

from .config import DEFAULT_TIMEOUT_MS
from .errors import HarnessError, TransportError
from .models import ResponseEnvelope

LOGGER = structlog.get_logger("api_harness")


class HttpClient:
    """
    Thin wrapper around urllib that always returns a ``ResponseEnvelope``.

    Non-2xx responses are ordinary envelopes. Only transport failures
    (DNS, refused connection, timeout, dropped connection) raise, as
    ``TransportError``. The opener is shared by every call made through
    the client, including calls from concurrent scenarios, and is released
    by ``close()`` or on leaving the ``with`` block.
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.base_url = base_url.rstrip("/")
        self.default_headers = dict(headers or {})
        self.timeout_ms = timeout_ms
        self._opener: request.OpenerDirector | None = request.build_opener()
        self._logger = LOGGER.bind(base_url=self.base_url)

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._opener is None

    def close(self) -> None:
        if self._opener is None:
            return
        self._opener.close()
        self._opener = None
        self._logger.debug("client_closed")

    def get(self, path: str, **kwargs: Any) -> ResponseEnvelope:
        return self.call("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> ResponseEnvelope:
        return self.call("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> ResponseEnvelope:
        return self.call("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> ResponseEnvelope:
        return self.call("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> ResponseEnvelope:
        return self.call("DELETE", path, **kwargs)

    def call(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> ResponseEnvelope:
        opener = self._opener
        if opener is None:
            raise HarnessError("HttpClient is closed")

        method = method.upper()
        url = self.build_url(path, query)
        merged_headers = self._merge_headers(headers)
        data = _encode_body(body)
        if data is None:
            # Content-Type without a body confuses some servers
            merged_headers = {
                key: value for key, value in merged_headers.items() if key.lower() != "content-type"
            }

        req = request.Request(url, data=data, headers=merged_headers, method=method)
        start = time.perf_counter()
        try:
            with opener.open(req, timeout=self.timeout_ms / 1000) as response:
                raw = response.read()
                status = response.getcode()
                response_headers = response.headers
        except error.HTTPError as exc:
            raw = exc.read()
            status = exc.code
            response_headers = exc.headers
        except error.URLError as exc:
            raise TransportError(
                f"HTTP request failed for {method} {url}: {exc.reason}", method=method, url=url
            ) from exc
        except (socket.timeout, TimeoutError) as exc:
            raise TransportError(
                f"HTTP request timed out after {self.timeout_ms}ms for {method} {url}", method=method, url=url
            ) from exc
        except (http.client.HTTPException, ConnectionError) as exc:
            raise TransportError(f"HTTP connection failed for {method} {url}: {exc}", method=method, url=url) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000

        envelope = ResponseEnvelope(
            status=status,
            headers={key.lower(): value for key, value in (response_headers or {}).items()},
            body=_decode_body(raw),
            elapsed_ms=round(elapsed_ms, 3),
        )
        self._logger.debug(
            "request_sent",
            method=method,
            url=url,
            status=status,
            elapsed_ms=envelope.elapsed_ms,
        )
        return envelope

    def build_url(self, path: str, query: Mapping[str, Any] | None = None) -> str:
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.base_url}{path if path.startswith('/') else '/' + path}"
        if query:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{parse.urlencode(query, doseq=True)}"
        return url

    def _merge_headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(self.default_headers)
        for key, value in (headers or {}).items():
            # per-call headers win regardless of case
            for existing in [name for name in merged if name.lower() == key.lower()]:
                del merged[existing]
            merged[key] = str(value)
        return merged


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
