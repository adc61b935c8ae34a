"""HTTP transport for the publishing API.

This module provides:
- HttpTransport: Protocol for HTTP calls (injectable for tests)
- UrllibTransport: Real implementation using urllib
- MockTransport: Scripted implementation for testing

Transports never raise: every network, timeout or HTTP status failure is
returned as ``Err(HttpError)``. No call is retried.

A request body is either bytes or a binary file object; file bodies are
streamed from disk and need an explicit ``Content-Length`` header.
"""

from __future__ import annotations

import http.client
import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import BinaryIO, Protocol, runtime_checkable

from playdeploy import __version__
from playdeploy.core.result import Err, Ok, Result
from playdeploy.core.structured import as_str_dict, get_str, get_table

__all__ = [
    "HttpError",
    "HttpTransport",
    "MockTransport",
    "RecordedRequest",
    "UrllibTransport",
    "error_message_from_body",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message}"
        return self.message


@runtime_checkable
class HttpTransport(Protocol):
    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | BinaryIO | None = None,
    ) -> Result[bytes, HttpError]:
        """Send one request and return the raw response body.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Extra request headers
            body: Request payload, bytes or a file object to stream

        Returns:
            Ok with the response body, or Err with HttpError
        """
        ...


def error_message_from_body(body: bytes) -> str | None:
    """Extract the message of a Google API error envelope.

    ``{"error": {"code": 403, "message": "...", "status": "PERMISSION_DENIED"}}``
    """
    try:
        data = as_str_dict(json.loads(body.decode("utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if data is None:
        return None
    error = get_table(data, "error")
    if error is not None:
        return get_str(error, "message")
    # OAuth token endpoint style: {"error": "invalid_grant", "error_description": "..."}
    return get_str(data, "error_description") or get_str(data, "error")


class UrllibTransport:
    """Real transport using urllib with system certificates."""

    def __init__(self, timeout: float = 120.0, user_agent: str | None = None) -> None:
        self.timeout = timeout
        self.user_agent = user_agent or f"play-deploy/{__version__}"
        self._ssl_context = ssl.create_default_context()

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | BinaryIO | None = None,
    ) -> Result[bytes, HttpError]:
        all_headers = {"User-Agent": self.user_agent}
        if headers:
            all_headers.update(headers)

        try:
            req = urllib.request.Request(url, data=body, headers=all_headers, method=method)
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=_status_error_message(e)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except http.client.HTTPException as e:
            # Connection dropped mid-response, e.g. IncompleteRead.
            return Err(HttpError(url=url, status=0, message=f"{type(e).__name__}: {e}"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))


def _status_error_message(error: urllib.error.HTTPError) -> str:
    try:
        body = error.read()
    except (OSError, http.client.HTTPException):
        body = b""
    return error_message_from_body(body) or str(error.reason)


@dataclass(frozen=True, slots=True)
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None
    streamed: bool = False

    def json(self) -> object:
        assert self.body is not None
        return json.loads(self.body.decode("utf-8"))


def _empty_requests() -> list[RecordedRequest]:
    return []


@dataclass
class MockTransport:
    """Transport with scripted responses, keyed by (method, url).

    Usage:
        transport = MockTransport()
        transport.respond("POST", url, b'{"id": "E1"}')
        transport.fail("PUT", url, status=403, message="forbidden")
    """

    requests: list[RecordedRequest] = field(default_factory=_empty_requests)
    _responses: dict[tuple[str, str], bytes | HttpError] = field(default_factory=dict)

    def respond(self, method: str, url: str, body: bytes | dict[str, object]) -> None:
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        self._responses[(method, url)] = body

    def fail(self, method: str, url: str, *, status: int, message: str) -> None:
        self._responses[(method, url)] = HttpError(url=url, status=status, message=message)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | BinaryIO | None = None,
    ) -> Result[bytes, HttpError]:
        if body is None or isinstance(body, bytes):
            recorded = RecordedRequest(method, url, dict(headers or {}), body)
        else:
            recorded = RecordedRequest(method, url, dict(headers or {}), body.read(), streamed=True)
        self.requests.append(recorded)

        response = self._responses.get((method, url))
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
