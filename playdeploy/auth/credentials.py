"""Locating and loading service account key material.

The key can be given as a local path, a ``file://`` URL or an HTTP(S)
URL (e.g. a signed storage link handed to the CI step). Remote keys are
fetched once, without retry, and kept in memory only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from playdeploy.core.result import Err, Ok, Result
from playdeploy.publisher.errors import AuthenticationFailed, ValidationError
from playdeploy.publisher.http import HttpTransport

__all__ = [
    "CredentialLocation",
    "KeyKind",
    "KeyMaterial",
    "load_key_material",
    "parse_credential_location",
]


class KeyKind(Enum):
    PKCS12 = "pkcs12"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class CredentialLocation:
    """Where the key lives: a URL when ``is_remote``, else a local path."""

    value: str
    is_remote: bool

    def __str__(self) -> str:
        # Signed URLs carry secrets in their query string.
        if self.is_remote:
            parsed = urlparse(self.value)
            return f"{parsed.scheme}://{parsed.netloc}/***"
        return self.value


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    kind: KeyKind
    data: bytes = b""

    def __repr__(self) -> str:
        return f"KeyMaterial(kind={self.kind.value}, data=<{len(self.data)} bytes>)"


def parse_credential_location(value: str) -> Result[CredentialLocation, ValidationError]:
    raw = value.strip()
    if not raw:
        return Err(ValidationError(message="key path not specified", hint="use --key"))

    scheme = urlparse(raw).scheme.lower()
    if scheme in ("http", "https"):
        return Ok(CredentialLocation(value=raw, is_remote=True))

    path = raw.removeprefix("file://")
    if not Path(path).expanduser().is_file():
        return Err(ValidationError(message=f"key file does not exist: {path}"))
    return Ok(CredentialLocation(value=path, is_remote=False))


def _detect_kind(name: str, data: bytes) -> KeyKind:
    if name.lower().endswith(".json"):
        return KeyKind.JSON
    try:
        if isinstance(json.loads(data.decode("utf-8")), dict):
            return KeyKind.JSON
    except (json.JSONDecodeError, UnicodeDecodeError):
        pass
    return KeyKind.PKCS12


def load_key_material(
    location: CredentialLocation,
    *,
    transport: HttpTransport,
) -> Result[KeyMaterial, AuthenticationFailed]:
    """Read the key bytes and classify them as PKCS#12 or JSON."""
    if location.is_remote:
        fetched = transport.request("GET", location.value)
        if isinstance(fetched, Err):
            return Err(
                AuthenticationFailed(
                    message=f"failed to download key file from {location}: {fetched.error}",
                )
            )
        data = fetched.value
        name = urlparse(location.value).path
    else:
        path = Path(location.value).expanduser()
        try:
            data = path.read_bytes()
        except OSError as e:
            return Err(AuthenticationFailed(message=f"failed to read key file {path}: {e}"))
        name = path.name

    if not data:
        return Err(AuthenticationFailed(message=f"key file is empty: {location}"))
    return Ok(KeyMaterial(kind=_detect_kind(name, data), data=data))
