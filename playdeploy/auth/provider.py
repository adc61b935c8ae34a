"""Service account authentication for the publishing API.

``GoogleAuthProvider`` exchanges a service account key for a short-lived
bearer token scoped to ``androidpublisher``. Two key formats are
accepted:

- PKCS#12 (``.p12``), protected with Google's fixed ``notasecret``
  password. The service account email must be supplied separately.
- JSON key files, which carry their own ``client_email``.

The token is returned once and never refreshed: a run that outlives the
token fails at the next API call.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)
from google.auth import crypt
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import Request
from google.oauth2 import service_account

from playdeploy.auth.credentials import KeyKind, KeyMaterial
from playdeploy.core.result import Err, Ok, Result
from playdeploy.core.structured import as_str_dict
from playdeploy.publisher.errors import AuthenticationFailed

__all__ = [
    "ANDROIDPUBLISHER_SCOPE",
    "AccessToken",
    "AuthProvider",
    "GoogleAuthProvider",
    "PKCS12_PASSWORD",
    "TOKEN_URI",
]

ANDROIDPUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"
TOKEN_URI = "https://oauth2.googleapis.com/token"
PKCS12_PASSWORD = b"notasecret"


@dataclass(frozen=True, slots=True)
class AccessToken:
    value: str
    expiry: datetime | None = None

    def __repr__(self) -> str:
        return f"AccessToken(value=***, expiry={self.expiry!r})"


class AuthProvider(Protocol):
    def authenticate(
        self,
        service_account_email: str | None,
        key: KeyMaterial,
    ) -> Result[AccessToken, AuthenticationFailed]: ...


def _default_request() -> Request:
    from google.auth.transport.requests import Request as RequestsRequest

    return RequestsRequest()


class GoogleAuthProvider:
    """AuthProvider backed by google-auth service account credentials.

    Args:
        request_factory: Builds the google-auth transport used for the
            token exchange (injectable for tests).
    """

    def __init__(self, request_factory: Callable[[], Request] = _default_request) -> None:
        self._request_factory = request_factory

    def authenticate(
        self,
        service_account_email: str | None,
        key: KeyMaterial,
    ) -> Result[AccessToken, AuthenticationFailed]:
        match key.kind:
            case KeyKind.PKCS12:
                credentials = _credentials_from_pkcs12(service_account_email, key.data)
            case KeyKind.JSON:
                credentials = _credentials_from_json(service_account_email, key.data)

        if isinstance(credentials, Err):
            return credentials

        try:
            credentials.value.refresh(self._request_factory())
        except GoogleAuthError as e:
            return Err(AuthenticationFailed(message=f"failed to authorize service account: {e}"))

        token = credentials.value.token
        if not token:
            return Err(AuthenticationFailed(message="failed to authorize service account: no access token"))
        return Ok(AccessToken(value=token, expiry=credentials.value.expiry))


def _credentials_from_pkcs12(
    email: str | None,
    data: bytes,
) -> Result[service_account.Credentials, AuthenticationFailed]:
    if not email:
        return Err(
            AuthenticationFailed(
                message="service account email not specified",
                hint="PKCS#12 keys need --service-account",
            )
        )

    try:
        private_key, _, _ = pkcs12.load_key_and_certificates(data, PKCS12_PASSWORD)
    except ValueError as e:
        return Err(AuthenticationFailed(message=f"failed to load PKCS#12 key: {e}"))
    if not isinstance(private_key, rsa.RSAPrivateKey):
        return Err(AuthenticationFailed(message="PKCS#12 key does not contain an RSA private key"))

    pem = private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    signer = crypt.RSASigner.from_string(pem)
    return Ok(
        service_account.Credentials(
            signer,
            email,
            TOKEN_URI,
            scopes=[ANDROIDPUBLISHER_SCOPE],
        )
    )


def _credentials_from_json(
    email: str | None,
    data: bytes,
) -> Result[service_account.Credentials, AuthenticationFailed]:
    try:
        parsed: object = json.loads(data.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(AuthenticationFailed(message=f"invalid JSON key file: {e}"))

    info = as_str_dict(parsed)
    if info is None:
        return Err(AuthenticationFailed(message="invalid JSON key file: expected an object"))

    try:
        credentials = service_account.Credentials.from_service_account_info(
            info,
            scopes=[ANDROIDPUBLISHER_SCOPE],
        )
    except (ValueError, TypeError, KeyError) as e:
        return Err(AuthenticationFailed(message=f"invalid service account key: {e}"))

    if email and email != credentials.service_account_email:
        return Err(
            AuthenticationFailed(
                message=(
                    f"service account {email} does not match the key file "
                    f"({credentials.service_account_email})"
                ),
                hint="omit --service-account when using a JSON key",
            )
        )
    return Ok(credentials)
