from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from urllib.parse import parse_qs

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from playdeploy.auth.credentials import KeyKind, KeyMaterial
from playdeploy.auth.provider import (
    ANDROIDPUBLISHER_SCOPE,
    PKCS12_PASSWORD,
    TOKEN_URI,
    AccessToken,
    GoogleAuthProvider,
)
from playdeploy.core.result import Err, Ok

EMAIL = "deploy@example-project.iam.gserviceaccount.com"


@pytest.fixture(scope="module")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def p12_key(private_key: rsa.RSAPrivateKey) -> KeyMaterial:
    data = pkcs12.serialize_key_and_certificates(
        b"privatekey",
        private_key,
        None,
        None,
        serialization.BestAvailableEncryption(PKCS12_PASSWORD),
    )
    return KeyMaterial(kind=KeyKind.PKCS12, data=data)


@pytest.fixture(scope="module")
def json_key(private_key: rsa.RSAPrivateKey) -> KeyMaterial:
    pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    info = {
        "type": "service_account",
        "project_id": "example-project",
        "private_key_id": "abc123",
        "private_key": pem,
        "client_email": EMAIL,
        "client_id": "1234567890",
        "token_uri": TOKEN_URI,
    }
    return KeyMaterial(kind=KeyKind.JSON, data=json.dumps(info).encode("utf-8"))


@dataclass
class _Response:
    status: int
    data: bytes
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class FakeTokenEndpoint:
    """Stands in for google.auth.transport.Request."""

    status: int = 200
    payload: dict[str, object] = field(
        default_factory=lambda: {"access_token": "ya29.fake", "expires_in": 3600, "token_type": "Bearer"}
    )
    calls: list[dict[str, object]] = field(default_factory=list)

    def __call__(self, url: str, method: str = "GET", body: object = None, headers: object = None, timeout: object = None, **kwargs: object) -> _Response:
        self.calls.append({"url": url, "method": method, "body": body})
        return _Response(status=self.status, data=json.dumps(self.payload).encode("utf-8"))

    def assertion(self) -> str:
        body = self.calls[0]["body"]
        text = body.decode("utf-8") if isinstance(body, bytes) else str(body)
        return parse_qs(text)["assertion"][0]


def _provider(endpoint: FakeTokenEndpoint) -> GoogleAuthProvider:
    return GoogleAuthProvider(request_factory=lambda: endpoint)  # type: ignore[arg-type,return-value]


class TestPkcs12:
    def test_exchanges_token(self, p12_key: KeyMaterial) -> None:
        endpoint = FakeTokenEndpoint()

        result = _provider(endpoint).authenticate(EMAIL, p12_key)

        assert isinstance(result, Ok)
        assert result.value.value == "ya29.fake"
        assert result.value.expiry is not None
        assert endpoint.calls[0]["url"] == TOKEN_URI
        assert endpoint.calls[0]["method"] == "POST"

    def test_assertion_is_scoped_to_publisher(self, p12_key: KeyMaterial) -> None:
        endpoint = FakeTokenEndpoint()
        _provider(endpoint).authenticate(EMAIL, p12_key)

        payload_b64 = endpoint.assertion().split(".")[1]
        payload = json.loads(base64.urlsafe_b64decode(payload_b64 + "=" * (-len(payload_b64) % 4)))
        assert payload["iss"] == EMAIL
        assert payload["scope"] == ANDROIDPUBLISHER_SCOPE

    def test_requires_email(self, p12_key: KeyMaterial) -> None:
        endpoint = FakeTokenEndpoint()

        result = _provider(endpoint).authenticate(None, p12_key)

        assert isinstance(result, Err)
        assert "email not specified" in result.error.message
        assert endpoint.calls == []

    def test_corrupt_key(self) -> None:
        result = _provider(FakeTokenEndpoint()).authenticate(
            EMAIL, KeyMaterial(kind=KeyKind.PKCS12, data=b"not a p12")
        )

        assert isinstance(result, Err)
        assert "PKCS#12" in result.error.message

    def test_token_endpoint_rejects(self, p12_key: KeyMaterial) -> None:
        endpoint = FakeTokenEndpoint(
            status=400,
            payload={"error": "invalid_grant", "error_description": "Invalid JWT Signature."},
        )

        result = _provider(endpoint).authenticate(EMAIL, p12_key)

        assert isinstance(result, Err)
        assert "failed to authorize" in result.error.message


class TestJsonKey:
    def test_exchanges_token(self, json_key: KeyMaterial) -> None:
        result = _provider(FakeTokenEndpoint()).authenticate(None, json_key)

        assert isinstance(result, Ok)
        assert result.value.value == "ya29.fake"

    def test_matching_email_is_accepted(self, json_key: KeyMaterial) -> None:
        result = _provider(FakeTokenEndpoint()).authenticate(EMAIL, json_key)

        assert isinstance(result, Ok)

    def test_mismatched_email(self, json_key: KeyMaterial) -> None:
        result = _provider(FakeTokenEndpoint()).authenticate("other@example.com", json_key)

        assert isinstance(result, Err)
        assert "does not match" in result.error.message

    def test_missing_fields(self) -> None:
        key = KeyMaterial(kind=KeyKind.JSON, data=b'{"type": "service_account"}')

        result = _provider(FakeTokenEndpoint()).authenticate(None, key)

        assert isinstance(result, Err)
        assert "invalid service account key" in result.error.message


def test_access_token_repr_hides_value() -> None:
    assert "secret" not in repr(AccessToken(value="secret"))


@pytest.mark.parametrize("payload", [b"[1, 2]", b'"service_account"', b"42"])
def test_json_key_must_be_an_object(payload: bytes) -> None:
    endpoint = FakeTokenEndpoint()

    result = _provider(endpoint).authenticate(None, KeyMaterial(kind=KeyKind.JSON, data=payload))

    assert isinstance(result, Err)
    assert result.error.message == "invalid JSON key file: expected an object"
    assert endpoint.calls == []
