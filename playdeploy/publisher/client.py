"""Client for the Google Play Developer API edits resource.

This module provides:
- PublisherClient: Protocol for the edit operations
- AndroidPublisherClient: Real implementation over an HttpTransport
- MockPublisherClient: Scripted implementation for testing

Every operation returns a ``StepOutcome``; transport failures, HTTP error
statuses and malformed responses all become ``Err(ApiFailure)``.

Binaries and mapping files are streamed from disk in a single media
upload, never loaded into memory whole.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable
from urllib.parse import quote

from playdeploy.core.result import Err, Ok, Result
from playdeploy.core.structured import StrDict, as_str_dict, get_int, get_str
from playdeploy.publisher.http import HttpError, HttpTransport
from playdeploy.publisher.model import (
    ApiFailure,
    BinaryKind,
    Edit,
    EditStatus,
    StepOutcome,
    TrackAssignment,
    UploadResult,
)

__all__ = [
    "API_ROOT",
    "UPLOAD_ROOT",
    "AndroidPublisherClient",
    "MockPublisherClient",
    "PublisherClient",
]

API_ROOT = "https://androidpublisher.googleapis.com/androidpublisher/v3"
UPLOAD_ROOT = "https://androidpublisher.googleapis.com/upload/androidpublisher/v3"

_CONTENT_TYPES = {
    BinaryKind.APK: "application/vnd.android.package-archive",
    BinaryKind.BUNDLE: "application/octet-stream",
}
_UPLOAD_COLLECTIONS = {
    BinaryKind.APK: "apks",
    BinaryKind.BUNDLE: "bundles",
}
MAPPING_CONTENT_TYPE = "application/octet-stream"
DEOBFUSCATION_FILE_TYPE = "proguard"


@runtime_checkable
class PublisherClient(Protocol):
    def open_edit(self, package_name: str) -> StepOutcome[Edit]: ...

    def upload_binary(
        self, edit_id: str, package_name: str, path: Path
    ) -> StepOutcome[UploadResult]: ...

    def upload_mapping(
        self, edit_id: str, package_name: str, version_code: int, path: Path
    ) -> StepOutcome[None]: ...

    def assign_track(
        self, edit_id: str, package_name: str, assignment: TrackAssignment
    ) -> StepOutcome[None]: ...

    def commit(self, edit_id: str, package_name: str) -> StepOutcome[None]: ...

    def delete_edit(self, edit_id: str, package_name: str) -> StepOutcome[None]: ...


def _failure(error: HttpError) -> ApiFailure:
    return ApiFailure(message=error.message, status=error.status)


def _parse_object(body: bytes) -> Result[StrDict, ApiFailure]:
    try:
        data = as_str_dict(json.loads(body.decode("utf-8")))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(ApiFailure(message=f"malformed response: {e}"))
    if data is None:
        return Err(ApiFailure(message="malformed response: expected a JSON object"))
    return Ok(data)


class AndroidPublisherClient:
    """Edits API client authorized by a bearer token.

    The token is attached as-is to every call; it is never inspected or
    refreshed here.
    """

    def __init__(
        self,
        transport: HttpTransport,
        token: str,
        *,
        api_root: str = API_ROOT,
        upload_root: str = UPLOAD_ROOT,
    ) -> None:
        self._transport = transport
        self._token = token
        self._api_root = api_root.rstrip("/")
        self._upload_root = upload_root.rstrip("/")

    def _edit_path(self, package_name: str, edit_id: str | None = None) -> str:
        path = f"applications/{quote(package_name, safe='')}/edits"
        if edit_id is not None:
            path += f"/{quote(edit_id, safe='')}"
        return path

    def _send(
        self,
        method: str,
        url: str,
        *,
        body: bytes | BinaryIO | None = None,
        content_type: str | None = None,
        content_length: int | None = None,
    ) -> Result[bytes, ApiFailure]:
        headers = {"Authorization": f"Bearer {self._token}"}
        if content_type is not None:
            headers["Content-Type"] = content_type
        if content_length is not None:
            headers["Content-Length"] = str(content_length)
        return self._transport.request(method, url, headers=headers, body=body).map_err(_failure)

    def _send_file(self, url: str, path: Path, content_type: str) -> Result[bytes, ApiFailure]:
        try:
            size = path.stat().st_size
            stream = path.open("rb")
        except OSError as e:
            return Err(ApiFailure(message=f"failed to read {path}: {e}"))
        with stream:
            return self._send(
                "POST", url, body=stream, content_type=content_type, content_length=size
            )

    def _send_json(self, method: str, url: str, payload: dict[str, object]) -> Result[bytes, ApiFailure]:
        return self._send(
            method,
            url,
            body=json.dumps(payload).encode("utf-8"),
            content_type="application/json",
        )

    def open_edit(self, package_name: str) -> StepOutcome[Edit]:
        result = self._send_json("POST", f"{self._api_root}/{self._edit_path(package_name)}", {})
        if isinstance(result, Err):
            return result

        parsed = _parse_object(result.value)
        if isinstance(parsed, Err):
            return parsed
        edit_id = get_str(parsed.value, "id")
        if edit_id is None:
            return Err(ApiFailure(message="malformed response: edit has no id"))
        return Ok(Edit(id=edit_id, package_name=package_name, status=EditStatus.OPEN))

    def upload_binary(self, edit_id: str, package_name: str, path: Path) -> StepOutcome[UploadResult]:
        kind = BinaryKind.from_path(path) or BinaryKind.APK
        url = (
            f"{self._upload_root}/{self._edit_path(package_name, edit_id)}"
            f"/{_UPLOAD_COLLECTIONS[kind]}?uploadType=media"
        )
        result = self._send_file(url, path, _CONTENT_TYPES[kind])
        if isinstance(result, Err):
            return result

        parsed = _parse_object(result.value)
        if isinstance(parsed, Err):
            return parsed
        version_code = get_int(parsed.value, "versionCode")
        if version_code is None:
            return Err(ApiFailure(message="malformed response: upload has no versionCode"))
        edit = Edit(id=edit_id, package_name=package_name, status=EditStatus.OPEN)
        return Ok(UploadResult(version_code=version_code, edit=edit))

    def upload_mapping(
        self, edit_id: str, package_name: str, version_code: int, path: Path
    ) -> StepOutcome[None]:
        """Attach a ProGuard/R8 ``mapping.txt`` to an uploaded version."""
        url = (
            f"{self._upload_root}/{self._edit_path(package_name, edit_id)}"
            f"/apks/{version_code}/deobfuscationFiles/{DEOBFUSCATION_FILE_TYPE}?uploadType=media"
        )
        result = self._send_file(url, path, MAPPING_CONTENT_TYPE)
        if isinstance(result, Err):
            return result
        return _parse_object(result.value).map(lambda _: None)

    def assign_track(
        self, edit_id: str, package_name: str, assignment: TrackAssignment
    ) -> StepOutcome[None]:
        url = (
            f"{self._api_root}/{self._edit_path(package_name, edit_id)}"
            f"/tracks/{quote(assignment.track, safe='')}"
        )
        result = self._send_json("PUT", url, assignment.to_body())
        if isinstance(result, Err):
            return result
        return _parse_object(result.value).map(lambda _: None)

    def commit(self, edit_id: str, package_name: str) -> StepOutcome[None]:
        url = f"{self._api_root}/{self._edit_path(package_name, edit_id)}:commit"
        return self._send("POST", url).map(lambda _: None)

    def delete_edit(self, edit_id: str, package_name: str) -> StepOutcome[None]:
        url = f"{self._api_root}/{self._edit_path(package_name, edit_id)}"
        return self._send("DELETE", url).map(lambda _: None)


def _empty_calls() -> list[tuple[str, tuple[object, ...]]]:
    return []


@dataclass
class MockPublisherClient:
    """Publisher client with scripted outcomes.

    ``failures`` maps an operation name (``open_edit``, ``upload_binary``,
    ``upload_mapping``, ``assign_track``, ``commit``, ``delete_edit``) to the
    error message it should fail with. Each ``open_edit`` hands out the next
    id from ``edit_ids``.

    Usage:
        client = MockPublisherClient(failures={"upload_binary": "quota exceeded"})
        ...
        assert client.operations == ["open_edit", "upload_binary", "delete_edit"]
    """

    edit_ids: list[str] = field(default_factory=lambda: ["E1"])
    version_code: int = 42
    failures: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, tuple[object, ...]]] = field(default_factory=_empty_calls)

    @property
    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _fail(self, operation: str) -> Err[ApiFailure] | None:
        message = self.failures.get(operation)
        if message is None:
            return None
        return Err(ApiFailure(message=message, status=400))

    def open_edit(self, package_name: str) -> StepOutcome[Edit]:
        self.calls.append(("open_edit", (package_name,)))
        failed = self._fail("open_edit")
        if failed is not None:
            return failed
        edit_id = self.edit_ids.pop(0) if self.edit_ids else f"E{len(self.calls)}"
        return Ok(Edit(id=edit_id, package_name=package_name))

    def upload_binary(self, edit_id: str, package_name: str, path: Path) -> StepOutcome[UploadResult]:
        self.calls.append(("upload_binary", (edit_id, package_name, path)))
        failed = self._fail("upload_binary")
        if failed is not None:
            return failed
        return Ok(UploadResult(self.version_code, Edit(id=edit_id, package_name=package_name)))

    def upload_mapping(
        self, edit_id: str, package_name: str, version_code: int, path: Path
    ) -> StepOutcome[None]:
        self.calls.append(("upload_mapping", (edit_id, package_name, version_code, path)))
        return self._fail("upload_mapping") or Ok(None)

    def assign_track(
        self, edit_id: str, package_name: str, assignment: TrackAssignment
    ) -> StepOutcome[None]:
        self.calls.append(("assign_track", (edit_id, package_name, assignment)))
        return self._fail("assign_track") or Ok(None)

    def commit(self, edit_id: str, package_name: str) -> StepOutcome[None]:
        self.calls.append(("commit", (edit_id, package_name)))
        return self._fail("commit") or Ok(None)

    def delete_edit(self, edit_id: str, package_name: str) -> StepOutcome[None]:
        self.calls.append(("delete_edit", (edit_id, package_name)))
        return self._fail("delete_edit") or Ok(None)
