"""Tests for the publish transaction and its compensating rollback."""

from __future__ import annotations

import http.client
import io
import urllib.request
from pathlib import Path

import pytest

from playdeploy.core.result import Err, Ok
from playdeploy.output.console import MockConsole
from playdeploy.publisher import http as http_mod
from playdeploy.publisher.client import (
    API_ROOT,
    UPLOAD_ROOT,
    AndroidPublisherClient,
    MockPublisherClient,
    PublisherClient,
)
from playdeploy.publisher.http import UrllibTransport
from playdeploy.publisher.errors import PublishStep, TransactionStepFailed
from playdeploy.publisher.model import EditStatus, PublishRequest, TrackAssignment
from playdeploy.publisher.transaction import PublishTransaction, TransactionState, publish


def _request(**overrides: object) -> PublishRequest:
    values: dict[str, object] = {
        "package_name": "com.example.app",
        "binary_path": Path("app.apk"),
        "track": "beta",
    }
    values.update(overrides)
    return PublishRequest(**values)  # type: ignore[arg-type]


def _run(client: PublisherClient, request: PublishRequest | None = None):
    tx = PublishTransaction(client=client, console=MockConsole())
    return tx, tx.run(request or _request())


class TestSuccessfulRun:
    def test_runs_steps_in_order_without_delete(self) -> None:
        client = MockPublisherClient(edit_ids=["E1"], version_code=42)

        tx, result = _run(client)

        assert isinstance(result, Ok)
        assert client.operations == ["open_edit", "upload_binary", "assign_track", "commit"]
        assert "delete_edit" not in client.operations
        assert tx.state == TransactionState.COMMITTED
        assert tx.edit is not None
        assert tx.edit.status == EditStatus.COMMITTED

    def test_receipt_describes_release(self) -> None:
        client = MockPublisherClient(edit_ids=["E1"], version_code=42)

        _, result = _run(client)

        assert isinstance(result, Ok)
        assert result.value.edit_id == "E1"
        assert result.value.version_code == 42
        assert result.value.track == "beta"
        assert result.value.release_status == "completed"

    def test_every_call_uses_opened_edit_id(self) -> None:
        client = MockPublisherClient(edit_ids=["E7"])

        _run(client)

        for name, args in client.calls[1:]:
            assert args[0] == "E7", name

    def test_assign_track_uses_uploaded_version_code(self) -> None:
        client = MockPublisherClient(version_code=1234)

        _run(client, _request(user_fraction=0.25))

        (assignment,) = [args[2] for name, args in client.calls if name == "assign_track"]
        assert isinstance(assignment, TrackAssignment)
        assert assignment.version_codes == (1234,)
        assert assignment.track == "beta"
        assert assignment.user_fraction == 0.25
        assert assignment.release_status == "inProgress"

    def test_upload_receives_request_binary(self) -> None:
        client = MockPublisherClient()

        _run(client, _request(binary_path=Path("out/app-release.aab")))

        (args,) = [args for name, args in client.calls if name == "upload_binary"]
        assert args == ("E1", "com.example.app", Path("out/app-release.aab"))

    def test_progress_is_reported(self) -> None:
        console = MockConsole()
        client = MockPublisherClient(edit_ids=["E1"], version_code=42)

        PublishTransaction(client=client, console=console).run(_request())

        assert console.find("editID: E1")
        assert console.find("uploaded version: 42")
        assert console.find("Edit committed")
        assert not console.has_warning()


class TestOpenEditFailure:
    def test_no_further_calls(self) -> None:
        client = MockPublisherClient(failures={"open_edit": "package not found"})

        tx, result = _run(client)

        assert client.operations == ["open_edit"]
        assert isinstance(result, Err)
        assert result.error.step == PublishStep.OPEN_EDIT
        assert result.error.kind == "open_edit_failed"
        assert result.error.message == "package not found"
        assert result.error.rollback is None
        assert tx.edit is None
        assert tx.state == TransactionState.IDLE


@pytest.mark.parametrize(
    ("operation", "step", "completed"),
    [
        ("upload_binary", PublishStep.UPLOAD, ["open_edit", "upload_binary"]),
        ("assign_track", PublishStep.ASSIGN_TRACK, ["open_edit", "upload_binary", "assign_track"]),
        ("commit", PublishStep.COMMIT, ["open_edit", "upload_binary", "assign_track", "commit"]),
    ],
)
class TestStepFailureRollsBack:
    def test_deletes_opened_edit_once(
        self, operation: str, step: PublishStep, completed: list[str]
    ) -> None:
        client = MockPublisherClient(edit_ids=["E1"], failures={operation: "boom"})

        tx, result = _run(client)

        assert client.operations == [*completed, "delete_edit"]
        assert client.calls[-1] == ("delete_edit", ("E1", "com.example.app"))
        assert isinstance(result, Err)
        assert result.error.step == step
        assert result.error.message == "boom"
        assert result.error.rollback is not None
        assert result.error.rollback.deleted
        assert tx.state == TransactionState.DELETED
        assert tx.edit is not None
        assert tx.edit.status == EditStatus.DELETED

    def test_rollback_failure_does_not_mask_step_error(
        self, operation: str, step: PublishStep, completed: list[str]
    ) -> None:
        client = MockPublisherClient(
            failures={operation: "step failure", "delete_edit": "edit already gone"}
        )

        tx, result = _run(client)

        assert client.operations.count("delete_edit") == 1
        assert isinstance(result, Err)
        assert result.error.step == step
        assert result.error.message == "step failure"
        rollback = result.error.rollback
        assert rollback is not None
        assert not rollback.deleted
        assert rollback.failure is not None
        assert rollback.failure.message == "edit already gone"
        assert tx.state == TransactionState.ROLLBACK_FAILED
        assert tx.edit is not None
        assert tx.edit.status == EditStatus.UNKNOWN


def test_upload_quota_scenario() -> None:
    console = MockConsole()
    client = MockPublisherClient(edit_ids=["E1"], failures={"upload_binary": "quota exceeded"})

    result = publish(_request(binary_path=Path("app.apk")), client=client, console=console)

    assert client.calls[-1] == ("delete_edit", ("E1", "com.example.app"))
    assert isinstance(result, Err)
    assert isinstance(result.error, TransactionStepFailed)
    assert result.error.step == PublishStep.UPLOAD
    assert result.error.message == "quota exceeded"
    assert console.find("deleted edit: E1")


def test_rollback_failure_is_reported_as_warning() -> None:
    console = MockConsole()
    client = MockPublisherClient(failures={"commit": "conflict", "delete_edit": "timeout"})

    PublishTransaction(client=client, console=console).run(_request())

    assert console.has_warning()
    assert console.find("failed to delete edit E1: timeout")


def test_transaction_is_single_use() -> None:
    tx = PublishTransaction(client=MockPublisherClient(), console=MockConsole())
    tx.run(_request())

    with pytest.raises(RuntimeError, match="already ran"):
        tx.run(_request())


def test_separate_runs_never_reuse_edit_ids() -> None:
    client = MockPublisherClient(edit_ids=["E1", "E2"])

    first = publish(_request(), client=client, console=MockConsole())
    second = publish(_request(), client=client, console=MockConsole())

    assert isinstance(first, Ok) and isinstance(second, Ok)
    assert first.value.edit_id == "E1"
    assert second.value.edit_id == "E2"
    commit_ids = [args[0] for name, args in client.calls if name == "commit"]
    assert commit_ids == ["E1", "E2"]


class TestMappingUpload:
    def test_runs_between_upload_and_track(self) -> None:
        client = MockPublisherClient(version_code=42)

        _, result = _run(client, _request(mapping_path=Path("mapping.txt")))

        assert isinstance(result, Ok)
        assert client.operations == [
            "open_edit",
            "upload_binary",
            "upload_mapping",
            "assign_track",
            "commit",
        ]
        (args,) = [args for name, args in client.calls if name == "upload_mapping"]
        assert args == ("E1", "com.example.app", 42, Path("mapping.txt"))

    def test_skipped_without_mapping_file(self) -> None:
        client = MockPublisherClient()

        _run(client)

        assert "upload_mapping" not in client.operations

    def test_failure_deletes_edit(self) -> None:
        client = MockPublisherClient(failures={"upload_mapping": "APK not found in edit"})

        tx, result = _run(client, _request(mapping_path=Path("mapping.txt")))

        assert client.operations == ["open_edit", "upload_binary", "upload_mapping", "delete_edit"]
        assert isinstance(result, Err)
        assert result.error.step == PublishStep.UPLOAD_MAPPING
        assert result.error.kind == "mapping_upload_failed"
        assert result.error.message == "APK not found in edit"
        assert tx.state == TransactionState.DELETED


class _Response(io.BytesIO):
    def __enter__(self) -> _Response:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class _TruncatedResponse(_Response):
    def read(self, *args: object) -> bytes:  # type: ignore[override]
        raise http.client.IncompleteRead(b'{"versionCo', 86)


def test_dropped_upload_connection_still_deletes_edit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    apk = tmp_path / "app.apk"
    apk.write_bytes(b"PK\x03\x04apk")
    edits = f"{API_ROOT}/applications/com.example.app/edits"
    seen: list[tuple[str, str]] = []

    def fake_urlopen(req: urllib.request.Request, timeout: float, context: object) -> _Response:
        seen.append((req.get_method(), req.full_url))
        if req.full_url.startswith(UPLOAD_ROOT):
            return _TruncatedResponse()
        if req.get_method() == "DELETE":
            return _Response(b"")
        return _Response(b'{"id": "E1"}')

    monkeypatch.setattr(http_mod.urllib.request, "urlopen", fake_urlopen)
    client = AndroidPublisherClient(UrllibTransport(), "ya29.token")

    tx, result = _run(client, _request(binary_path=apk))

    assert isinstance(result, Err)
    assert result.error.step == PublishStep.UPLOAD
    assert "IncompleteRead" in result.error.message
    assert seen[-1] == ("DELETE", f"{edits}/E1")
    assert tx.state == TransactionState.DELETED
