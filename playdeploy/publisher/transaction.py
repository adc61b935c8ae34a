"""Publish transaction: open edit, upload, assign track, commit.

The edits API has no multi-call atomicity: the edit itself is the
transaction boundary, and the server allows a single open edit per
package. Any failure after the edit is opened must therefore delete the
edit before the run reports its error, or the next run is blocked.

State machine::

    IDLE -> EDIT_OPEN -> APK_UPLOADED [-> MAPPING_UPLOADED] -> TRACK_ASSIGNED -> COMMITTED
                 \\            \\                \\                   \\
                  +------------+-----------------+-------------------+--> ROLLING_BACK
                                                                          |-> DELETED
                                                                          \\-> ROLLBACK_FAILED

The mapping upload only runs when the request names a mapping file.

A failed ``open_edit`` ends the run immediately: there is nothing to undo.
The error reported for a failed step is always that step's own message;
the outcome of the compensating delete is attached as a secondary
diagnostic and never replaces it. No call is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from playdeploy.core.result import Err, Ok, Result
from playdeploy.output.console import ConsoleProtocol
from playdeploy.publisher.client import PublisherClient
from playdeploy.publisher.errors import (
    PublishStep,
    RollbackFailed,
    RollbackOutcome,
    TransactionStepFailed,
)
from playdeploy.publisher.model import (
    Edit,
    EditStatus,
    PublishRequest,
    TrackAssignment,
    UploadResult,
)

__all__ = ["PublishReceipt", "PublishTransaction", "TransactionState", "publish"]


class TransactionState(Enum):
    IDLE = "idle"
    EDIT_OPEN = "edit_open"
    APK_UPLOADED = "apk_uploaded"
    MAPPING_UPLOADED = "mapping_uploaded"
    TRACK_ASSIGNED = "track_assigned"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling_back"
    DELETED = "deleted"
    ROLLBACK_FAILED = "rollback_failed"


@dataclass(frozen=True, slots=True)
class PublishReceipt:
    """What a committed run published."""

    edit_id: str
    version_code: int
    track: str
    user_fraction: float
    release_status: str


class PublishTransaction:
    """Single-use orchestrator for one publish run.

    Usage:
        tx = PublishTransaction(client=client, console=console)
        result = tx.run(request)
    """

    def __init__(self, *, client: PublisherClient, console: ConsoleProtocol) -> None:
        self._client = client
        self._console = console
        self._state = TransactionState.IDLE
        self._edit: Edit | None = None

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def edit(self) -> Edit | None:
        return self._edit

    def run(self, request: PublishRequest) -> Result[PublishReceipt, TransactionStepFailed]:
        if self._state != TransactionState.IDLE:
            raise RuntimeError(f"publish transaction already ran (state: {self._state.value})")

        package = request.package_name

        self._console.header("Create new edit")
        opened = self._client.open_edit(package)
        if isinstance(opened, Err):
            return Err(TransactionStepFailed(step=PublishStep.OPEN_EDIT, message=opened.error.message))
        self._edit = opened.value.with_status(EditStatus.OPEN)
        self._state = TransactionState.EDIT_OPEN
        self._console.detail(f"editID: {self._edit.id}")

        self._console.header(f"Upload {request.binary_kind.name.lower()}")
        uploaded = self._client.upload_binary(self._edit.id, package, request.binary_path)
        if isinstance(uploaded, Err):
            return self._fail(PublishStep.UPLOAD, uploaded.error.message)
        upload: UploadResult = uploaded.value
        self._state = TransactionState.APK_UPLOADED
        self._console.detail(f"uploaded version: {upload.version_code}")

        if request.mapping_path is not None:
            self._console.header("Upload mapping file")
            mapped = self._client.upload_mapping(
                self._edit.id, package, upload.version_code, request.mapping_path
            )
            if isinstance(mapped, Err):
                return self._fail(PublishStep.UPLOAD_MAPPING, mapped.error.message)
            self._state = TransactionState.MAPPING_UPLOADED
            self._console.detail(f"mapping file: {request.mapping_path.name}")

        assignment = TrackAssignment(
            track=request.track,
            user_fraction=request.user_fraction,
            version_codes=(upload.version_code,),
            release_notes=request.release_notes,
            release_name=request.release_name,
        )
        self._console.header("Update track")
        assigned = self._client.assign_track(self._edit.id, package, assignment)
        if isinstance(assigned, Err):
            return self._fail(PublishStep.ASSIGN_TRACK, assigned.error.message)
        self._state = TransactionState.TRACK_ASSIGNED
        self._console.detail(f"track: {assignment.track} ({assignment.release_status})")
        self._console.detail(f"version codes: {list(assignment.version_codes)}")

        self._console.header("Commit edit")
        committed = self._client.commit(self._edit.id, package)
        if isinstance(committed, Err):
            return self._fail(PublishStep.COMMIT, committed.error.message)
        self._edit = self._edit.with_status(EditStatus.COMMITTED)
        self._state = TransactionState.COMMITTED
        self._console.success("Edit committed")

        return Ok(
            PublishReceipt(
                edit_id=self._edit.id,
                version_code=upload.version_code,
                track=assignment.track,
                user_fraction=assignment.user_fraction,
                release_status=assignment.release_status,
            )
        )

    def _fail(self, step: PublishStep, message: str) -> Err[TransactionStepFailed]:
        rollback = self._rollback()
        return Err(TransactionStepFailed(step=step, message=message, rollback=rollback))

    def _rollback(self) -> RollbackOutcome:
        edit = self._edit
        # Only reachable after open_edit succeeded.
        assert edit is not None and edit.is_open

        self._state = TransactionState.ROLLING_BACK
        self._console.header("Delete edit")
        deleted = self._client.delete_edit(edit.id, edit.package_name)
        if isinstance(deleted, Err):
            self._edit = edit.with_status(EditStatus.UNKNOWN)
            self._state = TransactionState.ROLLBACK_FAILED
            failure = RollbackFailed(edit_id=edit.id, message=deleted.error.message)
            self._console.warning(f"failed to delete edit {edit.id}: {failure.message}")
            return RollbackOutcome(edit_id=edit.id, failure=failure)

        self._edit = edit.with_status(EditStatus.DELETED)
        self._state = TransactionState.DELETED
        self._console.detail(f"deleted edit: {edit.id}")
        return RollbackOutcome(edit_id=edit.id)


def publish(
    request: PublishRequest,
    *,
    client: PublisherClient,
    console: ConsoleProtocol,
) -> Result[PublishReceipt, TransactionStepFailed]:
    """Run one publish transaction for ``request``."""
    return PublishTransaction(client=client, console=console).run(request)
