"""Errors reported by a publish run.

Errors are values carried in ``Err``; only the CLI turns them into an
exit code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PublishStep(Enum):
    OPEN_EDIT = "open_edit"
    UPLOAD = "upload"
    UPLOAD_MAPPING = "upload_mapping"
    ASSIGN_TRACK = "assign_track"
    COMMIT = "commit"

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    PublishStep.OPEN_EDIT: "open edit",
    PublishStep.UPLOAD: "upload binary",
    PublishStep.UPLOAD_MAPPING: "upload mapping file",
    PublishStep.ASSIGN_TRACK: "assign track",
    PublishStep.COMMIT: "commit edit",
}


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Missing or invalid local input, detected before any remote call."""

    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class AuthenticationFailed:
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RollbackFailed:
    """The edit could not be deleted after a failed step."""

    edit_id: str
    message: str


@dataclass(frozen=True, slots=True)
class RollbackOutcome:
    edit_id: str
    failure: RollbackFailed | None = None

    @property
    def deleted(self) -> bool:
        return self.failure is None


@dataclass(frozen=True, slots=True)
class TransactionStepFailed:
    """A remote step failed.

    ``message`` is always the failing step's own message; the result of the
    compensating delete lives in ``rollback`` (None when no edit was opened).
    """

    step: PublishStep
    message: str
    rollback: RollbackOutcome | None = None

    @property
    def kind(self) -> str:
        return _FAILURE_KINDS[self.step]


_FAILURE_KINDS = {
    PublishStep.OPEN_EDIT: "open_edit_failed",
    PublishStep.UPLOAD: "upload_failed",
    PublishStep.UPLOAD_MAPPING: "mapping_upload_failed",
    PublishStep.ASSIGN_TRACK: "track_assign_failed",
    PublishStep.COMMIT: "commit_failed",
}


PublishError = ValidationError | AuthenticationFailed | TransactionStepFailed
