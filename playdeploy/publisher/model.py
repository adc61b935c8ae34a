"""Values exchanged between the orchestrator and the publishing API."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from playdeploy.core.result import Result

__all__ = [
    "ApiFailure",
    "BinaryKind",
    "Edit",
    "EditStatus",
    "LocalizedText",
    "PublishRequest",
    "StepOutcome",
    "TrackAssignment",
    "UploadResult",
    "RELEASE_STATUS_COMPLETED",
    "RELEASE_STATUS_IN_PROGRESS",
]

RELEASE_STATUS_COMPLETED = "completed"
RELEASE_STATUS_IN_PROGRESS = "inProgress"


class BinaryKind(Enum):
    APK = "apk"
    BUNDLE = "aab"

    @classmethod
    def from_path(cls, path: Path) -> BinaryKind | None:
        suffix = path.suffix.lower()
        if suffix == ".apk":
            return cls.APK
        if suffix == ".aab":
            return cls.BUNDLE
        return None


@dataclass(frozen=True, slots=True)
class LocalizedText:
    """Release notes for one BCP-47 language tag."""

    language: str
    text: str


@dataclass(frozen=True, slots=True)
class PublishRequest:
    """Everything a single publish run needs, fixed before the run starts."""

    package_name: str
    binary_path: Path
    track: str
    user_fraction: float = 1.0
    release_notes: tuple[LocalizedText, ...] = ()
    release_name: str | None = None
    mapping_path: Path | None = None

    @property
    def binary_kind(self) -> BinaryKind:
        return BinaryKind.from_path(self.binary_path) or BinaryKind.APK


class EditStatus(Enum):
    OPEN = "open"
    COMMITTED = "committed"
    DELETED = "deleted"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Edit:
    """A server-side draft transaction, identified by an opaque id."""

    id: str
    package_name: str
    status: EditStatus = EditStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.status == EditStatus.OPEN

    def with_status(self, status: EditStatus) -> Edit:
        return replace(self, status=status)


@dataclass(frozen=True, slots=True)
class UploadResult:
    version_code: int
    edit: Edit


@dataclass(frozen=True, slots=True)
class TrackAssignment:
    """A single release on a track.

    ``user_fraction`` below 1.0 makes the release a staged rollout
    (``inProgress``); 1.0 publishes to every user (``completed``).
    """

    track: str
    user_fraction: float
    version_codes: tuple[int, ...]
    release_notes: tuple[LocalizedText, ...] = ()
    release_name: str | None = None

    @property
    def release_status(self) -> str:
        if self.user_fraction < 1.0:
            return RELEASE_STATUS_IN_PROGRESS
        return RELEASE_STATUS_COMPLETED

    def to_body(self) -> dict[str, object]:
        """Render the track resource sent to ``edits.tracks.update``."""
        release: dict[str, object] = {
            # int64 fields travel as strings in the v3 API.
            "versionCodes": [str(code) for code in self.version_codes],
            "status": self.release_status,
        }
        if self.release_status == RELEASE_STATUS_IN_PROGRESS:
            release["userFraction"] = self.user_fraction
        if self.release_notes:
            release["releaseNotes"] = [
                {"language": note.language, "text": note.text} for note in self.release_notes
            ]
        if self.release_name:
            release["name"] = self.release_name
        return {"track": self.track, "releases": [release]}


@dataclass(frozen=True, slots=True)
class ApiFailure:
    """A failed remote call.

    Attributes:
        message: Server error message, or a description of the transport failure
        status: HTTP status code (0 for network errors and malformed responses)
    """

    message: str
    status: int = 0

    def __str__(self) -> str:
        return self.message


type StepOutcome[T] = Result[T, ApiFailure]
