"""Checks on local inputs, run before any credential or API call."""

from __future__ import annotations

from pathlib import Path

from playdeploy.core.result import Err, Ok, Result
from playdeploy.publisher.errors import ValidationError
from playdeploy.publisher.model import BinaryKind, LocalizedText, PublishRequest
from playdeploy.publisher.notes import read_release_notes


def _required(value: str | None, name: str, option: str) -> Result[str, ValidationError]:
    if value is None or not value.strip():
        return Err(ValidationError(message=f"{name} not specified", hint=f"use {option}"))
    return Ok(value.strip())


def validate_user_fraction(value: float) -> Result[float, ValidationError]:
    if not 0.0 < value <= 1.0:
        return Err(
            ValidationError(
                message=f"user fraction must be in (0, 1], got {value}",
                hint="use 1.0 to release to every user",
            )
        )
    return Ok(value)


def validate_request(
    *,
    package_name: str | None,
    binary_path: Path | None,
    track: str | None,
    user_fraction: float = 1.0,
    whatsnew_dir: Path | None = None,
    release_name: str | None = None,
    mapping_path: Path | None = None,
) -> Result[PublishRequest, ValidationError]:
    """Build a PublishRequest, or report the first invalid input."""
    package = _required(package_name, "package name", "--package")
    if isinstance(package, Err):
        return package

    track_name = _required(track, "track", "--track")
    if isinstance(track_name, Err):
        return track_name

    if binary_path is None:
        return Err(ValidationError(message="binary path not specified", hint="use --binary"))
    if BinaryKind.from_path(binary_path) is None:
        return Err(
            ValidationError(
                message=f"unknown app extension in path: {binary_path}",
                hint="supported extensions: .apk, .aab",
            )
        )
    if not binary_path.is_file():
        return Err(ValidationError(message=f"binary does not exist: {binary_path}"))

    fraction = validate_user_fraction(user_fraction)
    if isinstance(fraction, Err):
        return fraction

    if mapping_path is not None and not mapping_path.is_file():
        return Err(
            ValidationError(
                message=f"mapping file does not exist: {mapping_path}",
                hint="point --mapping-file at the mapping.txt of this build",
            )
        )

    notes: tuple[LocalizedText, ...] = ()
    if whatsnew_dir is not None:
        read = read_release_notes(whatsnew_dir)
        if isinstance(read, Err):
            return read
        notes = read.value

    return Ok(
        PublishRequest(
            package_name=package.value,
            binary_path=binary_path,
            track=track_name.value,
            user_fraction=fraction.value,
            release_notes=notes,
            release_name=release_name.strip() if release_name and release_name.strip() else None,
            mapping_path=mapping_path,
        )
    )
