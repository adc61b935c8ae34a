from __future__ import annotations

import re
from pathlib import Path

from playdeploy.core.result import Err, Ok, Result
from playdeploy.publisher.errors import ValidationError
from playdeploy.publisher.model import LocalizedText

# whatsnew-en-US, whatsnew-de-DE, whatsnew-ca, whatsnew-es-419
_WHATSNEW_RE = re.compile(r"^whatsnew-(?P<locale>[0-9A-Za-z][0-9A-Za-z-]*)$")


def read_release_notes(directory: Path) -> Result[tuple[LocalizedText, ...], ValidationError]:
    """Collect ``whatsnew-<locale>`` files from ``directory``, sorted by locale."""
    if not directory.is_dir():
        return Err(
            ValidationError(
                message=f"what's new directory does not exist: {directory}",
                hint="files must be named whatsnew-<locale>, e.g. whatsnew-en-US",
            )
        )

    notes: list[LocalizedText] = []
    for path in sorted(directory.iterdir()):
        match = _WHATSNEW_RE.match(path.name)
        if match is None or not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return Err(ValidationError(message=f"failed to read {path}: {e}"))
        notes.append(LocalizedText(language=match.group("locale"), text=text.rstrip()))

    return Ok(tuple(sorted(notes, key=lambda n: n.language)))
