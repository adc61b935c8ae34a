"""Process exit codes.

A CI step only distinguishes success from failure: validation errors,
authentication errors and failed publish transactions all exit with
``FAILURE``, whether or not the rollback of the edit succeeded.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands. Values are stable."""

    OK = 0
    FAILURE = 1

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
