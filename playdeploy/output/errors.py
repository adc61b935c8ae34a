"""Error presentation utilities.

Centralized rendering of publish errors and their exit codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from playdeploy.core.errors import ErrorCode
from playdeploy.output.console import Style
from playdeploy.publisher.errors import (
    AuthenticationFailed,
    PublishError,
    TransactionStepFailed,
    ValidationError,
)

if TYPE_CHECKING:
    from playdeploy.output.console import ConsoleProtocol

__all__ = ["print_publish_error", "publish_exit_code"]


def print_publish_error(error: PublishError, console: ConsoleProtocol) -> None:
    """Print the primary error first, then any rollback diagnostic."""
    match error:
        case ValidationError(message=message, hint=hint):
            console.error(message)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case AuthenticationFailed(message=message, hint=hint):
            console.error(message)
            if hint:
                console.print(f"hint: {hint}", Style.DIM)
        case TransactionStepFailed(step=step, message=message, rollback=rollback):
            console.error(f"failed to {step.label}: {message}")
            if rollback is None:
                return
            if rollback.failure is None:
                console.print(f"edit {rollback.edit_id} deleted", Style.DIM)
            else:
                console.print(
                    f"rollback failed, edit {rollback.edit_id} may still be open: "
                    f"{rollback.failure.message}",
                    Style.WARNING,
                )


def publish_exit_code(error: PublishError) -> int:
    """Every failure exits with the same code, rolled back cleanly or not."""
    match error:
        case ValidationError() | AuthenticationFailed() | TransactionStepFailed():
            return int(ErrorCode.FAILURE)
