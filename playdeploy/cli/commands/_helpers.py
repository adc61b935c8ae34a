"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from playdeploy.core.result import Err, Result
from playdeploy.output.errors import print_publish_error, publish_exit_code
from playdeploy.publisher.errors import PublishError

if TYPE_CHECKING:
    from playdeploy.cli.context import CLIContext


def exit_on_error[T](result: Result[T, PublishError], ctx: CLIContext) -> T:
    """Return the Ok value, or render the error and exit.

    Replaces the common pattern:
        if isinstance(result, Err):
            print_publish_error(result.error, ctx.console)
            raise typer.Exit(code=publish_exit_code(result.error))
    """
    if isinstance(result, Err):
        print_publish_error(result.error, ctx.console)
        exit_with_code(publish_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)
