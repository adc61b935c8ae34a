from __future__ import annotations

from dataclasses import dataclass

from playdeploy.auth.provider import AuthProvider, GoogleAuthProvider
from playdeploy.core.config import DEFAULT_HTTP_TIMEOUT
from playdeploy.output.console import ConsoleProtocol, RichConsole
from playdeploy.publisher.http import HttpTransport, UrllibTransport


@dataclass(frozen=True, slots=True)
class CLIContext:
    console: ConsoleProtocol
    transport: HttpTransport
    auth: AuthProvider


def build_context(*, timeout: float = DEFAULT_HTTP_TIMEOUT) -> CLIContext:
    return CLIContext(
        console=RichConsole(),
        transport=UrllibTransport(timeout=timeout),
        auth=GoogleAuthProvider(),
    )
