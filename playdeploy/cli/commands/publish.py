from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from playdeploy.auth.credentials import load_key_material, parse_credential_location
from playdeploy.cli.commands._helpers import exit_on_error
from playdeploy.cli.context import CLIContext, build_context
from playdeploy.core.config import DEFAULT_HTTP_TIMEOUT, Config, ConfigError, load_config
from playdeploy.core.result import Ok, Result
from playdeploy.output.console import Style
from playdeploy.publisher.client import AndroidPublisherClient
from playdeploy.publisher.errors import ValidationError
from playdeploy.publisher.model import PublishRequest
from playdeploy.publisher.transaction import publish as run_transaction
from playdeploy.publisher.validation import validate_request


@dataclass(frozen=True, slots=True)
class PublishOptions:
    """Raw command inputs, before config defaults and validation."""

    service_account: str | None
    package_name: str | None
    binary: Path | None
    key: str | None
    track: str | None
    user_fraction: float | None = None
    whatsnew_dir: Path | None = None
    release_name: str | None = None
    mapping_file: Path | None = None

    def with_defaults(self, config: Config) -> PublishOptions:
        defaults = config.publish
        whatsnew = self.whatsnew_dir
        if whatsnew is None and defaults.whatsnew_dir:
            whatsnew = Path(defaults.whatsnew_dir)
        mapping = self.mapping_file
        if mapping is None and defaults.mapping_file:
            mapping = Path(defaults.mapping_file)
        return PublishOptions(
            service_account=self.service_account,
            package_name=self.package_name or defaults.package_name,
            binary=self.binary,
            key=self.key,
            track=self.track or defaults.track,
            user_fraction=(
                self.user_fraction if self.user_fraction is not None else defaults.user_fraction
            ),
            whatsnew_dir=whatsnew,
            release_name=self.release_name or defaults.release_name,
            mapping_file=mapping,
        )


def _config_error(error: ConfigError) -> ValidationError:
    return ValidationError(message=error.message, hint=str(error.path) if error.path else None)


def _load_optional_config(path: Path | None) -> Result[Config, ValidationError]:
    if path is None:
        return Ok(Config())
    return load_config(path).map_err(_config_error)


def _print_configs(ctx: CLIContext, options: PublishOptions) -> None:
    console = ctx.console
    console.header("Configs")
    console.detail("service_account: ***" if options.service_account else "service_account: -")
    console.detail(f"package_name: {options.package_name or '-'}")
    console.detail(f"track: {options.track or '-'}")
    console.detail(f"user_fraction: {options.user_fraction if options.user_fraction is not None else 1.0}")
    console.detail(f"binary: {options.binary or '-'}")
    console.detail("key: ***" if options.key else "key: -")
    if options.whatsnew_dir is not None:
        console.detail(f"whatsnew_dir: {options.whatsnew_dir}")
    if options.release_name:
        console.detail(f"release_name: {options.release_name}")
    if options.mapping_file is not None:
        console.detail(f"mapping_file: {options.mapping_file}")


def run_publish(ctx: CLIContext, options: PublishOptions) -> PublishRequest:
    """Validate, authenticate and publish; exits the process on any failure."""
    _print_configs(ctx, options)

    request = exit_on_error(
        validate_request(
            package_name=options.package_name,
            binary_path=options.binary,
            track=options.track,
            user_fraction=options.user_fraction if options.user_fraction is not None else 1.0,
            whatsnew_dir=options.whatsnew_dir,
            release_name=options.release_name,
            mapping_path=options.mapping_file,
        ),
        ctx,
    )
    location = exit_on_error(parse_credential_location(options.key or ""), ctx)

    ctx.console.header("Authenticating")
    key = exit_on_error(load_key_material(location, transport=ctx.transport), ctx)
    token = exit_on_error(ctx.auth.authenticate(options.service_account, key), ctx)
    ctx.console.success("Authenticated client created")

    client = AndroidPublisherClient(ctx.transport, token.value)
    receipt = exit_on_error(run_transaction(request, client=client, console=ctx.console), ctx)

    ctx.console.newline()
    ctx.console.success(
        f"Published version {receipt.version_code} of {request.package_name} "
        f"to {receipt.track} ({receipt.release_status})"
    )
    if receipt.release_status != "completed":
        ctx.console.print(f"staged rollout to {receipt.user_fraction:.0%} of users", Style.DIM)
    return request


def publish(
    service_account: str | None = typer.Option(
        None,
        "--service-account",
        envvar="PLAY_SERVICE_ACCOUNT",
        help="Service account email (required for PKCS#12 keys).",
    ),
    package_name: str | None = typer.Option(
        None, "--package", envvar="PLAY_PACKAGE_NAME", help="Application package name."
    ),
    binary: Path | None = typer.Option(
        None, "--binary", envvar="PLAY_BINARY_PATH", help="Path to the .apk or .aab to publish."
    ),
    key: str | None = typer.Option(
        None,
        "--key",
        envvar="PLAY_KEY_PATH",
        help="Service account key (.p12 or .json): local path, file:// or http(s) URL.",
    ),
    track: str | None = typer.Option(
        None, "--track", envvar="PLAY_TRACK", help="Release track (internal, alpha, beta, production, ...)."
    ),
    user_fraction: float | None = typer.Option(
        None,
        "--user-fraction",
        envvar="PLAY_USER_FRACTION",
        help="Fraction of users receiving the release, in (0, 1]. Default: 1.0.",
    ),
    whatsnew_dir: Path | None = typer.Option(
        None,
        "--whatsnew-dir",
        envvar="PLAY_WHATSNEW_DIR",
        help="Directory of whatsnew-<locale> release notes files.",
    ),
    release_name: str | None = typer.Option(
        None, "--release-name", envvar="PLAY_RELEASE_NAME", help="Release name shown in the console."
    ),
    mapping_file: Path | None = typer.Option(
        None,
        "--mapping-file",
        envvar="PLAY_MAPPING_FILE",
        help="ProGuard/R8 mapping.txt uploaded as the deobfuscation file of the release.",
    ),
    config: Path | None = typer.Option(
        None, "--config", envvar="PLAY_DEPLOY_CONFIG", help="TOML file with publish defaults."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", envvar="PLAY_HTTP_TIMEOUT", help="HTTP timeout in seconds."
    ),
) -> None:
    """Publish an Android binary to a Google Play release track."""
    loaded = _load_optional_config(config)
    config_timeout = loaded.map(lambda c: c.http.timeout).unwrap_or(DEFAULT_HTTP_TIMEOUT)
    ctx = build_context(timeout=timeout or config_timeout)
    settings = exit_on_error(loaded, ctx)

    options = PublishOptions(
        service_account=service_account,
        package_name=package_name,
        binary=binary,
        key=key,
        track=track,
        user_fraction=user_fraction,
        whatsnew_dir=whatsnew_dir,
        release_name=release_name,
        mapping_file=mapping_file,
    ).with_defaults(settings)

    run_publish(ctx, options)
