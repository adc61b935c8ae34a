"""Typed configuration loading.

An optional TOML file provides defaults for a publish run, so a CI
pipeline can commit its track/rollout settings next to the app sources.
Command line options and environment variables always win over the file.

Example::

    [publish]
    track = "beta"
    user_fraction = 0.2
    whatsnew_dir = "metadata/whatsnew"
    mapping_file = "app/build/outputs/mapping/release/mapping.txt"

    [http]
    timeout = 120.0
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "HttpConfig",
    "PublishDefaults",
    "DEFAULT_HTTP_TIMEOUT",
    "load_config",
]

DEFAULT_HTTP_TIMEOUT = 120.0


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PublishDefaults:
    """Defaults for the publish command, all optional."""

    package_name: str | None = None
    track: str | None = None
    user_fraction: float | None = None
    whatsnew_dir: str | None = None
    release_name: str | None = None
    mapping_file: str | None = None


@dataclass(frozen=True, slots=True)
class HttpConfig:
    timeout: float = DEFAULT_HTTP_TIMEOUT


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    publish: PublishDefaults = field(default_factory=PublishDefaults)
    http: HttpConfig = field(default_factory=HttpConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        publish = _section(data, "publish")
        http = _section(data, "http")

        def text(key: str) -> str | None:
            return _checked(publish, "publish", key, get_str(publish, key), "a non-empty string")

        timeout = _checked(http, "http", "timeout", get_float(http, "timeout"), "a number")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"http.timeout must be positive, got {timeout}")

        return cls(
            publish=PublishDefaults(
                package_name=text("package_name"),
                track=text("track"),
                user_fraction=_checked(
                    publish, "publish", "user_fraction", get_float(publish, "user_fraction"), "a number"
                ),
                whatsnew_dir=text("whatsnew_dir"),
                release_name=text("release_name"),
                mapping_file=text("mapping_file"),
            ),
            http=HttpConfig(timeout=timeout or DEFAULT_HTTP_TIMEOUT),
        )


def _section(data: Mapping[str, object], name: str) -> StrDict:
    if name not in data:
        return {}
    table = get_table(data, name)
    if table is None:
        raise ValueError(f"[{name}] must be a table")
    return table


def _checked[V](
    table: Mapping[str, object], section: str, key: str, value: V | None, expected: str
) -> V | None:
    """Raise if ``key`` is present but did not parse as ``expected``."""
    if key in table and value is None:
        raise ValueError(f"{section}.{key} must be {expected}, got {table[key]!r}")
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))
    except OSError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to the config file

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
