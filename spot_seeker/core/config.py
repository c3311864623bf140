"""
Configuration management for spot-seeker.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify API credentials (client_id, client_secret)
    - slskd connection settings (URL, web UI credentials, optional API key)
    - Matching parameters (acceptance threshold, target extension)
    - Monitor behaviour (poll interval, parallel tracks, start-up delay)
    - Output directory for logs and the state file

Configuration File Location:
    config.yaml in the current working directory, or an explicit path
    given with --config. When the default file does not exist, every
    value comes from the environment and the built-in defaults, which is
    how the worker is usually run inside a container.

Environment Variables:
    Used only where the file leaves a value empty (file wins):
        SPOTIFY_ID, SPOTIFY_SECRET       -> spotify.client_id / client_secret
        SLSKD_URL                        -> slskd.url
        SLSKD_USERNAME, SLSKD_PASSWORD   -> slskd.username / password
        SLSKD_API_KEY                    -> slskd.api_key
        POLL_INTERVAL                    -> monitor.interval

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"

    slskd:
      url: "http://localhost:5030"
      username: "slskd"
      password: "slskd"

    matching:
      threshold: 0.15
      extension: "mp3"

    monitor:
      interval: 10

    output:
      directory: "~/spot-seeker"
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from spot_seeker.core.exceptions import ConfigError
from spot_seeker.matching.selector import (
    DEFAULT_EXTENSION,
    DEFAULT_LOG_TOP_N,
    DEFAULT_THRESHOLD,
)


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_SLSKD_URL = "http://localhost:5030"
DEFAULT_SLSKD_USERNAME = "slskd"
DEFAULT_SLSKD_PASSWORD = "slskd"
DEFAULT_SEARCH_TIMEOUT = 60
DEFAULT_INTERVAL = 10
DEFAULT_MAX_CONCURRENT_TRACKS = 3
DEFAULT_STARTUP_DELAY = 30
DEFAULT_OUTPUT_DIRECTORY = "~/spot-seeker"


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    These credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Only the client-credentials flow is used, so no redirect URI is needed.
    The playlist must therefore be public.
    """
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class SlskdConfig:
    """
    slskd connection configuration.

    Attributes:
        url: Base URL of the slskd web API, without trailing slash.
        username: slskd web UI username (used for session login).
        password: slskd web UI password.
        api_key: Optional API key, sent as X-API-Key on every request.
        search_timeout: Seconds to wait for a search to complete.
    """
    url: str
    username: str
    password: str
    api_key: str | None
    search_timeout: int


@dataclass(frozen=True)
class MatchingConfig:
    """
    Matching engine parameters.

    Attributes:
        threshold: Minimum score (0..1) a file needs to be downloaded.
        extension: Only files with this extension are considered.
        log_top_n: Number of ranked candidates written to the audit log.
    """
    threshold: float
    extension: str
    log_top_n: int


@dataclass(frozen=True)
class MonitorConfig:
    """
    Playlist monitor configuration.

    Attributes:
        interval: Seconds between two playlist checks.
        max_concurrent_tracks: Tracks processed in parallel per check.
        startup_delay: Seconds to wait after login so slskd can join the
                       Soulseek network before the first search.
    """
    interval: int
    max_concurrent_tracks: int
    startup_delay: int


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path holding logs/ and state.db.
                   ~ is expanded. Created on start-up if missing.
    """
    directory: Path

    @property
    def state_file(self) -> Path:
        return self.directory / "state.db"


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable. CLI overrides are
    applied with dataclasses.replace() on the relevant section.

    Example:
        config = load_config()
        print(f"Polling every {config.monitor.interval}s")
        print(f"slskd at {config.slskd.url}")
    """
    spotify: SpotifyConfig
    slskd: SlskdConfig
    matching: MatchingConfig
    monitor: MonitorConfig
    output: OutputConfig


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to config file. If given, the
                     file must exist. If None, config.yaml in the current
                     working directory is used when present.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is not found, the YAML is
                     invalid, Spotify credentials are missing everywhere,
                     or a value is out of range.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content (missing default file = empty)
        3. Validate that every present section is a dictionary
        4. Parse each section, filling empty values from the environment
           and then from the defaults
        5. Create and return frozen Config object

    Example:
        try:
            config = load_config()
        except ConfigError as e:
            print(f"Configuration error: {e.message}")
            sys.exit(1)
    """
    env = os.environ if environ is None else environ

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        raw_config = _read_config_file(config_path) if config_path.exists() else {}
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_config_file(config_path)

    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}, env),
        slskd=_parse_slskd_config(raw_config.get("slskd") or {}, env),
        matching=_parse_matching_config(raw_config.get("matching") or {}),
        monitor=_parse_monitor_config(raw_config.get("monitor") or {}, env),
        output=_parse_output_config(raw_config.get("output") or {}),
    )


def _read_config_file(config_path: Path) -> dict[str, Any]:
    """Read and parse a YAML configuration file into a dictionary."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file parses to None
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Check that every known section, when present, is a dictionary.

    Raises:
        ConfigError: If a section has the wrong type.
    """
    for section in ("spotify", "slskd", "matching", "monitor", "output"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _string_value(
    section: dict[str, Any],
    key: str,
    field: str,
    env: Mapping[str, str],
    env_var: str | None = None,
    default: str | None = None
) -> str | None:
    """
    Resolve a string field: file value, then environment, then default.

    Raises:
        ConfigError: If the file holds a non-string value.
    """
    raw = section.get(key)
    if raw is not None and not isinstance(raw, str):
        raise ConfigError(
            f"'{field}' must be a string",
            details={"field": field, "value": raw}
        )

    if raw and raw.strip():
        return raw.strip()

    if env_var:
        env_value = env.get(env_var, "")
        if env_value.strip():
            return env_value.strip()

    return default


def _positive_int(value: Any, field: str) -> int:
    """Validate that value is a positive integer (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(
            f"'{field}' must be a positive integer",
            details={"field": field, "value": value}
        )
    return value


def _parse_spotify_config(spotify_section: dict[str, Any], env: Mapping[str, str]) -> SpotifyConfig:
    """
    Parse the Spotify configuration section.

    Raises:
        ConfigError: If client_id or client_secret is missing from both the
                     file and the environment.
    """
    client_id = _string_value(
        spotify_section, "client_id", "spotify.client_id", env, "SPOTIFY_ID"
    )
    client_secret = _string_value(
        spotify_section, "client_secret", "spotify.client_secret", env, "SPOTIFY_SECRET"
    )

    if not client_id:
        raise ConfigError(
            "'spotify.client_id' is required (config file or SPOTIFY_ID)",
            details={"field": "spotify.client_id"}
        )

    if not client_secret:
        raise ConfigError(
            "'spotify.client_secret' is required (config file or SPOTIFY_SECRET)",
            details={"field": "spotify.client_secret"}
        )

    return SpotifyConfig(client_id=client_id, client_secret=client_secret)


def _parse_slskd_config(slskd_section: dict[str, Any], env: Mapping[str, str]) -> SlskdConfig:
    """Parse the slskd configuration section, applying defaults."""
    url = _string_value(
        slskd_section, "url", "slskd.url", env, "SLSKD_URL", DEFAULT_SLSKD_URL
    )
    username = _string_value(
        slskd_section, "username", "slskd.username", env, "SLSKD_USERNAME",
        DEFAULT_SLSKD_USERNAME
    )
    password = _string_value(
        slskd_section, "password", "slskd.password", env, "SLSKD_PASSWORD",
        DEFAULT_SLSKD_PASSWORD
    )
    api_key = _string_value(
        slskd_section, "api_key", "slskd.api_key", env, "SLSKD_API_KEY"
    )

    search_timeout = slskd_section.get("search_timeout")
    if search_timeout is None:
        search_timeout = DEFAULT_SEARCH_TIMEOUT
    search_timeout = _positive_int(search_timeout, "slskd.search_timeout")

    return SlskdConfig(
        url=url.rstrip("/"),
        username=username,
        password=password,
        api_key=api_key,
        search_timeout=search_timeout
    )


def _parse_matching_config(matching_section: dict[str, Any]) -> MatchingConfig:
    """
    Parse the matching configuration section.

    Raises:
        ConfigError: If threshold is not a number in [0, 1], extension is
                     empty, or log_top_n is negative.
    """
    threshold = matching_section.get("threshold")
    if threshold is None:
        threshold = DEFAULT_THRESHOLD
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ConfigError(
            "'matching.threshold' must be a number",
            details={"field": "matching.threshold", "value": threshold}
        )
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(
            "'matching.threshold' must be between 0 and 1",
            details={"field": "matching.threshold", "value": threshold}
        )

    extension = matching_section.get("extension")
    if extension is None:
        extension = DEFAULT_EXTENSION
    if not isinstance(extension, str) or not extension.strip().lstrip("."):
        raise ConfigError(
            "'matching.extension' must be a non-empty string",
            details={"field": "matching.extension", "value": extension}
        )

    log_top_n = matching_section.get("log_top_n")
    if log_top_n is None:
        log_top_n = DEFAULT_LOG_TOP_N
    if isinstance(log_top_n, bool) or not isinstance(log_top_n, int) or log_top_n < 0:
        raise ConfigError(
            "'matching.log_top_n' must be a non-negative integer",
            details={"field": "matching.log_top_n", "value": log_top_n}
        )

    return MatchingConfig(
        threshold=float(threshold),
        extension=extension.strip().lstrip(".").lower(),
        log_top_n=log_top_n
    )


def _parse_monitor_config(monitor_section: dict[str, Any], env: Mapping[str, str]) -> MonitorConfig:
    """
    Parse the monitor configuration section.

    POLL_INTERVAL fills the interval when the file does not set it.

    Raises:
        ConfigError: If a value is not a positive integer, or POLL_INTERVAL
                     is not a number.
    """
    interval = monitor_section.get("interval")
    if interval is None:
        env_interval = env.get("POLL_INTERVAL", "").strip()
        if env_interval:
            try:
                interval = int(env_interval)
            except ValueError as e:
                raise ConfigError(
                    "POLL_INTERVAL must be an integer number of seconds",
                    details={"field": "monitor.interval", "value": env_interval}
                ) from e
        else:
            interval = DEFAULT_INTERVAL
    interval = _positive_int(interval, "monitor.interval")

    max_concurrent = monitor_section.get("max_concurrent_tracks")
    if max_concurrent is None:
        max_concurrent = DEFAULT_MAX_CONCURRENT_TRACKS
    max_concurrent = _positive_int(max_concurrent, "monitor.max_concurrent_tracks")

    startup_delay = monitor_section.get("startup_delay")
    if startup_delay is None:
        startup_delay = DEFAULT_STARTUP_DELAY
    if isinstance(startup_delay, bool) or not isinstance(startup_delay, int) or startup_delay < 0:
        raise ConfigError(
            "'monitor.startup_delay' must be a non-negative integer",
            details={"field": "monitor.startup_delay", "value": startup_delay}
        )

    return MonitorConfig(
        interval=interval,
        max_concurrent_tracks=max_concurrent,
        startup_delay=startup_delay
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse the output configuration section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (that happens at start-up).
    """
    directory = output_section.get("directory")
    if directory is None:
        directory = DEFAULT_OUTPUT_DIRECTORY

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    return OutputConfig(directory=Path(directory.strip()).expanduser().resolve())
