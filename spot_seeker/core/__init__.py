"""
Core module for spot-seeker.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - state: Thread-safe SQLite store for check times and track outcomes
    - logger: Logging system with multiple outputs

Usage:
    from spot_seeker.core import (
        Config, load_config,
        StateStore,
        setup_logging, get_logger,
        SpotSeekerError, ConfigError, StateError
    )
"""

from spot_seeker.core.config import (
    Config,
    MatchingConfig,
    MonitorConfig,
    OutputConfig,
    SlskdConfig,
    SpotifyConfig,
    load_config,
)
from spot_seeker.core.exceptions import (
    ConfigError,
    DownloadError,
    SearchError,
    SlskdError,
    SpotifyError,
    SpotSeekerError,
    StateError,
)
from spot_seeker.core.logger import (
    get_logger,
    log_track_failure,
    setup_logging,
    shutdown_logging,
)
from spot_seeker.core.state import (
    STATUS_DOWNLOADING,
    STATUS_FAILED,
    STATUS_NO_MATCH,
    StateStore,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "SlskdConfig",
    "MatchingConfig",
    "MonitorConfig",
    "OutputConfig",
    "load_config",
    # State
    "StateStore",
    "STATUS_DOWNLOADING",
    "STATUS_NO_MATCH",
    "STATUS_FAILED",
    # Exceptions
    "SpotSeekerError",
    "ConfigError",
    "StateError",
    "SpotifyError",
    "SlskdError",
    "SearchError",
    "DownloadError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_track_failure",
    "shutdown_logging",
]
