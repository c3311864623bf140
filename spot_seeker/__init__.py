"""
spot-seeker: Download new Spotify playlist tracks from Soulseek.

This package watches a Spotify playlist and, for every track added to it,
searches the Soulseek network through a slskd instance and enqueues the
file whose path best matches the track.

Architecture:
    The work for one track is split into three steps:

    spotify/: Detect new tracks
        - Connect to the Spotify API (client credentials)
        - Fetch the playlist with pagination
        - Keep tracks added after the last check

    matching/: Choose a file
        - Normalize the query and the candidate paths
        - Filter candidates to the target extension
        - Score every path and apply the acceptance threshold

    slskd/: Search and download
        - Start a search, poll until it completes
        - Collect the file responses as candidates
        - Enqueue the winning file

Modules:
    core/       - Configuration, state store, logging, exceptions
    spotify/    - Spotify API client and playlist fetching
    matching/   - Normalization, scoring and best-match selection
    slskd/      - slskd HTTP API client
    worker/     - Playlist monitor loop
    utils/      - Helpers (ID parsing, parallel execution)
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-seeker --url "https://open.spotify.com/playlist/..."
        spot-seeker --url "https://..." --all --once
        spot-seeker --explain "artist title" "Folder/Artist - Title.mp3"

    Python API:
        from spot_seeker.core import load_config, setup_logging, StateStore
        from spot_seeker.matching import Matcher, select_best
        from spot_seeker.slskd import SlskdClient
        from spot_seeker.spotify import SpotifyClient
        from spot_seeker.worker import PlaylistWorker

        config = load_config()
        setup_logging(config.output.directory)
        state = StateStore(config.output.state_file)

        spotify = SpotifyClient.init(config.spotify.client_id, config.spotify.client_secret)
        slskd = SlskdClient(config.slskd.url, config.slskd.username, config.slskd.password)

        worker = PlaylistWorker(
            playlist_id, spotify, slskd, Matcher.from_config(config.matching),
            state, config.monitor
        )
        worker.run()

Dependencies:
    - spotipy: Spotify API client
    - requests: slskd HTTP API
    - click: CLI framework
    - rich-click: CLI colors
    - tqdm: Progress bars
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "spot-seeker"
__license__ = "MIT"

# Convenience imports for common usage
from spot_seeker.core import (
    Config,
    ConfigError,
    DownloadError,
    SearchError,
    SlskdError,
    SpotifyError,
    SpotSeekerError,
    StateError,
    StateStore,
    get_logger,
    load_config,
    setup_logging,
)
from spot_seeker.matching import Candidate, Matcher, SelectionResult, select_best
from spot_seeker.slskd import SlskdClient
from spot_seeker.spotify import Playlist, SpotifyClient, Track

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "StateStore",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SpotSeekerError",
    "ConfigError",
    "StateError",
    "SpotifyError",
    "SlskdError",
    "SearchError",
    "DownloadError",
    # Matching
    "Candidate",
    "SelectionResult",
    "select_best",
    "Matcher",
    # Clients and models
    "SlskdClient",
    "SpotifyClient",
    "Track",
    "Playlist",
]
