"""Test configuration and fixtures"""

import logging
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from spot_seeker.core.config import MatchingConfig, MonitorConfig
from spot_seeker.core.logger import TqdmLoggingHandler, _ReportFileHandler
from spot_seeker.core.state import StateStore
from spot_seeker.matching.models import Candidate
from spot_seeker.spotify.client import SpotifyClient


@pytest.fixture
def make_candidate():
    """Factory for Candidate objects with sensible defaults"""
    def _make(path, owner="peer", size=1000, **kwargs):
        return Candidate(owner=owner, path=path, size=size, **kwargs)
    return _make


@pytest.fixture
def state_store(tmp_path):
    """StateStore backed by a temporary database"""
    store = StateStore(tmp_path / "state.db")
    yield store
    store.close()


@pytest.fixture
def matching_config():
    return MatchingConfig(threshold=0.15, extension="mp3", log_top_n=5)


@pytest.fixture
def monitor_config():
    """Monitor settings that never sleep"""
    return MonitorConfig(interval=1, max_concurrent_tracks=2, startup_delay=0)


@pytest.fixture
def sample_playlist_item():
    """Sample playlist item as returned by spotipy"""
    return {
        "added_at": "2024-05-01T12:00:00Z",
        "track": {
            "id": "4cOdK2wGLETKBW3PvgPWqT",
            "name": "Timelapse - Marc DePulse Extended Remix",
            "artists": [
                {"id": "a1", "name": "Alastor"},
                {"id": "a2", "name": "Jerome Isma-Ae"},
            ],
            "duration_ms": 412000,
        },
    }


@pytest.fixture
def make_playlist_item():
    """Factory for playlist items added at a given time"""
    def _make(track_id, name, artists, added_at):
        if isinstance(added_at, datetime):
            added_at = added_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return {
            "added_at": added_at,
            "track": {
                "id": track_id,
                "name": name,
                "artists": [{"name": artist} for artist in artists],
                "duration_ms": 200000,
            },
        }
    return _make


@pytest.fixture
def mock_spotify():
    """Mock SpotifyClient with an empty playlist"""
    client = Mock(spec=SpotifyClient)
    client.playlist.return_value = {
        "id": "playlist123",
        "name": "Test Playlist",
        "external_urls": {"spotify": "https://open.spotify.com/playlist/playlist123"},
    }
    client.playlist_all_items.return_value = []
    return client


@pytest.fixture(autouse=True)
def reset_spotify_singleton():
    """Make every test start without an initialized SpotifyClient"""
    SpotifyClient.reset()
    yield
    SpotifyClient.reset()


@pytest.fixture
def logging_cleanup():
    """Remove the handlers installed by setup_logging() after the test"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler, (logging.FileHandler, TqdmLoggingHandler, _ReportFileHandler)):
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)
