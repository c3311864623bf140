"""
Spotify integration for spot-seeker.

    - client: SpotifyClient singleton wrapping spotipy
    - models: Track and Playlist dataclasses
    - fetcher: playlist fetching and new-track detection
"""

from spot_seeker.spotify.client import SpotifyClient
from spot_seeker.spotify.fetcher import fetch_playlist, new_tracks_since
from spot_seeker.spotify.models import Playlist, Track

__all__ = [
    "SpotifyClient",
    "Track",
    "Playlist",
    "fetch_playlist",
    "new_tracks_since",
]
