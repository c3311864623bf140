"""
Data models for Spotify entities.

This module defines immutable dataclasses for the two Spotify objects the
monitor cares about: playlist tracks and the playlist itself. Only the
fields needed to build a Soulseek search and to decide whether a track is
new are kept.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - Factories parse raw spotipy responses; nothing else touches the dicts
    - Local files and removed tracks (no Spotify ID) are skipped, not errors

Usage:
    from spot_seeker.spotify.models import Track, Playlist

    track = Track.from_playlist_item(item)
    if track is not None:
        print(track.search_query)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from spot_seeker.matching.normalize import build_search_query
from spot_seeker.utils import UNKNOWN_ARTIST, format_artists


def parse_added_at(value: str | None) -> datetime | None:
    """
    Parse Spotify's added_at timestamp into an aware datetime.

    Examples:
        parse_added_at("2024-05-01T12:00:00Z")  # 2024-05-01 12:00:00+00:00
        parse_added_at(None)                    # None
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Track:
    """
    Immutable representation of a track in a watched playlist.

    Attributes:
        spotify_id: Unique Spotify track ID (22-character base62 string).
                    Example: "4cOdK2wGLETKBW3PvgPWqT"

        name: Track title as it appears on Spotify.
              Example: "Timelapse - Marc DePulse Extended Remix"

        artists: All artist names, in Spotify order.
                 Example: ("Alastor", "Jerome Isma-Ae")

        duration_ms: Track duration in milliseconds.

        added_at: When the track was added to the playlist (UTC), or None
                  if Spotify did not report it.
    """

    spotify_id: str
    name: str
    artists: tuple[str, ...]
    duration_ms: int = 0
    added_at: datetime | None = None

    @classmethod
    def from_playlist_item(cls, item: dict[str, Any]) -> "Track | None":
        """
        Create a Track from one element of a playlist_items response.

        Args:
            item: Playlist item with 'added_at' and 'track' keys.

        Returns:
            Track, or None when the item has no usable track (removed
            tracks, local files and podcast episodes without an ID).
        """
        track_data = item.get("track") if item else None
        if not track_data or not track_data.get("id"):
            return None

        artists = tuple(
            artist["name"]
            for artist in track_data.get("artists") or []
            if artist and artist.get("name")
        )

        return cls(
            spotify_id=track_data["id"],
            name=track_data.get("name") or "",
            artists=artists,
            duration_ms=track_data.get("duration_ms") or 0,
            added_at=parse_added_at(item.get("added_at")),
        )

    @property
    def artist(self) -> str:
        """Primary artist (first in the list)."""
        return self.artists[0] if self.artists else UNKNOWN_ARTIST

    @property
    def display_artists(self) -> str:
        """
        Artist names for display.

        Example:
            track.display_artists  # "Alastor & Jerome Isma-Ae"
        """
        return format_artists(self.artists)

    @property
    def search_query(self) -> str:
        """
        Search text sent to slskd and scored against file paths.

        Example:
            track.search_query  # "alastor jerome isma ae timelapse marc depulse extended remix"
        """
        return build_search_query(self.name, self.artists)

    @property
    def spotify_url(self) -> str:
        return f"https://open.spotify.com/track/{self.spotify_id}"


@dataclass(frozen=True)
class Playlist:
    """
    Immutable representation of a Spotify playlist.

    Attributes:
        spotify_id: Unique Spotify playlist ID.
        name: Playlist name as it appears on Spotify.
        tracks: Tuple of Track objects in playlist order.
        spotify_url: Full Spotify URL for the playlist.
    """

    spotify_id: str
    name: str
    tracks: tuple[Track, ...]
    spotify_url: str = ""

    @classmethod
    def from_spotify_api(
        cls,
        playlist_data: dict[str, Any],
        tracks: list[Track]
    ) -> "Playlist":
        """Create a Playlist from a playlist() response and parsed tracks."""
        spotify_id = playlist_data.get("id", "")
        spotify_url = (playlist_data.get("external_urls") or {}).get(
            "spotify",
            f"https://open.spotify.com/playlist/{spotify_id}"
        )
        return cls(
            spotify_id=spotify_id,
            name=playlist_data.get("name") or "Unknown Playlist",
            tracks=tuple(tracks),
            spotify_url=spotify_url,
        )

    @property
    def track_count(self) -> int:
        return len(self.tracks)
