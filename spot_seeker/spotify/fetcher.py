"""
Playlist fetching and new-track detection.

Each check of the monitor does:
    1. fetch_playlist(): playlist metadata + every item, parsed to Track
    2. new_tracks_since(): keep tracks added at or after the last check

Spotify only reports when a track was added, not when it was removed, so
the comparison is purely time based. Tracks without an added_at timestamp
are never considered new; they can still be picked up with --all.
"""

from datetime import datetime

from spot_seeker.core.logger import get_logger
from spot_seeker.spotify.client import SpotifyClient
from spot_seeker.spotify.models import Playlist, Track

logger = get_logger(__name__)


def fetch_playlist(client: SpotifyClient, playlist_id_or_url: str) -> Playlist:
    """
    Fetch a playlist and all of its tracks.

    Args:
        client: Initialized SpotifyClient.
        playlist_id_or_url: Spotify playlist ID or URL.

    Returns:
        Playlist whose tracks are in playlist order. Items that are not
        usable tracks (local files, removed tracks) are skipped.

    Raises:
        SpotifyError: If the playlist cannot be fetched.
    """
    playlist_data = client.playlist(playlist_id_or_url)
    items = client.playlist_all_items(playlist_id_or_url)

    tracks = []
    for item in items:
        track = Track.from_playlist_item(item)
        if track is None:
            logger.debug("Skipping playlist item without a Spotify track")
            continue
        tracks.append(track)

    playlist = Playlist.from_spotify_api(playlist_data, tracks)
    logger.debug(
        f"Fetched playlist '{playlist.name}': {playlist.track_count} tracks "
        f"({len(items) - playlist.track_count} skipped)"
    )
    return playlist


def new_tracks_since(tracks: list[Track] | tuple[Track, ...], since: datetime | None) -> list[Track]:
    """
    Select the tracks added at or after a point in time.

    added_at has whole-second precision, so a track added in the same
    second as a check is returned again by the next one; callers skip it
    with StateStore.is_processed().

    Args:
        tracks: Tracks of the playlist.
        since: Aware datetime of the last check. None selects every track.

    Returns:
        New tracks, in playlist order.
    """
    if since is None:
        return list(tracks)

    return [
        track for track in tracks
        if track.added_at is not None and track.added_at >= since
    ]
