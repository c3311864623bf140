"""
Spotify Web API access for the playlist monitor.

The monitor only ever reads public playlists, so one client built from
app credentials (client ID and secret, no user login) is shared by the
whole process. It is created once at start-up:

    from spot_seeker.spotify.client import SpotifyClient

    SpotifyClient.init(client_id="...", client_secret="...")

and retrieved anywhere afterwards with SpotifyClient(). Calling
SpotifyClient() before init(), or init() a second time, raises SpotifyError.
"""

from typing import Any

import spotipy
from spotipy.oauth2 import SpotifyClientCredentials

from spot_seeker.core.exceptions import SpotifyError


PAGE_SIZE = 100

PLAYLIST_FIELDS = "id,name,owner,external_urls,tracks.total,uri"


class SpotifyClientMeta(type):
    """Keeps the single SpotifyClient of the process."""

    _instance: "SpotifyClient | None" = None
    _initialized: bool = False

    def __call__(cls) -> "SpotifyClient":
        if cls._instance is None:
            raise SpotifyError(
                "SpotifyClient not initialized; SpotifyClient.init() must run "
                "before the playlist can be read.",
                is_auth_error=True
            )
        return cls._instance

    def init(cls, client_id: str, client_secret: str) -> "SpotifyClient":
        """
        Build the shared client and check the credentials.

        Args:
            client_id: Client ID of the Spotify app.
            client_secret: Client secret of the Spotify app.

        Returns:
            The shared SpotifyClient.

        Raises:
            SpotifyError: If the client already exists, or the credentials
                are rejected or cannot be checked.
        """
        if cls._initialized:
            raise SpotifyError(
                "SpotifyClient.init() has already been called; "
                "SpotifyClient() returns the existing client.",
                is_auth_error=True
            )

        try:
            api = spotipy.Spotify(
                auth_manager=SpotifyClientCredentials(
                    client_id=client_id,
                    client_secret=client_secret
                )
            )
            # App credentials have no user; a one-result search fetches a token
            api.search(q="test", type="track", limit=1)
        except (spotipy.SpotifyException, spotipy.oauth2.SpotifyOauthError) as e:
            raise SpotifyError(
                f"Spotify rejected the app credentials: {e}",
                details={"spotify_error": str(e)},
                is_auth_error=True
            ) from e

        cls._instance = super().__call__(api)
        cls._initialized = True
        return cls._instance

    def is_initialized(cls) -> bool:
        return cls._initialized

    def reset(cls) -> None:
        """Forget the shared client so init() can run again. Used by tests."""
        cls._instance = None
        cls._initialized = False


class SpotifyClient(metaclass=SpotifyClientMeta):
    """
    Read-only playlist access over spotipy.

    Every spotipy.SpotifyException leaves this class as a SpotifyError.
    HTTP 429 sets is_rate_limit and HTTP 401/403 set is_auth_error, so the
    monitor can log a throttled check differently from a broken one.
    """

    def __init__(self, api: spotipy.Spotify) -> None:
        self._spotify = api

    @staticmethod
    def _to_spotify_error(e: spotipy.SpotifyException, playlist: str) -> SpotifyError:
        status = e.http_status
        details = {"playlist": playlist, "http_status": status}

        if status == 429:
            return SpotifyError(
                f"Spotify rate limit hit while reading {playlist}",
                details=details,
                is_rate_limit=True
            )
        if status == 404:
            return SpotifyError(f"Playlist not found: {playlist}", details=details)
        if status in (401, 403):
            return SpotifyError(
                f"Spotify refused access to {playlist}",
                details=details,
                is_auth_error=True
            )
        details["spotify_error"] = str(e)
        return SpotifyError(f"Spotify request for {playlist} failed: {e}", details=details)

    # =========================================================================
    # Playlist Reads
    # =========================================================================

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        """
        Fetch playlist metadata (id, name, owner, URLs, track total).

        The tracks themselves come from playlist_all_items().

        Raises:
            SpotifyError: If the playlist cannot be read.
        """
        try:
            result = self._spotify.playlist(playlist_id, fields=PLAYLIST_FIELDS)
        except spotipy.SpotifyException as e:
            raise self._to_spotify_error(e, playlist_id) from e

        if result is None:
            raise SpotifyError(f"Playlist not found: {playlist_id}", details={"playlist": playlist_id})
        return result

    def playlist_items(
        self,
        playlist_id: str,
        limit: int = PAGE_SIZE,
        offset: int = 0
    ) -> dict[str, Any]:
        """
        Fetch one page of playlist items.

        Args:
            playlist_id: Playlist ID, URI or URL.
            limit: Items per page, capped at PAGE_SIZE (the API maximum).
            offset: Index of the first item.

        Returns:
            The raw page: 'items', 'total', 'next' and 'previous'.

        Raises:
            SpotifyError: If the page cannot be read.
        """
        try:
            page = self._spotify.playlist_items(
                playlist_id,
                limit=min(limit, PAGE_SIZE),
                offset=offset,
                additional_types=["track"]
            )
        except spotipy.SpotifyException as e:
            raise self._to_spotify_error(e, playlist_id) from e

        if page is None:
            raise SpotifyError(
                f"Spotify returned no items page for {playlist_id} at offset {offset}",
                details={"playlist": playlist_id, "offset": offset}
            )
        return page

    def playlist_all_items(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Fetch every item of a playlist, one page of PAGE_SIZE at a time.

        Each item is the raw Spotify object with 'added_at' and 'track'.

        Raises:
            SpotifyError: If any page cannot be read.
        """
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = self.playlist_items(playlist_id, offset=offset)
            items.extend(page.get("items") or [])
            if not page.get("next"):
                return items
            offset += PAGE_SIZE
