"""
Thread-safe SQLite state store for spot-seeker.

Remembers, across restarts, when each watched playlist was last checked
and what happened to every track that was processed. This is what stops
the worker from searching for the same track twice.

Schema:
    playlists:  One row per watched playlist (spotify_id, name, last_check)
    tracks:     One row per (playlist, track) with the processing outcome

Track statuses:
    downloading  The selected file was handed to slskd (final)
    no_match     No file reached the threshold (retried with --all)
    failed       An error occurred while searching or enqueueing
                 (retried with --all)

Usage:
    state = StateStore(output_dir / "state.db")
    state.set_playlist(playlist_id, "My Playlist")

    since = state.get_last_check(playlist_id)
    ...
    state.record_track(playlist_id, track.spotify_id, STATUS_DOWNLOADING, ...)
    state.set_last_check(playlist_id, check_started_at)
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from spot_seeker.core.exceptions import StateError


STATUS_DOWNLOADING = "downloading"
STATUS_NO_MATCH = "no_match"
STATUS_FAILED = "failed"

TRACK_STATUSES = (STATUS_DOWNLOADING, STATUS_NO_MATCH, STATUS_FAILED)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS playlists (
    spotify_id TEXT PRIMARY KEY,
    name TEXT,
    last_check TEXT
);

CREATE TABLE IF NOT EXISTS tracks (
    playlist_id TEXT NOT NULL,
    spotify_id TEXT NOT NULL,
    status TEXT NOT NULL,
    name TEXT,
    artist TEXT,
    query TEXT,
    file TEXT,
    owner TEXT,
    score REAL,
    updated_at TEXT,
    PRIMARY KEY (playlist_id, spotify_id)
);

CREATE INDEX IF NOT EXISTS idx_tracks_status ON tracks(playlist_id, status);
"""


class StateStore:
    """
    Thread-safe SQLite state store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing, so worker
    threads can record outcomes concurrently.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not self.db_path.parent.exists():
            raise StateError(
                f"Parent directory does not exist: {self.db_path.parent}",
                details={"path": str(self.db_path.parent)}
            )

        try:
            with self._get_connection() as conn:
                conn.executescript(_SCHEMA_SQL)
                conn.commit()
        except sqlite3.Error as e:
            self.close()
            raise StateError(
                f"Failed to open state database: {e}",
                details={"path": str(self.db_path), "original_error": str(e)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the persistent connection, creating it on first use."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # Thread safety comes from _lock
            )
            self._conn.row_factory = sqlite3.Row
        yield self._conn

    def close(self) -> None:
        """Close the database connection. Safe to call multiple times."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _execute(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """Run one statement under the lock, commit, and return all rows."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    rows = conn.execute(sql, params).fetchall()
                    conn.commit()
                    return rows
            except sqlite3.Error as e:
                raise StateError(
                    f"State database error: {e}",
                    details={"path": str(self.db_path), "original_error": str(e)}
                ) from e

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def set_playlist(self, playlist_id: str, name: str) -> None:
        """Create or rename a playlist entry. last_check is preserved."""
        self._execute("""
            INSERT INTO playlists (spotify_id, name, last_check)
            VALUES (?, ?, NULL)
            ON CONFLICT(spotify_id) DO UPDATE SET name = excluded.name
        """, (playlist_id, name))

    def get_last_check(self, playlist_id: str) -> datetime | None:
        """
        Get the start time of the last completed check.

        Returns:
            Timezone-aware datetime, or None if the playlist was never
            checked.
        """
        rows = self._execute(
            "SELECT last_check FROM playlists WHERE spotify_id = ?", (playlist_id,)
        )
        if not rows or rows[0]["last_check"] is None:
            return None
        return datetime.fromisoformat(rows[0]["last_check"])

    def set_last_check(self, playlist_id: str, when: datetime) -> None:
        """
        Record the start time of a completed check.

        Naive datetimes are assumed to be UTC.
        """
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        self._execute("""
            INSERT INTO playlists (spotify_id, name, last_check)
            VALUES (?, NULL, ?)
            ON CONFLICT(spotify_id) DO UPDATE SET last_check = excluded.last_check
        """, (playlist_id, when.isoformat()))

    # =========================================================================
    # Track Operations
    # =========================================================================

    def record_track(
        self,
        playlist_id: str,
        spotify_id: str,
        status: str,
        name: str | None = None,
        artist: str | None = None,
        query: str | None = None,
        file: str | None = None,
        owner: str | None = None,
        score: float | None = None
    ) -> None:
        """
        Store the outcome of processing one track (insert or overwrite).

        Args:
            playlist_id: Spotify playlist ID.
            spotify_id: Spotify track ID.
            status: One of TRACK_STATUSES.
            name: Track name, for reporting.
            artist: Display artist string, for reporting.
            query: Search query that was sent to slskd.
            file: Remote path of the selected file, if any.
            owner: Soulseek user the file was requested from, if any.
            score: Score of the selected file, or the closest score.

        Raises:
            ValueError: If status is not a known track status.
        """
        if status not in TRACK_STATUSES:
            raise ValueError(f"Unknown track status: {status}")

        self._execute("""
            INSERT INTO tracks (
                playlist_id, spotify_id, status, name, artist, query,
                file, owner, score, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(playlist_id, spotify_id) DO UPDATE SET
                status = excluded.status,
                name = excluded.name,
                artist = excluded.artist,
                query = excluded.query,
                file = excluded.file,
                owner = excluded.owner,
                score = excluded.score,
                updated_at = excluded.updated_at
        """, (
            playlist_id, spotify_id, status, name, artist, query,
            file, owner, score, self._now_iso()
        ))

    def get_track(self, playlist_id: str, spotify_id: str) -> dict[str, Any] | None:
        """Get the stored outcome for a track, or None if never processed."""
        rows = self._execute(
            "SELECT * FROM tracks WHERE playlist_id = ? AND spotify_id = ?",
            (playlist_id, spotify_id)
        )
        return dict(rows[0]) if rows else None

    def is_processed(self, playlist_id: str, spotify_id: str) -> bool:
        """
        True once any outcome is recorded for the track.

        no_match and failed entries only stop counting after reset_unmatched().
        """
        return self.get_track(playlist_id, spotify_id) is not None

    def reset_unmatched(self, playlist_id: str) -> int:
        """
        Forget no_match and failed outcomes so those tracks are retried.

        Returns:
            Number of track entries removed.
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute(
                        "DELETE FROM tracks WHERE playlist_id = ? AND status IN (?, ?)",
                        (playlist_id, STATUS_NO_MATCH, STATUS_FAILED)
                    )
                    conn.commit()
                    return cursor.rowcount
            except sqlite3.Error as e:
                raise StateError(
                    f"State database error: {e}",
                    details={"path": str(self.db_path), "original_error": str(e)}
                ) from e

    def get_stats(self, playlist_id: str) -> dict[str, int]:
        """
        Count tracks per status for a playlist.

        Returns:
            Dict with one key per status plus 'total'. Missing statuses
            count as 0.
        """
        rows = self._execute(
            "SELECT status, COUNT(*) AS n FROM tracks WHERE playlist_id = ? GROUP BY status",
            (playlist_id,)
        )
        stats = {status: 0 for status in TRACK_STATUSES}
        for row in rows:
            stats[row["status"]] = row["n"]
        stats["total"] = sum(stats[status] for status in TRACK_STATUSES)
        return stats
