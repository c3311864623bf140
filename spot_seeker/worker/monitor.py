"""
Playlist monitor for spot-seeker.

PlaylistWorker ties the pieces together:

    start():
        1. Wait for the slskd web API, then log in
        2. Give slskd time to join the Soulseek network
        3. Decide where new-track detection starts (see below)

    check_for_new_tracks():
        1. Fetch the playlist from Spotify
        2. Keep tracks added after the last check and not yet enqueued
        3. Process them in parallel (monitor.max_concurrent_tracks)
        4. Record every outcome and move the last check forward

    process_track():
        build query -> slskd search -> select_best -> enqueue winner

Where detection starts:
    - The last check stored in state.db, if this playlist was watched before
    - Otherwise "now", so tracks already in the playlist are left alone
    - With process_all=True, every track on the first check, and tracks
      previously recorded as no_match/failed are retried

Error Handling:
    A failure on one track is logged, written to the download failures
    report and recorded as 'failed'; the other tracks continue. A Spotify
    error aborts the current check only; the next check retries.
"""

import threading
from datetime import datetime, timezone

from spot_seeker.core.config import MonitorConfig
from spot_seeker.core.exceptions import SpotifyError
from spot_seeker.core.logger import (
    format_selected_message,
    get_logger,
    log_track_failure,
)
from spot_seeker.core.state import (
    STATUS_DOWNLOADING,
    STATUS_FAILED,
    STATUS_NO_MATCH,
    StateStore,
)
from spot_seeker.matching.selector import Matcher
from spot_seeker.slskd.client import DEFAULT_SEARCH_WAIT, SlskdClient
from spot_seeker.spotify.client import SpotifyClient
from spot_seeker.spotify.fetcher import fetch_playlist, new_tracks_since
from spot_seeker.spotify.models import Track
from spot_seeker.utils import run_in_parallel_with_callback
from spot_seeker.worker.models import CheckSummary, TrackOutcome

logger = get_logger(__name__)


NO_RESULTS_REASON = "no search results"
EMPTY_QUERY_REASON = "empty search query"


def _check_time() -> datetime:
    """Current UTC time in whole seconds, the precision of Spotify's added_at."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class PlaylistWorker:
    """
    Watches one Spotify playlist and hands new tracks to slskd.

    Attributes:
        playlist_id: Spotify playlist ID being watched.
        stop_event: Set to stop the monitor loop (also interrupts slskd
                    polling when the slskd client shares it).

    Example:
        worker = PlaylistWorker(playlist_id, spotify, slskd, matcher, state, config.monitor)
        worker.run()          # until stop() or Ctrl+C
        worker.run(once=True) # single check
    """

    def __init__(
        self,
        playlist_id: str,
        spotify: SpotifyClient,
        slskd: SlskdClient,
        matcher: Matcher,
        state: StateStore,
        monitor_config: MonitorConfig,
        search_timeout: float = DEFAULT_SEARCH_WAIT,
        process_all: bool = False,
        stop_event: threading.Event | None = None,
        show_progress: bool = True
    ) -> None:
        self.playlist_id = playlist_id
        self.spotify = spotify
        self.slskd = slskd
        self.matcher = matcher
        self.state = state
        self.monitor_config = monitor_config
        self.search_timeout = search_timeout
        self.process_all = process_all
        self.stop_event = stop_event or threading.Event()
        self.show_progress = show_progress

        self._last_check: datetime | None = None
        self._started = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Connect to slskd and initialize new-track detection.

        Raises:
            SlskdError: If slskd cannot be reached or the login fails.
            StateError: If the state store cannot be read.
        """
        logger.info(f"Waiting for slskd at {self.slskd.base_url}...")
        self.slskd.wait_for_connection()
        self.slskd.login()

        delay = self.monitor_config.startup_delay
        if delay > 0:
            logger.info(f"Waiting {delay}s for slskd to connect to the Soulseek network...")
            if self.stop_event.wait(delay):
                return
        self.slskd.check_network_connection()

        self._last_check = self._initial_last_check()
        if self._last_check is None:
            logger.info("First check will process every track in the playlist")
        else:
            logger.info(f"Looking for tracks added after {self._last_check.isoformat()}")

        self._started = True

    def _initial_last_check(self) -> datetime | None:
        if self.process_all:
            retried = self.state.reset_unmatched(self.playlist_id)
            if retried:
                logger.info(f"Retrying {retried} previously unmatched tracks")
            return None

        stored = self.state.get_last_check(self.playlist_id)
        if stored is not None:
            return stored

        now = _check_time()
        self.state.set_last_check(self.playlist_id, now)
        return now

    def stop(self) -> None:
        """Ask the monitor loop to stop after the current check."""
        self.stop_event.set()

    def run(self, once: bool = False) -> None:
        """
        Run the monitor loop.

        Args:
            once: Run a single check and return.

        Behavior:
            Checks immediately, then every monitor.interval seconds until
            stop() is called. A SpotifyError fails the current check
            only; it is logged and the next check retries.
        """
        if not self._started:
            self.start()

        interval = self.monitor_config.interval
        logger.info(f"Monitoring playlist {self.playlist_id} every {interval}s")

        while not self.stop_event.is_set():
            try:
                summary = self.check_for_new_tracks()
                if summary.new_tracks:
                    logger.info(f"Check complete: {summary}")
            except SpotifyError as e:
                logger.error(f"Playlist check failed: {e.message}")
                if e.details:
                    logger.debug(f"Details: {e.details}")

            if once or self.stop_event.wait(interval):
                break

        logger.info("Worker stopped")

    # =========================================================================
    # Checks
    # =========================================================================

    def check_for_new_tracks(self) -> CheckSummary:
        """
        Run one check of the playlist.

        Returns:
            CheckSummary for this check.

        Raises:
            SpotifyError: If the playlist cannot be fetched. The last check
                          time is not moved in that case.
        """
        check_started = _check_time()
        playlist = fetch_playlist(self.spotify, self.playlist_id)
        self.state.set_playlist(self.playlist_id, playlist.name)

        summary = CheckSummary(playlist_name=playlist.name, total_tracks=playlist.track_count)

        candidates = new_tracks_since(playlist.tracks, self._last_check)
        new_tracks = []
        for track in candidates:
            if self.state.is_processed(self.playlist_id, track.spotify_id):
                summary.skipped += 1
            else:
                new_tracks.append(track)
        summary.new_tracks = len(new_tracks)

        if not new_tracks:
            logger.debug(f"No new tracks in '{playlist.name}'")
        else:
            logger.info(f"Found {len(new_tracks)} new tracks in '{playlist.name}'")

            def on_success(track: Track, outcome: TrackOutcome) -> None:
                if outcome.status == STATUS_DOWNLOADING:
                    summary.downloading += 1
                else:
                    summary.no_match += 1

            def on_error(track: Track, error: Exception) -> None:
                summary.failed += 1
                self._record_failure(track, error)

            run_in_parallel_with_callback(
                self.process_track,
                new_tracks,
                on_success=on_success,
                on_error=on_error,
                num_threads=self.monitor_config.max_concurrent_tracks,
                description="Searching",
                show_progress=self.show_progress,
            )

        self._last_check = check_started
        self.state.set_last_check(self.playlist_id, check_started)
        return summary

    def process_track(self, track: Track) -> TrackOutcome:
        """
        Search for one track and enqueue the best file.

        Returns:
            TrackOutcome with status STATUS_DOWNLOADING or STATUS_NO_MATCH.
            The outcome is already recorded in the state store.

        Raises:
            SlskdError: If the search or the download request fails.
        """
        query = track.search_query
        logger.info(f"Processing: {track.display_artists} - {track.name}")
        logger.debug(f"Search query: {query}")

        if not query:
            outcome = TrackOutcome(track, STATUS_NO_MATCH, query, reason=EMPTY_QUERY_REASON)
        else:
            winner, selection = self.slskd.search_and_download(
                query,
                self.matcher.select_for(query),
                search_timeout=self.search_timeout
            )
            if winner is not None:
                outcome = TrackOutcome(
                    track, STATUS_DOWNLOADING, query,
                    winner=winner, selection=selection, reason=selection.reason
                )
            else:
                reason = selection.reason if selection is not None else NO_RESULTS_REASON
                outcome = TrackOutcome(
                    track, STATUS_NO_MATCH, query, selection=selection, reason=reason
                )

        if outcome.status == STATUS_DOWNLOADING:
            logger.info(format_selected_message(
                track.display_artists, track.name, outcome.winner.owner, outcome.score
            ))
        else:
            log_track_failure(
                logger, track.name, track.display_artists, track.spotify_url, outcome.reason
            )

        self.state.record_track(
            self.playlist_id,
            track.spotify_id,
            outcome.status,
            name=track.name,
            artist=track.display_artists,
            query=query,
            file=outcome.winner.path if outcome.winner else None,
            owner=outcome.winner.owner if outcome.winner else None,
            score=outcome.score,
        )
        return outcome

    def _record_failure(self, track: Track, error: Exception) -> None:
        reason = getattr(error, "message", None) or str(error) or type(error).__name__
        log_track_failure(
            logger, track.name, track.display_artists, track.spotify_url, reason
        )
        self.state.record_track(
            self.playlist_id,
            track.spotify_id,
            STATUS_FAILED,
            name=track.name,
            artist=track.display_artists,
            query=track.search_query,
        )
