"""Test the playlist worker"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest

from spot_seeker.core.exceptions import SearchError, SpotifyError
from spot_seeker.core.state import STATUS_DOWNLOADING, STATUS_FAILED, STATUS_NO_MATCH
from spot_seeker.matching.models import Candidate
from spot_seeker.matching.selector import Matcher, select_best
from spot_seeker.slskd.client import SlskdClient
from spot_seeker.spotify.models import Track
from spot_seeker.worker.monitor import NO_RESULTS_REASON, PlaylistWorker


PLAYLIST_ID = "playlist123"

LAST_CHECK = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_slskd():
    slskd = Mock(spec=SlskdClient)
    slskd.base_url = "http://slskd:5030"
    slskd.check_network_connection.return_value = True
    slskd.search_and_download.return_value = (None, None)
    return slskd


@pytest.fixture
def matcher():
    return Matcher(log=Mock(spec=logging.Logger))


@pytest.fixture
def worker(mock_spotify, mock_slskd, matcher, state_store, monitor_config):
    return PlaylistWorker(
        PLAYLIST_ID,
        mock_spotify,
        mock_slskd,
        matcher,
        state_store,
        monitor_config,
        search_timeout=5,
        show_progress=False,
    )


def fake_search(results):
    """search_and_download replacement answering from a {query: candidates} map"""
    def _search(query, select, search_timeout=60):
        candidates = results.get(query)
        if isinstance(candidates, Exception):
            raise candidates
        if not candidates:
            return None, None
        selection = select(candidates)
        return (selection.winner if selection.matched else None), selection
    return _search


class TestStart:
    """Test worker start-up"""

    def test_first_start_uses_now(self, worker, mock_slskd, state_store):
        """Tracks already in the playlist are not processed on first start"""
        before = datetime.now(timezone.utc).replace(microsecond=0)

        worker.start()

        mock_slskd.wait_for_connection.assert_called_once()
        mock_slskd.login.assert_called_once()
        mock_slskd.check_network_connection.assert_called_once()
        stored = state_store.get_last_check(PLAYLIST_ID)
        assert stored is not None
        assert stored >= before
        assert stored.microsecond == 0

    def test_restart_resumes_from_stored_check(self, worker, state_store):
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)

        worker.start()

        assert worker._last_check == LAST_CHECK

    def test_process_all_retries_unmatched(self, worker, state_store):
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        state_store.record_track(PLAYLIST_ID, "done", STATUS_DOWNLOADING)
        state_store.record_track(PLAYLIST_ID, "missed", STATUS_NO_MATCH)
        worker.process_all = True

        worker.start()

        assert worker._last_check is None
        assert state_store.get_track(PLAYLIST_ID, "missed") is None
        assert state_store.is_processed(PLAYLIST_ID, "done")

    def test_stop_during_startup_delay(self, mock_spotify, mock_slskd, matcher, state_store, monitor_config):
        stop_event = threading.Event()
        stop_event.set()
        worker = PlaylistWorker(
            PLAYLIST_ID, mock_spotify, mock_slskd, matcher, state_store,
            replace(monitor_config, startup_delay=30),
            stop_event=stop_event, show_progress=False,
        )

        worker.run()

        mock_slskd.check_network_connection.assert_not_called()
        mock_spotify.playlist.assert_not_called()


class TestCheckForNewTracks:
    """Test a single playlist check"""

    def test_processes_only_new_tracks(self, worker, mock_spotify, mock_slskd, state_store, make_playlist_item):
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        mock_spotify.playlist_all_items.return_value = [
            make_playlist_item("old", "Old Song", ["Someone"], LAST_CHECK - timedelta(days=1)),
            make_playlist_item("new", "Devine", ["Bastinov"], LAST_CHECK + timedelta(minutes=5)),
        ]
        winner = Candidate(owner="peer42", path="Music\\Bastinov - Devine.mp3", size=100)
        mock_slskd.search_and_download.side_effect = fake_search({"bastinov devine": [winner]})
        worker.start()

        summary = worker.check_for_new_tracks()

        assert summary.new_tracks == 1
        assert summary.downloading == 1
        assert summary.total_tracks == 2
        mock_slskd.search_and_download.assert_called_once()
        query = mock_slskd.search_and_download.call_args.args[0]
        assert query == "bastinov devine"
        assert mock_slskd.search_and_download.call_args.kwargs["search_timeout"] == 5

        track = state_store.get_track(PLAYLIST_ID, "new")
        assert track["status"] == STATUS_DOWNLOADING
        assert track["owner"] == "peer42"
        assert track["file"] == "Music\\Bastinov - Devine.mp3"
        assert track["score"] == pytest.approx(1.0)
        assert state_store.get_track(PLAYLIST_ID, "old") is None

    def test_outcomes_recorded(self, worker, mock_spotify, mock_slskd, state_store, make_playlist_item):
        """Match, no match and failure are all recorded; one failure does not stop the rest"""
        after = LAST_CHECK + timedelta(minutes=1)
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        mock_spotify.playlist_all_items.return_value = [
            make_playlist_item("hit", "Devine", ["Bastinov"], after),
            make_playlist_item("miss", "Sabe", ["Intelectual"], after),
            make_playlist_item("empty", "Nothing", ["Nobody"], after),
            make_playlist_item("boom", "Crash", ["Broken"], after),
        ]
        mock_slskd.search_and_download.side_effect = fake_search({
            "bastinov devine": [Candidate(owner="p", path="Bastinov - Devine.mp3", size=1)],
            "intelectual sabe": [Candidate(owner="p", path="Random - Unrelated.mp3", size=1)],
            "broken crash": SearchError("Search s1 timed out after 5s"),
        })
        worker.start()

        summary = worker.check_for_new_tracks()

        assert summary.new_tracks == 4
        assert summary.downloading == 1
        assert summary.no_match == 2
        assert summary.failed == 1
        assert state_store.get_track(PLAYLIST_ID, "hit")["status"] == STATUS_DOWNLOADING
        assert state_store.get_track(PLAYLIST_ID, "miss")["status"] == STATUS_NO_MATCH
        assert state_store.get_track(PLAYLIST_ID, "empty")["status"] == STATUS_NO_MATCH
        assert state_store.get_track(PLAYLIST_ID, "boom")["status"] == STATUS_FAILED

    def test_processed_tracks_skipped(self, worker, mock_spotify, mock_slskd, state_store, make_playlist_item):
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        state_store.record_track(PLAYLIST_ID, "new", STATUS_DOWNLOADING)
        mock_spotify.playlist_all_items.return_value = [
            make_playlist_item("new", "Devine", ["Bastinov"], LAST_CHECK + timedelta(minutes=5)),
        ]
        worker.start()

        summary = worker.check_for_new_tracks()

        assert summary.skipped == 1
        assert summary.new_tracks == 0
        mock_slskd.search_and_download.assert_not_called()

    def test_last_check_advances(self, worker, mock_spotify, state_store, make_playlist_item):
        """A track is not processed again on the next check"""
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        mock_spotify.playlist_all_items.return_value = [
            make_playlist_item("new", "Devine", ["Bastinov"], LAST_CHECK + timedelta(minutes=5)),
        ]
        worker.start()

        first = worker.check_for_new_tracks()
        second = worker.check_for_new_tracks()

        assert first.new_tracks == 1
        assert second.new_tracks == 0
        assert state_store.get_last_check(PLAYLIST_ID) > LAST_CHECK

    def test_track_added_in_check_second_not_missed(self, worker, mock_spotify, mock_slskd, state_store, make_playlist_item):
        """A track stamped with the second of the previous check is found by the next one"""
        first_check = LAST_CHECK + timedelta(minutes=10)
        earlier = make_playlist_item("earlier", "Devine", ["Bastinov"], first_check)
        later = make_playlist_item("later", "Sabe", ["Intelectual"], first_check)
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        worker.start()

        with patch("spot_seeker.worker.monitor._check_time", return_value=first_check):
            mock_spotify.playlist_all_items.return_value = [earlier]
            worker.check_for_new_tracks()
        with patch("spot_seeker.worker.monitor._check_time", return_value=first_check + timedelta(minutes=1)):
            mock_spotify.playlist_all_items.return_value = [earlier, later]
            summary = worker.check_for_new_tracks()

        assert summary.new_tracks == 1
        assert summary.skipped == 1
        assert state_store.get_track(PLAYLIST_ID, "later") is not None
        queries = [c.args[0] for c in mock_slskd.search_and_download.call_args_list]
        assert queries == ["bastinov devine", "intelectual sabe"]

    def test_spotify_error_keeps_last_check(self, worker, mock_spotify, state_store):
        state_store.set_last_check(PLAYLIST_ID, LAST_CHECK)
        mock_spotify.playlist.side_effect = SpotifyError("Rate limited", is_rate_limit=True)
        worker.start()

        with pytest.raises(SpotifyError):
            worker.check_for_new_tracks()

        assert state_store.get_last_check(PLAYLIST_ID) == LAST_CHECK

    def test_playlist_name_stored(self, worker, state_store):
        worker.start()
        worker.check_for_new_tracks()

        rows = state_store._execute("SELECT name FROM playlists WHERE spotify_id = ?", (PLAYLIST_ID,))
        assert rows[0]["name"] == "Test Playlist"


class TestProcessTrack:
    """Test processing of one track"""

    def test_no_results(self, worker, mock_slskd, make_playlist_item):
        track = Track.from_playlist_item(make_playlist_item("t1", "Devine", ["Bastinov"], LAST_CHECK))
        mock_slskd.search_and_download.return_value = (None, None)

        outcome = worker.process_track(track)

        assert outcome.status == STATUS_NO_MATCH
        assert outcome.reason == NO_RESULTS_REASON
        assert outcome.score is None

    def test_empty_query_skips_search(self, worker, mock_slskd, state_store):
        track = Track(spotify_id="t1", name="東京", artists=())

        outcome = worker.process_track(track)

        assert outcome.status == STATUS_NO_MATCH
        mock_slskd.search_and_download.assert_not_called()
        assert state_store.get_track(PLAYLIST_ID, "t1")["status"] == STATUS_NO_MATCH

    def test_no_match_score_recorded(self, worker, mock_slskd, state_store):
        track = Track(spotify_id="t1", name="Devine", artists=("Bastinov",))
        selection = select_best("bastinov devine", [Candidate(owner="p", path="Devine.mp3", size=1)], threshold=0.9)
        mock_slskd.search_and_download.return_value = (None, selection)

        outcome = worker.process_track(track)

        assert outcome.status == STATUS_NO_MATCH
        assert outcome.score == pytest.approx(0.5)
        assert state_store.get_track(PLAYLIST_ID, "t1")["score"] == pytest.approx(0.5)


class TestRun:
    """Test the monitor loop"""

    def test_run_once(self, worker, mock_spotify, mock_slskd):
        worker.run(once=True)

        mock_slskd.login.assert_called_once()
        mock_spotify.playlist.assert_called_once()

    def test_spotify_error_does_not_stop_loop(self, worker, mock_spotify):
        """A failed check is logged and the next check runs"""
        calls = []

        def playlist(playlist_id):
            calls.append(playlist_id)
            if len(calls) == 1:
                raise SpotifyError("temporary failure")
            worker.stop()
            return {"id": PLAYLIST_ID, "name": "Test Playlist"}

        mock_spotify.playlist.side_effect = playlist
        worker.stop_event.wait = Mock(return_value=False)

        worker.run()

        assert len(calls) == 2

    def test_stop(self, worker):
        worker.stop()

        assert worker.stop_event.is_set()
