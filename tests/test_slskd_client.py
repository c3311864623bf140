"""Test the slskd API client"""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from spot_seeker.core.exceptions import DownloadError, SearchError, SlskdError
from spot_seeker.matching.models import Candidate
from spot_seeker.matching.selector import Matcher
from spot_seeker.slskd.client import SEARCH_NETWORK_TIMEOUT_MS, SlskdClient
from spot_seeker.slskd.models import SearchStatus


def make_response(status_code=200, json_data=None):
    response = Mock()
    response.status_code = status_code
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def client():
    return SlskdClient("http://slskd:5030/", "user", "pass")


@pytest.fixture
def mock_request(client):
    with patch.object(client._session, "request") as request:
        yield request


SEARCH_RESPONSES = [
    {
        "username": "peer1",
        "uploadSpeed": 1000,
        "files": [
            {"filename": "Music\\Bastinov - Devine.mp3", "size": 8000000, "bitRate": 320},
            {"filename": "Music\\Bastinov - Devine.flac", "size": 30000000},
        ],
        "lockedFiles": [
            {"filename": "Locked\\Bastinov - Devine.mp3", "size": 7000000},
        ],
    },
    {
        "username": "peer2",
        "uploadSpeed": 500,
        "files": [
            {"filename": "Other\\Something Else.mp3", "size": 5000000},
        ],
    },
]


class TestSession:
    """Test login and connection handling"""

    def test_base_url_and_headers(self):
        client = SlskdClient("http://slskd:5030/", "user", "pass", api_key="secret")

        assert client.base_url == "http://slskd:5030"
        assert client._session.headers["X-API-Key"] == "secret"

    def test_login_sets_token(self, client, mock_request):
        mock_request.return_value = make_response(200, {"token": "jwt123"})

        client.login()

        method, url = mock_request.call_args.args
        assert method == "POST"
        assert url == "http://slskd:5030/api/v0/session"
        assert mock_request.call_args.kwargs["json"] == {"username": "user", "password": "pass"}
        assert client._session.headers["Authorization"] == "Bearer jwt123"

    def test_login_rejected(self, client, mock_request):
        mock_request.return_value = make_response(401)

        with pytest.raises(SlskdError) as exc_info:
            client.login()

        assert exc_info.value.status_code == 401

    def test_login_without_token(self, client, mock_request):
        mock_request.return_value = make_response(200, {})

        with pytest.raises(SlskdError, match="token"):
            client.login()

    def test_transport_error_wrapped(self, client, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(SlskdError, match="Request to slskd failed"):
            client.login()

    def test_wait_for_connection_first_attempt(self, client, mock_request):
        mock_request.return_value = make_response(200)

        client.wait_for_connection()

        assert mock_request.call_count == 1

    def test_wait_for_connection_auth_required_counts_as_up(self, client, mock_request):
        mock_request.return_value = make_response(401)

        client.wait_for_connection()

        assert mock_request.call_count == 1

    @patch("spot_seeker.slskd.client.time.sleep")
    def test_wait_for_connection_backoff(self, mock_sleep, client, mock_request):
        """Waits double between attempts until slskd answers"""
        down = requests.ConnectionError("refused")
        # 4 health-check endpoints per attempt: two failed attempts, then success
        mock_request.side_effect = [down] * 8 + [make_response(200)]

        client.wait_for_connection(max_attempts=5)

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @patch("spot_seeker.slskd.client.time.sleep")
    def test_wait_for_connection_gives_up(self, mock_sleep, client, mock_request):
        mock_request.return_value = make_response(503)

        with pytest.raises(SlskdError, match="after 3 attempts"):
            client.wait_for_connection(max_attempts=3)

        assert mock_sleep.call_count == 2

    def test_wait_for_connection_stopped(self):
        stop_event = threading.Event()
        stop_event.set()
        client = SlskdClient("http://slskd:5030", "user", "pass", stop_event=stop_event)
        with patch.object(client._session, "request") as request:
            request.return_value = make_response(503)

            with pytest.raises(SlskdError, match="Stopped"):
                client.wait_for_connection(max_attempts=3)

    def test_network_connection(self, client, mock_request):
        mock_request.return_value = make_response(200, {"isConnected": True, "state": "Connected"})
        assert client.check_network_connection() is True

        mock_request.return_value = make_response(200, {"isConnected": False, "state": "Disconnected"})
        assert client.check_network_connection() is False

    def test_network_connection_never_raises(self, client, mock_request):
        mock_request.side_effect = requests.Timeout("slow")
        assert client.check_network_connection() is False

        mock_request.side_effect = None
        mock_request.return_value = make_response(500)
        assert client.check_network_connection() is False


class TestSearch:
    """Test searches"""

    def test_search_returns_id(self, client, mock_request):
        mock_request.return_value = make_response(200, {"id": "abc-123"})

        assert client.search("bastinov devine") == "abc-123"
        assert mock_request.call_args.kwargs["json"] == {
            "searchText": "bastinov devine",
            "timeout": SEARCH_NETWORK_TIMEOUT_MS,
        }

    def test_search_rejected(self, client, mock_request):
        mock_request.return_value = make_response(429)

        with pytest.raises(SearchError) as exc_info:
            client.search("bastinov devine")

        assert exc_info.value.status_code == 429

    def test_search_missing_id(self, client, mock_request):
        mock_request.return_value = make_response(200, {"state": "Requested"})

        with pytest.raises(SearchError, match="ID"):
            client.search("bastinov devine")

    def test_search_invalid_json(self, client, mock_request):
        mock_request.return_value = make_response(200, ValueError("not json"))

        with pytest.raises(SlskdError, match="Invalid JSON"):
            client.search("bastinov devine")

    def test_wait_for_search_polls_until_finished(self, client, mock_request):
        mock_request.side_effect = [
            make_response(200, {"id": "s1", "state": "InProgress", "isComplete": False}),
            make_response(200, {"id": "s1", "state": "Completed, TimedOut", "fileCount": 3}),
        ]

        status = client.wait_for_search("s1", timeout=10, poll_interval=0)

        assert status.is_finished
        assert status.file_count == 3
        assert mock_request.call_count == 2

    def test_wait_for_search_cancelled(self, client, mock_request):
        mock_request.return_value = make_response(200, {"id": "s1", "state": "Cancelled"})

        with pytest.raises(SearchError, match="cancelled"):
            client.wait_for_search("s1", timeout=10, poll_interval=0)

    def test_wait_for_search_timeout(self, client, mock_request):
        mock_request.return_value = make_response(200, {"id": "s1", "state": "InProgress"})

        with pytest.raises(SearchError, match="timed out"):
            client.wait_for_search("s1", timeout=0)

    def test_get_search_results_flattens(self, client, mock_request):
        """Every shared file of every peer becomes a Candidate; lockedFiles are left out"""
        mock_request.return_value = make_response(200, SEARCH_RESPONSES)

        candidates = client.get_search_results("s1")

        assert [(c.owner, c.path) for c in candidates] == [
            ("peer1", "Music\\Bastinov - Devine.mp3"),
            ("peer1", "Music\\Bastinov - Devine.flac"),
            ("peer2", "Other\\Something Else.mp3"),
        ]
        assert candidates[0].size == 8000000
        assert candidates[0].speed == 1000
        assert candidates[0].bit_rate == 320
        assert not any(c.locked for c in candidates)

    def test_get_search_results_is_locked_flag(self, client, mock_request):
        mock_request.return_value = make_response(200, [{
            "username": "peer1",
            "files": [{"filename": "Music\\Bastinov - Devine.mp3", "size": 1, "isLocked": True}],
        }])

        candidates = client.get_search_results("s1")

        assert candidates[0].locked

    def test_get_search_results_error(self, client, mock_request):
        mock_request.return_value = make_response(404)

        with pytest.raises(SearchError):
            client.get_search_results("s1")


class TestDownload:
    """Test download requests"""

    def test_download_request(self, client, mock_request):
        mock_request.return_value = make_response(201)
        candidate = Candidate(owner="peer 1/x", path="Music\\Song.mp3", size=1234)

        client.download(candidate)

        method, url = mock_request.call_args.args
        assert method == "POST"
        assert url == "http://slskd:5030/api/v0/transfers/downloads/peer%201%2Fx"
        assert mock_request.call_args.kwargs["json"] == [
            {"filename": "Music\\Song.mp3", "size": 1234}
        ]

    def test_download_rejected(self, client, mock_request):
        mock_request.return_value = make_response(500)

        with pytest.raises(DownloadError) as exc_info:
            client.download(Candidate(owner="peer", path="x.mp3", size=1))

        assert exc_info.value.status_code == 500


class TestSearchAndDownload:
    """Test the full search, select and download cycle"""

    def _responses(self, results):
        return [
            make_response(200, {"id": "s1"}),
            make_response(200, {"id": "s1", "state": "Completed"}),
            make_response(200, results),
        ]

    def test_downloads_winner(self, client, mock_request):
        mock_request.side_effect = self._responses(SEARCH_RESPONSES) + [make_response(201)]
        matcher = Matcher(log=Mock())

        winner, selection = client.search_and_download(
            "bastinov devine", matcher.select_for("bastinov devine")
        )

        assert winner.owner == "peer1"
        assert winner.path == "Music\\Bastinov - Devine.mp3"
        assert selection.winner is winner
        method, url = mock_request.call_args.args
        assert url.endswith("/api/v0/transfers/downloads/peer1")

    def test_locked_file_not_downloaded(self, client, mock_request):
        """A better-scoring file under lockedFiles is never chosen"""
        results = [{
            "username": "peer1",
            "files": [{"filename": "Music\\Other\\Devine.mp3", "size": 100}],
            "lockedFiles": [{
                "filename": "Music\\Bastinov - Devine\\Bastinov - Devine (Original Mix).mp3",
                "size": 200,
            }],
        }]
        mock_request.side_effect = self._responses(results) + [make_response(201)]
        matcher = Matcher(log=Mock())

        winner, selection = client.search_and_download(
            "bastinov devine", matcher.select_for("bastinov devine")
        )

        assert winner.path == "Music\\Other\\Devine.mp3"
        assert not winner.locked
        assert selection.total_candidates == 1
        assert mock_request.call_args.kwargs["json"] == [
            {"filename": "Music\\Other\\Devine.mp3", "size": 100}
        ]

    def test_no_results(self, client, mock_request):
        mock_request.side_effect = self._responses([])
        select = Mock()

        winner, selection = client.search_and_download("bastinov devine", select)

        assert winner is None
        assert selection is None
        select.assert_not_called()

    def test_no_match_does_not_download(self, client, mock_request):
        mock_request.side_effect = self._responses(SEARCH_RESPONSES)
        matcher = Matcher(threshold=1.0, extension="ogg", log=Mock())

        winner, selection = client.search_and_download("bastinov devine", matcher.select_for("bastinov devine"))

        assert winner is None
        assert not selection.matched
        # search, status, results; no download request
        assert mock_request.call_count == 3


class TestSearchStatus:
    """Test SearchStatus parsing"""

    def test_from_api(self):
        status = SearchStatus.from_api({
            "id": "s1", "state": "InProgress", "isComplete": False,
            "responseCount": 4, "fileCount": 12,
        })

        assert status.search_id == "s1"
        assert status.response_count == 4
        assert not status.is_finished
        assert not status.is_cancelled

    def test_complete_flag(self):
        assert SearchStatus.from_api({"id": "s1", "state": "", "isComplete": True}).is_finished

    def test_timed_out_is_finished(self):
        assert SearchStatus.from_api({"id": "s1", "state": "Completed, TimedOut"}).is_finished
