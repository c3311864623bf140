"""
slskd API client for spot-seeker.

slskd is a Soulseek client daemon with an HTTP API. This module wraps the
handful of endpoints the worker needs:

    POST /api/v0/session                      login, returns a JWT
    GET  /api/v0/server/state                 Soulseek network status
    POST /api/v0/searches                     start a search
    GET  /api/v0/searches/{id}                search status
    GET  /api/v0/searches/{id}/responses      search results
    POST /api/v0/transfers/downloads/{user}   enqueue downloads

Authentication:
    After login() every request carries "Authorization: Bearer <token>".
    When an API key is configured it is also sent as X-API-Key, which is
    enough on its own for slskd instances with API keys enabled.

Usage:
    client = SlskdClient("http://localhost:5030", "slskd", "slskd")
    client.wait_for_connection()
    client.login()

    winner, selection = client.search_and_download(query, matcher.select_for(query))
"""

import threading
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import requests

from spot_seeker.core.exceptions import DownloadError, SearchError, SlskdError
from spot_seeker.core.logger import get_logger
from spot_seeker.matching.models import Candidate, SelectionResult
from spot_seeker.slskd.models import SearchStatus

logger = get_logger(__name__)


# Time slskd keeps a search open on the Soulseek network
SEARCH_NETWORK_TIMEOUT_MS = 30000

DEFAULT_SEARCH_WAIT = 60
DEFAULT_POLL_INTERVAL = 2
DEFAULT_CONNECTION_ATTEMPTS = 20
MAX_BACKOFF = 30

# Probed in order by wait_for_connection(); any answer means slskd is up
_PROBE_ENDPOINTS = (
    "/api/v0/application",
    "/api/v0/server/state",
    "/api/v0/session",
    "/",
)


class SlskdClient:
    """
    Thin client for the slskd HTTP API built on a requests.Session.

    Attributes:
        base_url: slskd URL without trailing slash.
        timeout: Per-request timeout in seconds.
        stop_event: Optional event that interrupts waits and polling.

    Thread Safety:
        The token is written once by login() before worker threads start.
        requests.Session is shared; concurrent requests on one session are
        fine for this usage (no per-request session state is mutated).
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        api_key: str | None = None,
        timeout: int = 30,
        stop_event: threading.Event | None = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.stop_event = stop_event
        self._token: str | None = None

        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self._session.headers["X-API-Key"] = api_key

    # =========================================================================
    # Internals
    # =========================================================================

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Send a request, translating transport errors into SlskdError.

        The HTTP status is NOT checked here; callers decide which codes
        are acceptable.
        """
        try:
            return self._session.request(
                method, self._url(endpoint), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise SlskdError(
                f"Request to slskd failed: {method} {endpoint}: {e}",
                details={"url": self._url(endpoint), "original_error": str(e)}
            ) from e

    def _json(self, response: requests.Response, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SlskdError(
                f"Invalid JSON from slskd: {endpoint}",
                details={"url": self._url(endpoint)},
                status_code=response.status_code
            ) from e

    def _sleep(self, seconds: float) -> bool:
        """
        Wait, returning True if the stop event was set meanwhile.
        """
        if self.stop_event is not None:
            return self.stop_event.wait(seconds)
        time.sleep(seconds)
        return False

    # =========================================================================
    # Session
    # =========================================================================

    def login(self) -> None:
        """
        Log in with the web UI credentials and store the JWT.

        Raises:
            SlskdError: If slskd rejects the credentials or the response
                        carries no token.
        """
        endpoint = "/api/v0/session"
        response = self._request(
            "POST", endpoint,
            json={"username": self.username, "password": self.password}
        )

        if response.status_code not in (200, 201):
            raise SlskdError(
                f"slskd login failed with status {response.status_code}",
                details={"username": self.username},
                status_code=response.status_code
            )

        token = (self._json(response, endpoint) or {}).get("token")
        if not token:
            raise SlskdError(
                "slskd login response did not contain a token",
                status_code=response.status_code
            )

        self._token = token
        self._session.headers["Authorization"] = f"Bearer {token}"
        logger.info("Logged in to slskd")

    def wait_for_connection(self, max_attempts: int = DEFAULT_CONNECTION_ATTEMPTS) -> None:
        """
        Block until the slskd web API answers.

        Each attempt checks a few endpoints. A 200, 401 or 403 from any of
        them means the service is running. Between attempts the wait
        doubles, starting at 1s and capped at 30s.

        Raises:
            SlskdError: If slskd did not answer after max_attempts, or the
                        stop event was set.
        """
        backoff = 1

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                logger.info(f"Waiting {backoff}s before slskd connection attempt {attempt}/{max_attempts}")
                if self._sleep(backoff):
                    raise SlskdError("Stopped while waiting for slskd")
                backoff = min(backoff * 2, MAX_BACKOFF)

            for endpoint in _PROBE_ENDPOINTS:
                try:
                    response = self._request("GET", endpoint)
                except SlskdError as e:
                    logger.debug(f"Connection attempt {attempt}/{max_attempts} failed on {endpoint}: {e}")
                    continue

                if response.status_code == 200:
                    logger.info(f"Connected to slskd on attempt {attempt} ({endpoint})")
                    return

                if response.status_code in (401, 403):
                    logger.info(f"slskd is running and requires authentication ({endpoint})")
                    return

                logger.debug(
                    f"Connection attempt {attempt}/{max_attempts} got status "
                    f"{response.status_code} on {endpoint}"
                )

        raise SlskdError(
            f"Failed to connect to slskd after {max_attempts} attempts",
            details={"url": self.base_url}
        )

    def check_network_connection(self) -> bool:
        """
        Check whether slskd is connected to the Soulseek network.

        Never raises: a failed check is logged as a warning and searches
        are attempted anyway.
        """
        endpoint = "/api/v0/server/state"
        try:
            response = self._request("GET", endpoint)
        except SlskdError as e:
            logger.warning(f"Unable to verify Soulseek connection: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"Unable to verify Soulseek connection (status {response.status_code})")
            return False

        try:
            state = response.json()
        except ValueError:
            state = {}

        connected = bool(isinstance(state, dict) and state.get("isConnected", True))
        if connected:
            logger.info("Soulseek network connection verified")
        else:
            logger.warning(f"slskd is not connected to Soulseek (state: {state.get('state', 'unknown')})")
        return connected

    # =========================================================================
    # Searches
    # =========================================================================

    def search(self, query: str) -> str:
        """
        Start a search and return its ID.

        Raises:
            SearchError: If slskd refuses the search or returns no ID.
        """
        endpoint = "/api/v0/searches"
        response = self._request(
            "POST", endpoint,
            json={"searchText": query, "timeout": SEARCH_NETWORK_TIMEOUT_MS}
        )

        if response.status_code not in (200, 201):
            raise SearchError(
                f"Search request failed with status {response.status_code}",
                details={"query": query},
                status_code=response.status_code
            )

        search_id = (self._json(response, endpoint) or {}).get("id")
        if not isinstance(search_id, str) or not search_id:
            raise SearchError(
                "Search response missing or invalid ID",
                details={"query": query},
                status_code=response.status_code
            )

        logger.debug(f"Started search {search_id} for: {query}")
        return search_id

    def get_search_status(self, search_id: str) -> SearchStatus:
        """
        Get the current status of a search.

        Raises:
            SearchError: If the status request fails.
        """
        endpoint = f"/api/v0/searches/{search_id}"
        response = self._request("GET", endpoint)

        if response.status_code != 200:
            raise SearchError(
                f"Get search status failed with status {response.status_code}",
                details={"search_id": search_id},
                status_code=response.status_code
            )

        return SearchStatus.from_api(self._json(response, endpoint) or {})

    def wait_for_search(
        self,
        search_id: str,
        timeout: float = DEFAULT_SEARCH_WAIT,
        poll_interval: float = DEFAULT_POLL_INTERVAL
    ) -> SearchStatus:
        """
        Poll a search until it finishes.

        A search is finished when slskd flags it complete or its state
        contains "Completed" or "TimedOut" (a timed-out search still has
        results).

        Raises:
            SearchError: If the search was cancelled, did not finish
                         within timeout seconds, or the stop event was set.
        """
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            status = self.get_search_status(search_id)

            if status.is_finished:
                logger.debug(
                    f"Search {search_id} finished (state: {status.state}) "
                    f"with {status.file_count} files from {status.response_count} users"
                )
                return status

            if status.is_cancelled:
                raise SearchError(
                    f"Search {search_id} was cancelled",
                    details={"search_id": search_id, "state": status.state}
                )

            logger.debug(f"Search {search_id} still running (state: {status.state})")
            if self._sleep(poll_interval):
                raise SearchError(
                    f"Stopped while waiting for search {search_id}",
                    details={"search_id": search_id}
                )

        raise SearchError(
            f"Search {search_id} timed out after {timeout}s",
            details={"search_id": search_id, "timeout": timeout}
        )

    def get_search_results(self, search_id: str) -> list[Candidate]:
        """
        Get the files offered for a search, flattened into Candidates.

        Every shared file of every responding peer becomes one Candidate, in the
        order slskd returned them. Files under 'lockedFiles' cannot be
        downloaded and are left out.

        Raises:
            SearchError: If the results request fails.
        """
        endpoint = f"/api/v0/searches/{search_id}/responses"
        response = self._request("GET", endpoint)

        if response.status_code != 200:
            raise SearchError(
                f"Get search results failed with status {response.status_code}",
                details={"search_id": search_id},
                status_code=response.status_code
            )

        responses = self._json(response, endpoint) or []
        candidates: list[Candidate] = []

        for peer in responses:
            username = peer.get("username") or ""
            speed = peer.get("uploadSpeed")
            for file_data in peer.get("files") or []:
                candidates.append(Candidate.from_slskd_file(username, file_data, speed=speed))

        logger.debug(f"Search {search_id}: {len(candidates)} files from {len(responses)} users")
        return candidates

    # =========================================================================
    # Downloads
    # =========================================================================

    def download(self, candidate: Candidate) -> None:
        """
        Ask slskd to download one file.

        Raises:
            DownloadError: If slskd does not accept the request.
        """
        endpoint = f"/api/v0/transfers/downloads/{quote(candidate.owner, safe='')}"
        response = self._request(
            "POST", endpoint,
            json=[{"filename": candidate.path, "size": candidate.size}]
        )

        if response.status_code not in (200, 201):
            raise DownloadError(
                f"Download request failed with status {response.status_code}",
                details={"owner": candidate.owner, "path": candidate.path},
                status_code=response.status_code
            )

        logger.debug(f"Enqueued download: {candidate.path} from {candidate.owner}")

    def search_and_download(
        self,
        query: str,
        select: Callable[[list[Candidate]], SelectionResult],
        search_timeout: float = DEFAULT_SEARCH_WAIT
    ) -> tuple[Candidate | None, SelectionResult | None]:
        """
        Run a complete search, select and download cycle.

        Args:
            query: Search text.
            select: Callable that picks a file, typically Matcher.select
                    bound to the query.
            search_timeout: Seconds to wait for the search to finish.

        Returns:
            (winner, selection). winner is None when the search returned
            no files (selection is then None too) or when nothing met the
            threshold. Neither case is an error.

        Raises:
            SearchError: If the search fails or times out.
            DownloadError: If the winner could not be enqueued.
        """
        search_id = self.search(query)
        self.wait_for_search(search_id, timeout=search_timeout)
        candidates = self.get_search_results(search_id)

        if not candidates:
            logger.debug(f"No search results for: {query}")
            return None, None

        selection = select(candidates)
        if not selection.matched:
            return None, selection

        self.download(selection.winner)
        return selection.winner, selection
