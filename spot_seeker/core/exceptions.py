"""
Errors raised by spot-seeker.

Every error has a short `message` for the console and a `details` dict
for the log files, so handlers can report context without parsing text.

    SpotSeekerError
        ConfigError      bad or missing configuration
        StateError       state.db unreadable or unwritable
        SpotifyError     the playlist could not be read
        SlskdError       slskd unreachable or answered unexpectedly
            SearchError      search cancelled, timed out or malformed
            DownloadError    slskd refused to enqueue a file

The matching package raises none of these: "no good match" is a
SelectionResult, not an error.
"""


class SpotSeekerError(Exception):
    """
    Common base of every spot-seeker error.

    Attributes:
        message: Text shown to the user.
        details: Context for the logs (playlist, query, HTTP status...).

    Example:
        try:
            worker.check_for_new_tracks()
        except SpotSeekerError as e:
            logger.error(f"Check failed: {e.message}")
            logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(SpotSeekerError):
    """
    The configuration cannot be used; the CLI exits with code 1.

    `details['field']` names the offending setting when there is one:

        raise ConfigError(
            "'matching.threshold' must be between 0 and 1",
            details={'field': 'matching.threshold', 'value': 1.5}
        )
    """


class StateError(SpotSeekerError):
    """
    state.db cannot be opened, read or written (corrupt file, permissions,
    full disk). Fatal: without it the worker would hand tracks to slskd twice.
    """


class SpotifyError(SpotSeekerError):
    """
    A Spotify request failed.

    Fatal at start-up (bad credentials). During monitoring only the current
    check is lost and the next one runs after the interval.

    Attributes:
        is_auth_error: Credentials rejected or access to the playlist denied.
        is_rate_limit: Spotify answered HTTP 429.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class SlskdError(SpotSeekerError):
    """
    slskd could not be reached or gave an unexpected answer.

    Fatal while connecting and logging in. Once monitoring, it only marks
    the track being processed as failed.

    Attributes:
        status_code: HTTP status from slskd, None if no response arrived.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        status_code: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class SearchError(SlskdError):
    """A search was cancelled, never finished, or returned unreadable data."""


class DownloadError(SlskdError):
    """
    slskd would not enqueue the chosen file, e.g. the peer went offline
    or stopped sharing it after the search.
    """
