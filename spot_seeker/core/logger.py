"""
Logging for spot-seeker.

One run of the monitor writes to five places:
    - Console: Real-time progress with tqdm-compatible, colored formatting
    - log_full_<ts>.log: Complete log of all events (DEBUG and above)
    - log_errors_<ts>.log: Only ERROR and CRITICAL level messages
    - match_decisions_<ts>.log: One audit entry per best-match selection
    - download_failures_<ts>.log: Tracks that could not be matched or enqueued

The files live in <output_dir>/logs, stamped with the start time of the run.
The two report files only take records whose `extra` carries their marker
field. Every record, marked or not, also reaches the console and the
general logs.

    setup_logging(config.output.directory, verbose=True)
    logger = get_logger(__name__)
    logger.info("Checking playlist")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI escapes used on the console."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Console formatter: coloured level name, then the message.

    Messages starting with "Selected:" or "No match:" get that label
    coloured too. Only the console is coloured; the log files receive
    plain text.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    MESSAGE_COLORS = (
        ("Selected", Colors.GREEN),
        ("No match", Colors.RED),
    )

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        message = record.getMessage()
        for prefix, prefix_color in self.MESSAGE_COLORS:
            if message.startswith(f"{prefix}:"):
                message = f"{prefix_color}{prefix}{Colors.RESET}{message[len(prefix):]}"
                break
        return f"{color}{record.levelname}{Colors.RESET}: {message}"


class TqdmLoggingHandler(logging.Handler):
    """
    Console handler that does not break tqdm progress bars.

    Messages are written with tqdm.write(), which prints above any active
    bar instead of through it. tqdm.write() is thread-safe, so worker
    threads can log freely.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


class _ReportFileHandler(logging.Handler):
    """
    Base for handlers that write a plain-text report file.

    Subclasses set `marker` to the extra field that identifies the records
    they care about and implement `render()`. Records without the marker
    are ignored. Writes go through the handler lock, so entries from
    different worker threads never interleave.
    """

    marker = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def render(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker):
            return

        if self.report_file is None:
            return

        try:
            self.report_file.write(self.render(record))
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        self.acquire()
        try:
            if self.report_file is not None:
                self.report_file.close()
                self.report_file = None
        finally:
            self.release()
        super().close()


class MatchDecisionHandler(_ReportFileHandler):
    """
    Handler that writes the match decision audit trail.

    One entry per selection, in the form:

        [2024-05-01 12:00:00] alastor jerome isma ae timelapse
        Query: Alastor Jerome Isma-Ae Timelapse
        Candidates: 42 received, 17 eligible
          0.727  @@music\\Alastor - Timelapse.mp3  base:0.73 seq:0.00 ...
          0.512  ...
        Selected: peer42 (8532112 bytes)

    or, when nothing qualified:

        No match: closest score 0.120 < threshold 0.150

    The handler looks for these extra fields (set by log_match_decision()
    in spot_seeker.matching.selector):
        - 'match_decision_query': The query as given
        - 'match_decision_normalized_query': The normalized query
        - 'match_decision_total': Number of candidates received
        - 'match_decision_eligible': Number of eligible candidates
        - 'match_decision_ranking': List of (score, path, reason) tuples
        - 'match_decision_winner': (owner, path, size) or None
        - 'match_decision_best_score': Closest score when there is no winner
        - 'match_decision_threshold': Threshold that was applied
        - 'match_decision_reason': Short description of the decision
    """

    marker = "match_decision_query"

    def render(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created).strftime(FILE_DATE_FORMAT)
        query = getattr(record, "match_decision_query", "")
        normalized = getattr(record, "match_decision_normalized_query", "")
        total = getattr(record, "match_decision_total", 0)
        eligible = getattr(record, "match_decision_eligible", 0)
        ranking = getattr(record, "match_decision_ranking", [])
        winner = getattr(record, "match_decision_winner", None)
        best_score = getattr(record, "match_decision_best_score", 0.0)
        threshold = getattr(record, "match_decision_threshold", 0.0)
        reason = getattr(record, "match_decision_reason", "")

        lines = [
            f"[{created}] {normalized}",
            f"Query: {query}",
            f"Candidates: {total} received, {eligible} eligible",
        ]
        for score, path, rationale in ranking:
            lines.append(f"  {score:.3f}  {path}  {rationale}")

        if winner is not None:
            owner, path, size = winner
            lines.append(f"Selected: {owner} ({size} bytes) {path}")
        else:
            lines.append(
                f"No match: {reason} "
                f"(closest score {best_score:.3f} < threshold {threshold:.3f})"
            )

        return "\n".join(lines) + "\n\n"


class DownloadFailedTrackHandler(_ReportFileHandler):
    """
    Writes the list of tracks that were not enqueued, three lines each:

        Bastinov - Devine
        https://open.spotify.com/track/...
        Reason: best score 0.120 below threshold 0.150

    Fed by log_track_failure(), which sets the failed_track_* extras.
    """

    marker = "failed_track"

    def render(self, record: logging.LogRecord) -> str:
        name, artist, url = record.failed_track
        reason = getattr(record, "failed_track_reason", "")
        return f"{artist} - {name}\n{url}\nReason: {reason}\n\n"


class ErrorOnlyFilter(logging.Filter):
    """Lets through ERROR and CRITICAL records only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _file_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    return handler


def setup_logging(output_dir: Path, verbose: bool = False) -> Path:
    """
    Route all spot-seeker logging to the console and this run's log files.

    Runs once in the main thread, after the configuration is loaded and
    before the worker starts. Handlers left on the root logger by an
    earlier call are dropped.

    Args:
        output_dir: Output directory; files go to its 'logs' subdirectory.
        verbose: Show DEBUG records on the console as well.

    Returns:
        The logs directory.
    """
    logs_dir = Path(output_dir) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())

    error_handler = _file_handler(logs_dir / f"log_errors_{stamp}.log")
    error_handler.addFilter(ErrorOnlyFilter())

    decisions_handler = MatchDecisionHandler(logs_dir / f"match_decisions_{stamp}.log")
    failures_handler = DownloadFailedTrackHandler(logs_dir / f"download_failures_{stamp}.log")
    for report_handler in (decisions_handler, failures_handler):
        report_handler.open()

    for handler in (
        console_handler,
        _file_handler(logs_dir / f"log_full_{stamp}.log"),
        error_handler,
        decisions_handler,
        failures_handler,
    ):
        root_logger.addHandler(handler)

    # HTTP libraries only report warnings and up
    for noisy in ("urllib3", "spotipy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass __name__."""
    return logging.getLogger(name)


def format_selected_message(artist: str, name: str, owner: str, score: float) -> str:
    """
    Message for an enqueued track. Plain text; the console formatter adds colour.

    Args:
        artist: Artist name(s) for display.
        name: Track name.
        owner: Soulseek user the file will be downloaded from.
        score: Score of the selected file.
    """
    return f"Selected: {artist} - {name} -> {owner} (score: {score:.3f})"


def format_no_match_message(artist: str, name: str, reason: str) -> str:
    return f"No match: {artist} - {name} ({reason})"


def log_track_failure(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    spotify_url: str,
    reason: str
) -> None:
    """
    Log a track that was not enqueued, at ERROR level.

    Besides the console and general logs, the track is appended to
    download_failures_<ts>.log.

    Example:
        log_track_failure(logger, "Devine", "Bastinov", track.spotify_url,
                          "no eligible files of target type")
    """
    logger.error(
        format_no_match_message(artist, track_name, reason),
        extra={
            "failed_track": (track_name, artist, spotify_url),
            "failed_track_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """Flush, close and detach every root handler; used in the CLI's finally block."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
