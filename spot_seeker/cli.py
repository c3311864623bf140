"""
Command-line interface for spot-seeker.

This module implements the CLI using Click, providing the options to
watch a Spotify playlist and enqueue new tracks on slskd.
rich-click is used for the output colors.

Commands:
    spot-seeker --url <playlist>          Watch a playlist until stopped
    spot-seeker --url <playlist> --once   Run a single check
    spot-seeker --url <playlist> --all    Treat every track as new on the first check
    spot-seeker --explain <query> <path>  Show how a path scores against a query

Usage:
    # Watch a playlist, checking every 10 seconds
    spot-seeker --url "https://open.spotify.com/playlist/..."

    # Backfill the whole playlist once, with a stricter threshold
    spot-seeker --url "https://..." --all --once --threshold 0.4

    # Tune the threshold offline
    spot-seeker --explain "bastinov devine" "Music/Bastinov/Bastinov - Devine.mp3"

Configuration:
    config.yaml in the current directory (or --config <path>). When it is
    missing, credentials come from the environment (SPOTIFY_ID,
    SPOTIFY_SECRET, SLSKD_URL, ...). SPOTIFY_PLAYLIST_ID can replace --url.

Exit Codes:
    0   Stopped normally
    1   Configuration error or unexpected error
    2   State store error
    3   Spotify error
    4   slskd error
    130 Interrupted (Ctrl+C)
"""

import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Input",
            "options": ["--url", "--config"],
        },
        {
            "name": "Monitor Options",
            "options": ["--once", "--all", "--interval"],
        },
        {
            "name": "Matching Options",
            "options": ["--threshold", "--extension", "--explain"],
        },
        {
            "name": "Info",
            "options": ["--verbose", "--version", "--help"],
        },
    ],
}

from spot_seeker import __version__
from spot_seeker.core import (
    Config,
    ConfigError,
    SpotifyError,
    SpotSeekerError,
    StateError,
    StateStore,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_seeker.matching import (
    DEFAULT_EXTENSION,
    Matcher,
    extract_relevant_portion,
    get_extension,
    normalize,
    score,
)
from spot_seeker.slskd import SlskdClient
from spot_seeker.spotify import SpotifyClient
from spot_seeker.utils import extract_playlist_id
from spot_seeker.worker import PlaylistWorker

logger = get_logger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--url",
    type=str,
    default=None,
    envvar="SPOTIFY_PLAYLIST_ID",
    metavar="<playlist>",
    help="Spotify playlist URL or ID to watch (env: SPOTIFY_PLAYLIST_ID)"
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--once",
    is_flag=True,
    help="Run a single check and exit"
)
@click.option(
    "--all", "process_all",
    is_flag=True,
    help="Treat every track in the playlist as new on the first check"
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=None,
    metavar="<seconds>",
    help="Seconds between playlist checks"
)
@click.option(
    "--threshold",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    metavar="<0-1>",
    help="Minimum score a file needs to be downloaded"
)
@click.option(
    "--extension",
    type=str,
    default=None,
    metavar="<ext>",
    help="Target file extension (default: mp3)"
)
@click.option(
    "--explain",
    nargs=2,
    type=(str, str),
    default=None,
    metavar="<query> <path>",
    help="Show how a path scores against a query and exit"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    url: Optional[str],
    config_path: Optional[Path],
    once: bool,
    process_all: bool,
    interval: Optional[int],
    threshold: Optional[float],
    extension: Optional[str],
    explain: Optional[tuple[str, str]],
    verbose: bool,
    version: bool
) -> None:
    """
    spot-seeker: Download new Spotify playlist tracks from Soulseek.

    Watches a Spotify playlist, searches slskd for every track added to
    it and enqueues the file that best matches the track.

    \b
    BASIC USAGE:
        spot-seeker --url "https://open.spotify.com/playlist/..."
        spot-seeker --url "https://..." --once

    \b
    BACKFILL:
        spot-seeker --url "https://..." --all --once

    \b
    TUNING:
        spot-seeker --explain "artist title" "Folder/Artist - Title.mp3"
        spot-seeker --url "https://..." --threshold 0.3 --extension flac
    """
    # Handle --version
    if version:
        click.echo(f"spot-seeker {__version__}")
        ctx.exit(0)

    if extension is not None:
        extension = extension.strip().lstrip(".").lower()
        if not extension:
            raise click.UsageError("--extension cannot be empty")

    # Handle --explain (offline, no config needed)
    if explain:
        _explain_score(explain[0], explain[1], extension or DEFAULT_EXTENSION)
        ctx.exit(0)

    if not url:
        # No playlist - show help
        click.echo(ctx.get_help())
        ctx.exit(0)

    try:
        playlist_id = extract_playlist_id(url)
    except ValueError as e:
        raise click.UsageError(f"--url: {e}")

    ctx.ensure_object(dict)
    ctx.obj["playlist_id"] = playlist_id
    ctx.obj["config_path"] = config_path
    ctx.obj["once"] = once
    ctx.obj["process_all"] = process_all
    ctx.obj["interval"] = interval
    ctx.obj["threshold"] = threshold
    ctx.obj["extension"] = extension
    ctx.obj["verbose"] = verbose

    _run_monitor(ctx.obj)


def _run_monitor(options: dict) -> None:
    """
    Run the playlist monitor based on CLI options.

    This is the main orchestration function that:
    1. Loads configuration and applies CLI overrides
    2. Sets up logging
    3. Opens the state store and initializes the Spotify client
    4. Runs the worker until it is stopped
    5. Reports results

    Args:
        options: Dictionary with CLI options from click context.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    state: StateStore | None = None
    playlist_id = options["playlist_id"]

    try:
        config = _apply_overrides(load_config(options["config_path"]), options)

        config.output.directory.mkdir(parents=True, exist_ok=True)
        logs_dir = setup_logging(config.output.directory, verbose=options["verbose"])
        logger.info(f"spot-seeker {__version__} starting")
        logger.debug(f"Logs written to {logs_dir}")

        state = StateStore(config.output.state_file)
        spotify = _initialize_spotify(config)

        stop_event = threading.Event()
        _install_sigterm_handler(stop_event)

        slskd = SlskdClient(
            config.slskd.url,
            config.slskd.username,
            config.slskd.password,
            api_key=config.slskd.api_key,
            stop_event=stop_event,
        )
        matcher = Matcher.from_config(config.matching)
        logger.info(
            f"Matching .{matcher.extension} files, threshold {matcher.threshold:.2f}"
        )

        worker = PlaylistWorker(
            playlist_id,
            spotify,
            slskd,
            matcher,
            state,
            config.monitor,
            search_timeout=config.slskd.search_timeout,
            process_all=options["process_all"],
            stop_event=stop_event,
        )
        worker.run(once=options["once"])

        _print_final_stats(state, playlist_id)
        logger.info("spot-seeker stopped")

    except ConfigError as e:
        click.secho(f"Configuration error: {e.message}", fg="red", err=True)
        sys.exit(1)

    except StateError as e:
        click.secho(f"State error: {e.message}", fg="red", err=True)
        logger.error(f"State error: {e.message}", exc_info=True)
        sys.exit(2)

    except SpotifyError as e:
        click.secho(f"Spotify error: {e.message}", fg="red", err=True)
        if e.is_auth_error:
            click.echo("Check your client_id and client_secret in config.yaml", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotSeekerError as e:
        click.secho(f"Error: {e.message}", fg="red", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        if state is not None:
            _print_final_stats(state, playlist_id)
        sys.exit(130)

    except Exception as e:
        click.secho(f"Unexpected error: {e}", fg="red", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if state is not None:
            state.close()
        shutdown_logging()


def _apply_overrides(config: Config, options: dict) -> Config:
    """
    Return a copy of config with the CLI overrides applied.

    Only options that were given on the command line replace file values.
    """
    matching = config.matching
    if options.get("threshold") is not None:
        matching = replace(matching, threshold=options["threshold"])
    if options.get("extension"):
        matching = replace(matching, extension=options["extension"])

    monitor = config.monitor
    if options.get("interval") is not None:
        monitor = replace(monitor, interval=options["interval"])

    return replace(config, matching=matching, monitor=monitor)


def _initialize_spotify(config: Config) -> SpotifyClient:
    """
    Initialize the Spotify client singleton.

    Raises:
        SpotifyError: If the credentials are rejected.
    """
    logger.info("Connecting to Spotify...")
    return SpotifyClient.init(config.spotify.client_id, config.spotify.client_secret)


def _install_sigterm_handler(stop_event: threading.Event) -> None:
    """Stop the monitor after the current check on SIGTERM (docker stop)."""
    if threading.current_thread() is not threading.main_thread():
        return

    def handle_sigterm(signum, frame) -> None:
        logger.info("SIGTERM received, stopping after the current check")
        stop_event.set()

    signal.signal(signal.SIGTERM, handle_sigterm)


def _explain_score(query: str, path: str, extension: str) -> None:
    """
    Print how a path scores against a query.

    Shows the normalized query, the portion of the path that is scored,
    whether the file type is eligible and the score rationale.
    """
    result = score(query, path)
    file_extension = get_extension(path)
    eligible = file_extension == extension

    click.echo(f"Query:      {query}")
    click.echo(f"Normalized: {normalize(query)}")
    click.echo(f"Path:       {path}")
    click.echo(f"Scored as:  {normalize(extract_relevant_portion(path))}")
    click.echo(
        f"Extension:  {file_extension or '(none)'} "
        f"({'eligible' if eligible else f'not eligible, target is {extension}'})"
    )
    click.echo(f"Score:      {result.score:.3f}")
    click.echo(f"Reason:     {result.reason}")


def _print_final_stats(state: StateStore, playlist_id: str) -> None:
    """
    Print the recorded outcomes for the playlist.

    Args:
        state: State store instance.
        playlist_id: Playlist ID to get stats for.
    """
    stats = state.get_stats(playlist_id)

    logger.info("=" * 60)
    logger.info("FINAL STATISTICS")
    logger.info("=" * 60)
    logger.info(f"Tracks processed:  {stats['total']}")
    logger.info(f"Enqueued:          {stats['downloading']}")
    logger.info(f"No match:          {stats['no_match']}")
    logger.info(f"Failed:            {stats['failed']}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-seeker` from the command
    line. It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
