"""
Small helpers shared by the CLI, the Spotify layer and the worker:
    - Spotify URL/ID parsing
    - Artist list formatting for display
    - Parallel processing with per-item callbacks

Usage:
    from spot_seeker.utils import (
        extract_playlist_id,
        format_artists,
        run_in_parallel_with_callback
    )
"""

import re
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, TypeVar

from tqdm import tqdm


T = TypeVar("T")
R = TypeVar("R")

UNKNOWN_ARTIST = "Unknown Artist"

_SPOTIFY_ID_RE = re.compile(r"^[A-Za-z0-9]+$")


def extract_spotify_id(url_or_id: str) -> str:
    """
    Return the bare ID from a Spotify link, URI or ID.

    Accepted forms:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID

    Examples:
        extract_spotify_id("https://open.spotify.com/playlist/abc123?si=xyz")
        # Returns: "abc123"

        extract_spotify_id("spotify:playlist:abc123")
        # Returns: "abc123"
    """
    url_or_id = url_or_id.strip()

    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract playlist ID from a Spotify playlist URL, URI or bare ID.

    Raises:
        ValueError: If the input is a Spotify link to something other than
                    a playlist, or the extracted ID is not alphanumeric.

    Examples:
        extract_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"

        extract_playlist_id("37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    value = url_or_id.strip()
    is_link = value.startswith("spotify:") or "spotify.com" in value
    if is_link and "playlist" not in value:
        raise ValueError(f"Not a playlist URL: {url_or_id}")

    playlist_id = extract_spotify_id(value)
    if not _SPOTIFY_ID_RE.match(playlist_id):
        raise ValueError(f"Not a valid playlist ID: {url_or_id}")
    return playlist_id


def format_artists(artists: Sequence[str]) -> str:
    """
    Format an artist list for log and console messages.

    Examples:
        format_artists([])                    # "Unknown Artist"
        format_artists(["Bastinov"])          # "Bastinov"
        format_artists(["A", "B"])            # "A & B"
        format_artists(["A", "B", "C"])       # "A, B & others"
    """
    if not artists:
        return UNKNOWN_ARTIST
    if len(artists) == 1:
        return artists[0]
    if len(artists) == 2:
        return f"{artists[0]} & {artists[1]}"
    return f"{artists[0]}, {artists[1]} & others"


def run_in_parallel_with_callback(
    func: Callable[[T], R],
    items: Iterable[T],
    on_success: Callable[[T, R], None],
    on_error: Callable[[T, Exception], None],
    num_threads: int = 3,
    description: str = "Processing",
    show_progress: bool = True
) -> tuple[int, int]:
    """
    Run a function in parallel, reporting each result as it completes.

    Args:
        func: Function to call for each item.
        items: Iterable of items to process.
        on_success: Called with (item, result) on success.
        on_error: Called with (item, exception) on failure.
        num_threads: Number of parallel threads.
        description: Description for the progress bar.
        show_progress: Whether to show a tqdm progress bar.

    Returns:
        Tuple of (success_count, error_count).

    Error Handling:
        An exception raised by func for one item is passed to on_error;
        the other items keep running. Callbacks run in the calling thread.

    Example:
        success, errors = run_in_parallel_with_callback(
            worker.process_track,
            new_tracks,
            on_success=lambda track, outcome: ...,
            on_error=lambda track, error: ...,
        )
    """
    items_list = list(items)
    success_count = 0
    error_count = 0

    if not items_list:
        return 0, 0

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        future_to_item = {
            executor.submit(func, item): item
            for item in items_list
        }

        iterator = as_completed(future_to_item)
        if show_progress:
            iterator = tqdm(
                iterator,
                total=len(items_list),
                desc=description,
                unit="track"
            )

        for future in iterator:
            item = future_to_item[future]
            try:
                result = future.result()
            except Exception as e:
                on_error(item, e)
                error_count += 1
            else:
                on_success(item, result)
                success_count += 1

    return success_count, error_count
