"""
Candidate filtering by file type.

Only one container format is accepted for output, so candidates with any
other extension are discarded before scoring. Candidates with an empty
path or a locked file are discarded as well; they cannot be scored or
downloaded.
"""

import re
from collections.abc import Iterable

from spot_seeker.matching.models import Candidate


DEFAULT_EXTENSION = "mp3"

_SEPARATOR_RE = re.compile(r"[\\/]")


def split_path(path: str) -> list[str]:
    """Split a remote path on both Windows and POSIX separators."""
    return _SEPARATOR_RE.split(path)


def get_extension(path: str) -> str:
    """
    Get the lowercase extension of a remote path, without the dot.

    Only the last path segment is considered, so a dot in a folder name
    is never mistaken for an extension.

    Examples:
        get_extension("Music\\Artist - Title.MP3")  # "mp3"
        get_extension("Some.Folder\\README")        # ""
    """
    filename = split_path(path)[-1]
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def filter_eligible(
    candidates: Iterable[Candidate],
    extension: str = DEFAULT_EXTENSION
) -> list[Candidate]:
    """
    Keep the unlocked candidates whose path has the target extension.

    Args:
        candidates: Raw candidates, in the order slskd returned them.
        extension: Target extension, case-insensitive, with or without
                   a leading dot.

    Returns:
        Eligible candidates in input order (no deduplication).
    """
    target = extension.lower().lstrip(".")
    return [
        c for c in candidates
        if c.path and not c.locked and get_extension(c.path) == target
    ]
