"""
Text normalization for matching.

Every string that takes part in a comparison goes through normalize():
the search query built from Spotify metadata and the remote file paths
returned by slskd. Using the same function on both sides is what makes
the word-overlap score meaningful.

Pipeline:
    1. transliterate()  - map non-ASCII letters to ASCII (best effort)
    2. lowercase
    3. replace anything outside [a-z0-9 ] with a space
    4. collapse whitespace
    5. strip

Examples:
    normalize("Rødhåd")                    -> "rodhad"
    normalize("Błażej Malinowski")         -> "blazej malinowski"
    normalize("Jerome Isma-Ae (Remix)")    -> "jerome isma ae remix"
    build_search_query("Devine", ["Bastinov"]) -> "bastinov devine"

Characters that have neither a table entry nor an ASCII base letter
(CJK, Cyrillic, emoji, ...) are dropped.
"""

import re
import unicodedata
from collections.abc import Sequence
from types import MappingProxyType


# Explicit mappings for letters whose NFD decomposition does not yield
# the expected ASCII base (ligatures, stroked letters) plus the common
# accented Latin letters. Case follows the source character.
_CHAR_MAP = MappingProxyType({
    "ø": "o", "Ø": "O",
    "æ": "ae", "Æ": "AE",
    "å": "a", "Å": "A",
    "ü": "u", "Ü": "U",
    "ö": "o", "Ö": "O",
    "ä": "a", "Ä": "A",
    "ñ": "n", "Ñ": "N",
    "ç": "c", "Ç": "C",
    "é": "e", "É": "E",
    "è": "e", "È": "E",
    "ê": "e", "Ê": "E",
    "ë": "e", "Ë": "E",
    "á": "a", "Á": "A",
    "à": "a", "À": "A",
    "â": "a", "Â": "A",
    "ã": "a", "Ã": "A",
    "í": "i", "Í": "I",
    "ì": "i", "Ì": "I",
    "î": "i", "Î": "I",
    "ï": "i", "Ï": "I",
    "ó": "o", "Ó": "O",
    "ò": "o", "Ò": "O",
    "ô": "o", "Ô": "O",
    "õ": "o", "Õ": "O",
    "ú": "u", "Ú": "U",
    "ù": "u", "Ù": "U",
    "û": "u", "Û": "U",
    "ÿ": "y", "Ÿ": "Y",
    "ý": "y", "Ý": "Y",
    # No canonical decomposition for these
    "ł": "l", "Ł": "L",
    "đ": "d", "Đ": "D",
    "ð": "d", "Ð": "D",
    "þ": "th", "Þ": "TH",
    "œ": "oe", "Œ": "OE",
    "ß": "ss",
})

_NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]")
_WHITESPACE_RE = re.compile(r"\s+")


def transliterate(text: str) -> str:
    """
    Convert a Unicode string to ASCII, character by character.

    Args:
        text: Any string, possibly empty.

    Returns:
        ASCII string. Case and punctuation are preserved; characters
        without an ASCII equivalent are dropped.

    Behavior:
        1. Characters in the explicit table emit their mapping
        2. 7-bit ASCII characters pass through unchanged
        3. Anything else is NFD-decomposed and the first component that
           is ASCII (and therefore not a combining mark) is emitted
    """
    parts = []
    for char in text:
        mapped = _CHAR_MAP.get(char)
        if mapped is not None:
            parts.append(mapped)
        elif ord(char) < 128:
            parts.append(char)
        else:
            for component in unicodedata.normalize("NFD", char):
                if not unicodedata.combining(component) and ord(component) < 128:
                    parts.append(component)
                    break
    return "".join(parts)


def normalize(text: str) -> str:
    """
    Normalize text into a lowercase, space-separated alphanumeric form.

    Args:
        text: Any string (title, artist name, file path).

    Returns:
        Normalized string containing only [a-z0-9] words separated by
        single spaces. Idempotent: normalize(normalize(x)) == normalize(x).
    """
    result = transliterate(text).lower()
    result = _NON_ALNUM_RE.sub(" ", result)
    result = _WHITESPACE_RE.sub(" ", result)
    return result.strip()


def build_search_query(title: str, artists: Sequence[str]) -> str:
    """
    Build the slskd search text for a track.

    Args:
        title: Track title as shown on Spotify.
        artists: Artist names in Spotify order. May be empty.

    Returns:
        normalize("<artist1> <artist2> ... <title>")

    Example:
        build_search_query("Timelapse - Marc DePulse Extended Remix",
                           ["Alastor", "Jerome Isma-Ae"])
        # "alastor jerome isma ae timelapse marc depulse extended remix"
    """
    return normalize(" ".join([*artists, title]))
