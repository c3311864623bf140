"""
Relevance scoring of a remote file path against a search query.

The score is a word-overlap ratio adjusted by a few bonuses and a penalty,
clamped to [0, 1] at the very end:

    base      = matching candidate words / query words
    sequence  = +0.2 if the whole query appears verbatim (and >1 word matched)
    original  = +0.1 if the candidate mentions "original"
    penalty   = -0.02 per extra word beyond the first 3
    score     = clamp(base + sequence + original - penalty, 0, 1)

Word overlap is insensitive to artist/title order, which varies between
peers. The grace allowance of 3 extra words absorbs catalog numbers, label
tags and track numbers that Soulseek filenames usually carry.

Matching words are counted per candidate occurrence, so a candidate that
repeats a query word can push base above 1.0. Only the final sum is
clamped.
"""

from spot_seeker.matching.filter import split_path
from spot_seeker.matching.models import MatchScore, ScoreBreakdown
from spot_seeker.matching.normalize import normalize


SEQUENCE_BONUS = 0.2
ORIGINAL_BONUS = 0.1
# "original mix" and "original version" both contain "original"
ORIGINAL_TERMS = ("original",)
EXTRA_WORDS_GRACE = 3
EXTRA_WORD_PENALTY = 0.02


def extract_relevant_portion(path: str) -> str:
    """
    Reduce a remote path to the part worth scoring.

    Returns the filename, prefixed with its parent folder name when there
    is one. Release folders often carry "Artist - Title" while the file
    itself is only "02 Title.mp3".

    Examples:
        extract_relevant_portion("@@music\\Bastinov - Devine\\02 Devine.mp3")
        # "Bastinov - Devine 02 Devine.mp3"
        extract_relevant_portion("Devine.mp3")
        # "Devine.mp3"
    """
    parts = split_path(path)
    if len(parts) >= 2:
        return f"{parts[-2]} {parts[-1]}"
    return parts[-1]


def score(query: str, path: str) -> MatchScore:
    """
    Score how well a remote path matches a query.

    Args:
        query: Search query (normalized or not, it is normalized again).
        path: Remote file path as reported by the peer.

    Returns:
        MatchScore with a score in [0.0, 1.0] and a rationale string.
        An empty query scores 0.0 ("empty query"); identical normalized
        strings score 1.0 ("exact match").
    """
    normalized_query = normalize(query)
    normalized_candidate = normalize(extract_relevant_portion(path))

    query_words = normalized_query.split()
    candidate_words = normalized_candidate.split()

    if not query_words:
        return MatchScore(score=0.0, path=path, reason="empty query")

    if normalized_query == normalized_candidate:
        return MatchScore(score=1.0, path=path, reason="exact match")

    query_word_set = set(query_words)
    matching_words = sum(1 for word in candidate_words if word in query_word_set)

    base_score = matching_words / len(query_words)

    sequence_bonus = 0.0
    if matching_words > 1 and " ".join(query_words) in normalized_candidate:
        sequence_bonus = SEQUENCE_BONUS

    original_bonus = 0.0
    if any(term in normalized_candidate for term in ORIGINAL_TERMS):
        original_bonus = ORIGINAL_BONUS

    extra_words = max(0, len(candidate_words) - matching_words)
    extra_words_penalty = max(0, extra_words - EXTRA_WORDS_GRACE) * EXTRA_WORD_PENALTY

    final_score = base_score + sequence_bonus + original_bonus - extra_words_penalty
    final_score = min(max(final_score, 0.0), 1.0)

    breakdown = ScoreBreakdown(
        base=base_score,
        sequence_bonus=sequence_bonus,
        original_bonus=original_bonus,
        extra_words_penalty=extra_words_penalty,
        matching_words=matching_words,
        query_words=len(query_words),
        candidate_words=len(candidate_words),
    )

    return MatchScore(
        score=final_score,
        path=path,
        reason=str(breakdown),
        breakdown=breakdown,
    )
