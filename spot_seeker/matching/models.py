"""
Data models for the matching engine.

This module defines the immutable values that flow through the
filter -> score -> select pipeline:

    Candidate        - One remote file offered by a Soulseek peer
    ScoreBreakdown   - The components that produced a score (for auditing)
    MatchScore       - Score of one candidate against one query
    SelectionResult  - Winner (or explicit no-match) plus the full ranking

Design:
    All models are frozen dataclasses. Nothing here is persisted or shared
    between calls, so repeated selections with the same inputs produce
    equal results.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Candidate:
    """
    Immutable representation of one remote file offer.

    Attributes:
        owner: Username of the peer sharing the file.
               Passed unchanged to the download request.

        path: Full remote path as reported by the peer.
              Usually a Windows-style path such as
              "@@music\\Artist\\Album\\01 - Artist - Title.mp3".
              A candidate with an empty path is never eligible.

        size: File size in bytes. slskd requires it to enqueue a download.

        speed: Reported upload speed of the peer (bytes/s), if known.
        locked: True if slskd flagged the file with isLocked. Locked files
                cannot be downloaded and are never eligible.
        bit_rate: Reported bit rate in kbps, if known.
        length: Reported duration in seconds, if known.

    Transport metadata (speed, bit_rate, length) is carried for diagnostics
    only. Scoring looks at the path alone.
    """

    owner: str
    path: str
    size: int

    # Optional transport metadata
    speed: int | None = None
    locked: bool = False
    bit_rate: int | None = None
    length: int | None = None

    @classmethod
    def from_slskd_file(
        cls,
        username: str,
        file_data: dict[str, Any],
        speed: int | None = None
    ) -> "Candidate":
        """
        Create a Candidate from one entry of an slskd search response.

        Args:
            username: The responding peer (response["username"]).
            file_data: One element of response["files"].
            speed: The peer's upload speed (response["uploadSpeed"]).

        Returns:
            Candidate populated from the API response. Missing numeric
            fields default to 0 (size) or None.
        """
        raw_size = file_data.get("size") or 0
        try:
            size = int(raw_size)
        except (ValueError, TypeError):
            size = 0

        return cls(
            owner=username or "",
            path=file_data.get("filename") or "",
            size=max(size, 0),
            speed=speed,
            locked=bool(file_data.get("isLocked", False)),
            bit_rate=file_data.get("bitRate"),
            length=file_data.get("length"),
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    Components of a computed score.

    Kept for audit logging: operators tune the threshold and the
    bonus/penalty constants by reading these numbers in the logs.

    Attributes:
        base: matching_words / query_words (can exceed 1.0 before clamping).
        sequence_bonus: Bonus when the whole query appears verbatim.
        original_bonus: Bonus when the candidate mentions "original".
        extra_words_penalty: Penalty for words beyond the grace allowance.
        matching_words: Candidate word occurrences found in the query.
        query_words: Number of words in the normalized query.
        candidate_words: Number of words in the normalized candidate.
    """

    base: float
    sequence_bonus: float
    original_bonus: float
    extra_words_penalty: float
    matching_words: int
    query_words: int
    candidate_words: int

    def __str__(self) -> str:
        return (
            f"base:{self.base:.2f} seq:{self.sequence_bonus:.2f} "
            f"orig:{self.original_bonus:.2f} penalty:{self.extra_words_penalty:.2f} "
            f"({self.matching_words}/{self.query_words} words)"
        )


@dataclass(frozen=True)
class MatchScore:
    """
    Result of scoring one candidate path against one query.

    Attributes:
        score: Final score, always within [0.0, 1.0].
        path: The scored candidate path (for traceability).
        reason: Rationale string, "empty query", "exact match", or the
                rendered ScoreBreakdown.
        breakdown: The numeric components, or None for the two
                   short-circuit outcomes.
    """

    score: float
    path: str
    reason: str
    breakdown: ScoreBreakdown | None = None


@dataclass(frozen=True)
class SelectionResult:
    """
    Outcome of a best-match selection.

    Either a winner (the original Candidate object, unchanged) or an
    explicit no-match. In both cases the full ranking is kept so the
    caller can log it.

    Attributes:
        query: The query as given by the caller.
        normalized_query: normalize(query).
        winner: Selected Candidate, or None.
        winner_score: MatchScore of the winner, or None.
        ranked: (Candidate, MatchScore) pairs sorted by score descending,
                ties in input order.
        threshold: Minimum score that was required.
        total_candidates: Number of candidates received.
        eligible_candidates: Number of candidates that passed the filter.
        reason: Short human-readable description of the decision.

    Example:
        result = select_best(query, candidates)
        if result.matched:
            client.download(result.winner)
        else:
            print(f"closest score {result.best_score:.3f} < {result.threshold}")
    """

    query: str
    normalized_query: str
    winner: Candidate | None
    winner_score: MatchScore | None
    ranked: tuple[tuple[Candidate, MatchScore], ...]
    threshold: float
    total_candidates: int
    eligible_candidates: int
    reason: str

    @property
    def matched(self) -> bool:
        """True if a winner was selected."""
        return self.winner is not None

    @property
    def best_score(self) -> float:
        """Top score in the ranking, 0.0 when nothing was scored."""
        if not self.ranked:
            return 0.0
        return self.ranked[0][1].score

    def top(self, n: int) -> tuple[tuple[Candidate, MatchScore], ...]:
        """Return the first n ranked entries."""
        return self.ranked[:max(n, 0)]
