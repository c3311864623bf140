"""
Result types produced by the playlist worker.
"""

from dataclasses import dataclass

from spot_seeker.matching.models import Candidate, SelectionResult
from spot_seeker.spotify.models import Track


@dataclass(frozen=True)
class TrackOutcome:
    """
    What happened to one track.

    Attributes:
        track: The processed track.
        status: STATUS_DOWNLOADING or STATUS_NO_MATCH (failures are
                exceptions, recorded as STATUS_FAILED by the caller).
        query: The search query that was used.
        winner: The enqueued file, or None.
        selection: The full selection result, or None when the search
                   returned nothing.
        reason: Short description for logs and the state store.
    """

    track: Track
    status: str
    query: str
    winner: Candidate | None = None
    selection: SelectionResult | None = None
    reason: str = ""

    @property
    def score(self) -> float | None:
        """Winner score, or the closest score when nothing matched."""
        if self.selection is None:
            return None
        if self.selection.winner_score is not None:
            return self.selection.winner_score.score
        return self.selection.best_score


@dataclass
class CheckSummary:
    """Counters for one playlist check."""

    playlist_name: str = ""
    total_tracks: int = 0
    new_tracks: int = 0
    skipped: int = 0
    downloading: int = 0
    no_match: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"{self.new_tracks} new, {self.downloading} enqueued, "
            f"{self.no_match} without match, {self.failed} failed"
        )
