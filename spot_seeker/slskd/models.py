"""
Data models for slskd API responses.

Search results themselves are mapped straight into matching.Candidate;
only the search status needs its own type.
"""

from dataclasses import dataclass
from typing import Any


# Terminal states reported by slskd. The state string can be compound,
# e.g. "Completed, TimedOut", so membership is tested by substring.
COMPLETED_STATES = ("Completed", "TimedOut")
CANCELLED_STATE = "Cancelled"


@dataclass(frozen=True)
class SearchStatus:
    """
    Status of one slskd search.

    Attributes:
        search_id: slskd search ID (a UUID string).
        state: Raw state string, e.g. "InProgress" or "Completed, TimedOut".
        is_complete: slskd's own completion flag.
        response_count: Number of peers that answered so far.
        file_count: Number of files offered so far.
    """

    search_id: str
    state: str
    is_complete: bool = False
    response_count: int = 0
    file_count: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SearchStatus":
        """Create a SearchStatus from a GET /api/v0/searches/{id} response."""
        return cls(
            search_id=str(data.get("id", "")),
            state=data.get("state") or "",
            is_complete=bool(data.get("isComplete", False)),
            response_count=data.get("responseCount") or 0,
            file_count=data.get("fileCount") or 0,
        )

    @property
    def is_finished(self) -> bool:
        """True when the search will not receive more results."""
        if self.is_complete:
            return True
        return any(state in self.state for state in COMPLETED_STATES)

    @property
    def is_cancelled(self) -> bool:
        return CANCELLED_STATE in self.state
