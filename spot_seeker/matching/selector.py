"""
Best-match selection.

select_best() is the entry point of the matching engine: it filters the
raw candidates to the target file type, scores each remaining path,
ranks them and applies the acceptance threshold.

Selection is a pure function of (query, candidates, threshold, extension).
It performs no I/O and emits no log records, so it can be called from any
number of worker threads at once. Audit logging is a separate step,
log_match_decision(), and the Matcher class bundles both with the
configured parameters.

Example:
    result = select_best("bastinov devine", candidates)
    log_match_decision(result)
    if result.matched:
        slskd.download(result.winner)
"""

import logging
from collections.abc import Callable, Iterable
from functools import partial

from spot_seeker.core.logger import get_logger
from spot_seeker.matching.filter import DEFAULT_EXTENSION, filter_eligible
from spot_seeker.matching.models import Candidate, SelectionResult
from spot_seeker.matching.normalize import normalize
from spot_seeker.matching.scorer import score


logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.15
DEFAULT_LOG_TOP_N = 5

NO_ELIGIBLE_REASON = "no eligible files of target type"
BELOW_THRESHOLD_REASON = "best score below threshold"
SELECTED_REASON = "best score meets threshold"


def select_best(
    query: str,
    candidates: Iterable[Candidate],
    threshold: float = DEFAULT_THRESHOLD,
    extension: str = DEFAULT_EXTENSION
) -> SelectionResult:
    """
    Choose the best candidate for a query, or decline.

    Args:
        query: Search query, typically build_search_query(title, artists).
        candidates: Raw candidates as returned by slskd. May be empty.
        threshold: Minimum score a winner must reach (inclusive).
        extension: Target file extension.

    Returns:
        SelectionResult. The winner, when present, is the very Candidate
        object that was passed in. The ranking covers every eligible
        candidate, sorted by score descending; equal scores keep their
        input order.

    Behavior:
        1. Filter to the target extension. Nothing left means no match
           with reason "no eligible files of target type".
        2. Score every eligible path against the query.
        3. Stable sort by score, descending.
        4. Accept the top entry if its score >= threshold.
    """
    candidates = list(candidates)
    normalized_query = normalize(query)
    eligible = filter_eligible(candidates, extension)

    if not eligible:
        return SelectionResult(
            query=query,
            normalized_query=normalized_query,
            winner=None,
            winner_score=None,
            ranked=(),
            threshold=threshold,
            total_candidates=len(candidates),
            eligible_candidates=0,
            reason=NO_ELIGIBLE_REASON,
        )

    scored = [(candidate, score(query, candidate.path)) for candidate in eligible]
    # sorted() is stable, so ties stay in input order
    ranked = tuple(sorted(scored, key=lambda pair: pair[1].score, reverse=True))

    best_candidate, best_score = ranked[0]
    if best_score.score >= threshold:
        winner, winner_score, reason = best_candidate, best_score, SELECTED_REASON
    else:
        winner, winner_score, reason = None, None, BELOW_THRESHOLD_REASON

    return SelectionResult(
        query=query,
        normalized_query=normalized_query,
        winner=winner,
        winner_score=winner_score,
        ranked=ranked,
        threshold=threshold,
        total_candidates=len(candidates),
        eligible_candidates=len(eligible),
        reason=reason,
    )


def log_match_decision(
    result: SelectionResult,
    log: logging.Logger | None = None,
    top_n: int = DEFAULT_LOG_TOP_N
) -> None:
    """
    Write the audit trail of a selection.

    Args:
        result: The SelectionResult to describe.
        log: Logger to use. Defaults to this module's logger.
        top_n: How many ranked entries to include.

    Behavior:
        - DEBUG: query, normalized query and candidate counts
        - DEBUG: one line per top-N ranked entry (score, path, rationale)
        - INFO: the selected file (owner, size) or the explicit
          non-selection with the closest score and the threshold

        The final record carries match_decision_* extra fields, which
        MatchDecisionHandler turns into an entry of the match decisions
        report.
    """
    log = log or logger
    top = result.top(top_n)

    log.debug(
        f"Match query: '{result.query}' (normalized: '{result.normalized_query}'), "
        f"{result.total_candidates} candidates, {result.eligible_candidates} eligible"
    )
    for rank, (candidate, match) in enumerate(top, start=1):
        log.debug(f"  #{rank} {match.score:.3f} {candidate.path} [{match.reason}]")

    extra = {
        "match_decision_query": result.query,
        "match_decision_normalized_query": result.normalized_query,
        "match_decision_total": result.total_candidates,
        "match_decision_eligible": result.eligible_candidates,
        "match_decision_ranking": [
            (match.score, candidate.path, match.reason) for candidate, match in top
        ],
        "match_decision_winner": None,
        "match_decision_best_score": result.best_score,
        "match_decision_threshold": result.threshold,
        "match_decision_reason": result.reason,
    }

    if result.matched:
        winner = result.winner
        extra["match_decision_winner"] = (winner.owner, winner.path, winner.size)
        log.info(
            f"Selected {winner.path} from {winner.owner} "
            f"({winner.size} bytes, score {result.winner_score.score:.3f})",
            extra=extra
        )
    else:
        log.info(
            f"No match for '{result.normalized_query}': {result.reason} "
            f"(closest score {result.best_score:.3f}, threshold {result.threshold:.3f})",
            extra=extra
        )


class Matcher:
    """
    Configured selection with audit logging.

    Holds the matching parameters from config.yaml and the logger that
    receives the audit trail, so the worker does not have to thread them
    through every call.

    Example:
        matcher = Matcher.from_config(config.matching)
        result = matcher.select(track.search_query, candidates)
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        extension: str = DEFAULT_EXTENSION,
        log_top_n: int = DEFAULT_LOG_TOP_N,
        log: logging.Logger | None = None
    ) -> None:
        self.threshold = threshold
        self.extension = extension
        self.log_top_n = log_top_n
        self.log = log or logger

    @classmethod
    def from_config(cls, matching_config, log: logging.Logger | None = None) -> "Matcher":
        """Create a Matcher from a MatchingConfig."""
        return cls(
            threshold=matching_config.threshold,
            extension=matching_config.extension,
            log_top_n=matching_config.log_top_n,
            log=log,
        )

    def select(self, query: str, candidates: Iterable[Candidate]) -> SelectionResult:
        """Run select_best() with the configured parameters and log the decision."""
        result = select_best(query, candidates, self.threshold, self.extension)
        log_match_decision(result, self.log, self.log_top_n)
        return result

    def select_for(self, query: str) -> Callable[[list[Candidate]], SelectionResult]:
        """Bind a query, giving the select callback SlskdClient.search_and_download expects."""
        return partial(self.select, query)
