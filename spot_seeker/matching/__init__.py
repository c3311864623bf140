"""
Fuzzy file-matching engine.

Turns a noisy list of Soulseek search results into a single file to
download (or an explicit "no match"):

    filter_eligible -> score -> select_best

Public API:
    normalize, transliterate, build_search_query
    get_extension, filter_eligible
    extract_relevant_portion, score
    select_best, log_match_decision, Matcher
    Candidate, MatchScore, ScoreBreakdown, SelectionResult
"""

from spot_seeker.matching.filter import DEFAULT_EXTENSION, filter_eligible, get_extension
from spot_seeker.matching.models import (
    Candidate,
    MatchScore,
    ScoreBreakdown,
    SelectionResult,
)
from spot_seeker.matching.normalize import build_search_query, normalize, transliterate
from spot_seeker.matching.scorer import extract_relevant_portion, score
from spot_seeker.matching.selector import Matcher, log_match_decision, select_best

__all__ = [
    "DEFAULT_EXTENSION",
    "Candidate",
    "MatchScore",
    "ScoreBreakdown",
    "SelectionResult",
    "normalize",
    "transliterate",
    "build_search_query",
    "get_extension",
    "filter_eligible",
    "extract_relevant_portion",
    "score",
    "select_best",
    "log_match_decision",
    "Matcher",
]
