"""
Playlist monitoring for spot-seeker.

    - monitor: PlaylistWorker (poll loop and track pipeline)
    - models: TrackOutcome, CheckSummary
"""

from spot_seeker.worker.models import CheckSummary, TrackOutcome
from spot_seeker.worker.monitor import PlaylistWorker

__all__ = [
    "PlaylistWorker",
    "TrackOutcome",
    "CheckSummary",
]
