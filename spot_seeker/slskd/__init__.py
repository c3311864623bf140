"""
slskd integration for spot-seeker.

    - client: SlskdClient (session login, searches, download enqueue)
    - models: SearchStatus
"""

from spot_seeker.slskd.client import SlskdClient
from spot_seeker.slskd.models import SearchStatus

__all__ = [
    "SlskdClient",
    "SearchStatus",
]
