"""
YouTube module for spot-mirror.

Resolves catalog tracks to YouTube Music locators (and cover art through
Spotify search).

Usage:
    from spot_mirror.youtube import SourceResolver

    source = SourceResolver(art_client=client).resolve(track)
"""

from spot_mirror.youtube.models import ResolvedSource, SearchCandidate
from spot_mirror.youtube.resolver import (
    RankingStrategy,
    SourceResolver,
    first_candidate,
)

__all__ = [
    "ResolvedSource",
    "SearchCandidate",
    "RankingStrategy",
    "SourceResolver",
    "first_candidate",
]
