"""
Download module for spot-mirror.

Components:
    - MediaFetcher: yt-dlp raw transfer, ffmpeg conversion, cover art
    - TrackProcessor: Per-track state machine (TrackState, TrackResult)
    - PlaylistPipeline: Runs one playlist and publishes progress

Usage:
    from spot_mirror.download import PlaylistPipeline

    pipeline = PlaylistPipeline.from_config(config, broadcaster)
    summary = pipeline.run("Road Trip")
"""

from spot_mirror.download.fetcher import MediaFetcher
from spot_mirror.download.pipeline import (
    PlaylistPipeline,
    RunSummary,
    completion_percentage,
)
from spot_mirror.download.processor import TrackProcessor, TrackResult, TrackState

__all__ = [
    "MediaFetcher",
    "TrackProcessor",
    "TrackResult",
    "TrackState",
    "PlaylistPipeline",
    "RunSummary",
    "completion_percentage",
]
