"""
spot-mirror: Mirror Spotify playlists into a local music library.

The catalog of playlists comes from the user's Spotify account; the audio
comes from YouTube Music. Each track is searched, downloaded (optionally
transcoded with ffmpeg) and stored next to its cover art. Progress is
published per track so a web front end or the terminal can follow a run.

Architecture:
    Catalog Store (core/catalog.py)
        playlists.json, written by a catalog sync, read once per run

    Source Resolver (youtube/)
        Track -> YouTube watch URL (first hit) + Spotify cover art URL

    Media Fetcher (download/fetcher.py)
        yt-dlp raw transfer, ffmpeg conversion, cover art over HTTP

    Track Processor (download/processor.py)
        Per-track state machine, failures isolated per track

    Pipeline (download/pipeline.py)
        One playlist, tracks in order, one progress event per track

    Progress Broadcaster (core/progress.py)
        Fan-out to SSE connections and the CLI progress bar

Modules:
    core/       - Configuration, catalog, progress, logging, exceptions
    spotify/    - Spotify API client and catalog sync
    youtube/    - YouTube Music source resolution
    download/   - Media transfer, track processing, pipeline
    server/     - aiohttp HTTP server (run trigger, progress stream)
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-mirror sync
        spot-mirror run "Road Trip"
        spot-mirror serve

    Python API:
        from spot_mirror.core import load_config, setup_logging, ProgressBroadcaster
        from spot_mirror.download import PlaylistPipeline

        config = load_config()
        setup_logging(config.output.directory)

        broadcaster = ProgressBroadcaster()
        broadcaster.subscribe(print)
        PlaylistPipeline.from_config(config, broadcaster).run("Road Trip")

Dependencies:
    - spotipy: Spotify API client
    - ytmusicapi: YouTube Music API client
    - yt-dlp: YouTube extraction and download
    - requests: Cover art transfer
    - aiohttp: HTTP server and server-sent events
    - click / rich-click: CLI
    - rich: Progress bar
    - tqdm: Console logging alongside progress output
    - pyyaml, python-dotenv: Configuration
"""

__version__ = "0.1.0"
__author__ = "spot-mirror"
__license__ = "MIT"

# Convenience imports for common usage
from spot_mirror.core import (
    CatalogStore,
    Config,
    ConfigError,
    Playlist,
    ProgressBroadcaster,
    ProgressEvent,
    SpotMirrorError,
    Track,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Catalog
    "CatalogStore",
    "Playlist",
    "Track",
    # Progress
    "ProgressBroadcaster",
    "ProgressEvent",
    # Exceptions
    "SpotMirrorError",
    "ConfigError",
]
