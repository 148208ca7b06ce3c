"""
Core module for spot-mirror.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - catalog: Catalog model and the playlists.json store
    - progress: Progress events, broadcaster and CLI progress bar
    - logger: Logging system with multiple outputs

Usage:
    from spot_mirror.core import (
        Config, load_config,
        CatalogStore, Track,
        ProgressBroadcaster, ProgressEvent,
        setup_logging, get_logger,
        SpotMirrorError, ConfigError, CatalogError
    )
"""

from spot_mirror.core.catalog import CatalogStore, Playlist, Track, normalized_key
from spot_mirror.core.config import (
    Config,
    DownloadConfig,
    OutputConfig,
    ServerConfig,
    SpotifyConfig,
    load_config,
)
from spot_mirror.core.exceptions import (
    CatalogError,
    CatalogFetchFailed,
    ConfigError,
    ConversionFailed,
    InvalidTransition,
    MediaError,
    PlaylistNotFound,
    ResolutionError,
    RunInProgress,
    SourceUnavailable,
    SpotifyError,
    SpotMirrorError,
    TokenExchangeFailed,
    TransferInterrupted,
)
from spot_mirror.core.logger import (
    get_logger,
    log_download_failure,
    setup_logging,
    shutdown_logging,
)
from spot_mirror.core.progress import (
    PlaylistProgressBar,
    ProgressBroadcaster,
    ProgressEvent,
    Subscription,
)

__all__ = [
    # Catalog
    "CatalogStore",
    "Playlist",
    "Track",
    "normalized_key",
    # Config
    "Config",
    "SpotifyConfig",
    "OutputConfig",
    "DownloadConfig",
    "ServerConfig",
    "load_config",
    # Exceptions
    "SpotMirrorError",
    "ConfigError",
    "CatalogError",
    "PlaylistNotFound",
    "RunInProgress",
    "InvalidTransition",
    "ResolutionError",
    "MediaError",
    "SourceUnavailable",
    "TransferInterrupted",
    "ConversionFailed",
    "SpotifyError",
    "TokenExchangeFailed",
    "CatalogFetchFailed",
    # Logger
    "setup_logging",
    "get_logger",
    "log_download_failure",
    "shutdown_logging",
    # Progress
    "ProgressBroadcaster",
    "ProgressEvent",
    "Subscription",
    "PlaylistProgressBar",
]
