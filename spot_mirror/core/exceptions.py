"""
Exception classes for spot-mirror.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and the hierarchy distinguishes run-level failures (fatal to a
pipeline run) from per-track failures (isolated by the track processor).

Exception Hierarchy:
    SpotMirrorError (base)
        ConfigError - Configuration file issues
        CatalogError - Catalog file unreadable or malformed
        PlaylistNotFound - Requested playlist absent from catalog (run-level)
        RunInProgress - Another pipeline run is active (run-level)
        InvalidTransition - Illegal track state machine transition
        ResolutionError - Source lookup transport failure (per-track)
        MediaError - Media transfer issues (per-track)
            SourceUnavailable - Nothing could be fetched
            TransferInterrupted - Transfer failed mid-stream
            ConversionFailed - Transcoder exited with an error
        SpotifyError - Spotify API issues
            TokenExchangeFailed - Credentials could not be exchanged
            CatalogFetchFailed - Playlists could not be listed
"""


class SpotMirrorError(Exception):
    """
    Base exception for all spot-mirror errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all spot-mirror errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., track info, URLs).

    Example:
        try:
            pipeline.run("Road Trip")
        except SpotMirrorError as e:
            logger.error(f"Run failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'track_name' / 'artist': Track involved in the error
                     - 'url': Locator that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotMirrorError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (output.directory)
        - Invalid field values (e.g., non-integer port)
    """
    pass


class CatalogError(SpotMirrorError):
    """
    Raised when the catalog file cannot be read or written.

    This is a CRITICAL error for a run: without a catalog there is
    nothing to process.

    Common causes:
        - playlists.json missing (catalog never synced)
        - Invalid JSON syntax
        - Unexpected structure (not a list of playlist records)
    """
    pass


class PlaylistNotFound(SpotMirrorError):
    """
    Raised when a run is requested for a playlist absent from the catalog.

    Lookup is exact and case-sensitive. This is the single fatal error of
    a run besides RunInProgress: it is raised before any track is touched
    and before any progress event is published.

    Attributes:
        playlist_name: The name that was looked up.
    """

    def __init__(self, playlist_name: str) -> None:
        super().__init__(
            f"Playlist not found: {playlist_name}",
            details={"playlist_name": playlist_name}
        )
        self.playlist_name = playlist_name


class RunInProgress(SpotMirrorError):
    """
    Raised when a run is requested while another run is still active.

    Only one pipeline run may be active per process. The rejected request
    processes nothing and publishes no events.
    """
    pass


class InvalidTransition(SpotMirrorError):
    """
    Raised when the track state machine is asked for an illegal transition.

    This indicates a programming error, never a remote failure.
    """
    pass


class ResolutionError(SpotMirrorError):
    """
    Raised when a source lookup fails at the transport level.

    A lookup that simply finds nothing is NOT an error (the resolver
    returns a null locator). This exception means the search itself could
    not be performed and a later retry may succeed.
    """
    pass


class MediaError(SpotMirrorError):
    """
    Base class for per-track media transfer failures.

    These are NON-CRITICAL errors - the track processor catches them and
    the run continues with the next track.
    """
    pass


class SourceUnavailable(MediaError):
    """
    Raised when nothing could be fetched from a locator.

    Either the locator was null or the transport failed before any byte
    was written. No partial file is left behind.
    """
    pass


class TransferInterrupted(MediaError):
    """
    Raised when a transfer failed after bytes were already written.

    A partial file may remain on disk; it is not cleaned up.
    """
    pass


class ConversionFailed(MediaError):
    """
    Raised when the external transcoder exits with an error.

    The temporary source file is kept for diagnosis and nothing is
    written at the destination path.

    Example:
        raise ConversionFailed(
            "ffmpeg exited with code 1",
            details={'source': '/music/songs/x.mp3.source', 'returncode': 1}
        )
    """
    pass


class SpotifyError(SpotMirrorError):
    """
    Raised when there's an issue with the Spotify API.

    Attributes:
        is_rate_limit: True if this is a rate limit error.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_rate_limit = is_rate_limit


class TokenExchangeFailed(SpotifyError):
    """
    Raised when Spotify credentials cannot be exchanged for an access token.

    Check client_id, client_secret and redirect_uri in config.yaml / .env.
    """
    pass


class CatalogFetchFailed(SpotifyError):
    """
    Raised when the user's playlists or their tracks cannot be listed.

    The pipeline treats the catalog as a precondition and never retries
    this itself.
    """
    pass
