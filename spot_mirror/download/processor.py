"""
Per-track processing for spot-mirror.

Each track is driven through an explicit state machine:

    PENDING -> RESOLVING -> RESOLUTION_FAILED
                         -> RESOLVED -> DOWNLOADING -> DOWNLOAD_FAILED
                                                    -> DOWNLOADED -> COMPLETE
                                                                  -> CONVERTING -> CONVERSION_FAILED
                                                                                -> COMPLETE

CONVERTING is only entered when the fetcher is configured to transcode.
The four terminal states are RESOLUTION_FAILED, DOWNLOAD_FAILED,
CONVERSION_FAILED and COMPLETE.

Failure isolation:
    process() never raises for anything that goes wrong with the track.
    Every error is caught, logged with the track name and artist (and
    written to the download failures report), and returned as a
    TrackResult in a failure state. The batch carries on.

Files:
    songs/{normalized_key}.{webm|codec}   media
    album-art/{normalized_key}.jpg        cover art

    Cover art is fetched only once the media is in place. When the art
    transfer fails the track still completes; the failure is a warning.
    A track that fails resolution leaves no file at all.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from spot_mirror.core.catalog import Track
from spot_mirror.core.exceptions import (
    ConversionFailed,
    InvalidTransition,
    MediaError,
    ResolutionError,
)
from spot_mirror.core.logger import get_logger, log_download_failure
from spot_mirror.download.fetcher import ART_EXTENSION, MediaFetcher
from spot_mirror.youtube.models import ResolvedSource
from spot_mirror.youtube.resolver import SourceResolver


logger = get_logger(__name__)


class TrackState(Enum):
    """States of the per-track state machine."""
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLUTION_FAILED = "resolution_failed"
    RESOLVED = "resolved"
    DOWNLOADING = "downloading"
    DOWNLOAD_FAILED = "download_failed"
    DOWNLOADED = "downloaded"
    CONVERTING = "converting"
    CONVERSION_FAILED = "conversion_failed"
    COMPLETE = "complete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_STATES


FAILURE_STATES = frozenset({
    TrackState.RESOLUTION_FAILED,
    TrackState.DOWNLOAD_FAILED,
    TrackState.CONVERSION_FAILED,
})

TERMINAL_STATES = FAILURE_STATES | {TrackState.COMPLETE}

ALLOWED_TRANSITIONS: dict[TrackState, frozenset[TrackState]] = {
    TrackState.PENDING: frozenset({TrackState.RESOLVING}),
    TrackState.RESOLVING: frozenset({TrackState.RESOLUTION_FAILED, TrackState.RESOLVED}),
    TrackState.RESOLVED: frozenset({TrackState.DOWNLOADING}),
    TrackState.DOWNLOADING: frozenset({TrackState.DOWNLOAD_FAILED, TrackState.DOWNLOADED}),
    TrackState.DOWNLOADED: frozenset({TrackState.CONVERTING, TrackState.COMPLETE}),
    TrackState.CONVERTING: frozenset({TrackState.CONVERSION_FAILED, TrackState.COMPLETE}),
}


@dataclass
class TrackResult:
    """
    Outcome of processing one track.

    Attributes:
        track: The catalog track (never modified).
        state: Current state; terminal once process() returns.
        transitions: Every state visited, in order, starting with PENDING.
        source: Locators found during resolution (in-memory only).
        media_path: Media file written, set on COMPLETE.
        art_path: Art file written, set when the art transfer succeeded.
        error: Failure reason for failure states.
    """
    track: Track
    state: TrackState = TrackState.PENDING
    transitions: list[TrackState] = field(default_factory=lambda: [TrackState.PENDING])
    source: ResolvedSource | None = None
    media_path: Path | None = None
    art_path: Path | None = None
    error: str | None = None

    def advance(self, new_state: TrackState) -> None:
        """
        Move to new_state.

        Raises:
            InvalidTransition: If the move is not allowed from the current state.
        """
        if new_state not in ALLOWED_TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransition(
                f"Illegal transition {self.state.name} -> {new_state.name}",
                details={"track_name": self.track.name}
            )
        self.state = new_state
        self.transitions.append(new_state)

    @property
    def succeeded(self) -> bool:
        return self.state is TrackState.COMPLETE


class TrackProcessor:
    """
    Runs one track through resolution, transfer, conversion and art.

    Attributes:
        songs_dir: Directory for media files.
        art_dir: Directory for cover art files.
    """

    def __init__(
        self,
        resolver: SourceResolver,
        fetcher: MediaFetcher,
        songs_dir: Path,
        art_dir: Path
    ) -> None:
        self._resolver = resolver
        self._fetcher = fetcher
        self.songs_dir = songs_dir
        self.art_dir = art_dir

    def media_path(self, track: Track) -> Path:
        return self.songs_dir / f"{track.normalized_key}.{self._fetcher.media_extension}"

    def art_path(self, track: Track) -> Path:
        return self.art_dir / f"{track.normalized_key}.{ART_EXTENSION}"

    def process(self, track: Track, playlist_name: str | None = None) -> TrackResult:
        """
        Process a single track to a terminal state.

        Args:
            track: Catalog track.
            playlist_name: Playlist being processed, for failure reports.

        Returns:
            TrackResult in a terminal state. Never raises for track errors.
        """
        result = TrackResult(track=track)
        result.advance(TrackState.RESOLVING)

        try:
            source = self._resolver.resolve(track)
        except ResolutionError as e:
            return self._fail(result, TrackState.RESOLUTION_FAILED, e.message, playlist_name)
        except Exception as e:
            return self._fail(result, TrackState.RESOLUTION_FAILED, f"Unexpected error: {e}", playlist_name)

        result.source = source
        if not source.has_media:
            return self._fail(result, TrackState.RESOLUTION_FAILED, "No source found", playlist_name)

        result.advance(TrackState.RESOLVED)
        result.advance(TrackState.DOWNLOADING)

        media_path = self.media_path(track)
        staging = self._fetcher.staging_path(media_path)

        try:
            self._fetcher.download(source.media_locator, staging)
        except MediaError as e:
            return self._fail(result, TrackState.DOWNLOAD_FAILED, e.message, playlist_name)
        except Exception as e:
            return self._fail(result, TrackState.DOWNLOAD_FAILED, f"Unexpected error: {e}", playlist_name)

        result.advance(TrackState.DOWNLOADED)

        if self._fetcher.transcode:
            result.advance(TrackState.CONVERTING)
            try:
                self._fetcher.convert(staging, media_path)
            except ConversionFailed as e:
                return self._fail(result, TrackState.CONVERSION_FAILED, e.message, playlist_name)
            except Exception as e:
                return self._fail(
                    result, TrackState.CONVERSION_FAILED, f"Unexpected error: {e}", playlist_name
                )

        result.media_path = media_path
        result.art_path = self._fetch_art(track, source)
        result.advance(TrackState.COMPLETE)

        logger.info(f"Downloaded: {track.display_name} -> {media_path.name}")
        return result

    def _fetch_art(self, track: Track, source: ResolvedSource) -> Path | None:
        if source.art_locator is None:
            return None

        art_path = self.art_path(track)
        try:
            return self._fetcher.fetch_art(source.art_locator, art_path)
        except MediaError as e:
            logger.warning(f"Cover art not saved for {track.display_name}: {e.message}")
        except Exception as e:
            logger.warning(f"Cover art not saved for {track.display_name}: Unexpected error: {e}")
        return None

    def _fail(
        self,
        result: TrackResult,
        state: TrackState,
        reason: str,
        playlist_name: str | None
    ) -> TrackResult:
        result.advance(state)
        result.error = reason
        log_download_failure(
            logger,
            track_name=result.track.name,
            artist=result.track.artist,
            state=state.name,
            reason=reason,
            playlist_name=playlist_name
        )
        return result
