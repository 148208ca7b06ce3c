"""
Playlist pipeline for spot-mirror.

Runs every track of one catalog playlist through the TrackProcessor and
publishes a ProgressEvent after each of them.

Run Workflow:
    1. Take the run guard (only one run per process; a second concurrent
       request fails immediately with RunInProgress)
    2. Read the catalog once and look up the playlist by exact name
       (PlaylistNotFound if absent - nothing processed, nothing published)
    3. For each track, in catalog order, one at a time:
       a. Process it (never raises for track errors)
       b. completed += 1
       c. Publish ProgressEvent(playlist, round(completed / total * 100))
    4. Return a RunSummary

Guarantees for a playlist of N tracks:
    - Exactly N events, in emission order, none coalesced
    - Percentages never decrease and the last one is 100
    - Failed tracks advance progress exactly like completed ones

Tracks run sequentially; two tracks sharing a normalized key never write
the same file at the same time.

Usage:
    pipeline = PlaylistPipeline.from_config(config, broadcaster)
    summary = pipeline.run("Road Trip")
    print(f"{summary.completed}/{summary.total} downloaded")
"""

import threading
from collections import Counter
from dataclasses import dataclass, field

from spot_mirror.core.catalog import CatalogStore, Playlist
from spot_mirror.core.config import Config
from spot_mirror.core.exceptions import RunInProgress, TokenExchangeFailed
from spot_mirror.core.logger import get_logger
from spot_mirror.core.progress import ProgressBroadcaster, ProgressEvent
from spot_mirror.download.fetcher import MediaFetcher
from spot_mirror.download.processor import TrackProcessor, TrackResult
from spot_mirror.spotify.client import SpotifyClient
from spot_mirror.youtube.resolver import SourceResolver


logger = get_logger(__name__)

# One run at a time per process, shared by every pipeline instance
_RUN_LOCK = threading.Lock()


def completion_percentage(completed: int, total: int) -> int:
    """
    Integer percentage of completed over total, halves rounded up.

    Example:
        completion_percentage(1, 8)  # 13
        completion_percentage(2, 3)  # 67
    """
    if total <= 0:
        return 100
    return (completed * 200 + total) // (2 * total)


@dataclass
class RunSummary:
    """
    Outcome of one playlist run.

    Attributes:
        playlist_name: Playlist that was processed.
        total: Number of tracks in the playlist.
        results: One TrackResult per track, in catalog order.
    """
    playlist_name: str
    total: int = 0
    results: list[TrackResult] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return len(self.results) - self.completed


class PlaylistPipeline:
    """
    Orchestrates a run over one playlist.

    Attributes:
        _store: Catalog source.
        _processor: Per-track state machine.
        _broadcaster: Channel receiving progress events (injected, owned
                      by the host process).
        _run_lock: Guard against overlapping runs.
    """

    def __init__(
        self,
        store: CatalogStore,
        processor: TrackProcessor,
        broadcaster: ProgressBroadcaster,
        run_lock: "threading.Lock | None" = None
    ) -> None:
        self._store = store
        self._processor = processor
        self._broadcaster = broadcaster
        self._run_lock = run_lock if run_lock is not None else _RUN_LOCK

    @classmethod
    def from_config(cls, config: Config, broadcaster: ProgressBroadcaster) -> "PlaylistPipeline":
        """
        Wire a pipeline from configuration.

        Cover art lookup needs Spotify credentials. Without them, or when
        they are rejected, the pipeline still runs but saves no art.
        """
        art_client = None
        if config.spotify is None:
            logger.warning("No Spotify credentials configured - album art disabled")
        else:
            try:
                art_client = SpotifyClient.with_client_credentials(config.spotify)
            except TokenExchangeFailed as e:
                logger.warning(f"{e.message} - album art disabled")

        processor = TrackProcessor(
            resolver=SourceResolver(art_client=art_client),
            fetcher=MediaFetcher.from_config(config.download),
            songs_dir=config.output.songs_dir,
            art_dir=config.output.art_dir
        )
        return cls(CatalogStore(config.output.catalog_file), processor, broadcaster)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run(self, playlist_name: str) -> RunSummary:
        """
        Download every track of a playlist.

        Args:
            playlist_name: Exact (case-sensitive) catalog playlist name.

        Returns:
            RunSummary with one result per track.

        Raises:
            RunInProgress: Another run is active in this process.
            PlaylistNotFound: No playlist has this name.
            CatalogError: The catalog cannot be read.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgress(
                f"A download run is already in progress; '{playlist_name}' was not started",
                details={"playlist_name": playlist_name}
            )

        try:
            playlist = self._store.find_playlist(playlist_name)
            return self._run_playlist(playlist)
        finally:
            self._run_lock.release()

    def _run_playlist(self, playlist: Playlist) -> RunSummary:
        total = playlist.track_count
        summary = RunSummary(playlist_name=playlist.name, total=total)

        logger.info(f"Processing playlist '{playlist.name}' ({total} tracks)")
        self._warn_key_collisions(playlist)

        for completed, track in enumerate(playlist.tracks, start=1):
            result = self._processor.process(track, playlist.name)
            summary.results.append(result)

            percentage = completion_percentage(completed, total)
            logger.debug(f"'{playlist.name}': {completed}/{total} ({percentage}%)")
            self._broadcaster.publish(ProgressEvent(playlist.name, percentage))

        logger.info(
            f"Playlist '{playlist.name}' done: {summary.completed}/{total} downloaded, "
            f"{summary.failed} failed"
        )
        return summary

    @staticmethod
    def _warn_key_collisions(playlist: Playlist) -> None:
        counts = Counter(track.normalized_key for track in playlist.tracks)
        for key, count in counts.items():
            if count > 1:
                logger.warning(
                    f"{count} tracks in '{playlist.name}' share the file name '{key}'; "
                    "later tracks overwrite earlier ones"
                )
