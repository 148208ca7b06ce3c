"""
Progress events and their fan-out for spot-mirror.

A pipeline run publishes one ProgressEvent per processed track. Events go
through a ProgressBroadcaster owned by the host process (the HTTP server or
the CLI) and injected into the pipeline. Every listener registered at the
moment of publication receives the event, synchronously and in registration
order. Nothing is buffered: with no listeners an event is simply dropped,
and a listener that subscribes late only sees what is published afterwards.

Listeners are plain callables taking a ProgressEvent. Two kinds exist:
    - Server-sent-event connections (see spot_mirror.server.app)
    - PlaylistProgressBar, a Rich progress bar used by the CLI

Usage:
    broadcaster = ProgressBroadcaster()

    subscription = broadcaster.subscribe(print)
    broadcaster.publish(ProgressEvent("Road Trip", 50))
    broadcaster.unsubscribe(subscription)

    # Or scoped
    with broadcaster.subscribed(listener):
        pipeline.run("Road Trip")
"""

import itertools
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from rich import get_console
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.theme import Theme

from spot_mirror.core.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """
    Completion notification for one playlist run.

    Attributes:
        playlist_name: Playlist being processed.
        percentage: Integer in [0, 100]; non-decreasing within a run.
    """
    playlist_name: str
    percentage: int

    def to_dict(self) -> dict[str, Any]:
        """Wire form sent to progress stream clients."""
        return {"playlist": self.playlist_name, "percentage": self.percentage}


ProgressListener = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class Subscription:
    """
    Handle returned by ProgressBroadcaster.subscribe().

    Attributes:
        id: Unique, increasing identifier within one broadcaster.
    """
    id: int


class ProgressBroadcaster:
    """
    Process-wide publish/subscribe channel for progress events.

    Thread Safety:
        subscribe() and unsubscribe() are driven by client connects and
        disconnects, publish() by the active run on a worker thread. The
        listener table is guarded by a lock; publish() copies it under the
        lock and invokes listeners outside of it, so a listener may
        unsubscribe itself (or others) while being called.

    Failure isolation:
        A listener that raises is logged and skipped. The remaining
        listeners still receive the event and the publisher never sees
        the error.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[int, ProgressListener] = {}
        self._ids = itertools.count(1)

    def subscribe(self, listener: ProgressListener) -> Subscription:
        """
        Register a listener.

        Args:
            listener: Callable invoked with every event published from now on.

        Returns:
            Subscription handle to pass to unsubscribe().
        """
        with self._lock:
            subscription = Subscription(next(self._ids))
            self._listeners[subscription.id] = listener
        logger.debug(f"Progress listener {subscription.id} subscribed")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """
        Deregister a listener. Unknown or already removed handles are ignored.
        """
        with self._lock:
            removed = self._listeners.pop(subscription.id, None)
        if removed is not None:
            logger.debug(f"Progress listener {subscription.id} unsubscribed")

    @contextmanager
    def subscribed(self, listener: ProgressListener) -> Iterator[Subscription]:
        """Subscribe for the duration of a with-block."""
        subscription = self.subscribe(listener)
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def publish(self, event: ProgressEvent) -> None:
        """
        Deliver an event to every currently registered listener.

        Delivery is synchronous and follows registration order. With no
        listeners the event is dropped.
        """
        with self._lock:
            listeners = list(self._listeners.items())

        for subscription_id, listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Progress listener {subscription_id} failed")

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


# =============================================================================
# CLI progress bar
# =============================================================================

PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",  # Magenta/purple
    "bar.finished": "rgb(114,156,31)",  # Green when done
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class PlaylistProgressBar:
    """
    Rich progress bar driven by progress events.

    Pass the instance itself as a broadcaster listener. It only reacts to
    events for the playlist it was created for.

    Example:
        with PlaylistProgressBar("Road Trip") as bar:
            with broadcaster.subscribed(bar):
                pipeline.run("Road Trip")

        Road Trip       ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━  50%
    """

    def __init__(self, playlist_name: str, description: str | None = None) -> None:
        self.playlist_name = playlist_name
        self.description = description or playlist_name
        self.percentage = 0

        self.console = get_console()

        self.progress = Progress(
            TextColumn("[white]{task.description:<15.15}"),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: TaskID | None = None
        self._started = False

    def __enter__(self) -> "PlaylistProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def __call__(self, event: ProgressEvent) -> None:
        if event.playlist_name != self.playlist_name:
            return
        self.update(event.percentage)

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if not self._started:
            self.console.push_theme(PROGRESS_THEME)
            self.progress.start()
            self.task_id = self.progress.add_task(description=self.description, total=100)
            self._started = True

    def stop(self) -> None:
        """Stop the progress bar."""
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def update(self, percentage: int) -> None:
        """Move the bar to the given percentage."""
        self.percentage = percentage
        if self.task_id is not None:
            self.progress.update(self.task_id, completed=percentage)
