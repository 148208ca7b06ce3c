"""
Data models for source resolution.

SearchCandidate is one YouTube Music search hit; ResolvedSource is what
the resolver hands to the track processor. Both are transient: they are
attached to in-memory work only and never persisted in the catalog.
"""

from dataclasses import dataclass
from typing import Any


YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


@dataclass(frozen=True)
class SearchCandidate:
    """
    Immutable representation of a YouTube Music search result.

    Attributes:
        video_id: YouTube video ID (11-character string).
                  Example: "dQw4w9WgXcQ"
        title: Video/song title as it appears on YouTube.
        artists: Tuple of artist names; may be empty for user uploads.
        result_type: "song" or "video".
    """
    video_id: str
    title: str
    artists: tuple[str, ...] = ()
    result_type: str = "song"

    @property
    def url(self) -> str:
        """Watch URL used as the media locator."""
        return YOUTUBE_WATCH_URL.format(video_id=self.video_id)

    @classmethod
    def from_ytmusic_result(cls, raw: dict[str, Any]) -> "SearchCandidate | None":
        """
        Create a candidate from a ytmusicapi search() entry.

        Returns:
            The candidate, or None when the entry has no videoId
            (albums, artists and other non-playable hits).
        """
        video_id = raw.get("videoId")
        if not video_id:
            return None

        artists = tuple(
            a["name"] for a in raw.get("artists") or [] if a and a.get("name")
        )
        return cls(
            video_id=video_id,
            title=raw.get("title") or "",
            artists=artists,
            result_type=raw.get("resultType") or "song",
        )


@dataclass(frozen=True)
class ResolvedSource:
    """
    Remote locators found for one track.

    Attributes:
        media_locator: URL of a streamable audio source, or None when the
                       search found nothing.
        art_locator: URL of the cover image, or None.
    """
    media_locator: str | None = None
    art_locator: str | None = None

    @property
    def has_media(self) -> bool:
        return self.media_locator is not None
