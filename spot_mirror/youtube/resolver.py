"""
Source resolution for spot-mirror.

Maps a catalog track to a playable YouTube locator and, independently, to
a cover art locator.

Media search:
    1. Query YouTube Music with "{name} {artist}" using the "songs" filter
    2. If that yields no playable candidate, repeat with the "videos" filter
    3. Hand the candidates, in the order YouTube returned them, to the
       ranking strategy. The default strategy takes the first one.

    No similarity scoring is applied: the first hit wins, which can be a
    cover or a live version. Pass a different `ranking` callable to change
    that.

Cover art:
    Looked up through Spotify search (first track, first album image) when
    a Spotify client is available. Art lookup failures are logged and
    yield no art; they never affect the media result.

Outcomes:
    - Nothing found              -> ResolvedSource(media_locator=None)
    - Search could not be made   -> ResolutionError (retryable)

Usage:
    resolver = SourceResolver(art_client=SpotifyClient.with_client_credentials(cfg))
    source = resolver.resolve(track)
    if source.media_locator is None:
        ...
"""

from typing import Callable, Sequence

from ytmusicapi import YTMusic

from spot_mirror.core.catalog import Track
from spot_mirror.core.exceptions import ResolutionError, SpotifyError
from spot_mirror.core.logger import get_logger
from spot_mirror.spotify.client import SpotifyClient
from spot_mirror.youtube.models import ResolvedSource, SearchCandidate


logger = get_logger(__name__)

# Search filters tried in order until one yields a playable candidate
SEARCH_FILTERS = ("songs", "videos")
SEARCH_LIMIT = 20

RankingStrategy = Callable[[Track, Sequence[SearchCandidate]], SearchCandidate | None]


def first_candidate(track: Track, candidates: Sequence[SearchCandidate]) -> SearchCandidate | None:
    """Default ranking: keep the source's own order and take the first hit."""
    return candidates[0] if candidates else None


class SourceResolver:
    """
    Finds remote locators for catalog tracks.

    Attributes:
        _ytmusic: YouTube Music API client (anonymous).
        _art_client: Spotify client used for cover art, or None to skip art.
        _ranking: Strategy picking one candidate out of the search results.
    """

    def __init__(
        self,
        ytmusic: YTMusic | None = None,
        art_client: SpotifyClient | None = None,
        ranking: RankingStrategy = first_candidate
    ) -> None:
        self._ytmusic = ytmusic if ytmusic is not None else YTMusic()
        self._art_client = art_client
        self._ranking = ranking

    def resolve(self, track: Track) -> ResolvedSource:
        """
        Resolve media and art locators for a track.

        Args:
            track: Catalog track to look up.

        Returns:
            ResolvedSource; either locator may be None.

        Raises:
            ResolutionError: If the media search itself failed.
        """
        media_locator = self.resolve_media(track)
        art_locator = self.resolve_art(track)
        return ResolvedSource(media_locator=media_locator, art_locator=art_locator)

    def resolve_media(self, track: Track) -> str | None:
        """
        Find a playable media URL for a track.

        Returns:
            A YouTube watch URL, or None if nothing was found.

        Raises:
            ResolutionError: If YouTube Music could not be queried.
        """
        query = track.search_query
        logger.debug(f"Searching YouTube Music for: {query}")

        for search_filter in SEARCH_FILTERS:
            candidates = self._search(query, search_filter)
            if not candidates:
                continue

            chosen = self._ranking(track, candidates)
            if chosen is None:
                continue

            logger.debug(f"Resolved {track.display_name} -> {chosen.url}")
            return chosen.url

        logger.warning(f"No YouTube result for: {query}")
        return None

    def resolve_art(self, track: Track) -> str | None:
        """
        Find a cover art URL for a track.

        Never raises: lookup problems are logged and reported as no art.
        """
        if self._art_client is None:
            return None

        try:
            art_locator = self._art_client.search_cover_url(track.search_query)
        except SpotifyError as e:
            logger.warning(f"Cover art lookup failed for {track.display_name}: {e.message}")
            return None
        except Exception as e:
            logger.warning(f"Cover art lookup failed for {track.display_name}: Unexpected error: {e}")
            return None

        if art_locator is None:
            logger.warning(f"No album art found for: {track.display_name}")
        return art_locator

    def _search(self, query: str, search_filter: str) -> list[SearchCandidate]:
        """
        Run one YouTube Music search and keep playable results.

        Raises:
            ResolutionError: On any API, transport or parsing failure.
        """
        try:
            raw_results = self._ytmusic.search(query, filter=search_filter, limit=SEARCH_LIMIT)
        except Exception as e:
            raise ResolutionError(
                f"YouTube Music search failed: {e}",
                details={"query": query, "filter": search_filter, "original_error": str(e)}
            ) from e

        candidates = []
        for raw in raw_results or []:
            candidate = SearchCandidate.from_ytmusic_result(raw)
            if candidate is not None:
                candidates.append(candidate)
        return candidates
