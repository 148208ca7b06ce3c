"""
Spotify API client for spot-mirror.

Thin wrapper around spotipy covering the two things this application needs
from Spotify:

    1. The user's playlists and their tracks (catalog sync). Requires the
       OAuth authorization-code flow: the user logs in through the browser
       once and the token is cached by spotipy.
    2. Track search, used to find cover art for a (name, artist) pair.
       Uses the client-credentials flow, no user interaction.

Unlike a module-level singleton, instances are created by the host process
and handed to whoever needs them (catalog fetcher, source resolver).

Authentication failures surface as TokenExchangeFailed; failures while
listing playlists surface as CatalogFetchFailed.

Usage:
    client = SpotifyClient.with_client_credentials(config.spotify)
    cover = client.search_cover_url("Bohemian Rhapsody Queen")

    client = SpotifyClient.with_user_auth(config.spotify)
    for playlist in client.current_user_playlists():
        items = client.playlist_all_items(playlist["id"])
"""

from typing import Any

import requests
import spotipy
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOAuth, SpotifyOauthError

from spot_mirror.core.config import SpotifyConfig
from spot_mirror.core.exceptions import (
    CatalogFetchFailed,
    SpotifyError,
    TokenExchangeFailed,
)
from spot_mirror.core.logger import get_logger


logger = get_logger(__name__)

USER_SCOPE = "playlist-read-private playlist-read-collaborative"

PLAYLISTS_PAGE_SIZE = 50
ITEMS_PAGE_SIZE = 100


class SpotifyClient:
    """
    Spotify Web API client.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.
        _user_auth: Whether the client acts on behalf of a logged-in user.

    Thread Safety:
        spotipy manages its own HTTP session; read calls may be issued
        from the pipeline worker thread.
    """

    def __init__(self, spotify_instance: spotipy.Spotify, user_auth: bool = False) -> None:
        self._spotify = spotify_instance
        self._user_auth = user_auth

    @classmethod
    def with_client_credentials(cls, config: SpotifyConfig) -> "SpotifyClient":
        """
        Create a client using the client-credentials flow.

        Raises:
            TokenExchangeFailed: If the credentials are rejected.
        """
        auth_manager = SpotifyClientCredentials(
            client_id=config.client_id,
            client_secret=config.client_secret
        )
        spotify_instance = spotipy.Spotify(auth_manager=auth_manager)
        return cls._verified(spotify_instance, user_auth=False)

    @classmethod
    def with_user_auth(cls, config: SpotifyConfig, open_browser: bool = True) -> "SpotifyClient":
        """
        Create a client acting on behalf of the user (OAuth code flow).

        Opens the browser on first use; later runs reuse spotipy's token cache.

        Raises:
            TokenExchangeFailed: If the authorization code cannot be exchanged.
        """
        auth_manager = SpotifyOAuth(
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            scope=USER_SCOPE,
            open_browser=open_browser
        )
        spotify_instance = spotipy.Spotify(auth_manager=auth_manager)
        return cls._verified(spotify_instance, user_auth=True)

    @classmethod
    def _verified(cls, spotify_instance: spotipy.Spotify, user_auth: bool) -> "SpotifyClient":
        """Make one cheap call so a bad credential fails here, not mid-run."""
        try:
            if user_auth:
                spotify_instance.current_user()
            else:
                spotify_instance.search(q="test", type="track", limit=1)
        except (SpotifyOauthError, spotipy.SpotifyException, requests.RequestException) as e:
            raise TokenExchangeFailed(
                f"Spotify authentication failed: {e}",
                details={"original_error": str(e)}
            ) from e
        return cls(spotify_instance, user_auth=user_auth)

    @property
    def has_user_auth(self) -> bool:
        return self._user_auth

    # =========================================================================
    # Search
    # =========================================================================

    def search_cover_url(self, query: str) -> str | None:
        """
        Return the cover image of the first track matching a free-text query.

        Args:
            query: Search text, typically "{name} {artist}".

        Returns:
            URL of the first (largest) album image, or None when the search
            has no result or the album has no image.

        Raises:
            SpotifyError: On API or transport errors.
        """
        try:
            response = self._spotify.search(q=query, type="track", limit=1)
        except (spotipy.SpotifyException, SpotifyOauthError, requests.RequestException) as e:
            raise SpotifyError(
                f"Spotify search failed: {e}",
                details={"query": query, "original_error": str(e)},
                is_rate_limit=getattr(e, "http_status", None) == 429
            ) from e

        items = ((response or {}).get("tracks") or {}).get("items") or []
        first = items[0] if items else None
        if not isinstance(first, dict):
            return None

        images = (first.get("album") or {}).get("images") or []
        if not images or not isinstance(images[0], dict):
            return None
        return images[0].get("url")

    # =========================================================================
    # User Library Operations (requires user auth)
    # =========================================================================

    def current_user_playlists(self) -> list[dict[str, Any]]:
        """
        Get ALL playlists of the logged-in user, handling pagination.

        Raises:
            CatalogFetchFailed: If not user-authenticated or on API errors.
        """
        if not self._user_auth:
            raise CatalogFetchFailed("Listing playlists requires user authentication")

        playlists: list[dict[str, Any]] = []
        offset = 0

        while True:
            try:
                response = self._spotify.current_user_playlists(
                    limit=PLAYLISTS_PAGE_SIZE,
                    offset=offset
                )
            except (spotipy.SpotifyException, requests.RequestException) as e:
                raise CatalogFetchFailed(
                    f"Failed to fetch playlists: {e}",
                    details={"offset": offset, "original_error": str(e)},
                    is_rate_limit=getattr(e, "http_status", None) == 429
                ) from e

            response = response or {}
            playlists.extend(item for item in response.get("items", []) if item)

            if response.get("next") is None:
                break
            offset += PLAYLISTS_PAGE_SIZE

        return playlists

    def playlist_all_items(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get ALL items of a playlist, handling pagination.

        Args:
            playlist_id: Spotify playlist ID, URI or URL.

        Raises:
            CatalogFetchFailed: On API errors.
        """
        all_items: list[dict[str, Any]] = []
        offset = 0

        while True:
            try:
                response = self._spotify.playlist_items(
                    playlist_id,
                    limit=ITEMS_PAGE_SIZE,
                    offset=offset,
                    additional_types=["track"]
                )
            except (spotipy.SpotifyException, requests.RequestException) as e:
                raise CatalogFetchFailed(
                    f"Failed to fetch playlist items: {e}",
                    details={"playlist_id": playlist_id, "original_error": str(e)},
                    is_rate_limit=getattr(e, "http_status", None) == 429
                ) from e

            response = response or {}
            all_items.extend(response.get("items", []))

            if response.get("next") is None:
                break
            offset += ITEMS_PAGE_SIZE

        return all_items
