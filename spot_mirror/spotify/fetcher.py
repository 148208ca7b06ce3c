"""
Catalog retrieval from Spotify.

Lists every playlist of the logged-in user, reduces each track to the
three attributes the catalog keeps (name, artist, album) and writes the
result through the CatalogStore. The download pipeline never calls this;
it only reads the file produced here.

Skipped items:
    - Removed/unavailable entries (track is null)
    - Podcast episodes
    - Local files (no Spotify metadata worth searching for)

Playlist names must be unique within a catalog. When the user owns two
playlists with the same name, the later ones get " (2)", " (3)", ...

Usage:
    client = SpotifyClient.with_user_auth(config.spotify)
    fetcher = CatalogFetcher(client, CatalogStore(config.output.catalog_file))
    playlists = fetcher.sync()
"""

from typing import Any

from spot_mirror.core.catalog import CatalogStore, Playlist, Track
from spot_mirror.core.logger import get_logger
from spot_mirror.spotify.client import SpotifyClient


logger = get_logger(__name__)


def track_from_item(item: dict[str, Any] | None) -> Track | None:
    """
    Convert a playlist item from the Spotify API into a catalog Track.

    Args:
        item: One element of a playlist_items() response.

    Returns:
        The Track, or None when the item must be skipped.
    """
    if not item:
        return None

    track_data = item.get("track")
    if not track_data or not track_data.get("name"):
        return None
    if track_data.get("type", "track") != "track":
        return None
    if item.get("is_local") or track_data.get("is_local"):
        return None

    artist = ", ".join(
        a["name"] for a in track_data.get("artists", []) if a and a.get("name")
    )
    album = (track_data.get("album") or {}).get("name") or ""

    return Track(name=track_data["name"], artist=artist, album=album)


class CatalogFetcher:
    """
    Builds the catalog from the user's Spotify library.

    Attributes:
        _client: User-authenticated SpotifyClient.
        _store: Destination CatalogStore.
    """

    def __init__(self, client: SpotifyClient, store: CatalogStore) -> None:
        self._client = client
        self._store = store

    def fetch_catalog(self) -> list[Playlist]:
        """
        Fetch all playlists and their tracks.

        Returns:
            Playlists in the order Spotify lists them, tracks in playlist order.

        Raises:
            CatalogFetchFailed: If Spotify cannot be queried.
        """
        playlists: list[Playlist] = []
        seen_names: dict[str, int] = {}

        for playlist_data in self._client.current_user_playlists():
            name = self._unique_name(playlist_data.get("name") or "Untitled", seen_names)

            items = self._client.playlist_all_items(playlist_data["id"])
            tracks = [track for track in map(track_from_item, items) if track is not None]

            skipped = len(items) - len(tracks)
            if skipped:
                logger.debug(f"Skipped {skipped} unsupported items in '{name}'")

            logger.info(f"Fetched '{name}': {len(tracks)} tracks")
            playlists.append(Playlist(name=name, tracks=tuple(tracks)))

        return playlists

    def sync(self) -> list[Playlist]:
        """
        Fetch the catalog and persist it, replacing the previous file.

        Raises:
            CatalogFetchFailed: If Spotify cannot be queried.
            CatalogError: If the catalog file cannot be written.
        """
        playlists = self.fetch_catalog()
        self._store.save(playlists)
        logger.info(f"Catalog saved to {self._store.path} ({len(playlists)} playlists)")
        return playlists

    @staticmethod
    def _unique_name(name: str, seen_names: dict[str, int]) -> str:
        count = seen_names.get(name, 0) + 1
        seen_names[name] = count
        if count == 1:
            return name

        unique = f"{name} ({count})"
        logger.warning(f"Duplicate playlist name '{name}' stored as '{unique}'")
        return unique
