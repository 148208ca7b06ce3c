"""
Spotify module for spot-mirror.

Components:
    - SpotifyClient: spotipy wrapper (client-credentials for cover art
      search, user OAuth for catalog sync)
    - CatalogFetcher: Builds playlists.json from the user's playlists

Usage:
    from spot_mirror.spotify import SpotifyClient, CatalogFetcher

    client = SpotifyClient.with_user_auth(config.spotify)
    CatalogFetcher(client, CatalogStore(config.output.catalog_file)).sync()
"""

from spot_mirror.spotify.client import SpotifyClient
from spot_mirror.spotify.fetcher import CatalogFetcher, track_from_item

__all__ = [
    "SpotifyClient",
    "CatalogFetcher",
    "track_from_item",
]
