"""Test Spotify client and catalog sync"""

from unittest.mock import Mock, patch

import pytest
import spotipy
from spotipy.oauth2 import SpotifyOauthError

from spot_mirror.core.catalog import CatalogStore
from spot_mirror.core.config import SpotifyConfig
from spot_mirror.core.exceptions import CatalogFetchFailed, SpotifyError, TokenExchangeFailed
from spot_mirror.spotify.client import SpotifyClient
from spot_mirror.spotify.fetcher import CatalogFetcher, track_from_item


CONFIG = SpotifyConfig(client_id="id", client_secret="secret")


def search_response(images):
    return {"tracks": {"items": [{"album": {"images": images}}]}}


class TestSpotifyClient:
    """Test SpotifyClient"""

    @patch("spot_mirror.spotify.client.SpotifyClientCredentials")
    @patch("spot_mirror.spotify.client.spotipy.Spotify")
    def test_client_credentials(self, mock_spotify, mock_credentials):
        client = SpotifyClient.with_client_credentials(CONFIG)

        mock_credentials.assert_called_once_with(client_id="id", client_secret="secret")
        assert not client.has_user_auth

    @patch("spot_mirror.spotify.client.SpotifyClientCredentials")
    @patch("spot_mirror.spotify.client.spotipy.Spotify")
    def test_rejected_credentials(self, mock_spotify, mock_credentials):
        mock_spotify.return_value.search.side_effect = spotipy.SpotifyException(
            401, -1, "invalid_client"
        )

        with pytest.raises(TokenExchangeFailed):
            SpotifyClient.with_client_credentials(CONFIG)

    @patch("spot_mirror.spotify.client.SpotifyOAuth")
    @patch("spot_mirror.spotify.client.spotipy.Spotify")
    def test_user_auth(self, mock_spotify, mock_oauth):
        client = SpotifyClient.with_user_auth(CONFIG, open_browser=False)

        assert client.has_user_auth
        assert mock_oauth.call_args.kwargs["scope"] == "playlist-read-private playlist-read-collaborative"
        assert mock_oauth.call_args.kwargs["open_browser"] is False
        mock_spotify.return_value.current_user.assert_called_once()

    def test_search_cover_url_first_image(self):
        spotify = Mock()
        spotify.search.return_value = search_response([
            {"url": "https://i.scdn.co/image/640", "width": 640},
            {"url": "https://i.scdn.co/image/300", "width": 300},
        ])

        url = SpotifyClient(spotify).search_cover_url("Bohemian Rhapsody Queen")

        assert url == "https://i.scdn.co/image/640"
        spotify.search.assert_called_once_with(q="Bohemian Rhapsody Queen", type="track", limit=1)

    def test_search_cover_url_no_result(self):
        spotify = Mock()
        spotify.search.return_value = {"tracks": {"items": []}}

        assert SpotifyClient(spotify).search_cover_url("nothing") is None

    def test_search_cover_url_no_images(self):
        spotify = Mock()
        spotify.search.return_value = search_response([])

        assert SpotifyClient(spotify).search_cover_url("Bohemian Rhapsody Queen") is None

    def test_search_rate_limit(self):
        spotify = Mock()
        spotify.search.side_effect = spotipy.SpotifyException(429, -1, "rate limited")

        with pytest.raises(SpotifyError) as exc_info:
            SpotifyClient(spotify).search_cover_url("Bohemian Rhapsody Queen")

        assert exc_info.value.is_rate_limit

    def test_search_token_refresh_failure(self):
        spotify = Mock()
        spotify.search.side_effect = SpotifyOauthError("invalid_client")

        with pytest.raises(SpotifyError):
            SpotifyClient(spotify).search_cover_url("Bohemian Rhapsody Queen")

    def test_search_cover_url_null_item(self):
        spotify = Mock()
        spotify.search.return_value = {"tracks": {"items": [None]}}

        assert SpotifyClient(spotify).search_cover_url("Bohemian Rhapsody Queen") is None

    def test_playlists_require_user_auth(self):
        with pytest.raises(CatalogFetchFailed):
            SpotifyClient(Mock(), user_auth=False).current_user_playlists()

    def test_playlists_pagination(self):
        spotify = Mock()
        spotify.current_user_playlists.side_effect = [
            {"items": [{"id": "p1"}], "next": "page2"},
            {"items": [{"id": "p2"}, None], "next": None},
        ]

        playlists = SpotifyClient(spotify, user_auth=True).current_user_playlists()

        assert [p["id"] for p in playlists] == ["p1", "p2"]
        offsets = [c.kwargs["offset"] for c in spotify.current_user_playlists.call_args_list]
        assert offsets == [0, 50]

    def test_playlist_items_error(self):
        spotify = Mock()
        spotify.playlist_items.side_effect = spotipy.SpotifyException(404, -1, "not found")

        with pytest.raises(CatalogFetchFailed):
            SpotifyClient(spotify, user_auth=True).playlist_all_items("p1")


class TestTrackFromItem:
    """Test Spotify item conversion"""

    def test_regular_track(self, sample_playlist_item):
        track = track_from_item(sample_playlist_item)

        assert track.name == "Bohemian Rhapsody"
        assert track.artist == "Queen"
        assert track.album == "A Night at the Opera"

    def test_multiple_artists_joined(self, sample_playlist_item):
        sample_playlist_item["track"]["artists"].append({"name": "David Bowie"})

        assert track_from_item(sample_playlist_item).artist == "Queen, David Bowie"

    @pytest.mark.parametrize("item", [
        None,
        {"track": None},
        {"track": {"type": "episode", "name": "Podcast"}},
        {"is_local": True, "track": {"type": "track", "name": "Local", "artists": []}},
    ])
    def test_skipped_items(self, item):
        assert track_from_item(item) is None


class TestCatalogFetcher:
    """Test catalog sync"""

    def test_sync_writes_catalog(self, temp_dir, sample_playlist_item):
        client = Mock()
        client.current_user_playlists.return_value = [
            {"id": "p1", "name": "Road Trip"},
            {"id": "p2", "name": "Road Trip"},
        ]
        client.playlist_all_items.side_effect = [
            [sample_playlist_item, {"track": None}],
            [],
        ]
        store = CatalogStore(temp_dir / "playlists.json")

        playlists = CatalogFetcher(client, store).sync()

        assert [p.name for p in playlists] == ["Road Trip", "Road Trip (2)"]
        assert playlists[0].track_count == 1
        assert store.playlist_names() == ["Road Trip", "Road Trip (2)"]
        assert store.find_playlist("Road Trip").tracks[0].artist == "Queen"

    def test_fetch_failure_leaves_catalog_untouched(self, catalog_store):
        client = Mock()
        client.current_user_playlists.side_effect = CatalogFetchFailed("Failed to fetch playlists")

        with pytest.raises(CatalogFetchFailed):
            CatalogFetcher(client, catalog_store).sync()

        assert catalog_store.playlist_names() == ["Road Trip", "Chill", "Empty"]
