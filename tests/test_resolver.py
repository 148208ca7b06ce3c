"""Test source resolution"""

from unittest.mock import Mock

import pytest
from spotipy.oauth2 import SpotifyOauthError

from spot_mirror.core.catalog import Track
from spot_mirror.core.exceptions import ResolutionError, SpotifyError
from spot_mirror.download.processor import TrackProcessor, TrackState
from spot_mirror.spotify.client import SpotifyClient
from spot_mirror.youtube.models import SearchCandidate
from spot_mirror.youtube.resolver import SEARCH_LIMIT, SourceResolver


def song_result(video_id: str, title: str = "Bohemian Rhapsody") -> dict:
    return {
        "resultType": "song",
        "videoId": video_id,
        "title": title,
        "artists": [{"name": "Queen", "id": "UC_queen"}],
    }


@pytest.fixture
def ytmusic():
    return Mock()


@pytest.fixture
def art_client():
    client = Mock()
    client.search_cover_url.return_value = "https://i.scdn.co/image/cover"
    return client


class TestSearchCandidate:

    def test_from_ytmusic_result(self):
        candidate = SearchCandidate.from_ytmusic_result(song_result("fJ9rUzIMcZQ"))

        assert candidate.video_id == "fJ9rUzIMcZQ"
        assert candidate.artists == ("Queen",)
        assert candidate.url == "https://www.youtube.com/watch?v=fJ9rUzIMcZQ"

    def test_result_without_video_id_is_skipped(self):
        assert SearchCandidate.from_ytmusic_result({"resultType": "album", "title": "x"}) is None


class TestSourceResolver:
    """Test SourceResolver"""

    def test_first_result_wins(self, ytmusic, art_client, sample_track):
        ytmusic.search.return_value = [song_result("first"), song_result("second")]
        resolver = SourceResolver(ytmusic=ytmusic, art_client=art_client)

        source = resolver.resolve(sample_track)

        assert source.media_locator == "https://www.youtube.com/watch?v=first"
        assert source.art_locator == "https://i.scdn.co/image/cover"
        ytmusic.search.assert_called_once_with(
            "Bohemian Rhapsody Queen", filter="songs", limit=SEARCH_LIMIT
        )
        art_client.search_cover_url.assert_called_once_with("Bohemian Rhapsody Queen")

    def test_falls_back_to_videos(self, ytmusic, sample_track):
        ytmusic.search.side_effect = [[], [song_result("video1")]]
        resolver = SourceResolver(ytmusic=ytmusic)

        source = resolver.resolve(sample_track)

        assert source.media_locator == "https://www.youtube.com/watch?v=video1"
        assert [c.kwargs["filter"] for c in ytmusic.search.call_args_list] == ["songs", "videos"]

    def test_no_result(self, ytmusic, art_client, sample_track):
        ytmusic.search.return_value = []
        resolver = SourceResolver(ytmusic=ytmusic, art_client=art_client)

        source = resolver.resolve(sample_track)

        assert source.media_locator is None
        assert not source.has_media

    def test_unplayable_results_are_ignored(self, ytmusic, sample_track):
        ytmusic.search.side_effect = [[{"resultType": "artist", "browseId": "x"}], []]
        resolver = SourceResolver(ytmusic=ytmusic)

        assert resolver.resolve(sample_track).media_locator is None

    def test_search_failure_raises(self, ytmusic, sample_track):
        ytmusic.search.side_effect = ConnectionError("network down")
        resolver = SourceResolver(ytmusic=ytmusic)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(sample_track)

        assert exc_info.value.details["query"] == "Bohemian Rhapsody Queen"

    def test_art_failure_yields_no_art(self, ytmusic, art_client, sample_track):
        ytmusic.search.return_value = [song_result("first")]
        art_client.search_cover_url.side_effect = SpotifyError("rate limited", is_rate_limit=True)
        resolver = SourceResolver(ytmusic=ytmusic, art_client=art_client)

        source = resolver.resolve(sample_track)

        assert source.media_locator == "https://www.youtube.com/watch?v=first"
        assert source.art_locator is None

    def test_without_art_client(self, ytmusic, sample_track):
        ytmusic.search.return_value = [song_result("first")]

        source = SourceResolver(ytmusic=ytmusic).resolve(sample_track)

        assert source.art_locator is None

    def test_custom_ranking(self, ytmusic, sample_track):
        ytmusic.search.return_value = [song_result("live", "Bohemian Rhapsody (Live)"), song_result("studio")]

        def prefer_studio(track: Track, candidates):
            return next((c for c in candidates if "Live" not in c.title), None)

        resolver = SourceResolver(ytmusic=ytmusic, ranking=prefer_studio)

        assert resolver.resolve_media(sample_track) == "https://www.youtube.com/watch?v=studio"

    def test_unexpected_art_error_keeps_media(self, ytmusic, art_client, sample_track):
        ytmusic.search.return_value = [song_result("first")]
        art_client.search_cover_url.side_effect = AttributeError("'NoneType' object has no attribute 'get'")
        resolver = SourceResolver(ytmusic=ytmusic, art_client=art_client)

        source = resolver.resolve(sample_track)

        assert source.media_locator == "https://www.youtube.com/watch?v=first"
        assert source.art_locator is None


class TestArtTokenFailure:
    """A token refresh failing in the art client must not cost the media download"""

    def test_track_still_downloads(self, ytmusic, sample_track, temp_dir):
        spotify = Mock()
        spotify.search.side_effect = SpotifyOauthError("invalid_client")
        ytmusic.search.return_value = [song_result("first")]
        resolver = SourceResolver(ytmusic=ytmusic, art_client=SpotifyClient(spotify))

        fetcher = Mock()
        fetcher.transcode = False
        fetcher.media_extension = "webm"
        fetcher.staging_path.side_effect = lambda p: p
        processor = TrackProcessor(resolver, fetcher, temp_dir / "songs", temp_dir / "album-art")

        result = processor.process(sample_track, "Road Trip")

        assert result.state is TrackState.COMPLETE
        fetcher.download.assert_called_once_with(
            "https://www.youtube.com/watch?v=first",
            temp_dir / "songs" / "bohemian_rhapsody.webm",
        )
        fetcher.fetch_art.assert_not_called()
        assert result.art_path is None
