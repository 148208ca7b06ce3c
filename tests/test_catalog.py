"""Test catalog model and store"""

import json

import pytest

from spot_mirror.core.catalog import CatalogStore, Playlist, Track, normalized_key
from spot_mirror.core.exceptions import CatalogError, PlaylistNotFound


class TestNormalizedKey:
    """Test file key derivation"""

    def test_lowercases_and_replaces_spaces(self):
        assert normalized_key("Bohemian Rhapsody") == "bohemian_rhapsody"

    def test_collapses_runs_of_symbols(self):
        assert normalized_key("Song: Title!") == "song_title"
        assert normalized_key("Don't Stop Me Now") == "don_t_stop_me_now"

    def test_keeps_digits(self):
        assert normalized_key("22 (Taylor's Version)") == "22_taylor_s_version"

    def test_non_ascii_title_gets_stable_fallback(self):
        key = normalized_key("夜に駆ける")

        assert key.startswith("track_")
        assert key == normalized_key("夜に駆ける")
        assert key != normalized_key("群青")

    def test_track_property_uses_name_only(self):
        a = Track(name="Hello", artist="Adele")
        b = Track(name="Hello", artist="Lionel Richie")

        assert a.normalized_key == b.normalized_key == "hello"


class TestTrack:
    """Test Track model"""

    def test_from_dict(self):
        track = Track.from_dict({"name": "Hello", "artist": "Adele", "album": "25"})

        assert track == Track(name="Hello", artist="Adele", album="25")

    def test_from_dict_album_optional(self):
        track = Track.from_dict({"name": "Hello", "artist": "Adele"})

        assert track.album == ""

    def test_from_dict_missing_name(self):
        with pytest.raises(CatalogError):
            Track.from_dict({"artist": "Adele"})

    def test_from_dict_missing_artist(self):
        with pytest.raises(CatalogError):
            Track.from_dict({"name": "Hello"})

    def test_search_query_and_display_name(self, sample_track):
        assert sample_track.search_query == "Bohemian Rhapsody Queen"
        assert sample_track.display_name == "Queen - Bohemian Rhapsody"

    def test_to_dict_only_persisted_fields(self, sample_track):
        assert sample_track.to_dict() == {
            "name": "Bohemian Rhapsody",
            "artist": "Queen",
            "album": "A Night at the Opera",
        }


class TestCatalogStore:
    """Test catalog file access"""

    def test_load_keeps_order(self, catalog_store):
        playlists = catalog_store.load()

        assert [p.name for p in playlists] == ["Road Trip", "Chill", "Empty"]
        assert [t.name for t in playlists[0].tracks] == ["Bohemian Rhapsody", "Hotel California"]
        assert playlists[2].track_count == 0

    def test_find_playlist_exact_match(self, catalog_store):
        playlist = catalog_store.find_playlist("Road Trip")

        assert playlist.name == "Road Trip"
        assert playlist.track_count == 2

    def test_find_playlist_is_case_sensitive(self, catalog_store):
        with pytest.raises(PlaylistNotFound) as exc_info:
            catalog_store.find_playlist("road trip")

        assert exc_info.value.playlist_name == "road trip"

    def test_find_playlist_unknown(self, catalog_store):
        with pytest.raises(PlaylistNotFound):
            catalog_store.find_playlist("Nonexistent")

    def test_playlist_names(self, catalog_store):
        assert catalog_store.playlist_names() == ["Road Trip", "Chill", "Empty"]

    def test_missing_file(self, temp_dir):
        store = CatalogStore(temp_dir / "playlists.json")

        with pytest.raises(CatalogError) as exc_info:
            store.load()

        assert "not found" in exc_info.value.message

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "playlists.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogError):
            CatalogStore(path).load()

    def test_not_a_list(self, temp_dir):
        path = temp_dir / "playlists.json"
        path.write_text(json.dumps({"playlist": "Road Trip"}), encoding="utf-8")

        with pytest.raises(CatalogError):
            CatalogStore(path).load()

    def test_track_record_not_an_object(self, temp_dir):
        path = temp_dir / "playlists.json"
        path.write_text(json.dumps([{"playlist": "Road Trip", "tracks": ["oops"]}]), encoding="utf-8")

        with pytest.raises(CatalogError) as exc_info:
            CatalogStore(path).load()

        assert "must be an object" in exc_info.value.message

    def test_save_writes_wire_format(self, temp_dir):
        store = CatalogStore(temp_dir / "nested" / "playlists.json")
        playlist = Playlist(name="Road Trip", tracks=(Track(name="Hello", artist="Adele", album="25"),))

        store.save([playlist])

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert raw == [
            {"playlist": "Road Trip", "tracks": [{"name": "Hello", "artist": "Adele", "album": "25"}]}
        ]
        assert not store.path.with_name("playlists.json.tmp").exists()

    def test_save_replaces_previous_catalog(self, catalog_store):
        catalog_store.save([Playlist(name="Only")])

        assert catalog_store.playlist_names() == ["Only"]
