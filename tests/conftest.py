"""Test configuration and fixtures"""

import json
import tempfile
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from spot_mirror.core.catalog import CatalogStore, Track
from spot_mirror.core.config import OutputConfig
from spot_mirror.core.progress import ProgressBroadcaster
from spot_mirror.download.processor import TrackResult, TrackState


ROAD_TRIP = [
    {"name": "Bohemian Rhapsody", "artist": "Queen", "album": "A Night at the Opera"},
    {"name": "Hotel California", "artist": "Eagles", "album": "Hotel California"},
]

CHILL = [
    {"name": "Weightless", "artist": "Marconi Union", "album": "Weightless"},
]


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_catalog_data():
    """Catalog file content with two playlists and one empty playlist"""
    return [
        {"playlist": "Road Trip", "tracks": ROAD_TRIP},
        {"playlist": "Chill", "tracks": CHILL},
        {"playlist": "Empty", "tracks": []},
    ]


@pytest.fixture
def catalog_store(temp_dir, sample_catalog_data):
    """CatalogStore backed by a playlists.json written from sample_catalog_data"""
    path = temp_dir / "playlists.json"
    path.write_text(json.dumps(sample_catalog_data), encoding="utf-8")
    return CatalogStore(path)


@pytest.fixture
def output_config(temp_dir):
    return OutputConfig(directory=temp_dir)


@pytest.fixture
def sample_track():
    return Track(name="Bohemian Rhapsody", artist="Queen", album="A Night at the Opera")


@pytest.fixture
def sample_playlist_item():
    """One element of a Spotify playlist_items() response"""
    return {
        "is_local": False,
        "track": {
            "type": "track",
            "name": "Bohemian Rhapsody",
            "artists": [{"id": "artist_1", "name": "Queen"}],
            "album": {"id": "album_1", "name": "A Night at the Opera"},
            "is_local": False,
        },
    }


@pytest.fixture
def broadcaster():
    return ProgressBroadcaster()


@pytest.fixture
def collected_events(broadcaster):
    """Events received by a listener subscribed for the whole test"""
    events = []
    broadcaster.subscribe(events.append)
    return events


@pytest.fixture
def run_lock():
    """Private run guard so tests never contend on the process-wide one"""
    return threading.Lock()


def _terminal_result(track: Track, state: TrackState = TrackState.COMPLETE) -> TrackResult:
    result = TrackResult(track=track)
    result.state = state
    result.transitions.append(state)
    return result


@pytest.fixture
def make_result():
    """Factory for TrackResults already moved to a terminal state"""
    return _terminal_result


@pytest.fixture
def mock_processor():
    """TrackProcessor double completing every track"""
    processor = Mock()
    processor.process.side_effect = lambda track, playlist_name=None: _terminal_result(track)
    return processor
