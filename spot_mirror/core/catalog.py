"""
Catalog store for spot-mirror.

The catalog is the single source of truth shared by the download pipeline
and the presentation layer: an ordered list of playlists, each holding an
ordered list of tracks. It is persisted as JSON in the output directory:

    [
      {
        "playlist": "Road Trip",
        "tracks": [
          {"name": "Bohemian Rhapsody", "artist": "Queen", "album": "A Night at the Opera"}
        ]
      }
    ]

Only name, artist and album are ever persisted. Anything learned while
processing a track (resolved locators, local paths) lives on in-memory
objects and is never written back, so the file cannot go stale.

File naming:
    Every local file derived from a track is named after its normalized
    key: the lower-cased name with each run of non-alphanumeric characters
    collapsed to a single underscore.

        "Bohemian Rhapsody" -> "bohemian_rhapsody"
        "Song: Title!"      -> "song_title"

    Two tracks with the same key share the same files (last write wins).

Usage:
    store = CatalogStore(config.output.catalog_file)
    playlists = store.load()
    playlist = store.find_playlist("Road Trip")
"""

import hashlib
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from spot_mirror.core.exceptions import CatalogError, PlaylistNotFound


_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def normalized_key(name: str) -> str:
    """
    Build the filesystem-safe key used for every local file of a track.

    Args:
        name: Track title as stored in the catalog.

    Returns:
        The lower-cased title with runs of characters outside [a-z0-9]
        collapsed to "_" and stripped from both ends. A title with no
        ASCII alphanumerics at all maps to "track_" plus a short digest
        of the title, so the key is never empty and stays deterministic.

    Example:
        normalized_key("Bohemian Rhapsody")  # "bohemian_rhapsody"
        normalized_key("Song: Title!")       # "song_title"
    """
    key = _NON_ALNUM_RUN.sub("_", name.lower()).strip("_")
    if key:
        return key
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:12]
    return f"track_{digest}"


@dataclass(frozen=True)
class Track:
    """
    Immutable representation of one catalog track.

    Attributes:
        name: Track title. Example: "Bohemian Rhapsody"
        artist: Artist credit; collaborators joined with ", ".
                Example: "Calvin Harris, Dua Lipa"
        album: Album name, empty when unknown.
    """
    name: str
    artist: str
    album: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """
        Create a Track from a catalog record.

        Raises:
            CatalogError: If the record is not an object, or name or artist
                          is missing or not a string.
        """
        if not isinstance(data, dict):
            raise CatalogError(
                "Track record must be an object",
                details={"record": data}
            )

        name = data.get("name")
        artist = data.get("artist")
        album = data.get("album") or ""

        if not isinstance(name, str) or not name:
            raise CatalogError(
                "Track record is missing 'name'",
                details={"record": data}
            )
        if not isinstance(artist, str):
            raise CatalogError(
                f"Track record '{name}' is missing 'artist'",
                details={"record": data}
            )

        return cls(name=name, artist=artist, album=str(album))

    def to_dict(self) -> dict[str, str]:
        """Return the persisted form (name, artist, album only)."""
        return {"name": self.name, "artist": self.artist, "album": self.album}

    @property
    def normalized_key(self) -> str:
        """Key used to name this track's media and art files."""
        return normalized_key(self.name)

    @property
    def search_query(self) -> str:
        """
        Free-text query used to find a playable source.

        Example:
            track.search_query  # "Bohemian Rhapsody Queen"
        """
        return f"{self.name} {self.artist}"

    @property
    def display_name(self) -> str:
        """Human readable "Artist - Title" for logs."""
        return f"{self.artist} - {self.name}"


@dataclass(frozen=True)
class Playlist:
    """
    Immutable representation of a catalog playlist.

    Attributes:
        name: Playlist name, unique within a catalog.
        tracks: Tracks in remote catalog order.
    """
    name: str
    tracks: tuple[Track, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Playlist":
        """
        Create a Playlist from a catalog record.

        Raises:
            CatalogError: If the record is malformed.
        """
        if not isinstance(data, dict):
            raise CatalogError(
                "Playlist record must be an object",
                details={"record": data}
            )

        name = data.get("playlist")
        if not isinstance(name, str):
            raise CatalogError(
                "Playlist record is missing 'playlist'",
                details={"record": data}
            )

        raw_tracks = data.get("tracks") or []
        if not isinstance(raw_tracks, list):
            raise CatalogError(
                f"Playlist '{name}' has an invalid 'tracks' list",
                details={"playlist": name}
            )

        return cls(name=name, tracks=tuple(Track.from_dict(t) for t in raw_tracks))

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted form of the playlist."""
        return {"playlist": self.name, "tracks": [t.to_dict() for t in self.tracks]}

    @property
    def track_count(self) -> int:
        return len(self.tracks)


class CatalogStore:
    """
    Reads and writes the catalog file.

    The store keeps no cache: every load() re-reads the file, so a
    pipeline run works on the snapshot taken when it started.

    Attributes:
        path: Location of the catalog JSON file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> list[Playlist]:
        """
        Read the whole catalog.

        Returns:
            Playlists in file order.

        Raises:
            CatalogError: If the file is missing, unreadable, not valid JSON,
                          or does not have the expected structure.
        """
        if not self.path.exists():
            raise CatalogError(
                f"Catalog file not found: {self.path}. Run 'spot-mirror sync' first.",
                details={"file_path": str(self.path)}
            )

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise CatalogError(
                f"Catalog file is not valid JSON: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e
        except OSError as e:
            raise CatalogError(
                f"Failed to read catalog file: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

        if not isinstance(raw, list):
            raise CatalogError(
                "Catalog file must contain a list of playlists",
                details={"file_path": str(self.path)}
            )

        return [Playlist.from_dict(entry) for entry in raw]

    def save(self, playlists: list[Playlist]) -> None:
        """
        Write the catalog, replacing the previous file atomically.

        Args:
            playlists: Playlists to persist, in display order.

        Raises:
            CatalogError: If the file cannot be written.
        """
        payload = [playlist.to_dict() for playlist in playlists]
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CatalogError(
                f"Failed to write catalog file: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

    def find_playlist(self, name: str) -> Playlist:
        """
        Look up a playlist by exact, case-sensitive name.

        Raises:
            PlaylistNotFound: If no playlist has exactly this name.
            CatalogError: If the catalog cannot be loaded.
        """
        for playlist in self.load():
            if playlist.name == name:
                return playlist
        raise PlaylistNotFound(name)

    def playlist_names(self) -> list[str]:
        """Names of all playlists in catalog order."""
        return [playlist.name for playlist in self.load()]
