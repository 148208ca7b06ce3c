"""
Configuration management for spot-mirror.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Optional Spotify API credentials (catalog sync and cover art lookup)
    - Output directory for the catalog file and the local media library
    - Download behavior (raw transfer or transcode, codec, bitrate)
    - HTTP server bind address

Spotify credentials may also come from the environment (or a .env file):
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI
Environment values override the YAML values.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:3000/callback"

    output:
      directory: "~/Music/SpotMirror"

    download:
      transcode: false     # true: convert to codec/bitrate below
      codec: mp3
      bitrate: 192k
      sample_rate: 44100
      cookie_file: null    # Optional: cookies.txt for YouTube

    server:
      host: 127.0.0.1
      port: 3000
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from spot_mirror.core.exceptions import ConfigError


# Default configuration file name (always in current working directory)
CONFIG_FILENAME = "config.yaml"

# Layout of the output directory (consumed by the presentation layer)
CATALOG_FILENAME = "playlists.json"
SONGS_DIRNAME = "songs"
ART_DIRNAME = "album-art"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:3000/callback"
DEFAULT_CODEC = "mp3"
DEFAULT_BITRATE = "192k"
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000

SUPPORTED_CODECS = ("mp3", "ogg", "flac", "wav")

_BITRATE_PATTERN = re.compile(r"^\d+k$")


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    These credentials are obtained from the Spotify Developer Dashboard:
    https://developer.spotify.com/dashboard

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: OAuth redirect URI registered for the application.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI


@dataclass(frozen=True)
class OutputConfig:
    """
    Output directory configuration.

    Attributes:
        directory: Absolute path of the local library root.
                   Path expansion is performed (~ is expanded to home directory).
    """
    directory: Path

    @property
    def catalog_file(self) -> Path:
        """Path of the persisted catalog (playlists.json)."""
        return self.directory / CATALOG_FILENAME

    @property
    def songs_dir(self) -> Path:
        """Directory holding the media files."""
        return self.directory / SONGS_DIRNAME

    @property
    def art_dir(self) -> Path:
        """Directory holding the cover art files."""
        return self.directory / ART_DIRNAME


@dataclass(frozen=True)
class DownloadConfig:
    """
    Download behavior configuration.

    Attributes:
        transcode: If False, the best audio-only stream is stored verbatim
                   (.webm). If True, it is converted with ffmpeg.
        codec: Target container/codec when transcoding (e.g. "mp3").
        bitrate: Constant target bitrate when transcoding (e.g. "192k").
        sample_rate: Target sample rate in Hz when transcoding.
        cookie_file: Optional cookies.txt passed to yt-dlp.
    """
    transcode: bool = False
    codec: str = DEFAULT_CODEC
    bitrate: str = DEFAULT_BITRATE
    sample_rate: int = DEFAULT_SAMPLE_RATE
    cookie_file: Path | None = None


@dataclass(frozen=True)
class ServerConfig:
    """
    HTTP server bind configuration.

    Attributes:
        host: Interface to bind.
        port: TCP port to listen on.
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Attributes:
        spotify: Spotify credentials, or None when not configured
                 (catalog sync and cover art lookup are then unavailable).
        output: Output directory settings.
        download: Download behavior settings.
        server: HTTP server settings.
    """
    spotify: SpotifyConfig | None
    output: OutputConfig
    download: DownloadConfig
    server: ServerConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Load .env (if present) into the environment
        2. Locate config file (explicit path or CWD/config.yaml)
        3. Read and parse YAML content
        4. Validate structure (required sections exist)
        5. Parse each section, applying defaults and environment overrides
        6. Create and return frozen Config object
    """
    load_dotenv()

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify")),
        output=_parse_output_config(raw_config["output"]),
        download=_parse_download_config(raw_config.get("download")),
        server=_parse_server_config(raw_config.get("server")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate the raw configuration dictionary structure.

    Raises:
        ConfigError: If a required section is missing or any present
                     section is not a dictionary.
    """
    if "output" not in raw_config:
        raise ConfigError(
            "Missing required section: 'output'",
            details={"missing_section": "output"}
        )

    for section in ("spotify", "output", "download", "server"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(spotify_section: dict[str, Any] | None) -> SpotifyConfig | None:
    """
    Parse the Spotify section, merged with SPOTIFY_* environment variables.

    Returns None when neither the file nor the environment provide any
    credential. When only one of client_id / client_secret is given the
    configuration is rejected.

    Raises:
        ConfigError: If the credentials are incomplete or not strings.
    """
    section = spotify_section or {}

    client_id = os.environ.get("SPOTIFY_CLIENT_ID") or section.get("client_id") or ""
    client_secret = os.environ.get("SPOTIFY_CLIENT_SECRET") or section.get("client_secret") or ""
    redirect_uri = (
        os.environ.get("SPOTIFY_REDIRECT_URI")
        or section.get("redirect_uri")
        or DEFAULT_REDIRECT_URI
    )

    for field_name, value in (
        ("client_id", client_id),
        ("client_secret", client_secret),
        ("redirect_uri", redirect_uri),
    ):
        if not isinstance(value, str):
            raise ConfigError(
                f"'spotify.{field_name}' must be a string",
                details={"field": f"spotify.{field_name}"}
            )

    client_id = client_id.strip()
    client_secret = client_secret.strip()

    if not client_id and not client_secret:
        return None

    if not client_id or not client_secret:
        missing = "client_id" if not client_id else "client_secret"
        raise ConfigError(
            f"'spotify.{missing}' must be a non-empty string",
            details={"field": f"spotify.{missing}"}
        )

    return SpotifyConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri.strip()
    )


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """
    Parse and validate the output configuration section.

    Expands ~ to home directory and converts to absolute Path.
    Does NOT create the directory (that happens at download time).

    Raises:
        ConfigError: If directory is missing or empty.
    """
    directory = output_section.get("directory", "")

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'output.directory' must be a non-empty string",
            details={"field": "output.directory"}
        )

    return OutputConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_download_config(download_section: dict[str, Any] | None) -> DownloadConfig:
    """
    Parse and validate the download configuration section.

    Applies defaults if section is missing or fields are not specified.

    Raises:
        ConfigError: If a value has the wrong type, the codec is not
                     supported, or cookie_file does not exist.
    """
    if download_section is None:
        return DownloadConfig()

    transcode = download_section.get("transcode", False)
    if not isinstance(transcode, bool):
        raise ConfigError(
            "'download.transcode' must be true or false",
            details={"field": "download.transcode", "value": transcode}
        )

    codec = download_section.get("codec", DEFAULT_CODEC)
    if codec not in SUPPORTED_CODECS:
        raise ConfigError(
            f"'download.codec' must be one of {', '.join(SUPPORTED_CODECS)}",
            details={"field": "download.codec", "value": codec}
        )

    bitrate = str(download_section.get("bitrate", DEFAULT_BITRATE))
    if not _BITRATE_PATTERN.match(bitrate):
        raise ConfigError(
            "'download.bitrate' must look like '192k'",
            details={"field": "download.bitrate", "value": bitrate}
        )

    sample_rate = download_section.get("sample_rate", DEFAULT_SAMPLE_RATE)
    if not isinstance(sample_rate, int) or isinstance(sample_rate, bool) or sample_rate < 1:
        raise ConfigError(
            "'download.sample_rate' must be a positive integer",
            details={"field": "download.sample_rate", "value": sample_rate}
        )

    cookie_file = None
    raw_cookie = download_section.get("cookie_file")
    if raw_cookie is not None:
        if not isinstance(raw_cookie, str):
            raise ConfigError(
                "'download.cookie_file' must be a string path or null",
                details={"field": "download.cookie_file"}
            )

        cookie_path = Path(raw_cookie).expanduser().resolve()
        if not cookie_path.exists():
            raise ConfigError(
                f"Cookie file not found: {cookie_path}",
                details={"field": "download.cookie_file", "path": str(cookie_path)}
            )
        cookie_file = cookie_path

    return DownloadConfig(
        transcode=transcode,
        codec=codec,
        bitrate=bitrate,
        sample_rate=sample_rate,
        cookie_file=cookie_file
    )


def _parse_server_config(server_section: dict[str, Any] | None) -> ServerConfig:
    """
    Parse the server section.

    Raises:
        ConfigError: If host is not a string or port is out of range.
    """
    if server_section is None:
        return ServerConfig()

    host = server_section.get("host", DEFAULT_HOST)
    if not isinstance(host, str) or not host.strip():
        raise ConfigError(
            "'server.host' must be a non-empty string",
            details={"field": "server.host"}
        )

    port = server_section.get("port", DEFAULT_PORT)
    if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
        raise ConfigError(
            "'server.port' must be an integer between 1 and 65535",
            details={"field": "server.port", "value": port}
        )

    return ServerConfig(host=host.strip(), port=port)
