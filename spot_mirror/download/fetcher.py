"""
Media transfer for spot-mirror.

Moves remote bytes to local files without holding a whole payload in
memory. Three operations are exposed:

    download(locator, target)       Raw transfer: the best audio-only
                                    stream, stored verbatim by yt-dlp
    convert(source, destination)    Transcode with ffmpeg to a fixed
                                    sample rate, stereo, constant bitrate
    fetch_art(locator, destination) Cover image over plain HTTP

fetch(locator, destination) composes the first two according to the
configured mode:

    transcode = False:  download(locator, destination)
    transcode = True:   download(locator, destination + ".source")
                        convert(destination + ".source", destination)

Failure modes (all MediaError subclasses):
    SourceUnavailable    Locator missing, or the transport failed before
                         any byte was written. Nothing is left behind.
    TransferInterrupted  The transfer broke after bytes were written. The
                         partial file (yt-dlp's ".part") is NOT removed.
    ConversionFailed     ffmpeg missing, timed out or exited non-zero.
                         The ".source" file is kept for diagnosis and
                         nothing is left at the destination.

yt-dlp writes into "<target>.part" and renames it when the stream is
complete, so a finished target file is always whole.

Dependencies:
    - yt-dlp: stream extraction and chunked transfer
    - FFmpeg: transcoding (must be installed and on PATH)
    - requests: cover art transfer
"""

import subprocess
from pathlib import Path
from typing import Any

import requests
from yt_dlp import YoutubeDL

from spot_mirror.core.config import DownloadConfig
from spot_mirror.core.exceptions import (
    ConversionFailed,
    SourceUnavailable,
    TransferInterrupted,
)
from spot_mirror.core.logger import get_logger


logger = get_logger(__name__)

RAW_EXTENSION = "webm"
ART_EXTENSION = "jpg"
STAGING_SUFFIX = ".source"
PART_SUFFIX = ".part"

# Prefer a webm audio stream. When a video has none, the best other audio
# stream (usually m4a) is stored verbatim under the same .webm name; browsers
# and ffmpeg detect the real container from the file header.
RAW_FORMAT = "bestaudio[ext=webm]/bestaudio"

ART_CHUNK_SIZE = 64 * 1024
ART_TIMEOUT = 30  # seconds
CONVERSION_TIMEOUT = 600  # seconds


class YtDlpSilentLogger:
    """
    Logger handed to yt-dlp to keep it off the console.

    yt-dlp ignores quiet=True for certain errors and prints directly to
    stderr. This logger routes everything to our debug log and remembers
    the last error so it can be attached to the raised exception.
    """

    def __init__(self) -> None:
        self.last_error: str | None = None

    def debug(self, msg: str) -> None:
        pass

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        logger.debug(f"yt-dlp: {msg}")

    def error(self, msg: str) -> None:
        self.last_error = msg
        logger.debug(f"yt-dlp: {msg}")


class MediaFetcher:
    """
    Streams remote media and cover art to local files.

    Attributes:
        transcode: Whether fetch() converts after the raw transfer.
        codec: Target format for conversion (also the media extension).
        bitrate: Constant target bitrate, e.g. "192k".
        sample_rate: Target sample rate in Hz.

    Thread Safety:
        Instances hold no per-transfer state; concurrent calls on
        different paths are safe.
    """

    def __init__(
        self,
        transcode: bool = False,
        codec: str = "mp3",
        bitrate: str = "192k",
        sample_rate: int = 44100,
        cookie_file: Path | None = None,
        ffmpeg_path: str = "ffmpeg",
        session: requests.Session | None = None
    ) -> None:
        self.transcode = transcode
        self.codec = codec
        self.bitrate = bitrate
        self.sample_rate = sample_rate
        self._cookie_file = cookie_file
        self._ffmpeg_path = ffmpeg_path
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: DownloadConfig) -> "MediaFetcher":
        return cls(
            transcode=config.transcode,
            codec=config.codec,
            bitrate=config.bitrate,
            sample_rate=config.sample_rate,
            cookie_file=config.cookie_file,
        )

    @property
    def media_extension(self) -> str:
        """Extension of the files fetch() produces."""
        return self.codec if self.transcode else RAW_EXTENSION

    def staging_path(self, destination: Path) -> Path:
        """Where the raw transfer lands before conversion."""
        if not self.transcode:
            return destination
        return destination.with_name(destination.name + STAGING_SUFFIX)

    def fetch(self, media_locator: str | None, destination: Path) -> Path:
        """
        Fetch a media locator into destination, converting if configured.

        Args:
            media_locator: Remote URL, or None if resolution found nothing.
            destination: Final media file path.

        Returns:
            destination.

        Raises:
            SourceUnavailable, TransferInterrupted, ConversionFailed
        """
        staging = self.staging_path(destination)
        self.download(media_locator, staging)
        if self.transcode:
            self.convert(staging, destination)
        return destination

    # =========================================================================
    # Raw transfer
    # =========================================================================

    def download(self, media_locator: str | None, target: Path) -> Path:
        """
        Copy the best audio-only stream of a locator to target, verbatim.

        Creates target's directory if needed. An existing target is
        overwritten.

        Raises:
            SourceUnavailable: Locator is None, or nothing was written.
            TransferInterrupted: The transfer failed part-way.
        """
        if media_locator is None:
            raise SourceUnavailable("No media locator to fetch")

        target.parent.mkdir(parents=True, exist_ok=True)
        part_path = target.with_name(target.name + PART_SUFFIX)
        existed_before = target.exists()
        yt_logger = YtDlpSilentLogger()

        logger.debug(f"Downloading {media_locator} -> {target.name}")

        try:
            with YoutubeDL(self._get_yt_dlp_options(target, yt_logger)) as ydl:
                info = ydl.extract_info(media_locator, download=True)
        except Exception as e:
            error_msg = str(e)
            if yt_logger.last_error and yt_logger.last_error not in error_msg:
                error_msg = f"{error_msg} | {yt_logger.last_error}"
            details = {"url": media_locator, "target": str(target), "original_error": error_msg}

            if _has_bytes(part_path) or (not existed_before and _has_bytes(target)):
                raise TransferInterrupted(f"Transfer interrupted: {error_msg}", details=details) from e

            _discard_empty(part_path)
            raise SourceUnavailable(f"yt-dlp error: {error_msg}", details=details) from e

        if info is None or not target.exists():
            _discard_empty(part_path)
            raise SourceUnavailable(
                "yt-dlp returned no file",
                details={"url": media_locator, "target": str(target)}
            )

        return target

    def _get_yt_dlp_options(self, target: Path, yt_logger: YtDlpSilentLogger) -> dict[str, Any]:
        """
        Build yt-dlp options for a verbatim audio-only transfer.

        No postprocessors: the stream is stored exactly as served.
        """
        options: dict[str, Any] = {
            "format": RAW_FORMAT,

            # Literal output path ("%" is yt-dlp template syntax)
            "outtmpl": str(target).replace("%", "%%"),

            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "noplaylist": True,
            "encoding": "UTF-8",
            "logger": yt_logger,

            # Re-runs replace previous files; stale partials are not resumed
            "overwrites": True,
            "continuedl": False,

            "retries": 3,
            "fragment_retries": 3,
        }

        if self._cookie_file is not None:
            options["cookiefile"] = str(self._cookie_file)

        return options

    # =========================================================================
    # Conversion
    # =========================================================================

    def convert(self, source: Path, destination: Path) -> Path:
        """
        Transcode source into destination with ffmpeg.

        Output is always stereo at the configured sample rate and constant
        bitrate. The source file is removed only when ffmpeg exits with 0.

        Raises:
            ConversionFailed: ffmpeg missing, timed out or exited non-zero.
                              source is kept, destination is not left behind.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)

        cmd = [
            self._ffmpeg_path,
            "-y",
            "-i", str(source),
            "-vn",
            "-ar", str(self.sample_rate),
            "-ac", "2",
            "-b:a", self.bitrate,
            "-f", self.codec,
            str(destination),
        ]
        details: dict[str, Any] = {"source": str(source), "destination": str(destination)}

        logger.debug(f"Converting {source.name} -> {destination.name}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=CONVERSION_TIMEOUT
            )
        except FileNotFoundError as e:
            raise ConversionFailed(
                "ffmpeg not found - install FFmpeg and make sure it is on PATH",
                details=details
            ) from e
        except subprocess.TimeoutExpired as e:
            destination.unlink(missing_ok=True)
            raise ConversionFailed(
                f"ffmpeg timed out after {CONVERSION_TIMEOUT}s",
                details=details
            ) from e

        if result.returncode != 0:
            destination.unlink(missing_ok=True)
            stderr_tail = (result.stderr or "").strip().splitlines()[-3:]
            details.update(returncode=result.returncode, stderr=stderr_tail)
            raise ConversionFailed(
                f"ffmpeg exited with code {result.returncode}",
                details=details
            )

        source.unlink(missing_ok=True)
        return destination

    # =========================================================================
    # Cover art
    # =========================================================================

    def fetch_art(self, art_locator: str | None, destination: Path) -> Path:
        """
        Stream a cover image to destination.

        Raises:
            SourceUnavailable: Locator is None or the request failed before
                               any byte was written (no file left behind).
            TransferInterrupted: The body broke off part-way.
        """
        if art_locator is None:
            raise SourceUnavailable("No art locator to fetch")

        destination.parent.mkdir(parents=True, exist_ok=True)
        details = {"url": art_locator, "target": str(destination)}

        try:
            response = self._session.get(art_locator, stream=True, timeout=ART_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable(f"Cover art request failed: {e}", details=details) from e

        written = 0
        try:
            with response, open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=ART_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except (requests.RequestException, OSError) as e:
            if written:
                raise TransferInterrupted(
                    f"Cover art transfer interrupted: {e}", details=details
                ) from e
            destination.unlink(missing_ok=True)
            raise SourceUnavailable(f"Cover art transfer failed: {e}", details=details) from e

        if not written:
            destination.unlink(missing_ok=True)
            raise SourceUnavailable("Cover art response was empty", details=details)

        return destination


def _has_bytes(path: Path) -> bool:
    try:
        return path.stat().st_size > 0
    except OSError:
        return False


def _discard_empty(path: Path) -> None:
    """Remove a file only if it exists and holds no data."""
    if path.exists() and not _has_bytes(path):
        path.unlink(missing_ok=True)
