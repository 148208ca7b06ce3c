"""Test media transfer, conversion and cover art"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from spot_mirror.core.config import DownloadConfig
from spot_mirror.core.exceptions import (
    ConversionFailed,
    SourceUnavailable,
    TransferInterrupted,
)
from spot_mirror.download.fetcher import MediaFetcher


URL = "https://www.youtube.com/watch?v=fJ9rUzIMcZQ"


@pytest.fixture
def mock_ydl():
    """Patched YoutubeDL; returns the object used inside the with-block"""
    with patch("spot_mirror.download.fetcher.YoutubeDL") as ydl_class:
        yield ydl_class.return_value.__enter__.return_value


class TestMediaFetcherConfig:

    def test_raw_mode_paths(self, temp_dir):
        fetcher = MediaFetcher()
        dest = temp_dir / "song.webm"

        assert fetcher.media_extension == "webm"
        assert fetcher.staging_path(dest) == dest

    def test_transcode_mode_paths(self, temp_dir):
        fetcher = MediaFetcher(transcode=True, codec="mp3")
        dest = temp_dir / "song.mp3"

        assert fetcher.media_extension == "mp3"
        assert fetcher.staging_path(dest) == temp_dir / "song.mp3.source"

    def test_from_config(self):
        fetcher = MediaFetcher.from_config(DownloadConfig(transcode=True, codec="ogg", bitrate="128k"))

        assert fetcher.transcode is True
        assert fetcher.codec == "ogg"
        assert fetcher.bitrate == "128k"


class TestDownload:
    """Test raw transfer through yt-dlp"""

    def test_success(self, temp_dir, mock_ydl):
        target = temp_dir / "songs" / "bohemian_rhapsody.webm"

        def fake_extract(url, download):
            target.write_bytes(b"audio")
            return {"id": "fJ9rUzIMcZQ"}

        mock_ydl.extract_info.side_effect = fake_extract

        result = MediaFetcher().download(URL, target)

        assert result == target
        assert target.read_bytes() == b"audio"
        mock_ydl.extract_info.assert_called_once_with(URL, download=True)

    def test_options_store_stream_verbatim(self, temp_dir):
        target = temp_dir / "100% love.webm"

        with patch("spot_mirror.download.fetcher.YoutubeDL") as ydl_class:
            ydl = ydl_class.return_value.__enter__.return_value
            ydl.extract_info.side_effect = lambda url, download: target.write_bytes(b"a") or {}
            MediaFetcher(cookie_file=Path("/tmp/cookies.txt")).download(URL, target)

        options = ydl_class.call_args.args[0]
        assert options["outtmpl"] == str(target).replace("%", "%%")
        assert options["format"] == "bestaudio[ext=webm]/bestaudio"
        assert options["noplaylist"] is True
        assert options["cookiefile"] == "/tmp/cookies.txt"
        assert "postprocessors" not in options

    def test_no_locator(self, temp_dir):
        with pytest.raises(SourceUnavailable):
            MediaFetcher().download(None, temp_dir / "song.webm")

    def test_failure_before_any_byte(self, temp_dir, mock_ydl):
        target = temp_dir / "song.webm"
        mock_ydl.extract_info.side_effect = Exception("Video unavailable")

        with pytest.raises(SourceUnavailable) as exc_info:
            MediaFetcher().download(URL, target)

        assert "Video unavailable" in exc_info.value.message
        assert not target.exists()
        assert not (temp_dir / "song.webm.part").exists()

    def test_failure_mid_transfer_keeps_partial(self, temp_dir, mock_ydl):
        target = temp_dir / "song.webm"
        part = temp_dir / "song.webm.part"

        def broken(url, download):
            part.write_bytes(b"half")
            raise Exception("Connection reset")

        mock_ydl.extract_info.side_effect = broken

        with pytest.raises(TransferInterrupted):
            MediaFetcher().download(URL, target)

        assert part.read_bytes() == b"half"

    def test_no_file_produced(self, temp_dir, mock_ydl):
        mock_ydl.extract_info.return_value = None

        with pytest.raises(SourceUnavailable):
            MediaFetcher().download(URL, temp_dir / "song.webm")


class TestConvert:
    """Test ffmpeg conversion"""

    @patch("spot_mirror.download.fetcher.subprocess.run")
    def test_success_removes_source(self, mock_run, temp_dir):
        source = temp_dir / "song.mp3.source"
        source.write_bytes(b"raw")
        dest = temp_dir / "song.mp3"
        mock_run.return_value = Mock(returncode=0, stderr="")

        assert MediaFetcher(transcode=True).convert(source, dest) == dest

        assert not source.exists()
        cmd = mock_run.call_args.args[0]
        assert cmd == [
            "ffmpeg", "-y", "-i", str(source), "-vn", "-ar", "44100", "-ac", "2",
            "-b:a", "192k", "-f", "mp3", str(dest),
        ]

    @patch("spot_mirror.download.fetcher.subprocess.run")
    def test_nonzero_exit_keeps_source(self, mock_run, temp_dir):
        source = temp_dir / "song.mp3.source"
        source.write_bytes(b"raw")
        dest = temp_dir / "song.mp3"
        dest.write_bytes(b"partial output")
        mock_run.return_value = Mock(returncode=1, stderr="Invalid data found when processing input")

        with pytest.raises(ConversionFailed) as exc_info:
            MediaFetcher(transcode=True).convert(source, dest)

        assert source.exists()
        assert not dest.exists()
        assert exc_info.value.details["returncode"] == 1

    @patch("spot_mirror.download.fetcher.subprocess.run")
    def test_ffmpeg_missing(self, mock_run, temp_dir):
        mock_run.side_effect = FileNotFoundError("ffmpeg")

        with pytest.raises(ConversionFailed):
            MediaFetcher(transcode=True).convert(temp_dir / "a.source", temp_dir / "a.mp3")

    @patch("spot_mirror.download.fetcher.subprocess.run")
    def test_timeout(self, mock_run, temp_dir):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ffmpeg", timeout=600)

        with pytest.raises(ConversionFailed):
            MediaFetcher(transcode=True).convert(temp_dir / "a.source", temp_dir / "a.mp3")

    @patch("spot_mirror.download.fetcher.subprocess.run")
    def test_fetch_composes_download_and_convert(self, mock_run, temp_dir, mock_ydl):
        dest = temp_dir / "song.mp3"
        staging = temp_dir / "song.mp3.source"
        mock_ydl.extract_info.side_effect = lambda url, download: staging.write_bytes(b"raw") or {}
        mock_run.return_value = Mock(returncode=0, stderr="")

        MediaFetcher(transcode=True).fetch(URL, dest)

        assert mock_run.call_args.args[0][3] == str(staging)
        assert not staging.exists()


class TestFetchArt:
    """Test cover art transfer"""

    def make_fetcher(self, response):
        session = Mock()
        session.get.return_value = response
        return MediaFetcher(session=session), session

    def test_success(self, temp_dir):
        response = MagicMock()
        response.iter_content.return_value = [b"\xff\xd8", b"jpeg"]
        fetcher, session = self.make_fetcher(response)
        dest = temp_dir / "album-art" / "bohemian_rhapsody.jpg"

        assert fetcher.fetch_art("https://i.scdn.co/image/cover", dest) == dest

        assert dest.read_bytes() == b"\xff\xd8jpeg"
        session.get.assert_called_once_with("https://i.scdn.co/image/cover", stream=True, timeout=30)

    def test_http_error_leaves_nothing(self, temp_dir):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        fetcher, _ = self.make_fetcher(response)
        dest = temp_dir / "cover.jpg"

        with pytest.raises(SourceUnavailable):
            fetcher.fetch_art("https://i.scdn.co/image/missing", dest)

        assert not dest.exists()

    def test_interrupted_body(self, temp_dir):
        def chunks(chunk_size):
            yield b"half"
            raise requests.ConnectionError("reset")

        response = MagicMock()
        response.iter_content.side_effect = chunks
        fetcher, _ = self.make_fetcher(response)

        with pytest.raises(TransferInterrupted):
            fetcher.fetch_art("https://i.scdn.co/image/cover", temp_dir / "cover.jpg")

    def test_empty_body(self, temp_dir):
        response = MagicMock()
        response.iter_content.return_value = []
        fetcher, _ = self.make_fetcher(response)
        dest = temp_dir / "cover.jpg"

        with pytest.raises(SourceUnavailable):
            fetcher.fetch_art("https://i.scdn.co/image/cover", dest)

        assert not dest.exists()

    def test_no_locator(self, temp_dir):
        with pytest.raises(SourceUnavailable):
            MediaFetcher(session=Mock()).fetch_art(None, temp_dir / "cover.jpg")
