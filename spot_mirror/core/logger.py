"""
Logging configuration for spot-mirror.

This module sets up the logging system with multiple outputs:
    - Console: Real-time messages with tqdm-compatible formatting
    - log_full_<ts>.log: Complete log of all events (DEBUG and above)
    - log_errors_<ts>.log: Only ERROR and CRITICAL level messages
    - download_failures_<ts>.log: Tracks that did not complete, with the
      state they ended in, so they can be retried by hand later

The logging system follows the principle: everything to screen is also saved
to file, then filtered into specialized files.

Log File Locations:
    All log files are created in <output directory>/logs. Each run gets
    its own timestamped files.

Usage:
    from spot_mirror.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting download")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
DOWNLOAD_FAILURES_FILENAME = "download_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Uses tqdm.write(), which prints above any active progress bar instead
    of tearing through it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class DownloadFailedTrackHandler(logging.Handler):
    """
    Handler that captures per-track failures into the failure report.

    Records are written in a simple, human-readable format that is
    enough to retry a track by hand:

        Queen - Bohemian Rhapsody
        [Road Trip] DOWNLOAD_FAILED: yt-dlp error: Video unavailable

    The handler looks for specific extra fields in log records:
        - 'failed_track_name': The name of the track that failed
        - 'failed_track_artist': The artist name
        - 'failed_track_playlist': The playlist being processed (optional)
        - 'failed_track_state': The terminal state the track ended in
        - 'failed_track_reason': Why it failed

    Only records containing these fields are written to the report.
    Use log_download_failure() to emit such records.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (None until open() is called).
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """
        Open the report file for writing.

        Called by setup_logging() after handler is created.
        """
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "failed_track_name"):
            return

        if self.report_file is None:
            return

        try:
            track_name = getattr(record, "failed_track_name", "Unknown")
            artist = getattr(record, "failed_track_artist", "Unknown")
            playlist = getattr(record, "failed_track_playlist", None)
            state = getattr(record, "failed_track_state", "FAILED")
            reason = getattr(record, "failed_track_reason", "")

            prefix = f"[{playlist}] " if playlist else ""
            self.acquire()
            try:
                self.report_file.write(f"{artist} - {track_name}\n")
                self.report_file.write(f"{prefix}{state}: {reason}\n\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Safe to call multiple times.
        """
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(output_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        output_dir: Directory where log files will be created.
                    Logs are stored in a 'logs' subdirectory.
        console_level: Minimum level shown on the console.

    Behavior:
        1. Create output_dir/logs if it doesn't exist
        2. Generate timestamp for this run's log files
        3. Replace root logger handlers with:
           - console (TqdmLoggingHandler, colored, console_level)
           - full log file (DEBUG)
           - error-only log file (ERROR+)
           - download failures report

    Thread Safety:
        This function is NOT thread-safe. Call it once from the main
        thread before starting any worker threads.
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = logs_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = logs_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_path = logs_dir / f"{DOWNLOAD_FAILURES_FILENAME}_{timestamp}.log"
    failures_handler = DownloadFailedTrackHandler(failures_path)
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    # Third-party chatter stays in the full log only
    for noisy in ("urllib3", "spotipy", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called will have no
        handlers and will not produce output.
    """
    return logging.getLogger(name)


def log_download_failure(
    logger: logging.Logger,
    track_name: str,
    artist: str,
    state: str,
    reason: str,
    playlist_name: str | None = None
) -> None:
    """
    Log a track that did not complete.

    Logs an ERROR level message and attaches the extra fields that
    DownloadFailedTrackHandler uses to write the failure report.

    Args:
        logger: The logger to use for the message.
        track_name: The name of the track that failed.
        artist: The artist name.
        state: Terminal state name (e.g. "RESOLUTION_FAILED").
        reason: Description of why the track failed.
        playlist_name: Playlist being processed, if any.

    Example:
        log_download_failure(
            logger,
            track_name="Song Title",
            artist="Artist Name",
            state="DOWNLOAD_FAILED",
            reason="Video unavailable",
            playlist_name="Road Trip"
        )
    """
    logger.error(
        f"{state}: {artist} - {track_name} ({reason})",
        extra={
            "failed_track_name": track_name,
            "failed_track_artist": artist,
            "failed_track_playlist": playlist_name,
            "failed_track_state": state,
            "failed_track_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes every root handler, then removes them.
    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
