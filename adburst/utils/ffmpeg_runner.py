"""FFmpeg Runner - invokes the external encoder through a process-wide bounded pool."""

import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from adburst.core.config import Settings
from adburst.core.errors import EncodingFailed

AUDIO_SUFFIXES = {".mp3", ".wav", ".aac", ".m4a", ".ogg", ".flac"}

# One pool for every run in the process
_encoder_semaphore: Optional[threading.BoundedSemaphore] = None
_semaphore_lock = threading.Lock()


def get_encoder_semaphore(max_workers: int) -> threading.BoundedSemaphore:
    """Get or create the process-wide encoder semaphore (sized on first use)."""
    global _encoder_semaphore
    with _semaphore_lock:
        if _encoder_semaphore is None:
            _encoder_semaphore = threading.BoundedSemaphore(max(1, int(max_workers)))
        return _encoder_semaphore


def format_seconds(value: float) -> str:
    return f"{value:.3f}"


class FFmpegRunner:
    """Runs ffmpeg/ffprobe commands with captured stderr and a shared concurrency cap."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the runner.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.ffmpeg = settings.ffmpeg_binary
        self.ffprobe = settings.ffprobe_binary
        self.timeout = settings.encoder_timeout
        self.semaphore = get_encoder_semaphore(settings.max_encoder_workers)

    def is_available(self) -> bool:
        return shutil.which(self.ffmpeg) is not None and shutil.which(self.ffprobe) is not None

    def x264_args(self) -> list[str]:
        """Common libx264 output options."""
        return [
            "-c:v", "libx264",
            "-preset", self.settings.encoder_preset,
            "-crf", str(self.settings.encoder_crf),
            "-pix_fmt", "yuv420p",
        ]

    def run(self, args: Sequence[str], description: str = "ffmpeg") -> None:
        """
        Run ffmpeg with the given arguments (binary, -y and log level are prepended).

        Args:
            args: ffmpeg arguments after the global options
            description: Short label for logs and errors

        Raises:
            EncodingFailed: On non-zero exit, timeout or missing binary
        """
        cmd = [self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error", *[str(a) for a in args]]
        self.logger.debug(f"{description}: {' '.join(cmd)}")

        with self.semaphore:
            start_time = time.time()
            try:
                subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=self.timeout)
            except subprocess.CalledProcessError as e:
                raise EncodingFailed(
                    f"{description} failed", command=cmd, returncode=e.returncode, stderr=e.stderr or ""
                ) from e
            except subprocess.TimeoutExpired as e:
                stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else (e.stderr or "")
                raise EncodingFailed(
                    f"{description} timed out after {self.timeout:.0f}s", command=cmd, stderr=stderr
                ) from e
            except OSError as e:
                raise EncodingFailed(f"{description} could not start {self.ffmpeg}: {e}", command=cmd) from e

        self.logger.debug(f"{description} finished in {time.time() - start_time:.2f}s")

    def probe_duration(self, path: Union[str, Path]) -> float:
        """
        Measure the duration of a media file in seconds.

        Uses ffprobe, falling back to moviepy when ffprobe cannot read the file.

        Raises:
            EncodingFailed: If neither can determine a duration
        """
        path = Path(path)
        cmd = [
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=60)
            return float(result.stdout.strip())
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, ValueError, OSError) as e:
            self.logger.debug(f"ffprobe could not read {path.name} ({e}); trying moviepy")

        try:
            return _moviepy_duration(path)
        except Exception as e:
            raise EncodingFailed(f"Could not determine duration of {path}", command=cmd, stderr=str(e)) from e


def _moviepy_duration(path: Path) -> float:
    from moviepy.editor import AudioFileClip, VideoFileClip

    clip_cls = AudioFileClip if path.suffix.lower() in AUDIO_SUFFIXES else VideoFileClip
    clip = clip_cls(str(path))
    try:
        return float(clip.duration)
    finally:
        clip.close()
