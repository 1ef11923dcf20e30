"""Shared pytest fixtures and configuration."""

import subprocess
from pathlib import Path
from typing import Callable, Optional, Union

import pytest
from PIL import Image

from adburst.core.config import Settings
from adburst.core.logging_config import get_logger
from adburst.utils.ffmpeg_runner import FFmpegRunner


@pytest.fixture
def settings(tmp_path):
    """Create test settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        fal_key=None,
        kling_api_key=None,
        gemini_api_key=None,
        anthropic_api_key=None,
        openai_api_key=None,
        elevenlabs_api_key=None,
        enable_rate_limiting=False,
        provider_poll_interval=0.01,
        video_width=360,
        video_height=640,
        encoder_preset="ultrafast",
        work_dir=str(tmp_path / "work"),
        output_dir=str(tmp_path / "outputs"),
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def make_image(tmp_path) -> Callable[..., Path]:
    """Factory writing small solid-color PNG product images."""

    def _make(name: str = "product.png", size=(360, 640), color=(200, 40, 40)) -> Path:
        path = tmp_path / "images" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(path, "PNG")
        return path

    return _make


@pytest.fixture
def runner(settings, logger):
    """Real encoder runner; skips the test when ffmpeg/ffprobe are not installed."""
    ffmpeg_runner = FFmpegRunner(settings, logger)
    if not ffmpeg_runner.is_available():
        pytest.skip("ffmpeg/ffprobe not installed")
    return ffmpeg_runner


@pytest.fixture
def make_clip() -> Callable[..., Path]:
    """Factory synthesizing H.264 test clips with the lavfi testsrc source."""

    def _make(path: Union[str, Path], duration: float, size: str = "360x640", rate: int = 25) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        subprocess.run(
            [
                "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
                "-f", "lavfi", "-i", f"testsrc=duration={duration}:size={size}:rate={rate}",
                "-c:v", "libx264", "-preset", "ultrafast", "-pix_fmt", "yuv420p",
                str(path),
            ],
            check=True,
            capture_output=True,
        )
        return path

    return _make


@pytest.fixture
def make_tone() -> Callable[..., Path]:
    """Factory synthesizing sine-wave audio files with lavfi."""

    def _make(path: Union[str, Path], duration: float) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        subprocess.run(
            [
                "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
                "-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}",
                "-c:a", "libmp3lame" if path.suffix == ".mp3" else "pcm_s16le",
                str(path),
            ],
            check=True,
            capture_output=True,
        )
        return path

    return _make


class FakeClipProvider:
    """In-memory clip provider: fails with `error` or writes a clip via `writer`."""

    def __init__(
        self,
        name: str,
        raw_clip_duration: float = 4.0,
        error: Optional[Union[Exception, Callable[[Path], Optional[Exception]]]] = None,
        writer: Optional[Callable[[Path, float], Path]] = None,
    ):
        self.name = name
        self.raw_clip_duration = raw_clip_duration
        self.error = error
        self.writer = writer
        self.calls: list[Path] = []

    def is_configured(self) -> bool:
        return True

    def generate(self, image_path: Path, prompt: str, aspect_ratio: str, output_path: Path) -> Path:
        self.calls.append(Path(image_path))
        error = self.error(Path(image_path)) if callable(self.error) else self.error
        if error is not None:
            raise error
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if self.writer is not None:
            return self.writer(output_path, self.raw_clip_duration)
        output_path.write_bytes(b"fake clip")
        return output_path


@pytest.fixture
def make_provider() -> Callable[..., FakeClipProvider]:
    """Factory for fake clip providers."""
    return FakeClipProvider
