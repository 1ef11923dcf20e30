"""Audio Muxer - combines the video track with the voiceover and an optional watermark."""

from pathlib import Path
from typing import Any, Optional

from PIL import Image

from adburst.core.config import Settings
from adburst.utils.ffmpeg_runner import FFmpegRunner
from adburst.utils.io_utils import unique_name


class AudioMuxer:
    """Muxes voiceover audio onto the assembled video; the shorter stream wins."""

    def __init__(self, settings: Settings, logger: Any, runner: Optional[FFmpegRunner] = None):
        """
        Initialize audio muxer.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Optional encoder runner (created from settings if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or FFmpegRunner(settings, logger)

    def prepare_watermark(self, watermark_path: Path, video_width: int, output_dir: Path) -> Path:
        """
        Scale the watermark to watermark_scale of the video width, keeping its aspect ratio.

        Returns:
            Path to an RGBA PNG ready for overlay
        """
        target_width = max(1, int(video_width * self.settings.watermark_scale))
        with Image.open(watermark_path) as img:
            img = img.convert("RGBA")
            target_height = max(1, round(img.height * target_width / img.width))
            scaled = img.resize((target_width, target_height), Image.Resampling.LANCZOS)
            output_path = Path(output_dir) / unique_name("watermark", ".png")
            scaled.save(output_path, "PNG")
        self.logger.debug(f"Watermark scaled to {target_width}x{target_height}")
        return output_path

    def mux(
        self,
        video_path: Path,
        audio_path: Path,
        output_path: Path,
        watermark_path: Optional[Path] = None,
        video_width: Optional[int] = None,
    ) -> Path:
        """
        Combine video and audio into the final deliverable.

        Without a watermark the video stream is copied; with one, the watermark is
        overlaid in the bottom-right corner and the video is re-encoded.
        Output length is the shorter of the two streams.

        Args:
            video_path: Assembled silent video
            audio_path: Voiceover audio
            output_path: Final video path
            watermark_path: Optional watermark image
            video_width: Width of video_path (defaults to settings.video_width)

        Returns:
            output_path

        Raises:
            EncodingFailed: If the encoder exits non-zero
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if watermark_path:
            margin = self.settings.watermark_margin
            scaled = self.prepare_watermark(
                Path(watermark_path), video_width or self.settings.video_width, output_path.parent
            )
            try:
                self.runner.run(
                    [
                        "-i", str(video_path),
                        "-i", str(audio_path),
                        "-i", str(scaled),
                        "-filter_complex", f"[0:v][2:v]overlay=W-w-{margin}:H-h-{margin}[outv]",
                        "-map", "[outv]",
                        "-map", "1:a:0",
                        *self.runner.x264_args(),
                        "-c:a", "aac",
                        "-shortest",
                        str(output_path),
                    ],
                    description="mux audio with watermark",
                )
            finally:
                scaled.unlink(missing_ok=True)
        else:
            self.runner.run(
                [
                    "-i", str(video_path),
                    "-i", str(audio_path),
                    "-map", "0:v:0",
                    "-map", "1:a:0",
                    "-c:v", "copy",
                    "-c:a", "aac",
                    "-shortest",
                    str(output_path),
                ],
                description="mux audio",
            )

        self.logger.info(f"Muxed final video: {output_path}")
        return output_path
