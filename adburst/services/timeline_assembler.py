"""Timeline Assembler - joins normalized segments into one silent video track."""

from pathlib import Path
from typing import Any, Optional, Sequence

from adburst.core.config import Settings
from adburst.models.schemas import NormalizationMethod, Timeline
from adburst.services.segment_normalizer import write_concat_list
from adburst.utils.ffmpeg_runner import FFmpegRunner, format_seconds

LOSSLESS_METHODS = {NormalizationMethod.COPY, NormalizationMethod.LOOP}


def compute_crossfade_offsets(durations: Sequence[float], transition_duration: float) -> list[float]:
    """
    Absolute xfade offsets for a chain of segments.

    Fade k starts t seconds before the end of the stream accumulated so far:
    offset_k = sum(d_0..d_k) - (k+1)*t.
    """
    offsets = []
    elapsed = 0.0
    for k, duration in enumerate(durations[:-1]):
        elapsed += duration
        offsets.append(elapsed - (k + 1) * transition_duration)
    return offsets


class TimelineAssembler:
    """Concatenates segment clips, crossfading between neighbours when enabled."""

    def __init__(self, settings: Settings, logger: Any, runner: Optional[FFmpegRunner] = None):
        """
        Initialize timeline assembler.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Optional encoder runner (created from settings if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or FFmpegRunner(settings, logger)

    def probe_duration(self, path: Path) -> float:
        return self.runner.probe_duration(path)

    def assemble(self, timeline: Timeline, output_path: Path) -> Path:
        """
        Encode the timeline into a single video without audio.

        Args:
            timeline: Planned timeline whose segments all have clips
            output_path: Where to write the assembled track

        Returns:
            output_path

        Raises:
            EncodingFailed: If the encoder exits non-zero
        """
        segments = timeline.segments
        missing = [s.order for s in segments if s.clip_path is None]
        if missing:
            raise ValueError(f"Segments {missing} have no clip to assemble")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if timeline.uses_crossfade:
            self._assemble_crossfade(timeline, output_path)
        elif self._can_concat_losslessly(timeline):
            self._assemble_lossless(timeline, output_path)
        else:
            self._assemble_reencode(timeline, output_path)

        actual = self.probe_duration(output_path)
        expected = timeline.expected_output_duration
        log = self.logger.warning if abs(actual - expected) > 0.25 else self.logger.info
        log(f"Assembled {len(segments)} segment(s): {actual:.2f}s (expected {expected:.2f}s) -> {output_path.name}")
        return output_path

    def _can_concat_losslessly(self, timeline: Timeline) -> bool:
        """Stream copy only when every clip is already target-length and shares one encoding."""
        segments = timeline.segments
        providers = {s.provider_name for s in segments}
        return len(providers) == 1 and all(s.normalization_method in LOSSLESS_METHODS for s in segments)

    def _prepare_input(self, index: int, target_duration: float, timeline: Timeline) -> str:
        """Filter bringing input `index` to the common format, exactly target_duration long."""
        w, h = timeline.width, timeline.height
        target = format_seconds(target_duration)
        return (
            f"[{index}:v]fps={timeline.frame_rate},"
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1,format=yuv420p,"
            f"tpad=stop_mode=clone:stop_duration={target},trim=duration={target},"
            f"setpts=PTS-STARTPTS,settb=AVTB[v{index}]"
        )

    def build_crossfade_filter(self, timeline: Timeline) -> str:
        """filter_complex string: per-input normalization followed by chained xfades into [outv]."""
        durations = [s.target_duration for s in timeline.segments]
        t = timeline.transition_duration
        offsets = compute_crossfade_offsets(durations, t)

        parts = [self._prepare_input(i, d, timeline) for i, d in enumerate(durations)]
        current = "[v0]"
        for k, offset in enumerate(offsets):
            output = "[outv]" if k == len(offsets) - 1 else f"[x{k + 1}]"
            parts.append(
                f"{current}[v{k + 1}]xfade=transition=fade:"
                f"duration={format_seconds(t)}:offset={format_seconds(offset)}{output}"
            )
            current = output
        return ";".join(parts)

    def _input_args(self, timeline: Timeline) -> list[str]:
        args: list[str] = []
        for segment in timeline.segments:
            args.extend(["-i", str(segment.clip_path)])
        return args

    def _assemble_crossfade(self, timeline: Timeline, output_path: Path) -> None:
        self.runner.run(
            [
                *self._input_args(timeline),
                "-filter_complex", self.build_crossfade_filter(timeline),
                "-map", "[outv]",
                "-an",
                *self.runner.x264_args(),
                "-r", str(timeline.frame_rate),
                str(output_path),
            ],
            description=f"crossfade {len(timeline.segments)} segments",
        )

    def _assemble_reencode(self, timeline: Timeline, output_path: Path) -> None:
        segments = timeline.segments
        parts = [self._prepare_input(i, s.target_duration, timeline) for i, s in enumerate(segments)]
        streams = "".join(f"[v{i}]" for i in range(len(segments)))
        parts.append(f"{streams}concat=n={len(segments)}:v=1:a=0[outv]")
        self.runner.run(
            [
                *self._input_args(timeline),
                "-filter_complex", ";".join(parts),
                "-map", "[outv]",
                "-an",
                *self.runner.x264_args(),
                "-r", str(timeline.frame_rate),
                str(output_path),
            ],
            description=f"concat {len(segments)} segments",
        )

    def _assemble_lossless(self, timeline: Timeline, output_path: Path) -> None:
        list_path = output_path.with_suffix(".txt")
        write_concat_list([s.clip_path for s in timeline.segments], list_path)
        try:
            self.runner.run(
                ["-f", "concat", "-safe", "0", "-i", str(list_path), "-c", "copy", "-an", str(output_path)],
                description=f"concat {len(timeline.segments)} segment(s) losslessly",
            )
        finally:
            list_path.unlink(missing_ok=True)
