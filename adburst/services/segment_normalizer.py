"""Segment Normalizer - fits each raw clip to its planned duration."""

import shutil
from pathlib import Path
from typing import Any, Optional, Sequence

from adburst.core.config import Settings
from adburst.core.errors import EncodingFailed
from adburst.models.schemas import NormalizationMethod, Segment
from adburst.utils.error_handler import format_error_message, get_fallback_suggestion
from adburst.utils.ffmpeg_runner import FFmpegRunner, format_seconds
from adburst.utils.io_utils import unique_name
from adburst.utils.parallel_executor import ParallelExecutor


def choose_normalization(
    raw_duration: float,
    target_duration: float,
    duration_tolerance: float = 0.1,
    loop_tolerance: float = 0.1,
) -> tuple[NormalizationMethod, int, float]:
    """
    Decide how to turn a raw clip into a clip of target_duration.

    - within duration_tolerance of the target: copy unchanged
    - target/raw within loop_tolerance of an integer >= 2: loop that many times
    - otherwise: rescale timestamps by target/raw

    Returns:
        (method, loop_count, pts_factor)
    """
    if raw_duration <= 0:
        raise ValueError(f"Raw clip duration must be positive (got {raw_duration})")

    if abs(target_duration - raw_duration) <= duration_tolerance:
        return NormalizationMethod.COPY, 1, 1.0

    ratio = target_duration / raw_duration
    loops = round(ratio)
    if loops >= 2 and abs(ratio - loops) <= loop_tolerance:
        return NormalizationMethod.LOOP, int(loops), 1.0

    return NormalizationMethod.RESCALE, 1, ratio


def write_concat_list(paths: Sequence[Path], list_path: Path) -> Path:
    """Write an ffmpeg concat-demuxer list file."""
    lines = []
    for path in paths:
        escaped = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


class SegmentNormalizer:
    """Copies, loops or time-rescales raw clips to their target durations."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        runner: Optional[FFmpegRunner] = None,
        executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize segment normalizer.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Optional encoder runner (created from settings if omitted)
            executor: Optional parallel executor
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or FFmpegRunner(settings, logger)
        self.executor = executor or ParallelExecutor(settings, logger)

    def normalize(self, segment: Segment, output_dir: Path) -> Segment:
        """
        Normalize one segment's raw clip.

        An encoder failure is not fatal: the raw clip is used as-is and the
        segment is marked degraded with the encoder error.

        Returns:
            Copy of the segment with normalized_clip_path and normalization_method set
        """
        if segment.raw_clip_path is None:
            raise ValueError(f"Segment {segment.order} has no raw clip to normalize")

        raw_duration = segment.raw_clip_duration or self.runner.probe_duration(segment.raw_clip_path)
        method, loops, factor = choose_normalization(
            raw_duration,
            segment.target_duration,
            self.settings.duration_tolerance,
            self.settings.loop_tolerance,
        )
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / unique_name(f"norm_{segment.order:02d}")

        self.logger.debug(
            f"Segment {segment.order}: {method.value} {raw_duration:.2f}s -> {segment.target_duration:.2f}s"
            + (f" (x{loops})" if method == NormalizationMethod.LOOP else "")
            + (f" (setpts={factor:.4f})" if method == NormalizationMethod.RESCALE else "")
        )

        try:
            if method == NormalizationMethod.COPY:
                shutil.copyfile(segment.raw_clip_path, output_path)
            elif method == NormalizationMethod.LOOP:
                self._loop(segment, loops, output_path)
            else:
                self._rescale(segment, factor, output_path)
        except EncodingFailed as e:
            self.logger.warning(
                format_error_message(
                    f"Normalizing segment {segment.order}",
                    e,
                    context={"method": method.value},
                    suggestion=f"{get_fallback_suggestion('Encoder', e)} Using the raw clip unchanged.",
                )
            )
            return segment.model_copy(
                update={
                    "normalized_clip_path": segment.raw_clip_path,
                    "normalization_method": NormalizationMethod.DEGRADED,
                    "normalization_degraded": str(e),
                }
            )

        return segment.model_copy(
            update={"normalized_clip_path": output_path, "normalization_method": method}
        )

    def _loop(self, segment: Segment, loops: int, output_path: Path) -> None:
        list_path = output_path.with_suffix(".txt")
        write_concat_list([segment.raw_clip_path] * loops, list_path)
        try:
            self.runner.run(
                ["-f", "concat", "-safe", "0", "-i", str(list_path), "-c", "copy", str(output_path)],
                description=f"loop segment {segment.order} x{loops}",
            )
        finally:
            list_path.unlink(missing_ok=True)

    def _rescale(self, segment: Segment, factor: float, output_path: Path) -> None:
        fps = self.settings.frame_rate
        self.runner.run(
            [
                "-i", str(segment.raw_clip_path),
                "-vf", f"setpts={factor:.6f}*PTS,fps={fps}",
                "-an",
                "-t", format_seconds(segment.target_duration),
                *self.runner.x264_args(),
                "-r", str(fps),
                str(output_path),
            ],
            description=f"rescale segment {segment.order}",
        )

    def normalize_all(self, segments: Sequence[Segment], output_dir: Path, run_id: Optional[str] = None) -> list[Segment]:
        """
        Normalize every segment concurrently (encoder processes are capped by the shared pool).

        Returns:
            Segments in order, each normalized or degraded
        """
        ordered = sorted(segments, key=lambda s: s.order)
        tasks = [(lambda seg=segment: self.normalize(seg, output_dir)) for segment in ordered]
        results = self.executor.execute_batch(
            tasks,
            task_names=[f"normalize_{segment.order}" for segment in ordered],
            max_workers=len(tasks),
            run_id=run_id,
        )

        normalized = []
        for result, error in results:
            if error is not None:
                raise error
            normalized.append(result)

        degraded = [s.order for s in normalized if s.normalization_method == NormalizationMethod.DEGRADED]
        if degraded:
            self.logger.warning(f"Normalization degraded for segment(s) {degraded}; raw clips used")
        return normalized
