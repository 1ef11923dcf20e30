"""Tests for Timeline Assembler service."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from adburst.core.errors import EncodingFailed
from adburst.models.schemas import NormalizationMethod, Segment, Timeline, TransitionType
from adburst.services.timeline_assembler import TimelineAssembler, compute_crossfade_offsets


def _timeline(clip_paths, durations, transition=0.5, include_transitions=True, providers=None, methods=None):
    count = len(durations)
    crossfade = include_transitions and count > 1 and transition > 0
    segments = []
    for i, (path, duration) in enumerate(zip(clip_paths, durations)):
        segments.append(
            Segment(
                order=i,
                source_image_path=Path(f"img_{i}.png"),
                target_duration=duration,
                raw_clip_path=path,
                normalized_clip_path=path,
                provider_name=(providers or ["fal-ltx"] * count)[i],
                normalization_method=(methods or [NormalizationMethod.COPY] * count)[i],
                transition_in=TransitionType.CROSSFADE if crossfade and i > 0 else TransitionType.NONE,
                transition_out=TransitionType.CROSSFADE if crossfade and i < count - 1 else TransitionType.NONE,
            )
        )
    total = sum(durations) + (transition * (count - 1) if crossfade else 0)
    return Timeline(
        segments=segments,
        width=360,
        height=640,
        total_duration=total,
        transition_duration=transition if crossfade else 0.0,
        include_transitions=include_transitions,
    )


@pytest.fixture
def mock_runner():
    runner = MagicMock()
    runner.x264_args.return_value = ["-c:v", "libx264"]
    runner.probe_duration.return_value = 17.0
    return runner


def test_crossfade_offsets():
    assert compute_crossfade_offsets([6.0, 6.0, 6.0], 0.5) == pytest.approx([5.5, 11.0])
    assert compute_crossfade_offsets([4.0], 0.5) == []


def test_crossfade_filter_chains_xfades(settings, logger, tmp_path):
    timeline = _timeline([tmp_path / f"c{i}.mp4" for i in range(3)], [6.0, 6.0, 6.0])

    graph = TimelineAssembler(settings, logger, runner=MagicMock()).build_crossfade_filter(timeline)

    assert "[v0][v1]xfade=transition=fade:duration=0.500:offset=5.500[x1]" in graph
    assert "[x1][v2]xfade=transition=fade:duration=0.500:offset=11.000[outv]" in graph
    assert "tpad=stop_mode=clone:stop_duration=6.000,trim=duration=6.000" in graph
    assert "scale=360:640:force_original_aspect_ratio=decrease" in graph


def test_crossfade_invokes_single_encoder_pass(settings, logger, mock_runner, tmp_path):
    timeline = _timeline([tmp_path / f"c{i}.mp4" for i in range(3)], [6.0, 6.0, 6.0])

    TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")

    args = mock_runner.run.call_args.args[0]
    assert args.count("-i") == 3
    assert args[args.index("-map") + 1] == "[outv]"
    assert "-an" in args
    assert mock_runner.run.call_count == 1


def test_same_provider_without_transitions_concats_losslessly(settings, logger, mock_runner, tmp_path):
    timeline = _timeline([tmp_path / f"c{i}.mp4" for i in range(2)], [4.0, 8.0], include_transitions=False)

    TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")

    args = mock_runner.run.call_args.args[0]
    assert args[:2] == ["-f", "concat"]
    assert "copy" in args


def test_mixed_sources_without_transitions_reencode(settings, logger, mock_runner, tmp_path):
    """Test clips from different providers are re-encoded through the concat filter."""
    timeline = _timeline(
        [tmp_path / f"c{i}.mp4" for i in range(2)],
        [5.0, 5.0],
        include_transitions=False,
        providers=["fal-ltx", "kling"],
        methods=[NormalizationMethod.RESCALE, NormalizationMethod.COPY],
    )

    TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")

    args = mock_runner.run.call_args.args[0]
    graph = args[args.index("-filter_complex") + 1]
    assert graph.endswith("[v0][v1]concat=n=2:v=1:a=0[outv]")


def test_missing_clip_raises(settings, logger, mock_runner, tmp_path):
    timeline = _timeline([tmp_path / "c0.mp4", tmp_path / "c1.mp4"], [5.0, 5.0])
    timeline = timeline.with_segments(
        [timeline.segments[0], timeline.segments[1].model_copy(update={"raw_clip_path": None, "normalized_clip_path": None})]
    )

    with pytest.raises(ValueError):
        TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")
    mock_runner.run.assert_not_called()


def test_encoder_failure_propagates(settings, logger, mock_runner, tmp_path):
    mock_runner.run.side_effect = EncodingFailed("crossfade 2 segments failed", returncode=1)
    timeline = _timeline([tmp_path / "c0.mp4", tmp_path / "c1.mp4"], [5.0, 5.0])

    with pytest.raises(EncodingFailed):
        TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")


def test_real_crossfade_duration(settings, logger, runner, make_clip, tmp_path):
    """Test n segments of d seconds with t-second fades last n*d - (n-1)*t."""
    clips = [make_clip(tmp_path / f"clip_{i}.mp4", 2.0) for i in range(3)]
    timeline = _timeline(clips, [2.0, 2.0, 2.0], transition=0.5)

    output = TimelineAssembler(settings, logger, runner=runner).assemble(timeline, tmp_path / "out.mp4")

    assert runner.probe_duration(output) == pytest.approx(3 * 2.0 - 2 * 0.5, abs=0.1)


def test_real_assembly_pads_short_clips(settings, logger, runner, make_clip, tmp_path):
    """Test a clip shorter than its slot is held on its last frame."""
    clips = [make_clip(tmp_path / "short.mp4", 1.5), make_clip(tmp_path / "exact.mp4", 2.0)]
    timeline = _timeline(
        clips,
        [2.0, 2.0],
        include_transitions=False,
        methods=[NormalizationMethod.DEGRADED, NormalizationMethod.COPY],
    )

    output = TimelineAssembler(settings, logger, runner=runner).assemble(timeline, tmp_path / "out.mp4")

    assert runner.probe_duration(output) == pytest.approx(4.0, abs=0.1)


def test_real_lossless_concat(settings, logger, runner, make_clip, tmp_path):
    clips = [make_clip(tmp_path / f"clip_{i}.mp4", 2.0) for i in range(2)]
    timeline = _timeline(clips, [2.0, 2.0], include_transitions=False)

    output = TimelineAssembler(settings, logger, runner=runner).assemble(timeline, tmp_path / "out.mp4")

    assert runner.probe_duration(output) == pytest.approx(4.0, abs=0.1)


@pytest.mark.parametrize("method", [NormalizationMethod.DEGRADED, NormalizationMethod.RESCALE])
def test_single_unfitted_segment_is_padded_to_its_slot(settings, logger, mock_runner, tmp_path, method):
    """Test a lone clip that was not fitted by copy or loop still goes through tpad/trim."""
    timeline = _timeline([tmp_path / "raw.mp4"], [20.0], methods=[method])

    TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")

    args = mock_runner.run.call_args.args[0]
    assert "-f" not in args
    graph = args[args.index("-filter_complex") + 1]
    assert "tpad=stop_mode=clone:stop_duration=20.000,trim=duration=20.000" in graph
    assert graph.endswith("[v0]concat=n=1:v=1:a=0[outv]")


def test_single_copied_segment_concats_losslessly(settings, logger, mock_runner, tmp_path):
    timeline = _timeline([tmp_path / "clip.mp4"], [5.0], methods=[NormalizationMethod.LOOP])

    TimelineAssembler(settings, logger, runner=mock_runner).assemble(timeline, tmp_path / "out.mp4")

    args = mock_runner.run.call_args.args[0]
    assert args[:2] == ["-f", "concat"]
