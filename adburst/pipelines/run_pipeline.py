"""Ad pipeline orchestrator - images + product brief -> muxed vertical video ad."""

import argparse
import json
import sys
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

from adburst.core.config import Settings, settings
from adburst.core.errors import (
    AdBurstError,
    AllProvidersFailed,
    EncodingFailed,
    InvalidInput,
    PipelineAborted,
)
from adburst.core.logging_config import get_logger, setup_logging
from adburst.models.schemas import (
    AdRequest,
    AspectRatio,
    NormalizationMethod,
    PartialArtifacts,
    PipelineResult,
    PipelineStage,
    PipelineStatus,
    ProviderFailure,
    Segment,
    Timeline,
)
from adburst.services.audio_muxer import AudioMuxer
from adburst.services.duration_planner import DurationPlanner
from adburst.services.fallback_chain import ProviderFallbackChain
from adburst.services.provider_registry import ProviderRegistry
from adburst.services.script_generator import ScriptGenerator
from adburst.services.segment_normalizer import SegmentNormalizer
from adburst.services.segment_prompts import build_all_prompts
from adburst.services.timeline_assembler import TimelineAssembler
from adburst.services.tts_client import TTSClient
from adburst.utils.error_handler import format_error_message, get_fallback_suggestion
from adburst.utils.ffmpeg_runner import FFmpegRunner
from adburst.utils.io_utils import create_run_workspace, move_artifact, new_run_id, unique_name
from adburst.utils.parallel_executor import ParallelExecutor

VOICEOVER_MISMATCH_TOLERANCE = 1.0


class _RunState:
    """Mutable bookkeeping for one run; turned into a PipelineResult at the end."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.stage = PipelineStage.IDLE
        self.artifacts = PartialArtifacts()
        self.provider_errors: dict[int, list[ProviderFailure]] = {}
        self.segments: list[Segment] = []
        self.timeline: Optional[Timeline] = None
        self.voiceover_duration: Optional[float] = None


class PipelineOrchestrator:
    """Runs one ad through planning, clip generation, normalization, assembly, voiceover and muxing."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        registry: Optional[ProviderRegistry] = None,
        script_generator: Optional[ScriptGenerator] = None,
        tts_client: Optional[TTSClient] = None,
        runner: Optional[FFmpegRunner] = None,
        planner: Optional[DurationPlanner] = None,
        chain: Optional[ProviderFallbackChain] = None,
        normalizer: Optional[SegmentNormalizer] = None,
        assembler: Optional[TimelineAssembler] = None,
        muxer: Optional[AudioMuxer] = None,
    ):
        """
        Initialize the orchestrator.

        Collaborators not passed in are built from settings, so a registry is
        created once per orchestrator and reused across runs.

        Args:
            settings: Application settings
            logger: Logger instance
            registry: Ordered clip providers
            script_generator: Voiceover script collaborator
            tts_client: Text-to-speech collaborator
            runner: Shared encoder runner
        """
        self.settings = settings
        self.logger = logger
        runner = runner or FFmpegRunner(settings, logger)
        executor = ParallelExecutor(settings, logger)

        self.registry = registry or ProviderRegistry.from_settings(settings, logger)
        self.script_generator = script_generator or ScriptGenerator(settings, logger)
        self.tts_client = tts_client or TTSClient(settings, logger)
        self.planner = planner or DurationPlanner(settings, logger)
        self.chain = chain or ProviderFallbackChain(settings, logger, self.registry, executor)
        self.normalizer = normalizer or SegmentNormalizer(settings, logger, runner, executor)
        self.assembler = assembler or TimelineAssembler(settings, logger, runner)
        self.muxer = muxer or AudioMuxer(settings, logger, runner)
        self.runner = runner

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, request: AdRequest) -> PipelineResult:
        """
        Produce a video ad for the request.

        Never raises for pipeline failures: an aborted run comes back as a
        PipelineResult with status "aborted", the failing stage, and every
        artifact produced before the failure.

        Args:
            request: Images and product brief

        Returns:
            PipelineResult
        """
        start_time = time.time()
        state = _RunState(new_run_id(request.product_name))
        log = self.logger.bind(run_id=state.run_id)

        log.info("=" * 60)
        log.info(f"AdBurst run {state.run_id}: {request.product_name}")
        log.info(f"Images: {len(request.image_paths)} | Duration: {request.total_duration:g}s | Aspect: {request.aspect_ratio.value}")
        log.info("=" * 60)

        self._enter(state, PipelineStage.PLANNING_DURATIONS, log)
        try:
            timeline = self._plan(request)
        except InvalidInput as e:
            log.error(format_error_message("Planning segment durations", e))
            return self._result(state, start_time, error=e)

        state.timeline = timeline
        state.segments = list(timeline.segments)

        with create_run_workspace(self.settings.work_dir, state.run_id, log) as workspace:
            final_path, error = self._run_stages(request, timeline, workspace, state, log)
            if final_path is not None:
                final_path = move_artifact(final_path, self.settings.output_dir, f"{state.run_id}.mp4")
                self._enter(state, PipelineStage.DONE, log)
            elif self.settings.keep_partial_artifacts:
                self._preserve_partial_artifacts(state, log)
            else:
                self._forget_artifact_files(state)

        result = self._result(state, start_time, final_path=final_path, error=error)
        if result.succeeded:
            log.info(f"✅ Run complete in {result.elapsed_seconds:.2f}s: {final_path}")
        else:
            log.error(f"❌ Run aborted at {result.stage.value} after {result.elapsed_seconds:.2f}s: {result.error}")
        return result

    def run_or_raise(self, request: AdRequest) -> PipelineResult:
        """Like run(), but raise PipelineAborted (carrying the result) when the run does not finish."""
        result = self.run(request)
        if not result.succeeded:
            raise PipelineAborted(result)
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _plan(self, request: AdRequest) -> Timeline:
        missing = [str(p) for p in request.image_paths if not Path(p).is_file()]
        if missing:
            raise InvalidInput(f"Image file(s) not found: {', '.join(missing)}")
        if request.watermark_path and not Path(request.watermark_path).is_file():
            raise InvalidInput(f"Watermark file not found: {request.watermark_path}")

        prompts = build_all_prompts(
            len(request.image_paths),
            request.product_name,
            request.product_description,
            request.target_audience,
            request.aspect_ratio.value,
        )
        return self.planner.build_timeline(
            request.image_paths,
            prompts,
            total_duration=request.total_duration,
            transition_duration=request.transition_duration,
            include_transitions=request.include_transitions,
        )

    def _run_stages(
        self,
        request: AdRequest,
        timeline: Timeline,
        workspace: Path,
        state: _RunState,
        log: Any,
    ) -> tuple[Optional[Path], Optional[Exception]]:
        voiceover_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"voiceover-{state.run_id[-8:]}")
        voiceover: Future = voiceover_pool.submit(self._generate_voiceover, request, timeline, workspace, state, log)

        try:
            self._enter(state, PipelineStage.GENERATING_CLIPS, log)
            segments, failures = self.chain.generate_all(
                timeline.segments, request.aspect_ratio.value, workspace, run_id=state.run_id
            )
            state.segments = segments
            state.provider_errors = failures
            state.artifacts.raw_clip_paths = {s.order: s.raw_clip_path for s in segments if s.raw_clip_path}
            failed = [s.order for s in segments if s.raw_clip_path is None]
            if failed:
                if len(failed) > 1:
                    log.error(f"All providers failed for segments {failed}")
                raise AllProvidersFailed(failed[0], failures.get(failed[0], []))
            for segment in segments:
                log.info(f"Segment {segment.order}: {segment.provider_name} ({segment.raw_clip_duration:g}s raw)")

            self._enter(state, PipelineStage.NORMALIZING_SEGMENTS, log)
            segments = self.normalizer.normalize_all(segments, workspace, run_id=state.run_id)
            state.segments = segments
            state.artifacts.normalized_clip_paths = {s.order: s.normalized_clip_path for s in segments}
            state.artifacts.degraded_segments = {
                s.order: s.normalization_degraded or "encoder failed"
                for s in segments
                if s.normalization_method == NormalizationMethod.DEGRADED
            }

            self._enter(state, PipelineStage.ASSEMBLING_TIMELINE, log)
            assembled = timeline.with_segments(segments)
            state.timeline = assembled
            silent_path = self.assembler.assemble(assembled, workspace / unique_name("silent"))
            state.artifacts.silent_video_path = silent_path

            self._enter(state, PipelineStage.GENERATING_VOICEOVER, log)
            audio_path = voiceover.result()
            self._check_voiceover_length(state, assembled, audio_path, log)

            self._enter(state, PipelineStage.MUXING, log)
            final_path = self.muxer.mux(
                silent_path,
                audio_path,
                workspace / unique_name("final"),
                watermark_path=request.watermark_path,
                video_width=assembled.width,
            )
            return final_path, None

        except Exception as e:
            self._log_stage_failure(state, e, log)
            self._wait_for_voiceover(voiceover, e, log)
            return None, e
        finally:
            voiceover_pool.shutdown(wait=True)

    def _generate_voiceover(
        self,
        request: AdRequest,
        timeline: Timeline,
        workspace: Path,
        state: _RunState,
        log: Any,
    ) -> Path:
        """Side task: script, then speech. Runs alongside clip generation."""
        script = self.script_generator.generate(
            request.product_name,
            request.product_description,
            request.target_audience,
            duration_seconds=timeline.expected_output_duration,
        )
        state.artifacts.script_text = script
        log.debug(f"Script: {script}")

        audio_path = self.tts_client.synthesize(script, workspace / unique_name("voiceover", ".mp3"))
        state.artifacts.audio_path = audio_path
        return audio_path

    def _wait_for_voiceover(self, voiceover: Future, primary: Exception, log: Any) -> None:
        """Let the side task finish so its artifacts land in the aborted result."""
        try:
            voiceover.result()
        except Exception as e:
            if e is not primary:
                log.warning(f"Voiceover side task also failed: {e}")

    def _check_voiceover_length(self, state: _RunState, timeline: Timeline, audio_path: Path, log: Any) -> None:
        try:
            state.voiceover_duration = self.runner.probe_duration(audio_path)
        except EncodingFailed as e:
            log.warning(f"Could not measure voiceover duration: {e}")
            return
        video_duration = timeline.expected_output_duration
        difference = state.voiceover_duration - video_duration
        if abs(difference) > VOICEOVER_MISMATCH_TOLERANCE:
            side = "video will be cut to the voiceover" if difference < 0 else "voiceover will be cut"
            log.warning(
                f"Voiceover is {state.voiceover_duration:.2f}s vs video {video_duration:.2f}s; {side}"
            )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _enter(self, state: _RunState, stage: PipelineStage, log: Any) -> None:
        log.info(f"Stage: {state.stage.value} -> {stage.value}")
        state.stage = stage

    def _log_stage_failure(self, state: _RunState, error: Exception, log: Any) -> None:
        if isinstance(error, AllProvidersFailed):
            service = "Clip Provider"
        elif isinstance(error, EncodingFailed):
            service = "Encoder"
        elif state.stage == PipelineStage.GENERATING_VOICEOVER:
            service = "TTS" if state.artifacts.script_text else "Script"
        else:
            service = ""
        message = format_error_message(
            f"Stage {state.stage.value}",
            error,
            context={"run_id": state.run_id},
            suggestion=get_fallback_suggestion(service, error) if service else None,
        )
        if isinstance(error, AdBurstError):
            log.error(message)
        else:
            log.opt(exception=error).error(message)

    def _preserve_partial_artifacts(self, state: _RunState, log: Any) -> None:
        """Move produced files to output_dir/<run_id>_partial/ so result paths outlive the workspace."""
        partial_dir = Path(self.settings.output_dir) / f"{state.run_id}_partial"
        artifacts = state.artifacts
        moved: dict[Path, Path] = {}

        def relocate(path: Optional[Path]) -> Optional[Path]:
            if path is None:
                return None
            if path not in moved:
                if not path.exists():
                    return path
                moved[path] = move_artifact(path, partial_dir)
            return moved[path]

        artifacts.raw_clip_paths = {k: relocate(v) for k, v in artifacts.raw_clip_paths.items()}
        artifacts.normalized_clip_paths = {k: relocate(v) for k, v in artifacts.normalized_clip_paths.items()}
        artifacts.silent_video_path = relocate(artifacts.silent_video_path)
        artifacts.audio_path = relocate(artifacts.audio_path)
        state.segments = [
            s.model_copy(
                update={
                    "raw_clip_path": moved.get(s.raw_clip_path, s.raw_clip_path),
                    "normalized_clip_path": moved.get(s.normalized_clip_path, s.normalized_clip_path),
                }
            )
            for s in state.segments
        ]

        if artifacts.script_text:
            partial_dir.mkdir(parents=True, exist_ok=True)
            (partial_dir / "script.txt").write_text(artifacts.script_text, encoding="utf-8")
        if moved or artifacts.script_text:
            log.info(f"Partial artifacts kept in {partial_dir}")

    def _forget_artifact_files(self, state: _RunState) -> None:
        """Workspace files are about to be deleted; keep only what lives in memory."""
        state.artifacts = PartialArtifacts(
            script_text=state.artifacts.script_text,
            degraded_segments=state.artifacts.degraded_segments,
        )

    def _result(
        self,
        state: _RunState,
        start_time: float,
        final_path: Optional[Path] = None,
        error: Optional[Exception] = None,
    ) -> PipelineResult:
        done = final_path is not None and error is None
        return PipelineResult(
            run_id=state.run_id,
            status=PipelineStatus.DONE if done else PipelineStatus.ABORTED,
            stage=state.stage,
            final_video_path=final_path if done else None,
            artifacts=state.artifacts,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
            provider_errors=state.provider_errors,
            segments=state.segments,
            timeline=state.timeline,
            voiceover_duration=state.voiceover_duration,
            elapsed_seconds=time.time() - start_time,
        )


def result_summary(result: PipelineResult) -> dict:
    """JSON-friendly summary of a run for the CLI."""
    summary = {
        "run_id": result.run_id,
        "status": result.status.value,
        "stage": result.stage.value,
        "final_video_path": str(result.final_video_path) if result.final_video_path else None,
        "elapsed_seconds": round(result.elapsed_seconds, 2),
        "voiceover_duration": result.voiceover_duration,
        "segments": [
            {
                "order": s.order,
                "target_duration": round(s.target_duration, 3),
                "provider": s.provider_name,
                "normalization": s.normalization_method.value if s.normalization_method else None,
            }
            for s in result.segments
        ],
    }
    if result.timeline is not None:
        summary["expected_duration"] = round(result.timeline.expected_output_duration, 3)
    if not result.succeeded:
        summary["error"] = result.error
        summary["error_type"] = result.error_type
        summary["provider_errors"] = {
            str(order): [f.model_dump() for f in failures] for order, failures in result.provider_errors.items()
        }
        summary["artifacts"] = json.loads(result.artifacts.model_dump_json())
    elif result.artifacts.degraded_segments:
        summary["degraded_segments"] = result.artifacts.degraded_segments
    return summary


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for the ad pipeline."""
    parser = argparse.ArgumentParser(
        description="AdBurst - turn product images into a vertical video ad",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--product", type=str, required=True, help="Product name")
    parser.add_argument("--description", type=str, default=None, help="Optional product description")
    parser.add_argument("--audience", type=str, default=None, help="Optional target audience")
    parser.add_argument(
        "--images",
        type=Path,
        nargs="+",
        required=True,
        help=f"1-{settings.max_images} still images, in playback order",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=settings.default_total_duration,
        help=f"Total video duration in seconds (default: {settings.default_total_duration:g})",
    )
    parser.add_argument(
        "--transition",
        type=float,
        default=settings.transition_duration,
        help=f"Crossfade duration in seconds (default: {settings.transition_duration:g})",
    )
    parser.add_argument(
        "--aspect-ratio",
        type=str,
        default=settings.default_aspect_ratio,
        choices=[a.value for a in AspectRatio],
        help=f"Aspect ratio requested from clip providers (default: {settings.default_aspect_ratio})",
    )
    parser.add_argument("--no-transitions", action="store_true", help="Hard cuts instead of crossfades")
    parser.add_argument("--watermark", type=Path, default=None, help="Optional watermark image (bottom-right)")
    parser.add_argument("--output-dir", type=str, default=None, help=f"Output directory (default: {settings.output_dir})")
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, log_file=settings.log_file)
    logger = get_logger(__name__, product=args.product)

    run_settings = settings.model_copy(update={"output_dir": args.output_dir}) if args.output_dir else settings
    watermark = args.watermark or (Path(run_settings.watermark_path) if run_settings.watermark_path else None)

    try:
        request = AdRequest(
            product_name=args.product,
            product_description=args.description,
            target_audience=args.audience,
            image_paths=args.images,
            total_duration=args.duration,
            transition_duration=args.transition,
            aspect_ratio=args.aspect_ratio,
            include_transitions=not args.no_transitions,
            watermark_path=watermark,
        )
    except ValueError as e:
        logger.error(f"Invalid request: {e}")
        return 2

    try:
        orchestrator = PipelineOrchestrator(run_settings, logger)
        result = orchestrator.run(request)
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return 1

    print(json.dumps(result_summary(result), indent=2))

    if result.succeeded:
        return 0
    if result.error_type == InvalidInput.__name__:
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
