"""Provider Fallback Chain - tries clip providers in priority order until one succeeds."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from adburst.core.config import Settings
from adburst.core.errors import AllProvidersFailed
from adburst.models.schemas import ProviderFailure, Segment
from adburst.services.provider_registry import ProviderRegistry
from adburst.utils.error_handler import format_error_message, to_provider_failure
from adburst.utils.io_utils import unique_name
from adburst.utils.parallel_executor import ParallelExecutor


@dataclass
class ChainOutcome:
    """Result of one successful chain walk."""

    clip_path: Path
    provider_name: str
    raw_clip_duration: float
    failures: list[ProviderFailure] = field(default_factory=list)


class ProviderFallbackChain:
    """Walks the registry's providers for one segment, recording each failure."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        registry: ProviderRegistry,
        executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize fallback chain.

        Args:
            settings: Application settings
            logger: Logger instance
            registry: Ordered clip providers
            executor: Optional parallel executor (created from settings if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.registry = registry
        self.executor = executor or ParallelExecutor(settings, logger)

    def generate_clip(
        self, segment: Segment, aspect_ratio: str, output_dir: Path, run_id: Optional[str] = None
    ) -> ChainOutcome:
        """
        Generate a raw clip for one segment.

        Providers are tried strictly in priority order and each is tried at most once.
        Any failure moves on to the next provider; the first success ends the walk.

        Args:
            segment: Segment with source image and prompt
            aspect_ratio: Aspect ratio requested from providers
            output_dir: Directory for the raw clip
            run_id: Run identifier for log context

        Returns:
            ChainOutcome with the clip and the failures recorded before success

        Raises:
            AllProvidersFailed: Every provider failed (or none are configured)
        """
        failures: list[ProviderFailure] = []
        log = self.logger.bind(run_id=run_id, segment=segment.order)

        for provider in self.registry.providers:
            output_path = Path(output_dir) / unique_name(f"raw_{segment.order:02d}_{provider.name}")
            try:
                clip_path = provider.generate(segment.source_image_path, segment.prompt, aspect_ratio, output_path)
            except Exception as e:
                failure = to_provider_failure(provider.name, e)
                failures.append(failure)
                log.bind(provider=provider.name).warning(
                    format_error_message(
                        f"Generating clip for segment {segment.order}",
                        e,
                        context={"provider": provider.name, "error_type": failure.error_type},
                        suggestion=failure.suggestion,
                    )
                )
                continue

            if failures:
                log.info(
                    f"Segment {segment.order} generated by {provider.name} after "
                    f"{len(failures)} failed provider(s)"
                )
            return ChainOutcome(
                clip_path=Path(clip_path),
                provider_name=provider.name,
                raw_clip_duration=provider.raw_clip_duration,
                failures=failures,
            )

        raise AllProvidersFailed(segment.order, failures)

    def generate_all(
        self,
        segments: Sequence[Segment],
        aspect_ratio: str,
        output_dir: Path,
        run_id: Optional[str] = None,
    ) -> tuple[list[Segment], dict[int, list[ProviderFailure]]]:
        """
        Run one chain per segment concurrently and join the results by order.

        Returns:
            (segments, failures_by_order): segments updated with raw clips where a provider
            succeeded (unchanged otherwise), and every recorded failure keyed by segment order.
            Callers decide whether a segment without a clip is fatal.
        """
        ordered = sorted(segments, key=lambda s: s.order)
        tasks = [
            (lambda seg=segment: self.generate_clip(seg, aspect_ratio, output_dir, run_id=run_id))
            for segment in ordered
        ]
        names = [f"segment_{segment.order}" for segment in ordered]
        results = self.executor.execute_batch(tasks, task_names=names, max_workers=len(tasks), run_id=run_id)

        updated: list[Segment] = []
        failures_by_order: dict[int, list[ProviderFailure]] = {}
        for segment, (outcome, error) in zip(ordered, results):
            if error is None:
                if outcome.failures:
                    failures_by_order[segment.order] = outcome.failures
                updated.append(
                    segment.model_copy(
                        update={
                            "raw_clip_path": outcome.clip_path,
                            "raw_clip_duration": outcome.raw_clip_duration,
                            "provider_name": outcome.provider_name,
                            "provider_failures": outcome.failures,
                        }
                    )
                )
            elif isinstance(error, AllProvidersFailed):
                failures_by_order[segment.order] = error.failures
                updated.append(segment.model_copy(update={"provider_failures": error.failures}))
            else:
                raise error

        return updated, failures_by_order
