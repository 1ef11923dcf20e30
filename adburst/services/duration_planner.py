"""Duration Planner - splits the total duration budget across segments."""

from pathlib import Path
from typing import Any, Optional, Sequence

from adburst.core.config import Settings
from adburst.core.errors import InvalidInput
from adburst.models.schemas import Segment, Timeline, TransitionType


def plan_segment_durations(
    image_count: int,
    total_duration: float = 20.0,
    transition_duration: float = 0.5,
) -> list[float]:
    """
    Split the total duration uniformly across segments after subtracting transitions.

    The (n-1) crossfades overlap adjacent segments, so their time is taken out of the
    budget before dividing. Durations do not vary by position.

    Args:
        image_count: Number of segments (n)
        total_duration: Target total duration in seconds
        transition_duration: Crossfade duration in seconds (t)

    Returns:
        n identical durations with sum(d) + (n-1)*t == total_duration

    Raises:
        InvalidInput: If n <= 0, t < 0, or the transitions consume the whole budget
    """
    if image_count <= 0:
        raise InvalidInput(f"At least one image is required (got {image_count})")
    if transition_duration < 0:
        raise InvalidInput(f"Transition duration cannot be negative (got {transition_duration})")

    total_transition_time = (image_count - 1) * transition_duration
    available_duration = total_duration - total_transition_time
    if available_duration <= 0:
        raise InvalidInput(
            f"Total duration {total_duration}s leaves no time for {image_count} segments "
            f"after {total_transition_time}s of transitions"
        )

    per_segment = available_duration / image_count
    return [per_segment] * image_count


class DurationPlanner:
    """Validates run parameters and builds the planned Timeline."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize duration planner.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def validate(self, image_count: int, total_duration: float, transition_duration: float) -> None:
        """Raise InvalidInput for parameters outside the configured bounds."""
        if image_count < 1 or image_count > self.settings.max_images:
            raise InvalidInput(f"Between 1 and {self.settings.max_images} images are required (got {image_count})")
        if not self.settings.min_total_duration <= total_duration <= self.settings.max_total_duration:
            raise InvalidInput(
                f"Total duration must be between {self.settings.min_total_duration:g} and "
                f"{self.settings.max_total_duration:g} seconds (got {total_duration:g})"
            )
        if transition_duration < 0:
            raise InvalidInput(f"Transition duration cannot be negative (got {transition_duration})")

    def build_timeline(
        self,
        image_paths: Sequence[Path],
        prompts: Optional[Sequence[str]] = None,
        total_duration: Optional[float] = None,
        transition_duration: Optional[float] = None,
        include_transitions: bool = True,
    ) -> Timeline:
        """
        Plan segment durations and build the Timeline.

        With transitions disabled (or a single image) the transition time is treated
        as zero for the budget, so segments fill the whole duration.

        Returns:
            Timeline with segments ordered 0..n-1

        Raises:
            InvalidInput: For out-of-bounds parameters
        """
        total = self.settings.default_total_duration if total_duration is None else total_duration
        t = self.settings.transition_duration if transition_duration is None else transition_duration
        count = len(image_paths)

        self.validate(count, total, t)
        if prompts is not None and len(prompts) != count:
            raise InvalidInput(f"Expected {count} prompts, got {len(prompts)}")

        crossfade = include_transitions and count > 1 and t > 0
        budget_t = t if crossfade else 0.0
        durations = plan_segment_durations(count, total, budget_t)
        if crossfade and durations[0] <= budget_t:
            raise InvalidInput(
                f"Segments of {durations[0]:.2f}s are too short for {budget_t:g}s crossfades; "
                "use fewer images, a longer duration or shorter transitions"
            )

        segments = []
        for order, (image_path, duration) in enumerate(zip(image_paths, durations)):
            segments.append(
                Segment(
                    order=order,
                    source_image_path=Path(image_path),
                    target_duration=duration,
                    prompt=prompts[order] if prompts else "",
                    transition_in=TransitionType.CROSSFADE if crossfade and order > 0 else TransitionType.NONE,
                    transition_out=TransitionType.CROSSFADE if crossfade and order < count - 1 else TransitionType.NONE,
                )
            )

        timeline = Timeline(
            segments=segments,
            frame_rate=self.settings.frame_rate,
            width=self.settings.video_width,
            height=self.settings.video_height,
            total_duration=total,
            transition_duration=budget_t,
            include_transitions=crossfade,
        )

        self.logger.info(
            f"Planned {count} segments of {durations[0]:.2f}s each "
            f"(total {total:g}s, transitions {budget_t:g}s x {count - 1})"
        )
        return timeline
