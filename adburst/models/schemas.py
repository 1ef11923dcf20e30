"""Pydantic models and schemas for the video assembly pipeline."""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enums
# ============================================================================


class TransitionType(str, Enum):
    """Edge type between two adjacent segments."""

    NONE = "none"
    CROSSFADE = "crossfade"


class AspectRatio(str, Enum):
    """Aspect ratios accepted by the clip providers."""

    VERTICAL = "9:16"
    HORIZONTAL = "16:9"
    SQUARE = "1:1"


class NormalizationMethod(str, Enum):
    """How a raw clip was adjusted to its target duration."""

    COPY = "copy"
    LOOP = "loop"
    RESCALE = "rescale"
    DEGRADED = "degraded"


class PipelineStage(str, Enum):
    """Orchestrator states."""

    IDLE = "idle"
    PLANNING_DURATIONS = "planning_durations"
    GENERATING_CLIPS = "generating_clips"
    NORMALIZING_SEGMENTS = "normalizing_segments"
    ASSEMBLING_TIMELINE = "assembling_timeline"
    GENERATING_VOICEOVER = "generating_voiceover"
    MUXING = "muxing"
    DONE = "done"
    ABORTED = "aborted"


class PipelineStatus(str, Enum):
    """Terminal outcome of a run."""

    DONE = "done"
    ABORTED = "aborted"


# ============================================================================
# Provider Models
# ============================================================================


class ProviderFailure(BaseModel):
    """One provider's failure for one segment."""

    provider: str = Field(..., description="Provider name (e.g., 'fal-ltx', 'kling', 'veo')")
    error_type: str = Field(..., description="auth, validation, transient or timeout")
    message: str = Field(..., description="Error message returned by the provider adapter")
    suggestion: Optional[str] = Field(default=None, description="Diagnosis hint (credential, quota, content policy...)")


# ============================================================================
# Timeline Models
# ============================================================================


_FROZEN_SEGMENT_FIELDS = ("order", "source_image_path", "target_duration")


class Segment(BaseModel):
    """One planned slot in the output timeline."""

    order: int = Field(..., ge=0, description="0-based playback position, unique within a run")
    source_image_path: Path = Field(..., description="Still image driving this segment")
    target_duration: float = Field(..., gt=0, description="Seconds this segment occupies in the final timeline")
    prompt: str = Field(default="", description="Generation prompt for this segment")

    raw_clip_path: Optional[Path] = Field(default=None, description="Provider output before normalization")
    raw_clip_duration: Optional[float] = Field(default=None, description="Fixed output duration of the provider")
    provider_name: Optional[str] = Field(default=None, description="Provider that produced the raw clip")
    provider_failures: list[ProviderFailure] = Field(
        default_factory=list, description="Failures recorded before a provider succeeded"
    )

    normalized_clip_path: Optional[Path] = Field(default=None, description="Clip adjusted to target_duration")
    normalization_method: Optional[NormalizationMethod] = Field(default=None, description="copy, loop, rescale or degraded")
    normalization_degraded: Optional[str] = Field(
        default=None, description="Encoder error when the raw clip had to be substituted"
    )

    transition_in: TransitionType = Field(default=TransitionType.NONE, description="Edge into this segment")
    transition_out: TransitionType = Field(default=TransitionType.NONE, description="Edge out of this segment")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FROZEN_SEGMENT_FIELDS:
            raise AttributeError(f"Segment.{name} is fixed at planning time")
        super().__setattr__(name, value)

    @property
    def clip_path(self) -> Optional[Path]:
        """Clip that should enter the timeline (normalized, else raw)."""
        return self.normalized_clip_path or self.raw_clip_path


class Timeline(BaseModel):
    """Ordered segments plus the global output parameters."""

    segments: list[Segment] = Field(..., min_length=1, description="Segments ordered by `order`")
    frame_rate: int = Field(default=25, gt=0, description="Output frame rate")
    width: int = Field(default=1080, gt=0, description="Output width in pixels")
    height: int = Field(default=1920, gt=0, description="Output height in pixels")
    total_duration: float = Field(..., gt=0, description="Total target duration in seconds")
    transition_duration: float = Field(default=0.5, ge=0, description="Crossfade duration in seconds")
    include_transitions: bool = Field(default=True, description="Crossfade between adjacent segments")

    @field_validator("segments")
    @classmethod
    def _ordered_and_contiguous(cls, segments: list[Segment]) -> list[Segment]:
        orders = [segment.order for segment in segments]
        if orders != list(range(len(segments))):
            raise ValueError(f"Segment orders must be 0..{len(segments) - 1} in sequence, got {orders}")
        return segments

    @property
    def uses_crossfade(self) -> bool:
        return self.include_transitions and len(self.segments) > 1 and self.transition_duration > 0

    @property
    def expected_output_duration(self) -> float:
        """Duration of the assembled track: crossfades overlap adjacent segments."""
        content = sum(segment.target_duration for segment in self.segments)
        if self.uses_crossfade:
            return content - (len(self.segments) - 1) * self.transition_duration
        return content

    def with_segments(self, segments: list[Segment]) -> "Timeline":
        return self.model_copy(update={"segments": sorted(segments, key=lambda s: s.order)})


# ============================================================================
# Request / Result Models
# ============================================================================


class AdRequest(BaseModel):
    """Input of one pipeline run."""

    product_name: str = Field(..., min_length=1, description="Product being advertised")
    product_description: Optional[str] = Field(default=None, description="Optional product description")
    target_audience: Optional[str] = Field(default=None, description="Optional target audience")
    image_paths: list[Path] = Field(..., description="1-5 still images, in playback order")
    total_duration: float = Field(default=20.0, description="Target total duration in seconds")
    transition_duration: float = Field(default=0.5, description="Crossfade duration in seconds")
    aspect_ratio: AspectRatio = Field(default=AspectRatio.VERTICAL, description="Aspect ratio requested from providers")
    include_transitions: bool = Field(default=True, description="Crossfade between segments")
    watermark_path: Optional[Path] = Field(default=None, description="Optional corner watermark image")


class PartialArtifacts(BaseModel):
    """Whatever downstream-usable artifacts a run produced."""

    script_text: Optional[str] = Field(default=None, description="Generated voiceover script")
    raw_clip_paths: dict[int, Path] = Field(default_factory=dict, description="Raw clips by segment order")
    normalized_clip_paths: dict[int, Path] = Field(default_factory=dict, description="Normalized clips by segment order")
    silent_video_path: Optional[Path] = Field(default=None, description="Assembled video track without audio")
    audio_path: Optional[Path] = Field(default=None, description="Voiceover audio")
    degraded_segments: dict[int, str] = Field(
        default_factory=dict, description="Segments whose normalization fell back to the raw clip"
    )


class PipelineResult(BaseModel):
    """Terminal outcome: a final video, or a structured failure with partial artifacts."""

    run_id: str = Field(..., description="Unique run identifier")
    status: PipelineStatus = Field(..., description="done or aborted")
    stage: PipelineStage = Field(..., description="Last stage reached (failing stage when aborted)")
    final_video_path: Optional[Path] = Field(default=None, description="Final muxed deliverable")
    artifacts: PartialArtifacts = Field(default_factory=PartialArtifacts, description="Artifacts produced so far")
    error: Optional[str] = Field(default=None, description="Error message when aborted")
    error_type: Optional[str] = Field(default=None, description="Exception class name when aborted")
    provider_errors: dict[int, list[ProviderFailure]] = Field(
        default_factory=dict, description="Provider-by-provider failure breakdown per segment order"
    )
    segments: list[Segment] = Field(default_factory=list, description="Segments as last known")
    timeline: Optional[Timeline] = Field(default=None, description="Planned timeline")
    voiceover_duration: Optional[float] = Field(default=None, description="Measured voiceover duration in seconds")
    elapsed_seconds: float = Field(default=0.0, description="Wall-clock run time")

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.DONE and self.final_video_path is not None
