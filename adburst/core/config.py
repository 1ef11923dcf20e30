"""Application configuration using pydantic-settings."""

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    Provider credentials decide which clip providers end up in the registry.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="AdBurst Factory", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional rotating log file path")

    # ========================================================================
    # Clip Provider Credentials & Models
    # ========================================================================
    fal_key: Optional[str] = Field(default=None, description="fal.ai API key (LTX image-to-video)")
    kling_api_key: Optional[str] = Field(default=None, description="Kling API key (served through the fal.ai queue)")
    gemini_api_key: Optional[str] = Field(default=None, description="Google Generative Language API key (Veo)")
    fal_queue_url: str = Field(default="https://queue.fal.run", description="fal.ai queue base URL")
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Google Generative Language API base URL",
    )
    fal_ltx_model: str = Field(default="fal-ai/ltx-video-v095/image-to-video", description="fal.ai LTX model id")
    kling_model: str = Field(default="fal-ai/kling-video/v1/pro/image-to-video", description="Kling model id")
    veo_model: str = Field(default="veo-2.0-generate-001", description="Veo model id")

    # ========================================================================
    # Provider Chain Settings
    # ========================================================================
    provider_order: list[str] = Field(
        default=["fal-ltx", "kling", "veo"],
        description="Clip provider priority order (only providers with credentials are used)",
    )
    enable_still_fallback: bool = Field(
        default=False,
        description="Append a local still-image zoom clip provider as the last resort",
    )
    provider_request_timeout: float = Field(default=30.0, description="Timeout for a single provider HTTP call (seconds)")
    provider_job_timeout: float = Field(default=300.0, description="Overall deadline for one remote generation job (seconds)")
    provider_poll_interval: float = Field(default=5.0, description="Polling interval for remote job status (seconds)")
    provider_rate_limit: int = Field(default=30, description="Provider API calls per minute (per provider)")
    enable_rate_limiting: bool = Field(default=True, description="Throttle provider API calls")

    # ========================================================================
    # Script & Voiceover Collaborators
    # ========================================================================
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key (script generation)")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key (script generation / TTS fallback)")
    anthropic_model: str = Field(default="claude-3-7-sonnet-20250219", description="Anthropic model name")
    openai_model: str = Field(default="gpt-4o", description="OpenAI model name")
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key")
    elevenlabs_voice_id: str = Field(default="ErXwobaYiN019PkySvjV", description="ElevenLabs voice ID")
    elevenlabs_model_id: str = Field(default="eleven_turbo_v2", description="ElevenLabs model ID")
    words_per_second: float = Field(default=2.5, description="Speaking rate used to budget script length")

    # ========================================================================
    # Timeline Settings
    # ========================================================================
    default_total_duration: float = Field(default=20.0, description="Default total video duration in seconds")
    min_total_duration: float = Field(default=5.0, description="Minimum total video duration")
    max_total_duration: float = Field(default=60.0, description="Maximum total video duration")
    max_images: int = Field(default=5, description="Maximum number of source images per run")
    transition_duration: float = Field(default=0.5, description="Crossfade duration in seconds")
    frame_rate: int = Field(default=25, description="Output frame rate")
    video_width: int = Field(default=1080, description="Video output width in pixels (vertical format)")
    video_height: int = Field(default=1920, description="Video output height in pixels (vertical format)")
    default_aspect_ratio: str = Field(default="9:16", description="Aspect ratio requested from clip providers")

    # ========================================================================
    # Segment Normalization
    # ========================================================================
    duration_tolerance: float = Field(default=0.1, description="Copy a clip unchanged when within this many seconds")
    loop_tolerance: float = Field(default=0.1, description="Loop a clip when the ratio is this close to an integer >= 2")

    # ========================================================================
    # Encoder Settings
    # ========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")
    max_encoder_workers: int = Field(
        default=os.cpu_count() or 2,
        description="Maximum concurrent encoder processes across all runs (default: CPU count)",
    )
    encoder_preset: str = Field(default="medium", description="libx264 preset")
    encoder_crf: int = Field(default=23, description="libx264 CRF")
    encoder_timeout: float = Field(default=600.0, description="Timeout for a single encoder process (seconds)")

    # ========================================================================
    # Paths & Artifacts
    # ========================================================================
    work_dir: str = Field(default="temp", description="Per-run scratch directory root")
    output_dir: str = Field(default="outputs", description="Directory receiving final deliverables")
    watermark_path: Optional[str] = Field(default=None, description="Optional watermark image composited in a corner")
    watermark_scale: float = Field(default=0.2, description="Watermark width as a fraction of video width")
    watermark_margin: int = Field(default=10, description="Watermark margin from the corner in pixels")
    keep_partial_artifacts: bool = Field(
        default=True,
        description="Move partial artifacts of aborted runs into the output directory",
    )

    # ========================================================================
    # Parallelism Settings
    # ========================================================================
    max_parallel_api_calls: int = Field(
        default=5,
        description="Maximum number of parallel provider calls within a single run",
    )


# Global settings instance
settings = Settings()
