"""Clip Providers - image-to-video adapters behind a single generate() contract."""

import base64
import mimetypes
import time
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from adburst.core.config import Settings
from adburst.core.errors import (
    EncodingFailed,
    ProviderAuthError,
    ProviderTimeoutError,
    ProviderTransientError,
    ProviderValidationError,
)
from adburst.utils.ffmpeg_runner import FFmpegRunner, format_seconds
from adburst.utils.rate_limiter import get_provider_limiter

TRANSIENT_STATUS_CODES = {408, 409, 425, 429}


def raise_for_provider_status(provider: str, response: requests.Response) -> None:
    """
    Map an HTTP error response onto the provider error taxonomy.

    401/403 are credential failures, 408/429/5xx are transient,
    any other 4xx means the request itself was rejected.
    """
    status = response.status_code
    if status < 400:
        return

    detail = _error_detail(response)
    message = f"HTTP {status}: {detail}" if detail else f"HTTP {status}"

    if status in (401, 403):
        raise ProviderAuthError(provider, message, status_code=status)
    if status in TRANSIENT_STATUS_CODES or status >= 500:
        raise ProviderTransientError(provider, message, status_code=status)
    raise ProviderValidationError(provider, message, status_code=status)


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip()[:300]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)[:300]
        return str(body.get("detail") or error or body)[:300]
    return str(body)[:300]


def image_data_uri(image_path: Path) -> str:
    """Inline an image as a base64 data URI."""
    mime_type = mimetypes.guess_type(str(image_path))[0] or "image/png"
    with open(image_path, "rb") as img_file:
        encoded = base64.b64encode(img_file.read()).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


class ClipProvider:
    """Abstract provider for image-to-video clip generation."""

    name = "base"
    raw_clip_duration = 0.0
    credential_setting: Optional[str] = None

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize clip provider.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.request_timeout = settings.provider_request_timeout
        self.job_timeout = settings.provider_job_timeout
        self.poll_interval = settings.provider_poll_interval
        self.rate_limiter = (
            get_provider_limiter(self.name, max_calls=settings.provider_rate_limit)
            if settings.enable_rate_limiting
            else None
        )

    @property
    def api_key(self) -> Optional[str]:
        if not self.credential_setting:
            return None
        return getattr(self.settings, self.credential_setting, None)

    def is_configured(self) -> bool:
        """True when the provider has what it needs to run."""
        return bool(self.api_key)

    def generate(self, image_path: Path, prompt: str, aspect_ratio: str, output_path: Path) -> Path:
        """
        Generate a clip of raw_clip_duration seconds from a still image.

        Args:
            image_path: Source still image
            prompt: Generation prompt
            aspect_ratio: "9:16", "16:9" or "1:1"
            output_path: Where to write the clip

        Returns:
            Path to the generated clip

        Raises:
            ProviderError: Auth, validation, transient or timeout failure
        """
        raise NotImplementedError("Subclass must implement generate()")

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _require_key(self) -> str:
        key = self.api_key
        if not key:
            env_name = (self.credential_setting or "api_key").upper()
            raise ProviderAuthError(self.name, f"API key not configured (set {env_name})")
        return key

    def _call(self, method: Callable[..., requests.Response], url: str, **kwargs: Any) -> requests.Response:
        if self.rate_limiter is not None:
            self.rate_limiter.wait_if_needed(self.name)
        kwargs.setdefault("timeout", self.request_timeout)
        try:
            response = method(url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise ProviderTimeoutError(self.name, f"Request timed out after {kwargs['timeout']}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderTransientError(self.name, f"Network error: {e}") from e
        raise_for_provider_status(self.name, response)
        return response

    def _post(self, url: str, **kwargs: Any) -> requests.Response:
        return self._call(requests.post, url, **kwargs)

    def _get(self, url: str, **kwargs: Any) -> requests.Response:
        return self._call(requests.get, url, **kwargs)

    def _json(self, response: requests.Response) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderTransientError(self.name, f"Malformed JSON response: {e}") from e
        if not isinstance(data, dict):
            raise ProviderTransientError(self.name, f"Unexpected response payload: {str(data)[:200]}")
        return data

    def _check_deadline(self, deadline: float, job_id: str) -> None:
        if time.monotonic() >= deadline:
            raise ProviderTimeoutError(
                self.name, f"Job {job_id} did not complete within {self.job_timeout:.0f} seconds"
            )

    def _sleep_until_next_poll(self, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining > 0:
            time.sleep(min(self.poll_interval, remaining))

    def _download(self, url: str, output_path: Path, headers: Optional[dict] = None) -> Path:
        response = self._get(url, headers=headers or {}, timeout=max(self.request_timeout, 120.0))
        if not response.content:
            raise ProviderTransientError(self.name, f"Downloaded clip from {url} is empty")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(response.content)
        return output_path


class FalQueueClipProvider(ClipProvider):
    """Shared submit/poll/fetch flow of the fal.ai queue REST API."""

    model_setting = ""

    @property
    def model(self) -> str:
        return getattr(self.settings, self.model_setting)

    def build_payload(self, image_uri: str, prompt: str, aspect_ratio: str) -> dict:
        raise NotImplementedError("Subclass must implement build_payload()")

    def generate(self, image_path: Path, prompt: str, aspect_ratio: str, output_path: Path) -> Path:
        key = self._require_key()
        headers = {"Authorization": f"Key {key}", "Content-Type": "application/json"}
        queue_url = self.settings.fal_queue_url.rstrip("/")

        self.logger.info(f"Submitting {image_path.name} to {self.name} ({self.model})")
        payload = self.build_payload(image_data_uri(image_path), prompt, aspect_ratio)
        submitted = self._json(self._post(f"{queue_url}/{self.model}", json=payload, headers=headers))

        request_id = submitted.get("request_id")
        if not request_id:
            raise ProviderTransientError(self.name, f"Queue submission returned no request_id: {submitted}")
        status_url = submitted.get("status_url") or f"{queue_url}/{self.model}/requests/{request_id}/status"
        response_url = submitted.get("response_url") or f"{queue_url}/{self.model}/requests/{request_id}"

        deadline = time.monotonic() + self.job_timeout
        while True:
            status_data = self._json(self._get(status_url, headers=headers))
            status = status_data.get("status")
            if status == "COMPLETED":
                if status_data.get("error"):
                    raise ProviderValidationError(self.name, f"Job {request_id} failed: {status_data['error']}")
                break
            if status in ("FAILED", "ERROR", "CANCELLED"):
                raise ProviderValidationError(self.name, f"Job {request_id} ended with status {status}")
            self.logger.debug(f"{self.name} job {request_id} status: {status}")
            self._check_deadline(deadline, request_id)
            self._sleep_until_next_poll(deadline)

        result = self._json(self._get(response_url, headers=headers))
        video_url = (result.get("video") or {}).get("url")
        if not video_url:
            raise ProviderValidationError(self.name, f"Job {request_id} completed without a video url")

        self._download(video_url, output_path)
        self.logger.info(f"✅ {self.name} clip generated: {output_path.name}")
        return output_path


class FalLTXClipProvider(FalQueueClipProvider):
    """fal.ai LTX-Video image-to-video (4 second clips)."""

    name = "fal-ltx"
    raw_clip_duration = 4.0
    credential_setting = "fal_key"
    model_setting = "fal_ltx_model"

    negative_prompt = "worst quality, inconsistent motion, blurry, jittery, distorted"
    resolution = "720p"
    num_inference_steps = 40

    def build_payload(self, image_uri: str, prompt: str, aspect_ratio: str) -> dict:
        # LTX only renders 16:9 and 9:16; square sources go out vertical
        fal_aspect_ratio = "16:9" if aspect_ratio == "16:9" else "9:16"
        return {
            "prompt": prompt,
            "negative_prompt": self.negative_prompt,
            "resolution": self.resolution,
            "aspect_ratio": fal_aspect_ratio,
            "num_inference_steps": self.num_inference_steps,
            "expand_prompt": True,
            "image_url": image_uri,
        }


class KlingClipProvider(FalQueueClipProvider):
    """Kling v1 pro image-to-video through the fal.ai queue (5 second clips)."""

    name = "kling"
    raw_clip_duration = 5.0
    credential_setting = "kling_api_key"
    model_setting = "kling_model"

    negative_prompt = "blur, distort, and low quality"
    cfg_scale = 0.5

    def build_payload(self, image_uri: str, prompt: str, aspect_ratio: str) -> dict:
        return {
            "prompt": prompt,
            "image_url": image_uri,
            "duration": "5",
            "aspect_ratio": aspect_ratio,
            "cfg_scale": self.cfg_scale,
            "negative_prompt": self.negative_prompt,
        }


class VeoClipProvider(ClipProvider):
    """Google Veo image-to-video via the Generative Language long-running API (8 second clips)."""

    name = "veo"
    raw_clip_duration = 8.0
    credential_setting = "gemini_api_key"

    def generate(self, image_path: Path, prompt: str, aspect_ratio: str, output_path: Path) -> Path:
        key = self._require_key()
        headers = {"x-goog-api-key": key, "Content-Type": "application/json"}
        base_url = self.settings.gemini_api_url.rstrip("/")

        mime_type = mimetypes.guess_type(str(image_path))[0] or "image/png"
        with open(image_path, "rb") as img_file:
            image_b64 = base64.b64encode(img_file.read()).decode("utf-8")

        payload = {
            "instances": [
                {
                    "prompt": prompt,
                    "image": {"bytesBase64Encoded": image_b64, "mimeType": mime_type},
                }
            ],
            "parameters": {
                "aspectRatio": "16:9" if aspect_ratio == "16:9" else "9:16",
                "durationSeconds": int(self.raw_clip_duration),
                "sampleCount": 1,
            },
        }

        self.logger.info(f"Submitting {image_path.name} to {self.name} ({self.settings.veo_model})")
        operation = self._json(
            self._post(f"{base_url}/models/{self.settings.veo_model}:predictLongRunning", json=payload, headers=headers)
        )
        operation_name = operation.get("name")
        if not operation_name:
            raise ProviderTransientError(self.name, f"predictLongRunning returned no operation name: {operation}")

        deadline = time.monotonic() + self.job_timeout
        while not operation.get("done"):
            self._check_deadline(deadline, operation_name)
            self._sleep_until_next_poll(deadline)
            operation = self._json(self._get(f"{base_url}/{operation_name}", headers=headers))
            self.logger.debug(f"{self.name} operation {operation_name} done={bool(operation.get('done'))}")

        if operation.get("error"):
            error = operation["error"]
            raise ProviderValidationError(self.name, f"Operation failed: {error.get('message', error)}")

        video_response = (operation.get("response") or {}).get("generateVideoResponse") or {}
        samples = video_response.get("generatedSamples") or []
        video_uri = ((samples[0] if samples else {}).get("video") or {}).get("uri")
        if not video_uri:
            reasons = video_response.get("raiMediaFilteredReasons")
            if reasons:
                raise ProviderValidationError(self.name, f"Content filtered: {'; '.join(reasons)}")
            raise ProviderValidationError(self.name, "Operation completed without a video uri")

        self._download(video_uri, output_path, headers={"x-goog-api-key": key})
        self.logger.info(f"✅ {self.name} clip generated: {output_path.name}")
        return output_path


class StillImageClipProvider(ClipProvider):
    """Local last resort: a slow zoom-in over the still image, rendered with ffmpeg."""

    name = "still"
    raw_clip_duration = 4.0
    zoom_step = 0.0015
    max_zoom = 1.5

    def __init__(self, settings: Settings, logger: Any, runner: Optional[FFmpegRunner] = None):
        super().__init__(settings, logger)
        self.rate_limiter = None
        self.runner = runner or FFmpegRunner(settings, logger)

    def is_configured(self) -> bool:
        return self.runner.is_available()

    def output_size(self, aspect_ratio: str) -> tuple[int, int]:
        width, height = self.settings.video_width, self.settings.video_height
        if aspect_ratio == "16:9":
            return height, width
        if aspect_ratio == "1:1":
            return width, width
        return width, height

    def generate(self, image_path: Path, prompt: str, aspect_ratio: str, output_path: Path) -> Path:
        width, height = self.output_size(aspect_ratio)
        fps = self.settings.frame_rate
        frames = int(round(self.raw_clip_duration * fps))
        video_filter = (
            f"scale={width}:{height}:force_original_aspect_ratio=increase,crop={width}:{height},"
            f"zoompan=z='min(zoom+{self.zoom_step},{self.max_zoom})':d={frames}:"
            f"x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)':s={width}x{height}:fps={fps}"
        )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.runner.run(
                [
                    "-i", str(image_path),
                    "-vf", video_filter,
                    "-frames:v", str(frames),
                    "-t", format_seconds(self.raw_clip_duration),
                    *self.runner.x264_args(),
                    "-r", str(fps),
                    str(output_path),
                ],
                description=f"still clip for {image_path.name}",
            )
        except EncodingFailed as e:
            raise ProviderTransientError(self.name, str(e)) from e

        self.logger.info(f"✅ {self.name} clip rendered locally: {output_path.name}")
        return output_path


PROVIDER_CLASSES: dict[str, type] = {
    FalLTXClipProvider.name: FalLTXClipProvider,
    KlingClipProvider.name: KlingClipProvider,
    VeoClipProvider.name: VeoClipProvider,
    StillImageClipProvider.name: StillImageClipProvider,
}

__all__ = [
    "ClipProvider",
    "FalLTXClipProvider",
    "KlingClipProvider",
    "VeoClipProvider",
    "StillImageClipProvider",
    "PROVIDER_CLASSES",
    "raise_for_provider_status",
]
