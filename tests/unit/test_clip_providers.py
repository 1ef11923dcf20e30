"""Tests for clip provider adapters (HTTP mocked)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from adburst.core.errors import (
    ProviderAuthError,
    ProviderTimeoutError,
    ProviderTransientError,
    ProviderValidationError,
)
from adburst.services.clip_providers import (
    FalLTXClipProvider,
    KlingClipProvider,
    StillImageClipProvider,
    VeoClipProvider,
    raise_for_provider_status,
)


def _response(status_code=200, json_data=None, content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = str(json_data) if json_data is not None else ""
    if json_data is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data
    return response


FAL_SUBMIT = {
    "request_id": "req-1",
    "status_url": "https://queue.fal.run/fal-ai/ltx/requests/req-1/status",
    "response_url": "https://queue.fal.run/fal-ai/ltx/requests/req-1",
}


@pytest.fixture
def fal_settings(settings):
    return settings.model_copy(update={"fal_key": "fal-test", "kling_api_key": "kling-test", "gemini_api_key": "g-test"})


@pytest.mark.parametrize(
    "status,error_cls",
    [
        (401, ProviderAuthError),
        (403, ProviderAuthError),
        (400, ProviderValidationError),
        (422, ProviderValidationError),
        (408, ProviderTransientError),
        (429, ProviderTransientError),
        (500, ProviderTransientError),
        (503, ProviderTransientError),
    ],
)
def test_status_code_mapping(status, error_cls):
    with pytest.raises(error_cls) as exc_info:
        raise_for_provider_status("fal-ltx", _response(status, {"detail": "nope"}))
    assert exc_info.value.provider == "fal-ltx"
    assert exc_info.value.status_code == status
    assert "nope" in exc_info.value.message


def test_success_status_does_not_raise():
    raise_for_provider_status("fal-ltx", _response(200, {}))


def test_raw_clip_durations_are_fixed_per_provider():
    assert FalLTXClipProvider.raw_clip_duration == 4.0
    assert KlingClipProvider.raw_clip_duration == 5.0
    assert VeoClipProvider.raw_clip_duration == 8.0
    assert StillImageClipProvider.raw_clip_duration == 4.0


@patch("adburst.services.clip_providers.time.sleep")
@patch("adburst.services.clip_providers.requests.get")
@patch("adburst.services.clip_providers.requests.post")
def test_fal_ltx_submit_poll_download(mock_post, mock_get, mock_sleep, fal_settings, logger, make_image, tmp_path):
    """Test the queue flow and payload of the LTX provider."""
    mock_post.return_value = _response(200, FAL_SUBMIT)
    mock_get.side_effect = [
        _response(200, {"status": "IN_PROGRESS"}),
        _response(200, {"status": "COMPLETED"}),
        _response(200, {"video": {"url": "https://cdn.fal.media/clip.mp4"}}),
        _response(200, content=b"mp4-bytes"),
    ]
    provider = FalLTXClipProvider(fal_settings, logger)
    output = tmp_path / "clip.mp4"

    result = provider.generate(make_image(), "prompt text", "1:1", output)

    assert result == output
    assert output.read_bytes() == b"mp4-bytes"

    url = mock_post.call_args.args[0]
    kwargs = mock_post.call_args.kwargs
    assert url == f"https://queue.fal.run/{fal_settings.fal_ltx_model}"
    assert kwargs["headers"]["Authorization"] == "Key fal-test"
    assert kwargs["timeout"] == fal_settings.provider_request_timeout
    payload = kwargs["json"]
    assert payload["aspect_ratio"] == "9:16"
    assert payload["resolution"] == "720p"
    assert payload["num_inference_steps"] == 40
    assert payload["prompt"] == "prompt text"
    assert payload["image_url"].startswith("data:image/png;base64,")

    assert mock_get.call_args_list[0].args[0] == FAL_SUBMIT["status_url"]
    assert mock_get.call_args_list[2].args[0] == FAL_SUBMIT["response_url"]
    assert mock_sleep.called


@patch("adburst.services.clip_providers.requests.post")
def test_missing_key_is_auth_error_without_http(mock_post, settings, logger, make_image, tmp_path):
    provider = FalLTXClipProvider(settings, logger)

    with pytest.raises(ProviderAuthError):
        provider.generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")
    mock_post.assert_not_called()
    assert not provider.is_configured()


@patch("adburst.services.clip_providers.requests.post")
def test_rejected_submission_is_validation_error(mock_post, fal_settings, logger, make_image, tmp_path):
    mock_post.return_value = _response(422, {"detail": "image_url is invalid"})

    with pytest.raises(ProviderValidationError, match="image_url is invalid"):
        FalLTXClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")


@patch("adburst.services.clip_providers.requests.post")
def test_connection_error_is_transient(mock_post, fal_settings, logger, make_image, tmp_path):
    mock_post.side_effect = requests.exceptions.ConnectionError("connection refused")

    with pytest.raises(ProviderTransientError) as exc_info:
        KlingClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")
    assert not isinstance(exc_info.value, ProviderTimeoutError)


@patch("adburst.services.clip_providers.requests.post")
def test_request_timeout_is_timeout_error(mock_post, fal_settings, logger, make_image, tmp_path):
    mock_post.side_effect = requests.exceptions.ReadTimeout("read timed out")

    with pytest.raises(ProviderTimeoutError):
        KlingClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")


@patch("adburst.services.clip_providers.time.sleep")
@patch("adburst.services.clip_providers.requests.get")
@patch("adburst.services.clip_providers.requests.post")
def test_job_deadline_is_timeout_error(mock_post, mock_get, mock_sleep, fal_settings, logger, make_image, tmp_path):
    """Test a job still queued at the overall deadline times out."""
    mock_post.return_value = _response(200, FAL_SUBMIT)
    mock_get.return_value = _response(200, {"status": "IN_QUEUE"})
    provider = FalLTXClipProvider(fal_settings.model_copy(update={"provider_job_timeout": 0.0}), logger)

    with pytest.raises(ProviderTimeoutError, match="did not complete"):
        provider.generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")


@patch("adburst.services.clip_providers.time.sleep")
@patch("adburst.services.clip_providers.requests.get")
@patch("adburst.services.clip_providers.requests.post")
def test_kling_payload(mock_post, mock_get, mock_sleep, fal_settings, logger, make_image, tmp_path):
    mock_post.return_value = _response(200, FAL_SUBMIT)
    mock_get.side_effect = [
        _response(200, {"status": "COMPLETED"}),
        _response(200, {"video": {"url": "https://cdn.fal.media/kling.mp4"}}),
        _response(200, content=b"kling-bytes"),
    ]

    KlingClipProvider(fal_settings, logger).generate(make_image(), "prompt", "16:9", tmp_path / "clip.mp4")

    kwargs = mock_post.call_args.kwargs
    assert kwargs["headers"]["Authorization"] == "Key kling-test"
    assert kwargs["json"]["duration"] == "5"
    assert kwargs["json"]["cfg_scale"] == 0.5
    assert kwargs["json"]["aspect_ratio"] == "16:9"
    assert kwargs["json"]["negative_prompt"] == "blur, distort, and low quality"


@patch("adburst.services.clip_providers.time.sleep")
@patch("adburst.services.clip_providers.requests.get")
@patch("adburst.services.clip_providers.requests.post")
def test_completed_without_video_is_validation_error(mock_post, mock_get, mock_sleep, fal_settings, logger, make_image, tmp_path):
    mock_post.return_value = _response(200, FAL_SUBMIT)
    mock_get.side_effect = [_response(200, {"status": "COMPLETED"}), _response(200, {"images": []})]

    with pytest.raises(ProviderValidationError):
        FalLTXClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")


@patch("adburst.services.clip_providers.time.sleep")
@patch("adburst.services.clip_providers.requests.get")
@patch("adburst.services.clip_providers.requests.post")
def test_veo_long_running_operation(mock_post, mock_get, mock_sleep, fal_settings, logger, make_image, tmp_path):
    """Test Veo submits predictLongRunning, polls the operation and downloads the uri."""
    mock_post.return_value = _response(200, {"name": "operations/op-1"})
    mock_get.side_effect = [
        _response(200, {"name": "operations/op-1", "done": False}),
        _response(
            200,
            {
                "name": "operations/op-1",
                "done": True,
                "response": {
                    "generateVideoResponse": {"generatedSamples": [{"video": {"uri": "https://files/veo.mp4"}}]}
                },
            },
        ),
        _response(200, content=b"veo-bytes"),
    ]
    output = tmp_path / "veo.mp4"

    VeoClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", output)

    assert output.read_bytes() == b"veo-bytes"
    assert mock_post.call_args.args[0].endswith(f"models/{fal_settings.veo_model}:predictLongRunning")
    body = mock_post.call_args.kwargs["json"]
    assert body["parameters"]["aspectRatio"] == "9:16"
    assert body["parameters"]["durationSeconds"] == 8
    assert body["instances"][0]["image"]["mimeType"] == "image/png"
    assert mock_get.call_args_list[0].args[0].endswith("/operations/op-1")
    assert mock_get.call_args_list[2].args[0] == "https://files/veo.mp4"
    assert mock_get.call_args_list[2].kwargs["headers"]["x-goog-api-key"] == "g-test"


@patch("adburst.services.clip_providers.requests.post")
def test_veo_content_filter_is_validation_error(mock_post, fal_settings, logger, make_image, tmp_path):
    mock_post.return_value = _response(
        200,
        {
            "name": "operations/op-2",
            "done": True,
            "response": {"generateVideoResponse": {"raiMediaFilteredReasons": ["unsafe content"]}},
        },
    )

    with pytest.raises(ProviderValidationError, match="unsafe content"):
        VeoClipProvider(fal_settings, logger).generate(make_image(), "prompt", "9:16", tmp_path / "clip.mp4")


def test_still_provider_renders_zoom_clip(settings, logger, runner, make_image, tmp_path):
    """Test the local fallback renders a clip of its fixed duration."""
    provider = StillImageClipProvider(settings, logger, runner=runner)
    output = provider.generate(make_image(), "ignored", "9:16", tmp_path / "still.mp4")

    assert output.exists()
    assert runner.probe_duration(output) == pytest.approx(4.0, abs=0.1)


def test_still_provider_wraps_encoder_failure(settings, logger, tmp_path):
    runner = MagicMock()
    from adburst.core.errors import EncodingFailed

    runner.run.side_effect = EncodingFailed("boom", returncode=1, stderr="bad filter")
    provider = StillImageClipProvider(settings, logger, runner=runner)

    with pytest.raises(ProviderTransientError, match="boom"):
        provider.generate(tmp_path / "img.png", "ignored", "9:16", tmp_path / "still.mp4")
