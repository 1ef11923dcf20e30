"""Error Handler - user-facing diagnostics for provider and stage failures."""

from typing import Optional

from adburst.core.errors import (
    EncodingFailed,
    ProviderAuthError,
    ProviderError,
    ProviderTimeoutError,
    ProviderValidationError,
)
from adburst.models.schemas import ProviderFailure


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Generating clip for segment 2")
        error: The exception that occurred
        context: Additional context (e.g., {"run_id": "...", "provider": "kling"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    context_str = ""
    if context:
        context_str = f" ({', '.join(f'{k}={v}' for k, v in context.items())})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {type(error).__name__}: {error}"
    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"
    return message


def get_fallback_suggestion(service: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a service failure.

    Args:
        service: Service name ("Clip Provider", "Encoder", "Script", "TTS")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if service == "Clip Provider":
        if isinstance(error, ProviderAuthError) or "api key" in error_msg or "not configured" in error_msg:
            return "Check the provider API key in your .env file. Trying the next provider."
        elif "rate limit" in error_msg or "429" in error_msg or "quota" in error_msg or "credit" in error_msg:
            return "Provider quota or rate limit exceeded. Wait a few minutes or top up credits. Trying the next provider."
        elif isinstance(error, ProviderValidationError) or "policy" in error_msg or "safety" in error_msg:
            return "The provider rejected the prompt or image (content policy or invalid input). Try a different image."
        elif isinstance(error, ProviderTimeoutError) or "timeout" in error_msg or "timed out" in error_msg:
            return "Provider job timed out. Raise PROVIDER_JOB_TIMEOUT or retry later."
        elif "network" in error_msg or "connection" in error_msg:
            return "Network error. Check your internet connection. Trying the next provider."
        else:
            return "Clip generation failed on this provider. Trying the next provider."

    elif service == "Encoder":
        if "could not start" in error_msg or "no such file" in error_msg:
            return "ffmpeg was not found. Install ffmpeg or set FFMPEG_BINARY / FFPROBE_BINARY."
        elif "timed out" in error_msg:
            return "Encoding took too long. Raise ENCODER_TIMEOUT or reduce the video length."
        elif isinstance(error, EncodingFailed) and error.stderr:
            return "Encoding failed. See the captured ffmpeg stderr above for the failing filter or stream."
        else:
            return "Encoding failed. Check logs for details."

    elif service == "Script":
        if "api key" in error_msg or "not configured" in error_msg:
            return "Check your ANTHROPIC_API_KEY / OPENAI_API_KEY in .env file."
        elif "rate limit" in error_msg or "429" in error_msg:
            return "LLM rate limit exceeded. Wait a few minutes and try again."
        else:
            return "Script generation failed. Check logs for details."

    elif service == "TTS":
        if "api key" in error_msg or "not configured" in error_msg:
            return "Check your ELEVENLABS_API_KEY / OPENAI_API_KEY in .env file."
        elif "rate limit" in error_msg or "429" in error_msg or "quota" in error_msg:
            return "TTS quota or rate limit exceeded. Wait and try again."
        elif "network" in error_msg or "timeout" in error_msg:
            return "Network error. Check your internet connection."
        else:
            return "Voiceover generation failed. Check logs for details."

    return None


def to_provider_failure(provider: str, error: Exception) -> ProviderFailure:
    """
    Convert an adapter exception into a recorded ProviderFailure.

    Anything that is not a ProviderError is recorded as transient.
    """
    if isinstance(error, ProviderError):
        error_type = error.error_type
        message = error.message
    else:
        error_type = "transient"
        message = f"{type(error).__name__}: {error}"

    return ProviderFailure(
        provider=provider,
        error_type=error_type,
        message=message,
        suggestion=get_fallback_suggestion("Clip Provider", error),
    )
