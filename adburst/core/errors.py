"""Exception hierarchy for the video assembly pipeline."""

from typing import Any, Optional, Sequence


class AdBurstError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(AdBurstError):
    """Bad image count, duration or request field; raised before any external call."""


# ============================================================================
# Provider errors (never escape the fallback chain except as AllProvidersFailed)
# ============================================================================


class ProviderError(AdBurstError):
    """A clip provider failed to produce a clip."""

    error_type = "provider"

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """Missing or rejected credential. Fatal for the provider, never retried on it."""

    error_type = "auth"


class ProviderValidationError(ProviderError):
    """The remote service rejected the prompt or image (bad input, content policy)."""

    error_type = "validation"


class ProviderTransientError(ProviderError):
    """Network failure, throttling or server-side error."""

    error_type = "transient"


class ProviderTimeoutError(ProviderTransientError):
    """A request or the overall job deadline timed out."""

    error_type = "timeout"


class AllProvidersFailed(AdBurstError):
    """Every configured provider failed for one segment."""

    def __init__(self, segment_order: int, failures: Sequence[Any]):
        self.segment_order = segment_order
        self.failures = list(failures)
        if self.failures:
            details = "; ".join(f"{f.provider} ({f.error_type}): {f.message}" for f in self.failures)
        else:
            details = "no clip providers are configured"
        super().__init__(f"All providers failed for segment {segment_order}: {details}")


# ============================================================================
# Stage errors
# ============================================================================


class EncodingFailed(AdBurstError):
    """The external encoder exited non-zero (or could not be started)."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.command = list(command or [])
        self.returncode = returncode
        self.stderr = stderr
        detail = f"{message} (exit code {returncode})" if returncode is not None else message
        tail = stderr.strip().splitlines()[-5:] if stderr else []
        if tail:
            detail += "\n" + "\n".join(tail)
        super().__init__(detail)


class ScriptGenerationError(AdBurstError):
    """The script generator collaborator failed."""


class VoiceoverError(AdBurstError):
    """The text-to-speech collaborator failed."""


class PipelineAborted(AdBurstError):
    """Raised by run_or_raise; carries the aborted PipelineResult with partial artifacts."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__(result.error or "Pipeline aborted")
