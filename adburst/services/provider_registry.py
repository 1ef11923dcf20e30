"""Provider Registry - the ordered set of clip providers available to this process."""

from typing import Any, Iterable, Optional

from adburst.core.config import Settings
from adburst.services.clip_providers import PROVIDER_CLASSES, ClipProvider, StillImageClipProvider


class ProviderRegistry:
    """Immutable, priority-ordered list of configured clip providers."""

    def __init__(self, providers: Iterable[ClipProvider]):
        self._providers = tuple(providers)

    @classmethod
    def from_settings(cls, settings: Settings, logger: Any, order: Optional[list[str]] = None) -> "ProviderRegistry":
        """
        Build the registry from settings.

        Providers appear in `settings.provider_order` priority order, and only when their
        credential is configured. The local still-image provider is appended last when
        `enable_still_fallback` is set and ffmpeg is on PATH.

        Args:
            settings: Application settings
            logger: Logger instance
            order: Optional override of settings.provider_order

        Returns:
            ProviderRegistry
        """
        providers: list[ClipProvider] = []
        for name in order or settings.provider_order:
            provider_cls = PROVIDER_CLASSES.get(name)
            if provider_cls is None:
                logger.warning(f"Unknown clip provider '{name}' in provider order, skipping")
                continue
            if provider_cls is StillImageClipProvider:
                continue
            provider = provider_cls(settings, logger)
            if provider.is_configured():
                providers.append(provider)
            else:
                logger.debug(f"Clip provider '{name}' has no credential configured, skipping")

        if settings.enable_still_fallback:
            still = StillImageClipProvider(settings, logger)
            if still.is_configured():
                providers.append(still)
            else:
                logger.debug("Still-image fallback needs ffmpeg and ffprobe on PATH, skipping")

        registry = cls(providers)
        if registry.names:
            logger.info(f"Clip providers (priority order): {', '.join(registry.names)}")
        else:
            logger.warning("No clip providers configured; every segment will fail clip generation")
        return registry

    @property
    def providers(self) -> tuple[ClipProvider, ...]:
        return self._providers

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def __len__(self) -> int:
        return len(self._providers)
