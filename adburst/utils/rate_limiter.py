"""Rate Limiter - throttles provider API calls to stay under quota."""

import time
from collections import defaultdict
from threading import Lock


class RateLimiter:
    """Thread-safe sliding-window rate limiter."""

    def __init__(self, max_calls: int = 60, time_window: float = 60.0):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls allowed in time_window
            time_window: Time window in seconds (default: 60 seconds)
        """
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls = defaultdict(list)
        self.lock = Lock()

    def _prune(self, endpoint: str, now: float) -> list[float]:
        calls = self.calls[endpoint]
        calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]
        return calls

    def wait_if_needed(self, endpoint: str = "default") -> float:
        """
        Block until a call to endpoint is allowed, then record it.

        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        with self.lock:
            now = time.time()
            calls = self._prune(endpoint, now)
            if len(calls) >= self.max_calls:
                wait_time = (calls[0] + self.time_window) - now
                if wait_time > 0:
                    time.sleep(wait_time)
                    waited = wait_time
                    now = time.time()
                    calls = self._prune(endpoint, now)
            calls.append(now)
        return waited


# One limiter per provider, shared by all runs in the process
_provider_limiters: dict[str, RateLimiter] = {}
_registry_lock = Lock()


def get_provider_limiter(provider: str, max_calls: int = 30, time_window: float = 60.0) -> RateLimiter:
    """Get or create the rate limiter for a provider."""
    with _registry_lock:
        limiter = _provider_limiters.get(provider)
        if limiter is None:
            limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
            _provider_limiters[provider] = limiter
        return limiter
