"""Fixed-window rate limiting per (provider, user)."""

import logging
from typing import Any

from .exceptions import RateLimitedError
from .kv import KeyValueStore
from .vendor_types import RateLimitConfig, VendorType

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit:"


class RateLimiter:
    """
    Fixed-window request counter.

    Counters live in a KeyValueStore so that every service instance sharing
    the store sees the same windows. Atomicity per key is the store's job
    (conditional writes in DynamoDB, a mutex in memory).
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.configs: dict[VendorType, RateLimitConfig] = {}

    def configure(self, provider: VendorType, config: RateLimitConfig) -> None:
        """
        Configure the quota for a provider.

        Args:
            provider: Provider the quota applies to
            config: Rate limit configuration
        """
        self.configs[provider] = config

    @staticmethod
    def _key(provider: VendorType, user_id: str) -> str:
        return f"{KEY_PREFIX}{provider.value}:{user_id}"

    def allow(self, provider: VendorType, user_id: str) -> bool:
        """
        Count one request and say whether it may proceed.

        Providers without a configured quota are always allowed.
        """
        config = self.configs.get(provider)
        if not config:
            return True

        hit = self.store.hit_window(
            self._key(provider, user_id),
            limit=config.requests_per_window,
            window_seconds=config.window_seconds,
        )
        if not hit.allowed:
            logger.info(
                "Rate limit reached for %s:%s (%d/%d)",
                provider.value,
                user_id,
                hit.count,
                config.requests_per_window,
            )
        return hit.allowed

    def check_limit(self, provider: VendorType, user_id: str) -> None:
        """
        Like allow(), but raise when the request is denied.

        Raises:
            RateLimitedError: If the window is full
        """
        if self.allow(provider, user_id):
            return

        window = self.store.read_window(self._key(provider, user_id))
        retry_after = window.retry_after(self.store.clock()) if window else None
        raise RateLimitedError(
            "Rate limit exceeded. Please try again later.",
            provider=provider.value,
            retry_after=retry_after,
        )

    def get_remaining(self, provider: VendorType, user_id: str) -> dict[str, Any]:
        """
        Remaining requests in the current window.

        Returns:
            Dictionary with remaining, max and reset_at (unix seconds or None)
        """
        config = self.configs.get(provider)
        if not config:
            return {}

        window = self.store.read_window(self._key(provider, user_id))
        now = self.store.clock()
        if window is None or now > window.reset_at:
            return {"remaining": config.requests_per_window, "max": config.requests_per_window, "reset_at": None}

        return {
            "remaining": max(0, config.requests_per_window - window.count),
            "max": config.requests_per_window,
            "reset_at": window.reset_at,
        }

    def reset(self, provider: VendorType, user_id: str) -> None:
        """Drop the window for one (provider, user)."""
        self.store.delete(self._key(provider, user_id))
