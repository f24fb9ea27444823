"""Request rate limiting for the public registration endpoint.

The limiter is pluggable: ``DJANGO_REUNION['rate_limit']['backend']`` names a
:class:`RateLimiter` subclass by dotted path. The default keeps counters in
Django's cache framework, so with a shared cache (Redis, Memcached, database)
the limit holds across every process serving the site.
"""

import logging

from django.core.cache import caches
from django.utils.module_loading import import_string

from django_reunion.settings import get_config

logger = logging.getLogger(__name__)


class RateLimiter:
    """Base class for rate limiters.

    Subclasses implement :meth:`check`, which records one hit for *key* and
    reports whether the caller may proceed.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        """Store the limit of *max_requests* per *window_seconds*."""
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    def check(self, key: str) -> bool:
        """Record a hit for *key* and return ``True`` if it is within the limit."""
        raise NotImplementedError


class CacheRateLimiter(RateLimiter):
    """Fixed-window limiter backed by a Django cache alias."""

    key_prefix = "reunion:ratelimit"

    def __init__(self, max_requests: int, window_seconds: int, cache_alias: str = "default") -> None:
        """Bind the limiter to the cache named *cache_alias*."""
        super().__init__(max_requests, window_seconds)
        self.cache = caches[cache_alias]

    def check(self, key: str) -> bool:
        cache_key = f"{self.key_prefix}:{key}"
        if self.cache.add(cache_key, 1, timeout=self.window_seconds):
            return True
        try:
            hits = self.cache.incr(cache_key)
        except ValueError:
            # The window expired between add() and incr().
            self.cache.set(cache_key, 1, timeout=self.window_seconds)
            return True
        if hits > self.max_requests:
            logger.warning("Rate limit exceeded for %s (%s hits)", key, hits)
            return False
        return True


def get_rate_limiter() -> RateLimiter:
    """Instantiate the configured rate limiter backend."""
    config = get_config().rate_limit
    backend = import_string(config.backend)
    if issubclass(backend, CacheRateLimiter):
        return backend(config.max_requests, config.window_seconds, cache_alias=config.cache_alias)
    return backend(config.max_requests, config.window_seconds)
