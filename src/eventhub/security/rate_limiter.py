"""
Request rate limiting for the HTTP routes.

Routes depend on the ``RateLimiter`` interface. ``InMemoryRateLimiter`` keeps
fixed-window counters in process memory, so limits hold per Lambda execution
environment only; a shared store implementation can replace it where limits
must hold across instances.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from aws_lambda_powertools.metrics import MetricUnit

from eventhub.handlers.utils.observability import logger, metrics


@dataclass
class RateLimitConfig:
    """Fixed window policy: at most ``max_attempts`` per ``window_ms``."""

    max_attempts: int
    window_ms: int


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    attempts: int
    remaining: int
    reset_at_ms: int
    retry_after: Optional[int] = None

    def to_headers(self) -> Dict[str, str]:
        """Convert to HTTP headers."""
        headers = {
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(self.reset_at_ms // 1000),
        }
        if self.retry_after is not None:
            headers['Retry-After'] = str(self.retry_after)
        return headers


class RateLimiter(ABC):
    """Base rate limiter interface."""

    @abstractmethod
    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one attempt for ``key`` and report whether it is allowed."""

    @abstractmethod
    def reset(self, key: Optional[str] = None) -> None:
        """Forget the counter of one key, or of every key."""


class InMemoryRateLimiter(RateLimiter):
    """Process local fixed-window counters, independent per key."""

    def __init__(self, clock: Callable[[], float] = time.time, cleanup_every: int = 100):
        self._clock = clock
        self._cleanup_every = cleanup_every
        self._checks = 0
        self._lock = threading.Lock()
        # key -> (attempts, window reset time in ms)
        self._windows: Dict[str, Tuple[int, int]] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._now_ms()

        with self._lock:
            attempts, reset_at = self._windows.get(key, (0, 0))
            if now >= reset_at:
                attempts, reset_at = 0, now + config.window_ms
            attempts += 1
            self._windows[key] = (attempts, reset_at)

            self._checks += 1
            if self._checks % self._cleanup_every == 0:
                self._cleanup(now)

        allowed = attempts <= config.max_attempts
        result = RateLimitResult(
            allowed=allowed,
            attempts=attempts,
            remaining=max(config.max_attempts - attempts, 0),
            reset_at_ms=reset_at,
            retry_after=None if allowed else max(math.ceil((reset_at - now) / 1000), 1),
        )

        if not allowed:
            metrics.add_metric(name='RateLimitExceeded', unit=MetricUnit.Count, value=1)
            logger.warning('Rate limit exceeded', extra={
                'client': key,
                'attempts': attempts,
                'max_attempts': config.max_attempts,
                'window_ms': config.window_ms,
            })

        return result

    def _cleanup(self, now: int) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def client_fingerprint(event: Mapping[str, Any]) -> str:
    """
    Identify the calling client of an API Gateway HTTP API event.

    Returns:
        ``sourceIp:userAgent``, with ``unknown`` for a missing source IP
    """
    request_context = event.get('requestContext') or {}
    source_ip = (request_context.get('http') or {}).get('sourceIp') or 'unknown'

    headers = event.get('headers') or {}
    user_agent = next((value for name, value in headers.items() if name.lower() == 'user-agent'), '')

    return f'{source_ip}:{user_agent}'


default_rate_limiter = InMemoryRateLimiter()
