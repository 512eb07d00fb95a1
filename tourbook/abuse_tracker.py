import logging

from fastapi import Depends
from redis import Redis
from redis.exceptions import RedisError

from .config import settings
from .database import get_redis_client

logger = logging.getLogger("tourbook.security")


class SuspiciousActivityTracker:
    """
    Counts rejected access attempts per (identifier, ip) in a sliding Redis key
    that expires ``window_seconds`` after the first attempt. Keys expire on
    their own, so the store never grows past the active window.
    """

    def __init__(
            self,
            redis_client: Redis,
            window_seconds: int = settings.SUSPICIOUS_ACTIVITY_WINDOW_SECONDS,
            threshold: int = settings.SUSPICIOUS_ACTIVITY_THRESHOLD,
    ):
        self.redis = redis_client
        self.window_seconds = window_seconds
        self.threshold = threshold

    @staticmethod
    def key(identifier, ip: str | None) -> str:
        return f"suspicious:{identifier or 'anonymous'}:{ip or 'unknown'}"

    def track(self, identifier, ip: str | None) -> int | None:
        """Returns the attempt count in the current window, or None if Redis is unreachable."""
        key = self.key(identifier, ip)
        try:
            attempts = self.redis.incr(key)
            if attempts == 1:
                self.redis.expire(key, self.window_seconds)
        except RedisError as e:
            logger.error(f"Could not record suspicious activity for {key}: {e}")
            return None

        if attempts > self.threshold:
            logger.error(f"[SECURITY ALERT] High number of unauthorized attempts from {key} ({attempts})")
        return attempts


def get_activity_tracker(redis_client: Redis = Depends(get_redis_client)) -> SuspiciousActivityTracker:
    return SuspiciousActivityTracker(redis_client)
