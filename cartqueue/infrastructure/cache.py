import logging
from typing import Optional

import redis
from redis.exceptions import RedisError
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_fixed

from cartqueue.domain.cart.ports import CartCache
from .errors import CacheError

logger = logging.getLogger(__name__)


class RedisCartCache(CartCache):
    """
    Cart snapshots in Redis.

    Values are opaque bytes with a TTL. Every Redis failure surfaces as
    CacheError; deciding whether that matters is up to the caller.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisCartCache":
        client = redis.Redis.from_url(
            redis_url,
            socket_timeout=5,
            socket_connect_timeout=5,
            decode_responses=False,
        )
        return cls(client)

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_fixed(2),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def wait_until_ready(self) -> None:
        self.client.ping()

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.client.get(key)
        except RedisError as e:
            raise CacheError(f"GET {key} failed: {e}") from e

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheError(f"SET {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except RedisError as e:
            raise CacheError(f"DEL {key} failed: {e}") from e

    def close(self) -> None:
        self.client.close()
