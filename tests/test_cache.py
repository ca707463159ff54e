from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cartqueue.infrastructure.cache import RedisCartCache
from cartqueue.infrastructure.errors import CacheError


class TestRedisCartCache:

    def test_set_uses_ttl(self):
        client = MagicMock()

        RedisCartCache(client).set("cart:1", b"{}", 600)

        client.set.assert_called_once_with("cart:1", b"{}", ex=600)

    def test_get_returns_raw_bytes(self):
        client = MagicMock()
        client.get.return_value = b'{"user_id": 1, "items": []}'

        assert RedisCartCache(client).get("cart:1") == b'{"user_id": 1, "items": []}'

    @pytest.mark.parametrize("operation, args", [("get", ("cart:1",)), ("set", ("cart:1", b"x", 5)), ("delete", ("cart:1",))])
    def test_redis_errors_become_cache_errors(self, operation, args):
        client = MagicMock()
        getattr(client, operation).side_effect = RedisConnectionError("connection refused")

        with pytest.raises(CacheError):
            getattr(RedisCartCache(client), operation)(*args)
