import logging
from typing import Optional

from cartqueue.domain.cart.errors import (
    CartServiceError,
    ErrorKind,
    cart_item_not_found,
)
from cartqueue.domain.cart.ports import CartCache, CartStore
from cartqueue.domain.cart.snapshot import CartLineItem, CartSnapshot, cart_cache_key
from cartqueue.infrastructure.errors import CacheError, StoreError

logger = logging.getLogger(__name__)

DEFAULT_CART_TTL_SECONDS = 600


class GetCartQuery:
    """
    Query: current contents of a user's cart (cache-aside).

    The cache is consulted first; on a miss, an unreadable entry or an
    unreachable cache the store answers and a non-empty result is written
    back with a TTL. Cache problems never fail the request.
    """

    def __init__(self, store: CartStore, cache: CartCache, ttl_seconds: int = DEFAULT_CART_TTL_SECONDS):
        self.store = store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def execute(self, user_id: int) -> list[CartLineItem]:
        key = cart_cache_key(user_id)

        cached = self._read_cache(key, user_id)
        if cached is not None:
            logger.info(f"Fetched cart from cache user_id={user_id} count={len(cached)}")
            return cached

        try:
            items = self.store.get_cart_items_by_user(user_id)
        except StoreError as e:
            logger.error(f"Failed to fetch cart user_id={user_id} error={e} error_code=FETCH_CART_FAILED")
            raise CartServiceError(ErrorKind.STORE_UNAVAILABLE, "failed to fetch cart", cause=e) from e

        if items:
            self._populate_cache(key, user_id, items)

        logger.info(f"Fetched cart user_id={user_id} count={len(items)}")
        return items

    def _read_cache(self, key: str, user_id: int) -> Optional[list[CartLineItem]]:
        try:
            data = self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Cache unavailable, reading store user_id={user_id} error={e}")
            return None

        if data is None:
            return None

        try:
            snapshot = CartSnapshot.from_cache(data)
        except ValueError as e:
            logger.warning(f"Failed to unmarshal cached cart user_id={user_id} error={e} error_code=CACHE_UNMARSHAL")
            return None

        if snapshot.user_id != user_id:
            logger.warning(f"Cached cart belongs to user {snapshot.user_id}, expected {user_id} error_code=CACHE_UNMARSHAL")
            return None
        return snapshot.items

    def _populate_cache(self, key: str, user_id: int, items: list[CartLineItem]) -> None:
        snapshot = CartSnapshot(user_id=user_id, items=items)
        try:
            self.cache.set(key, snapshot.to_cache(), self.ttl_seconds)
        except CacheError as e:
            logger.warning(f"Failed to cache cart user_id={user_id} error={e} error_code=CACHE_FAILED")


class GetCartItemQuery:
    """Query: a single line item, checked against the requesting user"""

    def __init__(self, store: CartStore):
        self.store = store

    def execute(self, cart_item_id: int, user_id: int | None = None) -> CartLineItem:
        try:
            item = self.store.get_cart_item_by_id(cart_item_id)
        except StoreError as e:
            logger.error(f"Failed to fetch cart item cart_item_id={cart_item_id} error={e} error_code=FETCH_CART_FAILED")
            raise CartServiceError(ErrorKind.STORE_UNAVAILABLE, "failed to fetch cart item", cause=e) from e

        if item is None:
            logger.warning(f"Cart item not found cart_item_id={cart_item_id} error_code=CART_ITEM_NOT_FOUND")
            raise cart_item_not_found(cart_item_id)

        ensure_owner(item, user_id)
        return item


def ensure_owner(item: CartLineItem, user_id: int | None) -> None:
    if user_id is not None and item.user_id != user_id:
        logger.warning(f"Unauthorized cart access cart_item_id={item.id} user_id={user_id}")
        raise CartServiceError(ErrorKind.FORBIDDEN, "cart item belongs to another user")
