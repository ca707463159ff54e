import logging

from cartqueue.domain.cart.ports import CartCache
from cartqueue.domain.cart.snapshot import cart_cache_key
from cartqueue.infrastructure.errors import CacheError

logger = logging.getLogger(__name__)


def invalidate_cart(cache: CartCache, user_id: int, operation: str) -> bool:
    """
    Delete the cached snapshot of a user's cart.

    A failure is logged and swallowed: a stale entry expires with its TTL.
    Returns False when the delete did not go through.
    """
    try:
        cache.delete(cart_cache_key(user_id))
        return True
    except CacheError as e:
        logger.warning(
            f"Failed to invalidate cache operation={operation} user_id={user_id} "
            f"error={e} error_code=CACHE_INVALIDATE"
        )
        return False
