import logging

from cartqueue.application.cart.cache_invalidation import invalidate_cart
from cartqueue.application.cart.view_cart import ensure_owner
from cartqueue.domain.cart.errors import CartServiceError, ErrorKind, cart_item_not_found
from cartqueue.domain.cart.ports import CartCache, CartStore
from cartqueue.infrastructure.errors import StoreError

logger = logging.getLogger(__name__)


class RemoveItemFromCartUseCase:
    """Use Case: soft-delete a line item and drop the user's cached cart"""

    def __init__(self, store: CartStore, cache: CartCache):
        self.store = store
        self.cache = cache

    def execute(self, cart_item_id: int, user_id: int | None = None) -> None:
        try:
            item = self.store.get_cart_item_by_id(cart_item_id)
            if item is None:
                logger.warning(f"Cart item not found cart_item_id={cart_item_id} error_code=CART_ITEM_NOT_FOUND")
                raise cart_item_not_found(cart_item_id)
            ensure_owner(item, user_id)

            deleted = self.store.delete_cart_item(cart_item_id)
        except StoreError as e:
            logger.error(f"Failed to delete cart item cart_item_id={cart_item_id} error={e} error_code=DELETE_CART_FAILED")
            raise CartServiceError(ErrorKind.STORE_UNAVAILABLE, "failed to delete cart item", cause=e) from e

        if not deleted:
            raise cart_item_not_found(cart_item_id)

        invalidate_cart(self.cache, item.user_id, operation="delete_cart_item")
        logger.info(f"Deleted cart item cart_item_id={cart_item_id} user_id={item.user_id}")
