import logging

from cartqueue.application.cart.cache_invalidation import invalidate_cart
from cartqueue.application.cart.view_cart import ensure_owner
from cartqueue.domain.cart.commands import MAX_QUANTITY
from cartqueue.domain.cart.errors import (
    CartServiceError,
    ErrorKind,
    cart_item_not_found,
    insufficient_stock,
    invalid_quantity,
    product_not_found,
)
from cartqueue.domain.cart.ports import CartCache, CartStore, ProductCatalog
from cartqueue.domain.cart.snapshot import CartLineItem
from cartqueue.infrastructure.errors import StoreError

logger = logging.getLogger(__name__)


class UpdateCartItemUseCase:
    """
    Use Case: change the quantity of an existing line item.

    Runs synchronously since it touches a single row. After the write the
    user's cached cart is deleted, not rewritten.
    """

    def __init__(self, store: CartStore, products: ProductCatalog, cache: CartCache):
        self.store = store
        self.products = products
        self.cache = cache

    def execute(self, cart_item_id: int, quantity: int, user_id: int | None = None) -> CartLineItem:
        if quantity <= 0 or quantity > MAX_QUANTITY:
            logger.warning(f"Invalid quantity cart_item_id={cart_item_id} quantity={quantity} error_code=INVALID_QUANTITY")
            raise invalid_quantity(quantity)

        try:
            item = self.store.get_cart_item_by_id(cart_item_id)
            if item is None:
                logger.warning(f"Cart item not found cart_item_id={cart_item_id} error_code=CART_ITEM_NOT_FOUND")
                raise cart_item_not_found(cart_item_id)
            ensure_owner(item, user_id)

            product = self.products.get_product(item.product_id)
            if product is None:
                logger.warning(f"Product not found product_id={item.product_id} error_code=PRODUCT_NOT_FOUND")
                raise product_not_found(item.product_id)
            if product.stock < quantity:
                logger.warning(
                    f"Insufficient stock product_id={item.product_id} stock={product.stock} "
                    f"quantity={quantity} error_code=INSUFFICIENT_STOCK"
                )
                raise insufficient_stock(item.product_id, product.stock, quantity)

            updated = self.store.update_cart_item(cart_item_id, quantity)
        except StoreError as e:
            logger.error(f"Failed to update cart item cart_item_id={cart_item_id} error={e} error_code=UPDATE_CART_FAILED")
            raise CartServiceError(ErrorKind.STORE_UNAVAILABLE, "failed to update cart item", cause=e) from e

        if updated is None:
            # deleted between the read and the write
            raise cart_item_not_found(cart_item_id)

        invalidate_cart(self.cache, updated.user_id, operation="update_cart_item")
        logger.info(f"Updated cart item cart_item_id={cart_item_id} user_id={updated.user_id} quantity={quantity}")
        return updated
