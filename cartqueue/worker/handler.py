import logging
from enum import Enum
from typing import Optional

from cartqueue.application.cart.cache_invalidation import invalidate_cart
from cartqueue.domain.cart.commands import IDEMPOTENCY_HEADER, CartMutationCommand
from cartqueue.domain.cart.errors import CartServiceError
from cartqueue.domain.cart.ports import CartCache, CartStore, NewCartItem
from cartqueue.infrastructure.errors import DuplicateCartItemError, InvalidCartItemError, StoreError

logger = logging.getLogger(__name__)


class Disposition(str, Enum):
    """What to tell the broker about one delivery"""
    ACK = "ack"
    REJECT = "reject"      # drop (or dead-letter), never redeliver
    REQUEUE = "requeue"    # redeliver later


class CartMutationHandler:
    """
    Applies one CartMutationCommand to the store.

    Order matters: the store write commits first, then the user's cached
    cart is deleted, and only then is the delivery acknowledged. A crash in
    between leads to a redelivery that the idempotency key turns into a no-op.
    """

    def __init__(self, store: CartStore, cache: CartCache, revalidate_stock: bool = True):
        self.store = store
        self.cache = cache
        self.revalidate_stock = revalidate_stock

    def handle(self, body: bytes | str, headers: Optional[dict] = None) -> Disposition:
        try:
            command = CartMutationCommand.from_message(body)
        except CartServiceError as e:
            logger.error(f"Failed to unmarshal cart message error={e.cause} error_code=UNMARSHAL_FAILED")
            return Disposition.REJECT

        key = (headers or {}).get(IDEMPOTENCY_HEADER)
        item = NewCartItem(
            user_id=command.user_id,
            product_id=command.product_id,
            quantity=command.quantity,
            idempotency_key=str(key) if key else None,
        )

        try:
            created = self.store.create_cart_item(item, check_stock=self.revalidate_stock)
        except DuplicateCartItemError:
            # the first delivery may have died before invalidating
            logger.info(
                f"Duplicate cart message user_id={command.user_id} product_id={command.product_id} "
                f"idempotency_key={key} error_code=DUPLICATE_DELIVERY"
            )
            invalidate_cart(self.cache, command.user_id, operation="apply_cart_mutation")
            return Disposition.ACK
        except InvalidCartItemError as e:
            logger.error(
                f"Cart message rejected by store user_id={command.user_id} product_id={command.product_id} "
                f"error={e} error_code=ADD_ITEM_FAILED"
            )
            return Disposition.REJECT
        except StoreError as e:
            logger.error(
                f"Failed to add item to cart user_id={command.user_id} product_id={command.product_id} "
                f"error={e} error_code=ADD_ITEM_FAILED"
            )
            return Disposition.REQUEUE
        except CartServiceError as e:
            logger.error(
                f"Cart message no longer applicable user_id={command.user_id} "
                f"product_id={command.product_id} error={e} error_code={e.kind.value}"
            )
            return Disposition.REJECT

        invalidate_cart(self.cache, command.user_id, operation="apply_cart_mutation")
        logger.info(
            f"Added item to cart cart_item_id={created.id} user_id={command.user_id} "
            f"product_id={command.product_id} quantity={command.quantity}"
        )
        return Disposition.ACK
