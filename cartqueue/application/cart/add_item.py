import logging
from datetime import datetime, timezone
from typing import Callable, Literal

from pydantic import BaseModel, ValidationError

from cartqueue.domain.cart.commands import (
    CONTENT_TYPE,
    ENQUEUED_AT_HEADER,
    IDEMPOTENCY_HEADER,
    MAX_QUANTITY,
    CartMutationCommand,
)
from cartqueue.domain.cart.errors import (
    CartServiceError,
    ErrorKind,
    insufficient_stock,
    invalid_quantity,
    product_not_found,
)
from cartqueue.domain.cart.ports import CartPublisher, ProductCatalog
from cartqueue.infrastructure.errors import BrokerError, StoreError

logger = logging.getLogger(__name__)


class EnqueueReceipt(BaseModel):
    """What the caller gets back: the item is queued, not yet in the cart"""
    status: Literal["accepted"] = "accepted"
    user_id: int
    product_id: int
    quantity: int
    idempotency_key: str
    enqueued_at: datetime


class AddItemToCartUseCase:
    """
    Use Case: enqueue an "add to cart" request.

    Flow:
    1. Reject non-positive quantities
    2. Look the product up in the catalog
    3. Check current stock (advisory, nothing is reserved)
    4. Publish a CartMutationCommand to the cart queue
    5. Return as soon as the broker confirms

    Never writes to the store; the cart worker applies the command later.
    """

    def __init__(
        self,
        products: ProductCatalog,
        publisher: CartPublisher,
        clock: Callable[[], datetime] | None = None,
    ):
        self.products = products
        self.publisher = publisher
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def execute(self, user_id: int, product_id: int, quantity: int) -> EnqueueReceipt:
        """
        Raises:
            CartServiceError: INVALID_QUANTITY, INVALID_REQUEST, PRODUCT_NOT_FOUND,
                INSUFFICIENT_STOCK, STORE_UNAVAILABLE or PUBLISH_FAILED
        """
        if quantity <= 0 or quantity > MAX_QUANTITY:
            logger.warning(f"Invalid quantity user_id={user_id} quantity={quantity} error_code=INVALID_QUANTITY")
            raise invalid_quantity(quantity)

        try:
            command = CartMutationCommand(user_id=user_id, product_id=product_id, quantity=quantity)
        except ValidationError as e:
            logger.warning(
                f"Invalid cart request user_id={user_id} product_id={product_id} error_code=INVALID_REQUEST"
            )
            raise CartServiceError(
                ErrorKind.INVALID_REQUEST, "user_id and product_id must be non-negative integers in range", cause=e
            ) from e

        try:
            product = self.products.get_product(product_id)
        except StoreError as e:
            logger.error(
                f"Product lookup failed operation=add_to_cart product_id={product_id} "
                f"error={e} error_code=STORE_UNAVAILABLE"
            )
            raise CartServiceError(ErrorKind.STORE_UNAVAILABLE, "product lookup failed", cause=e) from e

        if product is None:
            logger.warning(f"Product not found product_id={product_id} error_code=PRODUCT_NOT_FOUND")
            raise product_not_found(product_id)

        if product.stock < quantity:
            logger.warning(
                f"Insufficient stock product_id={product_id} stock={product.stock} "
                f"quantity={quantity} error_code=INSUFFICIENT_STOCK"
            )
            raise insufficient_stock(product_id, product.stock, quantity)

        enqueued_at = self.clock()
        key = command.idempotency_key(enqueued_at)

        try:
            self.publisher.publish(
                command.to_message(),
                content_type=CONTENT_TYPE,
                headers={
                    IDEMPOTENCY_HEADER: key,
                    ENQUEUED_AT_HEADER: enqueued_at.isoformat(),
                },
            )
        except BrokerError as e:
            logger.error(
                f"Failed to publish cart message user_id={user_id} product_id={product_id} "
                f"error={e} error_code=PUBLISH_FAILED"
            )
            raise CartServiceError(ErrorKind.PUBLISH_FAILED, "failed to enqueue cart item", cause=e) from e

        logger.info(
            f"Published add to cart message user_id={user_id} product_id={product_id} quantity={quantity}"
        )
        return EnqueueReceipt(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            idempotency_key=key,
            enqueued_at=enqueued_at,
        )
