# cart_repository.py
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cartqueue.domain.cart.errors import insufficient_stock, product_not_found
from cartqueue.domain.cart.ports import CartStore, NewCartItem
from cartqueue.domain.cart.snapshot import CartLineItem
from ..errors import DuplicateCartItemError, InvalidCartItemError, StoreError
from ..models import CartItem, Product

logger = logging.getLogger(__name__)


def _to_line_item(row: CartItem) -> CartLineItem:
    return CartLineItem(
        id=row.id,
        user_id=row.user_id,
        product_id=row.product_id,
        quantity=row.quantity,
        product_name=row.product.name,
        product_price=row.product.price,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlCartRepository(CartStore):
    """
    Cart line items in the relational store.

    Not-found is reported as None / False. Any SQLAlchemy failure is raised
    as StoreError so callers can tell it apart from a missing row, except
    values the columns cannot hold, which raise InvalidCartItemError.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_cart_item(self, item: NewCartItem, check_stock: bool = False) -> CartLineItem:
        try:
            with self.session_factory() as session:
                if item.idempotency_key and self._find_by_key(session, item.idempotency_key):
                    raise DuplicateCartItemError(
                        f"cart item with idempotency key {item.idempotency_key} already exists"
                    )

                if check_stock:
                    # row lock: concurrent workers serialize on the product
                    product = session.execute(
                        select(Product)
                        .where(Product.id == item.product_id, Product.deleted_at.is_(None))
                        .with_for_update()
                    ).scalar_one_or_none()
                    if product is None:
                        raise product_not_found(item.product_id)
                    if product.stock < item.quantity:
                        raise insufficient_stock(item.product_id, product.stock, item.quantity)

                row = CartItem(
                    user_id=item.user_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    idempotency_key=item.idempotency_key,
                )
                session.add(row)
                session.commit()
                return _to_line_item(row)
        except IntegrityError as e:
            if item.idempotency_key and self._key_exists(item.idempotency_key):
                raise DuplicateCartItemError(
                    f"cart item with idempotency key {item.idempotency_key} already exists"
                ) from e
            raise StoreError(f"failed to create cart item: {e.orig}") from e
        except (DataError, OverflowError) as e:
            raise InvalidCartItemError(f"cart item values rejected by the store: {e}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"failed to create cart item: {e}") from e

    def get_cart_items_by_user(self, user_id: int) -> list[CartLineItem]:
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(CartItem)
                    .where(CartItem.user_id == user_id, CartItem.deleted_at.is_(None))
                    .order_by(CartItem.id)
                ).scalars().all()
                return [_to_line_item(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"failed to fetch cart for user {user_id}: {e}") from e

    def get_cart_item_by_id(self, cart_item_id: int) -> Optional[CartLineItem]:
        try:
            with self.session_factory() as session:
                row = self._get_live(session, cart_item_id)
                return _to_line_item(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"failed to fetch cart item {cart_item_id}: {e}") from e

    def update_cart_item(self, cart_item_id: int, quantity: int) -> Optional[CartLineItem]:
        try:
            with self.session_factory() as session:
                row = self._get_live(session, cart_item_id)
                if not row:
                    return None
                row.quantity = quantity
                session.commit()
                return _to_line_item(row)
        except SQLAlchemyError as e:
            raise StoreError(f"failed to update cart item {cart_item_id}: {e}") from e

    def delete_cart_item(self, cart_item_id: int) -> bool:
        try:
            with self.session_factory() as session:
                row = self._get_live(session, cart_item_id)
                if not row:
                    return False
                row.deleted_at = datetime.now(timezone.utc)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise StoreError(f"failed to delete cart item {cart_item_id}: {e}") from e

    def purge_deleted(self, older_than: datetime) -> int:
        try:
            with self.session_factory() as session:
                result = session.execute(
                    delete(CartItem).where(
                        CartItem.deleted_at.is_not(None),
                        CartItem.deleted_at < older_than,
                    )
                )
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f"failed to purge deleted cart items: {e}") from e

    def _get_live(self, session: Session, cart_item_id: int) -> Optional[CartItem]:
        return session.execute(
            select(CartItem).where(CartItem.id == cart_item_id, CartItem.deleted_at.is_(None))
        ).scalar_one_or_none()

    def _find_by_key(self, session: Session, key: str) -> Optional[int]:
        return session.execute(
            select(CartItem.id).where(CartItem.idempotency_key == key)
        ).scalar_one_or_none()

    def _key_exists(self, key: str) -> bool:
        try:
            with self.session_factory() as session:
                return self._find_by_key(session, key) is not None
        except SQLAlchemyError:
            logger.warning(f"Could not check idempotency key {key} after integrity error")
            return False
