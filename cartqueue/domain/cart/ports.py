"""
Capability interfaces the cart core depends on.

One concrete implementation of each is bound at startup (see
cartqueue.bootstrap); tests bind in-memory doubles instead.
"""
from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel

from cartqueue.domain.cart.snapshot import CartLineItem


class ProductInfo(BaseModel):
    id: int
    name: str
    price: float
    stock: int


class NewCartItem(BaseModel):
    user_id: int
    product_id: int
    quantity: int
    idempotency_key: str | None = None


class ProductCatalog(ABC):

    @abstractmethod
    def get_product(self, product_id: int) -> ProductInfo | None:
        """Current product row, or None if it does not exist"""


class CartStore(ABC):

    @abstractmethod
    def create_cart_item(self, item: NewCartItem, check_stock: bool = False) -> CartLineItem:
        """
        Insert a new line item.

        With check_stock=True the product row is re-read under a row lock in
        the same transaction and the insert is refused if it is gone or its
        stock is below item.quantity.

        Raises InvalidCartItemError when the store cannot hold the values.
        """

    @abstractmethod
    def get_cart_items_by_user(self, user_id: int) -> list[CartLineItem]:
        ...

    @abstractmethod
    def get_cart_item_by_id(self, cart_item_id: int) -> CartLineItem | None:
        ...

    @abstractmethod
    def update_cart_item(self, cart_item_id: int, quantity: int) -> CartLineItem | None:
        ...

    @abstractmethod
    def delete_cart_item(self, cart_item_id: int) -> bool:
        """Soft delete; False when the item does not exist"""

    @abstractmethod
    def purge_deleted(self, older_than: datetime) -> int:
        """Physically remove rows soft-deleted before `older_than`"""


class CartCache(ABC):

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        ...

    @abstractmethod
    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class CartPublisher(ABC):

    @abstractmethod
    def publish(self, body: bytes, content_type: str, headers: dict | None = None) -> None:
        """Publish and wait for the broker's confirm"""
