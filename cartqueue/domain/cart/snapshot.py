from datetime import datetime

from pydantic import BaseModel, ConfigDict, ValidationError

CART_CACHE_PREFIX = "cart:"


def cart_cache_key(user_id: int) -> str:
    return f"{CART_CACHE_PREFIX}{user_id}"


class CartLineItem(BaseModel):
    """One (user, product, quantity) row joined with product display data"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    product_id: int
    quantity: int
    product_name: str
    product_price: float
    created_at: datetime
    updated_at: datetime

    @property
    def total_price(self) -> float:
        return self.product_price * self.quantity


class CartSnapshot(BaseModel):
    """Cached view of a user's cart. Disposable; the store is authoritative."""

    user_id: int
    items: list[CartLineItem]

    def to_cache(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_cache(cls, data: bytes) -> "CartSnapshot":
        """Raises ValueError when the cached bytes are not a valid snapshot"""
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise ValueError(f"corrupt cart snapshot: {e.error_count()} errors") from e
