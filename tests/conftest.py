"""
Test configuration and fixtures
"""
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest

from cartqueue.domain.cart.ports import CartCache, CartPublisher
from cartqueue.infrastructure.database import Database
from cartqueue.infrastructure.errors import BrokerError, CacheError
from cartqueue.infrastructure.models import Product
from cartqueue.infrastructure.repositories.cart_repository import SqlCartRepository
from cartqueue.infrastructure.repositories.product_repository import SqlProductCatalog


class InMemoryCache(CartCache):
    """Dict-backed cache that counts calls and can be switched off"""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.failing = False
        self.calls = {"get": 0, "set": 0, "delete": 0}

    def get(self, key: str) -> Optional[bytes]:
        self.calls["get"] += 1
        if self.failing:
            raise CacheError("cache down")
        return self.data.get(key)

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.calls["set"] += 1
        if self.failing:
            raise CacheError("cache down")
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    def delete(self, key: str) -> None:
        self.calls["delete"] += 1
        if self.failing:
            raise CacheError("cache down")
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class RecordingPublisher(CartPublisher):
    """Keeps every published message instead of sending it"""

    def __init__(self):
        self.messages: list[tuple[bytes, str, dict]] = []
        self.failing = False

    def publish(self, body: bytes, content_type: str, headers: dict | None = None) -> None:
        if self.failing:
            raise BrokerError("broker unreachable")
        self.messages.append((body, content_type, headers or {}))


@pytest.fixture
def database():
    """Fresh in-memory SQLite database for each test"""
    db = Database("sqlite:///:memory:")
    db.create_tables()
    try:
        yield db
    finally:
        db.drop_tables()
        db.close()


@pytest.fixture
def store(database):
    return SqlCartRepository(database.session_factory)


@pytest.fixture
def catalog(database):
    return SqlProductCatalog(database.session_factory)


@pytest.fixture
def add_product(database):
    """Factory inserting a product row, returns its id"""

    def _add(name: str = "Laptop", price: float = 4999.99, stock: int = 10, deleted: bool = False) -> int:
        with database.session_factory() as session:
            product = Product(
                name=name,
                price=price,
                stock=stock,
                deleted_at=datetime.now(timezone.utc) if deleted else None,
            )
            session.add(product)
            session.commit()
            return product.id

    return _add


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def make_message():
    """Factory for kombu-like messages with mocked ack/reject"""

    def _make(body, headers=None, redelivered=False, delivery_tag=1):
        message = MagicMock()
        message.body = body
        message.headers = headers or {}
        message.delivery_info = {"redelivered": redelivered}
        message.delivery_tag = delivery_tag
        return message

    return _make
