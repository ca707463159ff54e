"""
Wiring: binds each capability interface to its concrete implementation.

The API process, the cart worker and the Celery tasks all build their
dependencies through these functions; tests construct CartServices from
in-memory doubles directly.
"""
import logging

from cartqueue.application.cart.add_item import AddItemToCartUseCase
from cartqueue.application.cart.remove_item import RemoveItemFromCartUseCase
from cartqueue.application.cart.update_item import UpdateCartItemUseCase
from cartqueue.application.cart.view_cart import GetCartItemQuery, GetCartQuery
from cartqueue.config import Settings
from cartqueue.domain.cart.ports import CartCache, CartPublisher, CartStore, ProductCatalog
from cartqueue.infrastructure.broker import (
    CartTopology,
    KombuCartPublisher,
    declare_topology,
    open_connection,
)
from cartqueue.infrastructure.cache import RedisCartCache
from cartqueue.infrastructure.database import Database
from cartqueue.infrastructure.repositories.cart_repository import SqlCartRepository
from cartqueue.infrastructure.repositories.product_repository import SqlProductCatalog

logger = logging.getLogger(__name__)


class CartServices:
    """Use cases served by the HTTP API"""

    def __init__(
        self,
        store: CartStore,
        products: ProductCatalog,
        cache: CartCache,
        publisher: CartPublisher,
        cache_ttl_seconds: int = 600,
    ):
        self.add_item = AddItemToCartUseCase(products, publisher)
        self.get_cart = GetCartQuery(store, cache, ttl_seconds=cache_ttl_seconds)
        self.get_cart_item = GetCartItemQuery(store)
        self.update_item = UpdateCartItemUseCase(store, products, cache)
        self.remove_item = RemoveItemFromCartUseCase(store, cache)


def build_database(settings: Settings) -> Database:
    database = Database(settings.database_url)
    database.wait_until_ready()
    database.create_tables()
    logger.info("Database connected")
    return database


def build_store(database: Database) -> SqlCartRepository:
    return SqlCartRepository(database.session_factory)


def build_catalog(database: Database) -> SqlProductCatalog:
    return SqlProductCatalog(database.session_factory)


def build_cache(settings: Settings) -> RedisCartCache:
    cache = RedisCartCache.from_url(settings.redis_url)
    cache.wait_until_ready()
    logger.info("Redis connected")
    return cache


def build_publisher(settings: Settings) -> KombuCartPublisher:
    topology = CartTopology.from_settings(settings)
    connection = open_connection(settings.broker_url)
    connection.ensure_connection(max_retries=5, interval_start=2, interval_step=0)
    declare_topology(connection, topology)
    logger.info("Broker connected")
    return KombuCartPublisher(connection, topology)
