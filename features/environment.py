from uuid import uuid4

from fastapi.testclient import TestClient
from kombu import Connection

from cartqueue.bootstrap import CartServices, build_catalog, build_store
from cartqueue.domain.cart.ports import CartCache
from cartqueue.infrastructure.broker import CartTopology, KombuCartPublisher, declare_topology
from cartqueue.infrastructure.database import Database
from cartqueue.main import create_app
from cartqueue.worker.consumer import CartWorker
from cartqueue.worker.handler import CartMutationHandler


class DictCache(CartCache):

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ttl_seconds):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


def before_scenario(context, scenario):
    context.database = Database("sqlite:///:memory:")
    context.database.create_tables()

    suffix = uuid4().hex[:8]
    context.topology = CartTopology(f"cart-{suffix}", f"cart_queue-{suffix}", "cart.add")
    context.connection = Connection("memory://")
    declare_topology(context.connection, context.topology)

    store = build_store(context.database)
    cache = DictCache()
    services = CartServices(
        store=store,
        products=build_catalog(context.database),
        cache=cache,
        publisher=KombuCartPublisher(context.connection, context.topology),
    )
    context.worker = CartWorker(context.connection, context.topology, CartMutationHandler(store, cache))
    context.client = TestClient(create_app(services))
    context.response = None


def after_scenario(context, scenario):
    context.client.close()
    context.connection.release()
    context.database.drop_tables()
    context.database.close()
