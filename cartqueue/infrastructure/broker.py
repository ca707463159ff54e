"""
Durable cart queue on top of kombu.

Topology: a durable direct exchange routes cart commands to a durable queue.
When a dead-letter exchange is configured, messages rejected without requeue
are routed to `<queue>.dead` instead of being dropped.
"""
import logging

from kombu import Connection, Exchange, Queue
from kombu.pools import producers

from cartqueue.config import Settings
from cartqueue.domain.cart.ports import CartPublisher
from .errors import BrokerError

logger = logging.getLogger(__name__)

PERSISTENT_DELIVERY_MODE = 2

DEFAULT_RETRY_POLICY = {
    "max_retries": 3,
    "interval_start": 0,
    "interval_step": 0.5,
    "interval_max": 2,
}


class CartTopology:
    """Exchange, queue and optional dead-letter queue for cart commands"""

    def __init__(
        self,
        exchange_name: str,
        queue_name: str,
        routing_key: str,
        dead_letter_exchange: str = "",
    ):
        self.routing_key = routing_key
        self.exchange = Exchange(exchange_name, type="direct", durable=True)

        queue_arguments = {}
        self.dead_letter_queue = None
        if dead_letter_exchange:
            dead_letter_key = f"{routing_key}.dead"
            queue_arguments = {
                "x-dead-letter-exchange": dead_letter_exchange,
                "x-dead-letter-routing-key": dead_letter_key,
            }
            self.dead_letter_queue = Queue(
                f"{queue_name}.dead",
                Exchange(dead_letter_exchange, type="direct", durable=True),
                routing_key=dead_letter_key,
                durable=True,
            )

        self.queue = Queue(
            queue_name,
            self.exchange,
            routing_key=routing_key,
            durable=True,
            queue_arguments=queue_arguments or None,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CartTopology":
        return cls(
            exchange_name=settings.cart_exchange,
            queue_name=settings.cart_queue,
            routing_key=settings.cart_routing_key,
            dead_letter_exchange=settings.cart_dead_letter_exchange,
        )

    @property
    def declarations(self) -> list[Queue]:
        # the dead-letter target has to exist before anything is rejected into it
        if self.dead_letter_queue is not None:
            return [self.dead_letter_queue, self.queue]
        return [self.queue]


def open_connection(broker_url: str) -> Connection:
    """Broker connection; AMQP transports wait for publisher confirms"""
    transport_options = {}
    if broker_url.startswith(("amqp://", "amqps://", "pyamqp://")):
        transport_options["confirm_publish"] = True
    return Connection(broker_url, transport_options=transport_options)


def declare_topology(connection: Connection, topology: CartTopology) -> None:
    with connection.channel() as channel:
        for queue in topology.declarations:
            queue.bind(channel).declare()
    logger.info(f"Declared cart queue {topology.queue.name} (routing_key={topology.routing_key})")


class KombuCartPublisher(CartPublisher):

    def __init__(self, connection: Connection, topology: CartTopology, retry_policy: dict | None = None):
        self.connection = connection
        self.topology = topology
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY

    def publish(self, body: bytes, content_type: str, headers: dict | None = None) -> None:
        """
        Raises:
            BrokerError: broker unreachable, or the publish was not confirmed
        """
        try:
            with producers[self.connection].acquire(block=True, timeout=5) as producer:
                producer.publish(
                    body,
                    exchange=self.topology.exchange,
                    routing_key=self.topology.routing_key,
                    declare=self.topology.declarations,
                    content_type=content_type,
                    content_encoding="utf-8",
                    headers=headers or {},
                    delivery_mode=PERSISTENT_DELIVERY_MODE,
                    retry=True,
                    retry_policy=self.retry_policy,
                )
        except Exception as e:
            raise BrokerError(f"publish to {self.topology.queue.name} failed: {e}") from e

    def close(self) -> None:
        self.connection.release()
