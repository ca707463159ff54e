import logging

from kombu import Connection
from kombu.mixins import ConsumerMixin

from cartqueue.domain.cart.commands import CONTENT_TYPE
from cartqueue.infrastructure.broker import CartTopology
from .handler import CartMutationHandler, Disposition

logger = logging.getLogger(__name__)


class CartWorker(ConsumerMixin):
    """
    Long-lived consumer of the cart queue.

    Acknowledgements are manual and happen only after the handler is done.
    With prefetch_count=1 each worker holds at most one unacknowledged
    delivery, so several workers share the queue evenly.
    """

    def __init__(
        self,
        connection: Connection,
        topology: CartTopology,
        handler: CartMutationHandler,
        prefetch_count: int = 1,
        name: str = "cart-worker",
    ):
        self.connection = connection
        self.topology = topology
        self.handler = handler
        self.prefetch_count = prefetch_count
        self.name = name

    def get_consumers(self, Consumer, channel):
        if self.topology.dead_letter_queue is not None:
            self.topology.dead_letter_queue.bind(channel).declare()
        return [
            Consumer(
                queues=[self.topology.queue],
                on_message=self.on_message,
                accept=[CONTENT_TYPE],
                prefetch_count=self.prefetch_count,
            )
        ]

    def on_consume_ready(self, connection, channel, consumers, **kwargs):
        logger.info(f"{self.name} waiting for messages on {self.topology.queue.name}")

    def on_message(self, message) -> None:
        try:
            disposition = self.handler.handle(message.body, message.headers)
        except Exception:
            # unexpected failure: one more chance, then dead-letter
            redelivered = bool((message.delivery_info or {}).get("redelivered"))
            logger.exception(
                f"{self.name} failed to handle message delivery_tag={message.delivery_tag} "
                f"redelivered={redelivered}"
            )
            disposition = Disposition.REJECT if redelivered else Disposition.REQUEUE

        settle(message, disposition)


def settle(message, disposition: Disposition) -> None:
    if disposition is Disposition.ACK:
        message.ack()
    elif disposition is Disposition.REQUEUE:
        message.reject(requeue=True)
    else:
        message.reject(requeue=False)
