import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once per process entry point"""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)

    # kombu/amqp are chatty at INFO when reconnecting
    logging.getLogger("amqp").setLevel(logging.WARNING)
    logging.getLogger("kombu").setLevel(logging.WARNING)
