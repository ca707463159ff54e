import argparse
import logging
import signal
import threading
from typing import Callable

from cartqueue.bootstrap import build_cache, build_database, build_store
from cartqueue.config import Settings, load_settings
from cartqueue.infrastructure.broker import CartTopology, declare_topology, open_connection
from cartqueue.logging_config import configure_logging
from .consumer import CartWorker
from .handler import CartMutationHandler

logger = logging.getLogger(__name__)


def run_workers(
    settings: Settings,
    handler_factory: Callable[[], CartMutationHandler],
    concurrency: int | None = None,
) -> None:
    """
    Run `concurrency` consumers in threads until SIGINT/SIGTERM.

    `handler_factory` is called once per consumer thread.

    Each consumer gets its own broker connection. On a signal the consumers
    stop taking new messages; a message in progress is finished and settled
    before its thread exits.
    """
    concurrency = concurrency or settings.worker_concurrency
    topology = CartTopology.from_settings(settings)

    bootstrap_connection = open_connection(settings.broker_url)
    try:
        bootstrap_connection.ensure_connection(max_retries=5, interval_start=2, interval_step=0)
        declare_topology(bootstrap_connection, topology)
    finally:
        bootstrap_connection.release()

    workers = [
        CartWorker(
            open_connection(settings.broker_url),
            topology,
            handler_factory(),
            prefetch_count=settings.worker_prefetch_count,
            name=f"cart-worker-{i}",
        )
        for i in range(concurrency)
    ]

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping {len(workers)} cart workers")
        for worker in workers:
            worker.should_stop = True

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    threads = [threading.Thread(target=worker.run, name=worker.name) for worker in workers]
    for thread in threads:
        thread.start()
    logger.info(f"Started {len(threads)} cart workers")

    for thread in threads:
        while thread.is_alive():
            thread.join(timeout=1)

    for worker in workers:
        worker.connection.release()
    logger.info("Cart workers stopped")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Consume cart commands and apply them to the store")
    parser.add_argument("--concurrency", type=int, default=None, help="number of consumer threads")
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    database = build_database(settings)
    cache = build_cache(settings)
    store = build_store(database)

    def handler_factory() -> CartMutationHandler:
        return CartMutationHandler(store, cache, revalidate_stock=settings.revalidate_stock_on_apply)

    try:
        run_workers(settings, handler_factory, concurrency=args.concurrency)
    finally:
        cache.close()
        database.close()
