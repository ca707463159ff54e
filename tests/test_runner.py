import signal
import threading
import time
from unittest.mock import MagicMock
from uuid import uuid4

from kombu import Connection

from cartqueue.config import Settings
from cartqueue.domain.cart.commands import CONTENT_TYPE, CartMutationCommand
from cartqueue.infrastructure.broker import CartTopology, KombuCartPublisher, declare_topology
from cartqueue.worker import consumer, runner
from cartqueue.worker.consumer import CartWorker
from cartqueue.worker.handler import Disposition


class FakeWorker:
    """Stands in for CartWorker: spins until told to stop"""

    def __init__(self, connection, topology, handler, prefetch_count=1, name="cart-worker"):
        self.connection = connection
        self.handler = handler
        self.prefetch_count = prefetch_count
        self.name = name
        self.should_stop = False
        self.started = threading.Event()

    def run(self):
        self.started.set()
        while not self.should_stop:
            time.sleep(0.01)


class TestRunWorkers:

    def test_signal_stops_all_consumers(self, monkeypatch):
        handlers = {}
        workers = []
        connections = []

        def fake_connection(url):
            conn = MagicMock()
            connections.append(conn)
            return conn

        def make_worker(*args, **kwargs):
            worker = FakeWorker(*args, **kwargs)
            workers.append(worker)
            return worker

        monkeypatch.setattr(runner.signal, "signal", lambda signum, handler: handlers.__setitem__(signum, handler))
        monkeypatch.setattr(runner, "open_connection", fake_connection)
        monkeypatch.setattr(runner, "declare_topology", MagicMock())
        monkeypatch.setattr(runner, "CartWorker", make_worker)

        settings = Settings(worker_concurrency=3, worker_prefetch_count=1)
        handler_factory = MagicMock(side_effect=lambda: object())

        thread = threading.Thread(target=runner.run_workers, args=(settings, handler_factory))
        thread.start()
        deadline = time.monotonic() + 5
        while (len(workers) < 3 or not all(w.started.is_set() for w in workers)) and time.monotonic() < deadline:
            time.sleep(0.01)

        handlers[signal.SIGTERM](signal.SIGTERM, None)
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert handler_factory.call_count == 3
        assert all(w.should_stop for w in workers)
        # one bootstrap connection plus one per consumer, all released
        assert len(connections) == 4
        assert all(conn.release.called for conn in connections)


class BlockingHandler:
    """Holds the message in progress until released"""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.finished = False

    def handle(self, body, headers=None):
        self.entered.set()
        self.release.wait(timeout=10)
        self.finished = True
        return Disposition.ACK


class TestGracefulShutdown:

    def test_in_flight_message_is_settled_before_run_returns(self, monkeypatch):
        suffix = uuid4().hex[:8]
        topology = CartTopology(f"cart-{suffix}", f"cart_queue-{suffix}", "cart.add")
        connection = Connection("memory://")
        declare_topology(connection, topology)
        body = CartMutationCommand(user_id=1, product_id=5, quantity=1).to_message()
        KombuCartPublisher(connection, topology).publish(body, CONTENT_TYPE)

        settled = []
        real_settle = consumer.settle

        def recording_settle(message, disposition):
            real_settle(message, disposition)
            settled.append((disposition, message.acknowledged))

        monkeypatch.setattr(consumer, "settle", recording_settle)

        handler = BlockingHandler()
        worker = CartWorker(connection, topology, handler)
        thread = threading.Thread(target=worker.run)
        thread.start()
        try:
            assert handler.entered.wait(timeout=10)

            worker.should_stop = True
            time.sleep(0.2)
            # stop requested, message still in progress
            assert thread.is_alive()
            assert settled == []

            handler.release.set()
            thread.join(timeout=10)

            assert not thread.is_alive()
            assert handler.finished
            assert settled == [(Disposition.ACK, True)]
        finally:
            handler.release.set()
            worker.should_stop = True
            thread.join(timeout=10)
            connection.release()
