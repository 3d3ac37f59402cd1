import threading
import unittest

import timeout_decorator
from hamcrest import assert_that, is_, equal_to

from socketmanager.conduit.socket_conduit_test import debug_timeout
from socketmanager.endpoint import generate_connection_string
from socketmanager.manager import SocketManager
from socketmanager.receiver_test import wait_until
from socketmanager.settings import SocketSettings

settings = SocketSettings(read_timeout=2.0, bytes_timeout=2.0, poll_interval=0.01, stop_grace=1.0)


class EchoServer:
    """ listens for clients and hands each one to a worker manager that echoes what it receives in upper case. """

    def __init__(self):
        self.manager = SocketManager('127.0.0.1:0', settings=settings)
        self.workers = []
        self.disconnected = threading.Event()
        self.manager.sink.client_connected += self.adopt

    def adopt(self, event):
        worker = SocketManager('127.0.0.1:0', settings=settings)
        worker.sink.data_received += lambda e: worker.write(e.message.upper())
        worker.sink.connect_state += self.connect_state
        self.workers.append(worker)
        worker.start_receive(event.conduit)

    def connect_state(self, event):
        if not event.state:
            self.disconnected.set()

    @property
    def connection_string(self):
        return generate_connection_string(*self.manager.listen_address)

    def close(self):
        self.manager.disconnect()
        for worker in self.workers:
            worker.disconnect()


class SocketManagerIntegrationTest(unittest.TestCase):

    def setUp(self):
        self.server = EchoServer()
        assert_that(self.server.manager.listen(), is_(True))
        self.client = SocketManager(self.server.connection_string, settings=settings)

    def tearDown(self):
        self.client.disconnect()
        self.server.close()

    @timeout_decorator.timeout(debug_timeout(10))
    def test_write_read_round_trip(self):
        assert_that(self.client.connect(), is_(True))
        result = self.client.write_read('hello')
        assert_that(result.ok, is_(True), repr(result))
        assert_that(result.data, is_(b'HELLO'))

    @timeout_decorator.timeout(debug_timeout(10))
    def test_receive_echoes(self):
        received = []
        self.client.sink.data_received += lambda e: received.append(e.message)
        assert_that(self.client.connect(), is_(True))
        assert_that(self.client.start_receive(), is_(True))
        for word in ['one\n', 'two\n', 'three\n']:
            assert_that(self.client.write(word, pause=0.05), is_(True))
        wait_until(lambda: ''.join(received).count('\n') == 3, 5)
        assert_that(SocketManager.parse_messages(''.join(received)), is_(equal_to(['ONE', 'TWO', 'THREE'])))

    @timeout_decorator.timeout(debug_timeout(10))
    def test_client_disconnect_tears_down_worker(self):
        assert_that(self.client.connect(), is_(True))
        wait_until(lambda: len(self.server.workers) == 1 and self.server.workers[0].receiving)
        self.client.disconnect()
        assert_that(self.server.disconnected.wait(5), is_(True))
        worker = self.server.workers[0]
        wait_until(lambda: not worker.receiving)
        assert_that(worker.connected, is_(False))

    @timeout_decorator.timeout(debug_timeout(10))
    def test_many_clients(self):
        clients = [SocketManager(self.server.connection_string, settings=settings) for _ in range(3)]
        try:
            for c in clients:
                assert_that(c.connect(), is_(True))
            for i, c in enumerate(clients):
                result = c.write_read('client %d' % i)
                assert_that(result.data, is_(('CLIENT %d' % i).encode('ascii')))
        finally:
            for c in clients:
                c.disconnect()
