import socket
import threading
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, is_, calling, raises, instance_of, is_not, none

from socketmanager.conduit.socket_conduit import SocketConduit
from socketmanager.conduit.socket_conduit_test import debug_timeout
from socketmanager.connector.base import AcceptFailedError, ListenFailedError
from socketmanager.endpoint import TCPEndpoint
from socketmanager.events import NotificationSink
from socketmanager.listener import AcceptLoop, Listener


def loopback():
    return TCPEndpoint('127.0.0.1', 0)


def connect_to(address):
    return socket.create_connection(address, timeout=5)


class ListenerTest(unittest.TestCase):

    def setUp(self):
        self.sut = Listener(loopback())

    def tearDown(self):
        self.sut.close()

    def test_not_open_before_start(self):
        assert_that(self.sut.open, is_(False))
        assert_that(self.sut.address, is_(none()))
        assert_that(self.sut.wait_pending(0), is_(False))

    def test_start_binds_ephemeral_port(self):
        self.sut.start()
        assert_that(self.sut.open, is_(True))
        host, port = self.sut.address
        assert_that(host, is_('127.0.0.1'))
        assert_that(port, is_not(0))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_accept(self):
        self.sut.start()
        client = connect_to(self.sut.address)
        try:
            assert_that(self.sut.wait_pending(2), is_(True))
            conduit = self.sut.accept()
            assert_that(conduit, is_(instance_of(SocketConduit)))
            client.sendall(b'hi')
            assert_that(conduit.wait_readable(2), is_(True))
            assert_that(conduit.receive(16), is_(b'hi'))
            conduit.close()
        finally:
            client.close()

    def test_nothing_pending(self):
        self.sut.start()
        assert_that(self.sut.wait_pending(0.01), is_(False))

    def test_address_in_use(self):
        self.sut.start()
        other = Listener(TCPEndpoint('127.0.0.1', self.sut.address[1]))
        assert_that(calling(other.start), raises(ListenFailedError))
        assert_that(other.open, is_(False))

    def test_accept_on_closed_listener(self):
        self.sut.start()
        sock = self.sut.sock
        sock.close()
        assert_that(calling(self.sut.accept), raises(AcceptFailedError))

    def test_close_is_idempotent(self):
        self.sut.start()
        self.sut.close()
        self.sut.close()
        assert_that(self.sut.open, is_(False))


class AcceptLoopTest(unittest.TestCase):

    def setUp(self):
        self.listener = Listener(loopback())
        self.listener.start()
        self.sink = NotificationSink()
        self.sut = AcceptLoop('source', self.listener, self.sink, poll_interval=0.01)

    def tearDown(self):
        self.sut.stop(1)
        self.listener.close()
        self.sink.close()

    @timeout_decorator.timeout(debug_timeout(10))
    def test_each_connection_fires_in_order(self):
        count = 5
        accepted = []
        done = threading.Event()
        clients = []

        def on_client(event):
            accepted.append(event)
            if len(accepted) == count:
                done.set()

        self.sink.client_connected += on_client
        self.sut.start()
        try:
            for i in range(count):
                client = connect_to(self.listener.address)
                client.sendall(bytes([i]))
                clients.append(client)
            assert_that(done.wait(5), is_(True))
            received = []
            for event in accepted:
                assert_that(event.source, is_('source'))
                event.conduit.wait_readable(2)
                received.append(event.conduit.receive(1)[0])
                event.conduit.close()
            assert_that(received, is_(list(range(count))))
        finally:
            for client in clients:
                client.close()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_shutdown_accepts_queued_connections(self):
        accepted = []
        self.sink.client_connected += lambda e: accepted.append(e.conduit)
        clients = [connect_to(self.listener.address) for _ in range(3)]
        try:
            self.sut.shutdown()
            self.sink.client_connected.shutdown(wait=True)
            assert_that(len(accepted), is_(3))
            assert_that(self.listener.wait_pending(0), is_(False))
        finally:
            for conduit in accepted:
                conduit.close()
            for client in clients:
                client.close()

    @timeout_decorator.timeout(debug_timeout(5))
    def test_stops_when_listener_closes(self):
        self.sut.start()
        self.listener.close()
        self.sut.background_thread.join(2)
        assert_that(self.sut.alive, is_(False))

    def test_accept_error_reported_while_open(self):
        on_error = Mock()
        self.sut.on_error = on_error
        self.sut.stop_event.clear()
        e = AcceptFailedError("no")
        assert_that(self.sut.exception_handler(e), is_(True))
        on_error.assert_called_once_with(e)

    def test_accept_error_ignored_after_stop(self):
        on_error = Mock()
        self.sut.on_error = on_error
        self.sut.request_stop()
        assert_that(self.sut.exception_handler(AcceptFailedError("closing")), is_(False))
        on_error.assert_not_called()
