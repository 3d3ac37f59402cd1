import socket
import sys
import threading
import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, is_not

from socketmanager.conduit.socket_conduit import SocketConduit


def debug_timeout(value):
    """
    Replaces the timeout value with a very large one if the tests are running under a debugger.
    This prevents the main thread from throwing an exception and exiting when the test times out
    due to a breakpoint.
    """
    return value if sys.gettrace() is None else 100000


def conduit_pair():
    """
    Creates a conduit connected to a plain socket, which plays the peer.
    :return: (conduit, peer socket)
    """
    a, b = socket.socketpair()
    b.settimeout(5)
    return SocketConduit(a), b


class SocketConduitTest(unittest.TestCase):

    def setUp(self):
        self.sut, self.peer = conduit_pair()

    def tearDown(self):
        self.sut.close()
        self.peer.close()

    def test_constructor(self):
        sock = Mock()
        sock.getpeername.side_effect = OSError()
        sut = SocketConduit(sock, 1, 2)
        assert_that(sut.sock, is_(sock))
        assert_that(sut.send_timeout, is_(1))
        assert_that(sut.receive_timeout, is_(2))
        assert_that(sut.peer, is_(None))
        assert_that(sut.lock, is_not(None))

    def test_open(self):
        assert_that(self.sut.open, is_(True))
        self.sut.close()
        assert_that(self.sut.open, is_(False))

    def test_no_data_available(self):
        assert_that(self.sut.data_available(), is_(False))
        assert_that(self.sut.wait_readable(0.01), is_(False))

    def test_data_available(self):
        self.peer.sendall(b'abc')
        assert_that(self.sut.wait_readable(1), is_(True))
        assert_that(self.sut.data_available(), is_(True))
        # peeking does not consume the data
        assert_that(self.sut.receive(10), is_(b'abc'))
        assert_that(self.sut.data_available(), is_(False))

    def test_send(self):
        self.sut.send(b'hello')
        assert_that(self.peer.recv(10), is_(b'hello'))

    def test_send_sets_send_timeout(self):
        sock = Mock()
        sut = SocketConduit(sock, send_timeout=0.25)
        sut.send(b'x')
        sock.settimeout.assert_called_once_with(0.25)
        sock.sendall.assert_called_once_with(b'x')

    def test_receive_sets_receive_timeout(self):
        sock = Mock()
        sock.recv.return_value = b'y'
        sut = SocketConduit(sock, receive_timeout=0.75)
        assert_that(sut.receive(3), is_(b'y'))
        sock.settimeout.assert_called_once_with(0.75)
        sock.recv.assert_called_once_with(3)

    def test_peer_open(self):
        assert_that(self.sut.peer_closed(), is_(False))
        self.peer.sendall(b'data')
        self.sut.wait_readable(1)
        assert_that(self.sut.peer_closed(), is_(False))

    def test_peer_closed(self):
        self.peer.close()
        self.sut.wait_readable(1)
        assert_that(self.sut.peer_closed(), is_(True))
        assert_that(self.sut.data_available(), is_(False))

    def test_closed_conduit_reports_peer_closed(self):
        self.sut.close()
        assert_that(self.sut.peer_closed(), is_(True))
        assert_that(self.sut.wait_readable(0), is_(False))

    def test_close_tolerates_shutdown_error(self):
        sock = Mock()
        sock.shutdown.side_effect = OSError("not connected")
        sut = SocketConduit(sock)
        sut.close()
        sock.close.assert_called_once()

    def test_lock_is_reentrant(self):
        with self.sut.lock:
            with self.sut.lock:
                pass

    def test_lock_excludes_other_threads(self):
        acquired = []
        with self.sut.lock:
            t = threading.Thread(target=lambda: acquired.append(self.sut.lock.acquire(timeout=0.05)))
            t.start()
            t.join()
        assert_that(acquired, is_([False]))
