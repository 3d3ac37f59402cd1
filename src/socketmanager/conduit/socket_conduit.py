import select
import socket
import threading

from socketmanager.conduit import base


def _peer_name(sock):
    try:
        return sock.getpeername()
    except OSError:
        return None


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a connected socket.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket, send_timeout=0.5, receive_timeout=0.5):
        """
        :param sock: the client socket that represents the connection
        :param send_timeout: seconds a single send may block before failing
        :param receive_timeout: seconds a single receive may block before failing
        """
        self.sock = sock
        self.send_timeout = send_timeout
        self.receive_timeout = receive_timeout
        self.peer = _peer_name(sock)
        self._lock = threading.RLock()

    @property
    def lock(self):
        return self._lock

    @property
    def open(self) -> bool:
        return self.sock.fileno() >= 0

    def wait_readable(self, timeout) -> bool:
        if not self.open:
            return False
        readable, _, _ = select.select([self.sock], [], [], max(0, timeout))
        return bool(readable)

    def data_available(self) -> bool:
        """ True when at least one byte can be received without blocking.
            A readable socket with nothing to peek has reached end of stream. """
        if not self.wait_readable(0):
            return False
        return len(self.sock.recv(1, socket.MSG_PEEK)) > 0

    def receive(self, size) -> bytes:
        self.sock.settimeout(self.receive_timeout)
        return self.sock.recv(size)

    def send(self, data):
        self.sock.settimeout(self.send_timeout)
        self.sock.sendall(data)

    def peer_closed(self) -> bool:
        if not self.open:
            return True
        try:
            if not self.wait_readable(0):
                return False
            return len(self.sock.recv(1, socket.MSG_PEEK)) == 0
        except OSError:
            # reset by peer
            return True

    def close(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass    # the peer may have closed the socket already
        finally:
            self.sock.close()

    def __str__(self):
        return "SocketConduit(%s)" % (self.peer,)
