import errno
import logging
import os
import select
import socket

from socketmanager.conduit.socket_conduit import SocketConduit
from socketmanager.connector.base import ConnectFailedError, ConnectTimeoutError
from socketmanager.endpoint import TCPEndpoint

logger = logging.getLogger(__name__)


class TimeoutConnector:
    """
    Opens an outbound TCP connection to an endpoint, optionally bounded by a deadline.
    The socket is closed on every failure, so no half-open connection outlives a failed attempt.
    """
    def __init__(self, endpoint: TCPEndpoint, send_timeout=0.5, receive_timeout=0.5, sock_args=()):
        """
        :param endpoint: the address to connect to
        :param send_timeout: passed on to the conduit
        :param receive_timeout: passed on to the conduit
        :param sock_args: arguments for the socket.socket() call
        """
        self.endpoint = endpoint
        self.send_timeout = send_timeout
        self.receive_timeout = receive_timeout
        self._sock_args = sock_args

    def connect(self, timeout=None) -> SocketConduit:
        """
        Connects to the endpoint.
        :param timeout: seconds to wait for the connection, or None to block until the OS gives up
        :raises ConnectTimeoutError: if the deadline elapsed first
        :raises ConnectFailedError: if the connection was refused or otherwise failed
        """
        sock = socket.socket(*self._sock_args)
        connected = False
        try:
            if timeout is None:
                self._connect_blocking(sock)
            else:
                self._connect_with_timeout(sock, timeout)
            connected = True
        finally:
            if not connected:
                sock.close()
        logger.info("opened socket to %s" % self.endpoint)
        return SocketConduit(sock, self.send_timeout, self.receive_timeout)

    def _connect_blocking(self, sock):
        try:
            sock.connect(self.endpoint.address)
        except OSError as e:
            logger.warning("error opening socket to %s: %s" % (self.endpoint, e))
            raise ConnectFailedError("unable to connect to %s" % self.endpoint) from e

    def _connect_with_timeout(self, sock, timeout):
        sock.setblocking(False)
        result = sock.connect_ex(self.endpoint.address)
        if result not in (0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EALREADY):
            self._failed(result)
        if result != 0:
            _, writable, _ = select.select([], [sock], [], timeout)
            if not writable:
                logger.warning("connection to %s timed out after %ss" % (self.endpoint, timeout))
                raise ConnectTimeoutError("connection to %s timed out after %ss" % (self.endpoint, timeout))
            result = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
            if result:
                self._failed(result)
        sock.setblocking(True)

    def _failed(self, error):
        e = OSError(error, os.strerror(error))
        logger.warning("error opening socket to %s: %s" % (self.endpoint, e))
        raise ConnectFailedError("unable to connect to %s" % self.endpoint) from e
