import logging
import select
import socket

from socketmanager.conduit.socket_conduit import SocketConduit
from socketmanager.connector.base import AcceptFailedError, ListenFailedError
from socketmanager.endpoint import TCPEndpoint
from socketmanager.events import ClientConnectedEvent, NotificationSink
from socketmanager.support.loop import AsyncLoop

logger = logging.getLogger(__name__)


class Listener:
    """
    A socket bound to an endpoint that accepts inbound connections.
    Accepted connections are returned as conduits.
    """
    def __init__(self, endpoint: TCPEndpoint, backlog=5, send_timeout=0.5, receive_timeout=0.5):
        self.endpoint = endpoint
        self.backlog = backlog
        self.send_timeout = send_timeout
        self.receive_timeout = receive_timeout
        self.sock = None

    @property
    def open(self):
        return self.sock is not None and self.sock.fileno() >= 0

    @property
    def address(self):
        """ the (address, port) actually bound, which differs from the endpoint when port 0 is used. """
        return self.sock.getsockname() if self.open else None

    def start(self):
        """
        Binds and starts listening.
        :raises ListenFailedError: when the endpoint cannot be bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(self.endpoint.address)
            sock.listen(self.backlog)
        except OSError as e:
            sock.close()
            raise ListenFailedError("unable to listen on %s: %s" % (self.endpoint, e)) from e
        self.sock = sock
        logger.info("listening on %s:%d" % self.address)

    def wait_pending(self, timeout) -> bool:
        """ waits up to timeout seconds for a connection to be pending. """
        if not self.open:
            return False
        readable, _, _ = select.select([self.sock], [], [], timeout)
        return bool(readable)

    def accept(self) -> SocketConduit:
        try:
            client, address = self.sock.accept()
        except OSError as e:
            raise AcceptFailedError("unable to accept on %s: %s" % (self.endpoint, e)) from e
        client.setblocking(True)
        logger.info("accepted connection from %s:%d" % address)
        return SocketConduit(client, self.send_timeout, self.receive_timeout)

    def close(self):
        sock = self.sock
        self.sock = None
        if sock is not None:
            sock.close()


class AcceptLoop(AsyncLoop):
    """
    Accepts pending connections on a background thread and fires a client_connected event for each,
    in the order they were accepted. The events are dispatched without blocking the loop.
    Accept failures are passed to on_error; the loop keeps running while the listener is open.
    """
    def __init__(self, source, listener: Listener, sink: NotificationSink, poll_interval=0.05, on_error=None):
        super().__init__(name='accept-%s' % listener.endpoint, log=logger)
        self.source = source
        self.listener = listener
        self.sink = sink
        self.poll_interval = poll_interval
        self.on_error = on_error

    def loop(self):
        if not self.listener.open:
            self.request_stop()
        elif self.listener.wait_pending(self.poll_interval):
            self._accept()

    def _accept(self):
        conduit = self.listener.accept()
        self.sink.client_connected.fire(ClientConnectedEvent(self.source, conduit))

    def shutdown(self):
        """ accepts the connections still queued on the listener, so none is dropped when it closes. """
        count = 0
        while self.listener.wait_pending(0):
            self._accept()
            count += 1
        if count:
            logger.debug("accepted %d queued connections on %s while stopping" % (count, self.listener.endpoint))

    def exception_handler(self, e):
        if not self.running() or not self.listener.open:
            logger.debug("accept loop stopping: %s" % e)
            return False
        logger.warning(str(e))
        if self.on_error is not None:
            self.on_error(e)
        return True
