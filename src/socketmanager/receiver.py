import logging

from socketmanager.connector.base import PeerDisconnectedError
from socketmanager.events import DataReceivedEvent, NotificationSink, StateChangedEvent
from socketmanager.stream import StreamReader
from socketmanager.support.loop import AsyncLoop

logger = logging.getLogger(__name__)


def _no_op(*args):
    pass


class ReceiveLoop(AsyncLoop):
    """
    Reads messages from a conduit on a background thread and fires them as data_received events,
    in the order they arrive.

    Fires receive_state(True) when the thread starts and receive_state(False) once when it exits.
    When the peer closes the connection, on_peer_closed is called and the loop ends.
    Any other failure is passed to on_error and ends the loop.
    """
    def __init__(self, source, reader: StreamReader, sink: NotificationSink, read_timeout=45.0, poll_interval=0.05,
                 on_peer_closed=_no_op, on_error=_no_op, on_stopped=_no_op):
        """
        :param source: the object named as the source of the events fired
        :param read_timeout: the deadline for reading a single message
        :param poll_interval: how long to wait for data before checking for a stop request
        """
        super().__init__(name='receive-%s' % reader.conduit, log=logger)
        self.source = source
        self.reader = reader
        self.sink = sink
        self.read_timeout = read_timeout
        self.poll_interval = poll_interval
        self.on_peer_closed = on_peer_closed
        self.on_error = on_error
        self.on_stopped = on_stopped

    @property
    def conduit(self):
        return self.reader.conduit

    def startup(self):
        logger.info("receiving from %s" % self.conduit)
        self.sink.receive_state.fire(StateChangedEvent(self.source, True))

    def loop(self):
        conduit = self.conduit
        if not conduit.open:
            raise PeerDisconnectedError("%s is closed" % conduit)
        if not conduit.wait_readable(self.poll_interval):
            return
        message = self.reader.read_message(self.read_timeout)
        if message:
            self.sink.data_received.fire(DataReceivedEvent(self.source, message))
        if conduit.peer_closed():
            raise PeerDisconnectedError("peer closed %s" % conduit)

    def exception_handler(self, e):
        if not self.running():
            logger.debug("receive loop stopping: %s" % e)
        elif isinstance(e, ConnectionError):
            # includes PeerDisconnectedError and resets
            logger.info("peer disconnected from %s" % self.conduit)
            self.request_stop()
            self.on_peer_closed()
        else:
            logger.exception("receive loop on %s failed: %s" % (self.conduit, e))
            self.request_stop()
            self.on_error(e)
        return False

    def shutdown(self):
        self.on_stopped()
        logger.info("stopped receiving from %s" % self.conduit)
        self.sink.receive_state.fire(StateChangedEvent(self.source, False))
