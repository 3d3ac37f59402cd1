import functools
import logging
import threading

from socketmanager.connector.base import ConnectFailedError, ConnectionNotConnectedError, ListenFailedError
from socketmanager.connector.socketconn import TimeoutConnector
from socketmanager.endpoint import EndpointState, TCPEndpoint
from socketmanager.events import ErrorEvent, NotificationSink, SocketListener, StateChangedEvent
from socketmanager.listener import AcceptLoop, Listener
from socketmanager.receiver import ReceiveLoop
from socketmanager.settings import SocketSettings
from socketmanager.stream import StreamReader, StreamWriter, WriteReadResult, parse_messages

logger = logging.getLogger(__name__)


def _or_default(timeout, default):
    return default if timeout is None else timeout


class SocketManager:
    """
    Manages one TCP connection to, or listener on, the endpoint given by a connection string
    ('<ipv4 address>:<port>').

    Foreground reads and writes block until their deadline. The receive loop and the accept loop run
    on background threads and report through the notification sink. All access to the connection,
    from any thread, is serialized on the connection's lock.

    Used as a context manager, the manager is torn down on exit.
    """

    def __init__(self, connection_string, sink: NotificationSink=None, settings: SocketSettings=None,
                 listener: SocketListener=None):
        """
        :param connection_string: the endpoint, e.g. '127.0.0.1:8000'
        :param sink: receives the notifications. A new sink is created when none is given.
        :param settings: buffer size and timeouts. The defaults are used when none are given.
        :param listener: registered with the sink for all notifications
        :raises InvalidConnectionStringError: when the connection string is malformed
        """
        self.endpoint = TCPEndpoint.from_connection_string(connection_string)
        self.connection_string = connection_string
        self.settings = settings if settings is not None else SocketSettings()
        self.sink = sink if sink is not None else NotificationSink()
        if listener is not None:
            self.sink.add_listener(listener)
        self.connect_timeout = self.settings.connect_timeout
        self.last_error = None
        self._state = EndpointState.NONE
        self._lock = threading.RLock()
        self._teardown_lock = threading.RLock()
        self._conduit = None
        self._reader = None
        self._writer = None
        self._listener = None
        self._accept_loop = None
        self._receive_loop = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    def __str__(self):
        return "SocketManager(%s)" % self.connection_string

    @property
    def address(self):
        return self.endpoint.ip_address

    @property
    def port(self):
        return self.endpoint.port

    @property
    def buffer_size(self):
        return self.settings.buffer_size

    @property
    def send_timeout(self):
        return self.settings.send_timeout

    @property
    def receive_timeout(self):
        return self.settings.receive_timeout

    @property
    def state(self) -> EndpointState:
        return self._state

    @property
    def connected(self) -> bool:
        conduit = self._conduit
        return EndpointState.CONNECTED in self._state and conduit is not None and conduit.open

    @property
    def listening(self) -> bool:
        return EndpointState.LISTENING in self._state

    @property
    def receiving(self) -> bool:
        return EndpointState.RECEIVING in self._state

    @property
    def listen_address(self):
        """ the (address, port) the listener is bound to, or None when not listening. """
        listener = self._listener
        return listener.address if listener is not None else None

    def _set_state(self, flag, on):
        with self._lock:
            self._state = (self._state | flag) if on else (self._state & ~flag)

    def _report_error(self, e):
        self.last_error = e
        try:
            self.sink.error.fire(ErrorEvent(self, e))
        except Exception:
            logger.exception("error handler failed for %s" % e)

    # connection

    def connect(self, with_timeout=True, timeout=None) -> bool:
        """
        Opens the connection. Failures are not raised: they are passed to the error handlers and
        False is returned, leaving the manager disconnected.
        :param with_timeout: when False, blocks until the operating system gives up
        :param timeout: seconds to wait for the connection. This becomes the manager's connect_timeout.
        :return: True if connected
        """
        if timeout is not None:
            self.connect_timeout = timeout
        if self.connected:
            return True
        self._release_conduit()
        connector = TimeoutConnector(self.endpoint, self.send_timeout, self.receive_timeout)
        try:
            conduit = connector.connect(self.connect_timeout if with_timeout else None)
        except ConnectFailedError as e:
            self._report_error(e)
            return False
        self._install(conduit)
        self.sink.connect_state.fire(StateChangedEvent(self, True))
        return True

    def _install(self, conduit):
        settings = self.settings
        with self._lock:
            self._conduit = conduit
            self._reader = StreamReader(conduit, settings.buffer_size, settings.encoding, settings.message_pause)
            self._writer = StreamWriter(conduit, self._reader, settings.encoding)
            self._set_state(EndpointState.CONNECTED, True)

    def _release_conduit(self):
        """ closes the connection once any read or write in progress has finished. """
        with self._lock:
            conduit = self._conduit
            self._conduit = self._reader = self._writer = None
            self._set_state(EndpointState.CONNECTED, False)
        if conduit is None:
            return False
        try:
            with conduit.lock:
                conduit.close()
            logger.info("closed %s" % conduit)
        except OSError as e:
            self._report_error(e)
        return True

    def disconnect(self):
        """
        Tears down the manager: stops the receive loop and the listener, clears the data, listen and
        client-connected handlers, closes the connection, fires connect_state(False) and then clears the
        connect-state and error handlers. Calling this when already torn down does nothing.
        """
        with self._teardown_lock:
            self._teardown()

    def _teardown(self):
        if self._conduit is None and self._listener is None and self._receive_loop is None:
            logger.debug("%s already torn down" % self)
            return
        self.stop_receive(force=True)
        self.stop_listen()
        self.sink.clear('data_received', 'listen_state', 'client_connected')
        self._release_conduit()
        try:
            self.sink.connect_state.fire(StateChangedEvent(self, False))
        except Exception as e:
            self._report_error(e)
        finally:
            self.sink.clear('connect_state')
            self.sink.clear('error')
            self.sink.close()

    def _peer_closed(self):
        """ called from the receive loop. Skipped when a teardown is already under way. """
        if self._teardown_lock.acquire(blocking=False):
            try:
                self._teardown()
            finally:
                self._teardown_lock.release()

    # listening

    def listen(self) -> bool:
        """
        Binds to the endpoint and starts accepting connections on a background thread.
        Each accepted connection is fired as a client_connected event.
        :return: True if listening. Failures are passed to the error handlers.
        """
        settings = self.settings
        with self._lock:
            if self.listening:
                return True
            listener = Listener(self.endpoint, settings.backlog, settings.send_timeout, settings.receive_timeout)
            try:
                listener.start()
            except ListenFailedError as e:
                self._report_error(e)
                return False
            loop = AcceptLoop(self, listener, self.sink, settings.poll_interval, on_error=self._report_error)
            self._listener = listener
            self._accept_loop = loop
            self._set_state(EndpointState.LISTENING, True)
        self.sink.reopen()
        loop.start()
        self.sink.listen_state.fire(StateChangedEvent(self, True))
        return True

    def stop_listen(self):
        """
        Stops accepting connections and closes the listener. Does nothing when not listening.
        """
        with self._lock:
            loop, listener = self._accept_loop, self._listener
            self._accept_loop = self._listener = None
            was_listening = self.listening
            self._set_state(EndpointState.LISTENING, False)
        if loop is not None:
            loop.stop(self.settings.stop_grace)
        if listener is not None:
            try:
                listener.close()
            except OSError as e:
                self._report_error(e)
        if was_listening:
            logger.info("stopped listening on %s" % self.endpoint)
            self.sink.listen_state.fire(StateChangedEvent(self, False))

    # receive loop

    def start_receive(self, conduit=None) -> bool:
        """
        Starts reading messages on a background thread. Each message is fired as a data_received event.
        :param conduit: an accepted connection to adopt. Only possible when the manager is not connected.
        :return: False if there is no connection to receive from.
        """
        settings = self.settings
        with self._lock:
            if conduit is not None:
                if self.connected:
                    return False
                self._release_conduit()
                self._install(conduit)
                self.sink.connect_state.fire(StateChangedEvent(self, True))
            elif not self.connected:
                return False
            if self._receive_loop is not None:
                return True
            loop = ReceiveLoop(self, self._reader, self.sink, settings.read_timeout, settings.poll_interval,
                               on_peer_closed=self._peer_closed, on_error=self._report_error)
            loop.on_stopped = functools.partial(self._receive_stopped, loop)
            self._receive_loop = loop
            self._set_state(EndpointState.RECEIVING, True)
        loop.start()
        return True

    def _receive_stopped(self, loop):
        with self._lock:
            if self._receive_loop is loop:
                self._receive_loop = None
                self._set_state(EndpointState.RECEIVING, False)

    def stop_receive(self, force=False) -> bool:
        """
        Stops the receive loop and waits up to the grace period for it to exit.
        :param force: when False, the loop is left running if there are data_received handlers.
        :return: False if the loop was left running.
        """
        loop = self._receive_loop
        if loop is None:
            return True
        if not force and len(self.sink.data_received):
            logger.debug("receive loop on %s left running for its data handlers" % self)
            return False
        loop.stop(self.settings.stop_grace)
        self._receive_stopped(loop)
        return True

    # reading and writing

    def _stream_reader(self) -> StreamReader:
        reader = self._reader
        if reader is None or not self.connected:
            raise ConnectionNotConnectedError("%s is not connected" % self)
        return reader

    def raw_read(self, timeout=None) -> str:
        return self._stream_reader().raw_read(_or_default(timeout, self.settings.read_timeout))

    def read_until(self, terminator, timeout=None) -> str:
        return self._stream_reader().read_until(terminator, _or_default(timeout, self.settings.read_timeout))

    def read_line(self, timeout=None) -> str:
        return self._stream_reader().read_line(_or_default(timeout, self.settings.read_timeout))

    def read_message(self, timeout=None) -> str:
        return self._stream_reader().read_message(_or_default(timeout, self.settings.read_timeout))

    def read_bytes(self, wait_for_data=False, timeout=None) -> bytes:
        return self._stream_reader().read_bytes(wait_for_data, _or_default(timeout, self.settings.bytes_timeout))

    parse_messages = staticmethod(parse_messages)

    def write(self, data, pause=None) -> bool:
        """
        Writes text or bytes. Returns False, rather than raising, when the write fails.
        :param pause: seconds to wait after writing
        """
        writer = self._writer
        if writer is None or not self.connected:
            logger.warning("write to %s failed: not connected" % self)
            return False
        return writer.write(data, pause)

    def write_read(self, data, timeout=None) -> WriteReadResult:
        """
        Writes data and reads the response. Failures are described by the result, never raised.
        """
        writer = self._writer
        if writer is None or not self.connected:
            return WriteReadResult(False, error=ConnectionNotConnectedError("%s is not connected" % self))
        return writer.write_read(data, _or_default(timeout, self.settings.bytes_timeout))
