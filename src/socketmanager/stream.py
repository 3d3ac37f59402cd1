"""
Deadline-bounded read and write primitives over a conduit.

Every operation holds the conduit lock while it touches the stream, so a read and a write from
different threads never interleave on the wire. Deadlines are measured from the start of the call.
"""
import logging
import re
import time

from socketmanager.conduit.base import Conduit
from socketmanager.connector.base import ConnectorError, PeerDisconnectedError, ReadTimeoutError, \
    WriteFailedError
from socketmanager.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

line_terminators = (b'\n', b'\r')


def parse_messages(text):
    """
    Splits text into its non-empty lines.
    >>> parse_messages('a\\nb\\r\\nc')
    ['a', 'b', 'c']
    """
    return [m for m in re.split('[\r\n]', text) if m]


class StreamCodec:
    """ converts between the text used by callers and the bytes on the stream. """
    def __init__(self, encoding='ascii'):
        self.encoding = encoding

    def encode(self, data) -> bytes:
        if isinstance(data, str):
            return data.encode(self.encoding)
        return bytes(data)

    def decode(self, data) -> str:
        return bytes(data).decode(self.encoding, errors='replace')


class StreamReader(StreamCodec):
    """
    Reads from a conduit. Each read returns whatever has arrived once the stream goes quiet,
    and raises ReadTimeoutError when its deadline elapses first.
    """

    def __init__(self, conduit: Conduit, buffer_size=1024, encoding='ascii', pause=0.005, clock=time.monotonic):
        """
        :param buffer_size: the most bytes received by a single socket read
        :param pause: seconds read_message() waits between reads for more data to arrive
        :param clock: returns the current time in seconds
        """
        super().__init__(encoding)
        self.conduit = conduit
        self.buffer_size = buffer_size
        self.pause = pause
        self.clock = clock

    def check_deadline(self, started, timeout, operation):
        if self.clock() - started >= timeout:
            raise ReadTimeoutError(operation, timeout)

    def wait_for_data(self, started, timeout, operation):
        """
        Blocks until data can be read, the deadline elapses or the peer closes the stream.
        :raises ReadTimeoutError: the deadline elapsed
        :raises PeerDisconnectedError: the stream reached its end or was reset
        """
        while True:
            remaining = timeout - (self.clock() - started)
            try:
                readable = remaining > 0 and self.conduit.wait_readable(remaining)
                available = readable and self.conduit.data_available()
            except ConnectionError as e:
                raise self._connection_lost(operation, e) from e
            if not readable:
                raise ReadTimeoutError(operation, timeout)
            if available:
                return
            if self.conduit.peer_closed():
                raise PeerDisconnectedError("peer closed %s during %s" % (self.conduit, operation))

    def _connection_lost(self, operation, e):
        return PeerDisconnectedError("connection %s lost during %s: %s" % (self.conduit, operation, e))

    def drain(self, timeout, operation, started=None) -> bytes:
        """
        Receives everything that is immediately available.
        :raises PeerDisconnectedError: the connection was reset
        """
        if started is None:
            started = self.clock()
        data = bytearray()
        with self.conduit.lock:
            while True:
                try:
                    if not (self.conduit.open and self.conduit.data_available()):
                        break
                    chunk = self.conduit.receive(self.buffer_size)
                except ConnectionError as e:
                    raise self._connection_lost(operation, e) from e
                if not chunk:
                    break
                data += chunk
                self.check_deadline(started, timeout, operation)
        return bytes(data)

    def raw_read(self, timeout=45.0) -> str:
        """
        Reads the data that is available now, without waiting for more.
        :return: the text received, which is empty when nothing was pending.
        """
        return self.decode(self.drain(timeout, 'raw_read'))

    def read_until(self, terminator, timeout=45.0) -> str:
        """
        Reads until the text received contains the terminator.
        The result may extend past the terminator if more data arrived in the same read.
        """
        started = self.clock()
        target = self.encode(terminator)
        data = bytearray()
        with self.conduit.lock:
            while target not in data:
                self.wait_for_data(started, timeout, 'read_until')
                data += self.drain(timeout, 'read_until', started)
        return self.decode(data)

    def read_line(self, timeout=45.0) -> str:
        """
        Reads a byte at a time up to and including the first line feed or carriage return.
        """
        started = self.clock()
        line = bytearray()
        with self.conduit.lock:
            while True:
                self.wait_for_data(started, timeout, 'read_line')
                try:
                    byte = self.conduit.receive(1)
                except ConnectionError as e:
                    raise self._connection_lost('read_line', e) from e
                if not byte:
                    raise PeerDisconnectedError("peer closed %s during read_line" % self.conduit)
                line += byte
                if byte in line_terminators:
                    return self.decode(line)

    def read_message(self, timeout=45.0) -> str:
        """
        Reads until the stream stays quiet for the pause interval.
        """
        started = self.clock()
        data = bytearray()
        with self.conduit.lock:
            while True:
                data += self.drain(timeout, 'read_message', started)
                time.sleep(self.pause)
                try:
                    if not self.conduit.data_available():
                        break
                except ConnectionError as e:
                    raise self._connection_lost('read_message', e) from e
                self.check_deadline(started, timeout, 'read_message')
            self.check_deadline(started, timeout, 'read_message')
        return self.decode(data)

    def read_bytes(self, wait_for_data=False, timeout=3.0) -> bytes:
        """
        Reads the bytes that are available now.
        :param wait_for_data: when True, waits for data to arrive before reading
        """
        started = self.clock()
        with self.conduit.lock:
            if wait_for_data:
                self.wait_for_data(started, timeout, 'read_bytes')
            return self.drain(timeout, 'read_bytes', started)


class WriteReadResult(CommonEqualityMixin):
    """ The outcome of StreamWriter.write_read(). Truthy when the exchange succeeded. """

    def __init__(self, ok, data=b'', error=None):
        self.ok = ok
        self.data = data
        self.error = error

    def __bool__(self):
        return self.ok

    def __repr__(self):
        return "WriteReadResult(ok=%r, data=%r, error=%r)" % (self.ok, self.data, self.error)


class StreamWriter(StreamCodec):
    """
    Writes to a conduit. Write failures are logged and reported as a False result rather than raised,
    so callers can retry.
    """

    def __init__(self, conduit: Conduit, reader: StreamReader, encoding='ascii'):
        """
        :param reader: used to collect responses in write_read()
        """
        super().__init__(encoding)
        self.conduit = conduit
        self.reader = reader

    def _send(self, data):
        try:
            payload = self.encode(data)
            with self.conduit.lock:
                self.conduit.send(payload)
        except (OSError, ValueError) as e:
            raise WriteFailedError("write to %s failed: %s" % (self.conduit, e)) from e
        logger.debug("wrote %d bytes to %s" % (len(payload), self.conduit))

    def write(self, data, pause=None) -> bool:
        """
        Writes all of data.
        :param data: text, which is encoded, or bytes
        :param pause: seconds to sleep after a successful write, for peers that need time to respond
        :return: True if the data was written
        """
        try:
            self._send(data)
        except WriteFailedError as e:
            logger.warning(str(e))
            return False
        if pause:
            time.sleep(pause)
        return True

    def write_read(self, data, timeout=3.0) -> WriteReadResult:
        """
        Writes data and then reads the response, holding the stream for the whole exchange.
        Never raises: failures are described by the result.
        """
        reader = self.reader
        started = reader.clock()
        try:
            with self.conduit.lock:
                self._send(data)
                reader.wait_for_data(started, timeout, 'write_read')
                response = reader.drain(timeout, 'write_read', started)
        except (ConnectorError, OSError, ValueError) as e:
            logger.warning("write_read on %s failed: %s" % (self.conduit, e))
            return WriteReadResult(False, error=e)
        return WriteReadResult(True, response)
