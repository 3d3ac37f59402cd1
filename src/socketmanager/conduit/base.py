from abc import abstractmethod


class Conduit:
    """
    A conduit allows two-way communication over a single stream. Callers hold `lock` while reading or
    writing so that reads and writes from different threads are not interleaved.
    """

    @property
    @abstractmethod
    def lock(self):
        """ the lock that serializes access to the stream. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, the stream can be read from/written to."""
        raise NotImplementedError

    @abstractmethod
    def data_available(self) -> bool:
        """ determines if data can be read immediately without blocking. """
        raise NotImplementedError

    @abstractmethod
    def wait_readable(self, timeout) -> bool:
        """ waits up to timeout seconds for the stream to become readable. """
        raise NotImplementedError

    @abstractmethod
    def receive(self, size) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def send(self, data):
        raise NotImplementedError

    @abstractmethod
    def peer_closed(self) -> bool:
        """ determines if the other end has closed the stream. """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError
