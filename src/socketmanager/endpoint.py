import enum
import ipaddress

from socketmanager.connector.base import InvalidConnectionStringError

separator = ':'


class EndpointState(enum.Flag):
    """ The status of a socket manager. The flags combine, e.g. a manager can be connected and receiving. """
    NONE = 0
    CONNECTED = enum.auto()
    LISTENING = enum.auto()
    RECEIVING = enum.auto()


def generate_connection_string(ip, port):
    """
    >>> generate_connection_string('127.0.0.1', 80)
    '127.0.0.1:80'
    """
    return str(ip) + separator + str(port)


def parse_connection_string(connection_string):
    """
    Splits a connection string into the address and port.
    :raises InvalidConnectionStringError: when the string is not '<ipv4 address>:<port>'
    >>> parse_connection_string('10.0.0.1:8080')
    ('10.0.0.1', 8080)
    """
    if not isinstance(connection_string, str) or connection_string.count(separator) != 1:
        raise InvalidConnectionStringError("expected exactly one '%s' in %r" % (separator, connection_string))
    address, port = connection_string.split(separator)
    try:
        ipaddress.IPv4Address(address)
    except ValueError as e:
        raise InvalidConnectionStringError("invalid address %r" % address) from e
    if not port.isdigit() or not port.isascii():
        raise InvalidConnectionStringError("invalid port %r" % port)
    port = int(port)
    if port > 65535:
        raise InvalidConnectionStringError("port %d out of range" % port)
    return address, port


def validate_connection_string(connection_string) -> bool:
    try:
        parse_connection_string(connection_string)
        return True
    except InvalidConnectionStringError:
        return False


class TCPEndpoint:
    """
    Describes the address and port a socket manager connects to or listens on.
    """
    def __init__(self, ip_address, port):
        self.ip_address = ip_address
        self.port = port

    @staticmethod
    def from_connection_string(connection_string):
        return TCPEndpoint(*parse_connection_string(connection_string))

    @property
    def address(self):
        """ the (host, port) pair used by the socket module """
        return self.ip_address, self.port

    def key(self):
        """
        >>> TCPEndpoint('127.0.0.1', 55).key()
        '127.0.0.1:55'
        """
        return generate_connection_string(self.ip_address, self.port)

    def __str__(self):
        return self.key()
