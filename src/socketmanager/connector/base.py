class ConnectorError(Exception):
    """ Indicates an error condition with a connection. """


class InvalidConnectionStringError(ConnectorError, ValueError):
    """ The connection string is not of the form '<ipv4 address>:<port>'. """


class ConnectionNotConnectedError(ConnectorError):
    """ Indicates a connection is in the disconnected state when a connection is required. """


class ConnectFailedError(ConnectorError):
    """ The outbound connection could not be established. """


class ConnectTimeoutError(ConnectFailedError):
    """ The outbound connection was not established before the deadline. """


class ReadTimeoutError(ConnectorError, TimeoutError):
    """ The deadline elapsed before a read operation completed. """

    def __init__(self, operation, timeout):
        super().__init__("%s did not complete within %ss" % (operation, timeout))
        self.operation = operation
        self.timeout = timeout


class WriteFailedError(ConnectorError):
    """ Writing to the connection failed. """


class ListenFailedError(ConnectorError):
    """ The listener could not be bound or started. """


class AcceptFailedError(ConnectorError):
    """ A pending inbound connection could not be accepted. """


class PeerDisconnectedError(ConnectorError, ConnectionError):
    """ The peer closed the connection. """
