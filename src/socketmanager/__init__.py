"""
A duplex TCP socket manager.

- Conduit: one connected socket, with the lock that serializes every read and write on it.
- Connector: opens an outbound conduit, bounded by a deadline.
- StreamReader / StreamWriter: deadline-bounded reads, writes, and write-then-read exchanges.
- ReceiveLoop: reads messages on a background thread and fires data_received events.
- AcceptLoop: accepts inbound connections on a background thread and fires client_connected events.
- SocketManager: owns the conduit, the listener and the loops for one endpoint ('<ipv4>:<port>'),
  and tears them all down together.

Notifications go to a NotificationSink: one event source per kind of notification
(connect_state, receive_state, listen_state, client_connected, data_received, error).
"""
from socketmanager.endpoint import EndpointState, generate_connection_string, parse_connection_string, \
    validate_connection_string
from socketmanager.events import NotificationSink, SocketListener
from socketmanager.manager import SocketManager
from socketmanager.settings import SocketSettings

__all__ = ['EndpointState', 'NotificationSink', 'SocketListener', 'SocketManager', 'SocketSettings',
           'generate_connection_string', 'parse_connection_string', 'validate_connection_string']
