"""
Notifications fired by a socket manager.

A NotificationSink holds one event source per kind of notification. Handlers are plain callables
that receive the event object. A SocketListener bundles handlers for every kind and can be registered
with NotificationSink.add_listener().
"""
from socketmanager.support.events import AsyncEventSource, EventSource
from socketmanager.support.mixins import CommonEqualityMixin


class SocketEvent(CommonEqualityMixin):
    """ base class for socket manager events. """
    def __init__(self, source):
        self.source = source


class StateChangedEvent(SocketEvent):
    """ A connection, receive loop or listener started (state True) or stopped (state False). """
    def __init__(self, source, state: bool):
        super().__init__(source)
        self.state = state


class DataReceivedEvent(SocketEvent):
    def __init__(self, source, message: str):
        super().__init__(source)
        self.message = message


class ClientConnectedEvent(SocketEvent):
    """ An inbound connection was accepted. The handler takes ownership of the conduit. """
    def __init__(self, source, conduit):
        super().__init__(source)
        self.conduit = conduit


class ErrorEvent(SocketEvent):
    def __init__(self, source, error: BaseException):
        super().__init__(source)
        self.error = error


class SocketListener:
    """
    A listener interface for the notifications from a socket manager.
    Subclasses override the notifications they are interested in.
    """

    def connect_state(self, event: StateChangedEvent):
        """ the connection was opened or closed. """

    def receive_state(self, event: StateChangedEvent):
        """ the receive loop started or stopped. """

    def listen_state(self, event: StateChangedEvent):
        """ the listener started or stopped. """

    def client_connected(self, event: ClientConnectedEvent):
        """
        an inbound connection was accepted. This is called on a dispatch thread,
        in the order the connections were accepted.
        """

    def data_received(self, event: DataReceivedEvent):
        """ the receive loop read a message. """

    def error(self, event: ErrorEvent):
        """ an operation failed. """


class NotificationSink:
    """
    The event sources a socket manager fires its notifications to.
    """
    channels = ('connect_state', 'receive_state', 'listen_state', 'client_connected', 'data_received', 'error')

    def __init__(self, listener: SocketListener=None):
        self.connect_state = EventSource()
        self.receive_state = EventSource()
        self.listen_state = EventSource()
        self.client_connected = AsyncEventSource('client-connected')
        self.data_received = EventSource()
        self.error = EventSource()
        if listener is not None:
            self.add_listener(listener)

    def add_listener(self, listener: SocketListener):
        for name in self.channels:
            getattr(self, name).add(getattr(listener, name))
        return self

    def remove_listener(self, listener: SocketListener):
        for name in self.channels:
            getattr(self, name).remove(getattr(listener, name))
        return self

    def clear(self, *names):
        """ removes the handlers from the named channels, or all channels when none are named. """
        for name in names or self.channels:
            getattr(self, name).clear()

    def close(self):
        """ releases the dispatch thread used for client-connected notifications. """
        self.client_connected.shutdown()

    def reopen(self):
        """ resumes client-connected notifications after close(). """
        self.client_connected.reopen()
