"""
The conduit package provides an abstraction of a bi-directional stream to an endpoint.
SocketConduit is the implementation over a connected TCP socket.
"""
