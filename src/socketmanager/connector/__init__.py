"""
Connectors open conduits to endpoints. This package also defines the errors raised by
the socket manager components.
"""
