"""
Threading and event primitives shared by the socket manager components.
"""
