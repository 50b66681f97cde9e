"""Transport layer: TCP connection with deadline-bounded telegram reads."""

from .tcp_connection import DEFAULT_PORT, DEFAULT_TIMEOUT, TCPConnection
