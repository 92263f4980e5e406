"""Transport implementations for converse."""

from .base import Transport
from .http import HttpTransport, create_app
from .stdio import StdioTransport

TRANSPORT_CLASSES = {
    "stdio": StdioTransport,
    "http": HttpTransport,
}

__all__ = ["Transport", "StdioTransport", "HttpTransport", "create_app", "TRANSPORT_CLASSES"]
