"""Built-in collaborators: transports and observers."""

from telemetry_relay.plugins.observers import CollectingObserver, CompositeObserver, LoggingObserver
from telemetry_relay.plugins.transports import HTTPTransport

__all__ = [
    "CollectingObserver",
    "CompositeObserver",
    "HTTPTransport",
    "LoggingObserver",
]
