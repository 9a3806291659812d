"""Built-in transports.

Available transports:
- HTTPTransport: httpx-based POST to an ingest endpoint
"""

from telemetry_relay.plugins.transports.encoding import build_payload, encode_batch
from telemetry_relay.plugins.transports.http import HTTPTransport, classify_response, parse_retry_after

__all__ = [
    "HTTPTransport",
    "build_payload",
    "classify_response",
    "encode_batch",
    "parse_retry_after",
]
