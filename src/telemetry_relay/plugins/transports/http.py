# src/telemetry_relay/plugins/transports/http.py
"""HTTP transport: POSTs encoded batches and classifies the response.

Response classification:
- 2xx: Success
- 413 Payload Too Large: SplitRequested
- 429 with a usable Retry-After: RequestedWait(seconds)
- 408, 429 without Retry-After, 5xx: BackoffRequested
- anything else (3xx, other 4xx): PermanentFailure
- connection errors and timeouts (httpx.TransportError): BackoffRequested

send() never raises for remote failures; every response becomes a signal.
"""

from __future__ import annotations

import gzip
from collections.abc import Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
import structlog

from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.errors import TransportConfigError
from telemetry_relay.contracts.signals import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    Signal,
    SplitRequested,
    Success,
)
from telemetry_relay.plugins.transports.encoding import encode_batch

if TYPE_CHECKING:
    from telemetry_relay.core.config import TransportSettings

logger = structlog.get_logger(__name__)

# Statuses that are worth retrying with backoff even though they are 4xx
RETRYABLE_CLIENT_ERROR_CODES: frozenset[int] = frozenset({408, 429})


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header into seconds.

    Accepts delta-seconds ("120") or an HTTP-date. Dates in the past
    yield 0. Unparseable or negative values yield None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.isdigit():
        return float(int(value))
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    current = now if now is not None else datetime.now(tz=UTC)
    return max(0.0, (when - current).total_seconds())


def classify_response(response: httpx.Response) -> Signal:
    """Map an HTTP response to a send signal."""
    status = response.status_code
    reason = f"HTTP {status}"
    if 200 <= status < 300:
        return Success(reason=reason)
    if status == 413:
        return SplitRequested(reason=reason)
    if status == 429:
        wait = parse_retry_after(response.headers.get("Retry-After"))
        if wait is not None:
            return RequestedWait(duration_seconds=wait, reason=f"{reason} Retry-After")
        return BackoffRequested(reason=reason)
    if status in RETRYABLE_CLIENT_ERROR_CODES or status >= 500:
        return BackoffRequested(reason=reason)
    return PermanentFailure(reason=f"{reason}: {response.text[:200]}", status_code=status)


class HTTPTransport:
    """Transport backed by a shared httpx.Client.

    httpx.Client pools connections and is safe to share across the
    dispatcher's worker threads.

    Example:
        transport = HTTPTransport(
            "https://metric-api.example.com/metric/v1",
            api_key="...",
        )
        signal = transport.send(batch)
    """

    _name = "http"

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        gzip_body: bool = True,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
        encoder: Callable[[TelemetryBatch[Any]], bytes] = encode_batch,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: Absolute http(s) ingest URL
            api_key: Sent as the Api-Key header when given
            timeout: Per-request timeout in seconds
            gzip_body: Compress request bodies with gzip
            headers: Extra headers sent with every request
            client: Pre-built client (tests pass one with httpx.MockTransport).
                The transport only closes clients it created.
            encoder: Batch to bytes encoder

        Raises:
            TransportConfigError: If endpoint is not an absolute http(s) URL
        """
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise TransportConfigError(self._name, f"endpoint must be an absolute http(s) URL, got {endpoint!r}")
        self._endpoint = endpoint
        self._gzip = gzip_body
        self._encoder = encoder

        default_headers = {"Content-Type": "application/json", **(headers or {})}
        if api_key:
            default_headers["Api-Key"] = api_key
        if gzip_body:
            default_headers["Content-Encoding"] = "gzip"

        self._owns_client = client is None
        if client is None:
            client = httpx.Client(timeout=timeout)
        self._client = client
        self._headers = default_headers
        self._closed = False

    @classmethod
    def from_settings(cls, settings: TransportSettings) -> HTTPTransport:
        return cls(
            settings.endpoint,
            api_key=settings.api_key,
            timeout=settings.timeout_seconds,
            gzip_body=settings.gzip,
            headers=dict(settings.headers),
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def send(self, batch: TelemetryBatch[Any]) -> Signal:
        """POST one batch and classify the result."""
        try:
            body = self._encoder(batch)
        except (TypeError, ValueError) as e:
            return PermanentFailure(reason=f"batch could not be encoded: {e}", error=e)
        if self._gzip:
            body = gzip.compress(body)

        try:
            response = self._client.post(self._endpoint, content=body, headers=self._headers)
        except httpx.TransportError as e:
            logger.debug("HTTP send failed before a response", endpoint=self._endpoint, error=str(e))
            return BackoffRequested(reason=f"{type(e).__name__}: {e}")

        signal = classify_response(response)
        logger.debug(
            "HTTP send completed",
            endpoint=self._endpoint,
            status_code=response.status_code,
            signal=str(signal.kind),
            batch_size=batch.size,
        )
        return signal

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._client.close()
