# src/telemetry_relay/cli.py
"""telemetry-relay command line interface.

Commands:
    validate  Load and validate a settings file
    send      Send a JSON file of records through the dispatcher
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from telemetry_relay import __version__
from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.enums import DispatchStatus, RecordKind
from telemetry_relay.contracts.records import Attributes, Count, Event, Gauge, LogEntry, Span, Summary, TelemetryRecord
from telemetry_relay.core.config import RelaySettings, load_settings
from telemetry_relay.core.logging import configure_logging
from telemetry_relay.engine.dispatcher import BatchDispatcher
from telemetry_relay.plugins.observers import CollectingObserver, CompositeObserver, LoggingObserver
from telemetry_relay.plugins.transports.http import HTTPTransport

app = typer.Typer(
    name="telemetry-relay",
    help="Deliver telemetry batches with adaptive retry.",
    no_args_is_help=True,
)

_METRIC_TYPES: dict[str, type[Count] | type[Gauge] | type[Summary]] = {
    "count": Count,
    "gauge": Gauge,
    "summary": Summary,
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"telemetry-relay version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """telemetry-relay: non-blocking telemetry delivery."""


def _load_or_exit(settings_path: Path) -> RelaySettings:
    try:
        return load_settings(settings_path.expanduser())
    except FileNotFoundError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.secho("Configuration errors:", fg=typer.colors.RED, err=True)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            typer.secho(f"  - {location}: {error['msg']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None


def _build_record(kind: RecordKind, data: dict[str, Any]) -> TelemetryRecord:
    """Build one record from its JSON form.

    Raises:
        ValueError: On unknown metric types or missing/extra fields.
    """
    fields = dict(data)
    fields["attributes"] = Attributes(fields.get("attributes") or {})
    try:
        match kind:
            case RecordKind.METRIC:
                metric_type = str(fields.pop("type", ""))
                if metric_type not in _METRIC_TYPES:
                    raise ValueError(f"unknown metric type {metric_type!r}; expected one of {sorted(_METRIC_TYPES)}")
                return _METRIC_TYPES[metric_type](**fields)
            case RecordKind.LOG:
                return LogEntry(**fields)
            case RecordKind.SPAN:
                return Span(**fields)
            case RecordKind.EVENT:
                return Event(**fields)
    except TypeError as e:
        raise ValueError(str(e)) from e
    raise ValueError(f"unsupported record kind {kind!r}")


def _read_batch(path: Path, kind: RecordKind) -> TelemetryBatch[TelemetryRecord]:
    document = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(document, dict) or not isinstance(document.get("records"), list):
        raise ValueError('expected a JSON object with a "records" list')
    records = [_build_record(kind, item) for item in document["records"]]
    return TelemetryBatch.of(records, document.get("attributes") or {})


@app.command()
def validate(
    settings_path: Path = typer.Option(..., "--settings", "-s", help="Path to settings YAML file."),
) -> None:
    """Validate a settings file without sending anything."""
    settings = _load_or_exit(settings_path)
    typer.echo(f"Settings valid: {settings_path}")
    typer.echo(f"  endpoint: {settings.transport.endpoint}")
    typer.echo(
        f"  retry: initial={settings.retry.initial_delay_seconds}s "
        f"max={settings.retry.max_delay_seconds}s jitter={settings.retry.jitter_seconds}s"
    )
    typer.echo(f"  workers: {settings.dispatcher.max_workers}")


@app.command()
def send(
    records_file: Path = typer.Argument(..., help='JSON file: {"attributes": {...}, "records": [...]}'),
    settings_path: Path = typer.Option(..., "--settings", "-s", help="Path to settings YAML file."),
    kind: RecordKind = typer.Option(RecordKind.METRIC, "--kind", "-k", help="Record family in the file."),
    timeout: float = typer.Option(60.0, "--timeout", "-t", help="Seconds to wait for delivery."),
) -> None:
    """Send one batch of records and report each terminal outcome."""
    settings = _load_or_exit(settings_path)
    configure_logging(json_output=settings.logging.json_output, level=settings.logging.level)

    try:
        batch = _read_batch(records_file.expanduser(), kind)
    except (OSError, ValueError) as e:
        typer.secho(f"Error reading {records_file}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    if batch.is_empty():
        typer.secho("Error: no records to send", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    collector = CollectingObserver()
    transport = HTTPTransport.from_settings(settings.transport)
    try:
        dispatcher = BatchDispatcher.from_settings(settings, transport, CompositeObserver([LoggingObserver(), collector]))
        with dispatcher:
            dispatcher.dispatch(batch)
            idle = dispatcher.wait_idle(timeout)
    finally:
        transport.close()

    for lineage_id, outcome in collector.outcomes:
        typer.echo(
            f"{outcome.status}\t{lineage_id}\t{outcome.batch.size} record(s)\t{outcome.attempts} attempt(s)"
            + (f"\t{outcome.reason}" if outcome.reason else "")
        )

    if not idle:
        typer.secho(f"Timed out after {timeout}s with batches still pending", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    if any(outcome.status != DispatchStatus.SUCCEEDED for _, outcome in collector.outcomes):
        raise typer.Exit(1)
