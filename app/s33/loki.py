"""
Push modem event log lines into Loki.

https://grafana.com/docs/loki/latest/reference/loki-http-api/#ingest-logs
Streams are split by severity so `{level="error"}` works as a selector in Grafana.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

import structlog
from aiohttp import ClientError, ClientSession
from err.exceptions import TransportError
from s33.parse import LogEntry
from util.const import LogLevel

log = structlog.get_logger(__name__)

DEFAULT_LABELS = {"app": "s33_modem_exporter"}

_LEVEL_LABELS = {
    LogLevel.ERROR: "error",
    LogLevel.WARNING: "warn",
    LogLevel.INFO: "info",
    LogLevel.DEBUG: "debug",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_nanos(timestamp: datetime) -> int:
    # Integer math; going through float timestamp() loses the bottom digits
    delta = timestamp - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def construct_loki_streams(
    labels: dict[str, str], entries: Iterable[LogEntry]
) -> dict[str, list[dict]]:
    """Bucket entries by level; each bucket becomes one stream with `level` added to the labels."""
    buckets: dict[str, list[list[str]]] = {}
    for entry in entries:
        level = _LEVEL_LABELS[entry.level]
        buckets.setdefault(level, []).append(
            [str(to_epoch_nanos(entry.timestamp)), entry.message]
        )

    return {
        "streams": [
            {"stream": {**labels, "level": level}, "values": values}
            for level, values in buckets.items()
        ]
    }


async def push_logs(session: ClientSession, url: str, streams: dict[str, list[dict]]) -> None:
    if not streams["streams"]:
        log.debug("No new log lines; skipping push")
        return

    try:
        async with session.post(url, json=streams) as resp:
            # Loki answers 204 No Content on success
            if resp.status // 100 != 2:
                text = await resp.text(errors="replace")
                log.error("Loki rejected push", status=resp.status, body=text[:500])
                raise TransportError(
                    f"Loki push failed. Status={resp.status}",
                    status_code=resp.status,
                    payload=text,
                )
    except ClientError as e:
        raise TransportError(f"Loki push failed: {e}") from e

    log.debug("Pushed logs to Loki", streams=len(streams["streams"]))
