"""
Implementation of the poll cycle and metric update functions
"""

from collections.abc import Iterable

import structlog
from aiohttp import ClientSession
from err.exceptions import DecodeError
from s33 import loki, metrics
from s33.hnap import HNAPClient
from s33.parse import Channel, DownstreamChannel, LogEntry, UpstreamChannel
from s33.payloads import (
    GetMultipleHNAPsLogsResponse,
    GetMultipleHNAPsMetricsResponse,
    StatusStartupSequenceResponse,
)
from util.dedup import FixedSizeDedupSet

log = structlog.get_logger(__name__)

_DOWNSTREAM_GAUGES = (
    metrics.g_downstream_lock_status,
    metrics.g_downstream_frq_hz,
    metrics.g_downstream_power_db,
    metrics.g_downstream_snr_db,
    metrics.g_downstream_corrected,
    metrics.g_downstream_uncorrectable,
)
_UPSTREAM_GAUGES = (
    metrics.g_upstream_lock_status,
    metrics.g_upstream_frq_hz,
    metrics.g_upstream_ch_width_hz,
    metrics.g_upstream_power_db,
)


def update_connection_channel_metrics(channels: Iterable[Channel]) -> None:
    """Set one sample per channel. Old label sets are dropped first so channels the modem stopped reporting
    don't linger with their last value.
    """
    for gauge in (*_DOWNSTREAM_GAUGES, *_UPSTREAM_GAUGES):
        gauge.clear()

    for channel in channels:
        labels = {"channel_id": str(channel.channel_id), "modulation": str(channel.modulation)}
        if isinstance(channel, DownstreamChannel):
            metrics.g_downstream_lock_status.labels(**labels).set(int(channel.lock_status))
            metrics.g_downstream_frq_hz.labels(**labels).set(channel.frequency)
            metrics.g_downstream_power_db.labels(**labels).set(channel.power)
            metrics.g_downstream_snr_db.labels(**labels).set(channel.snr)
            metrics.g_downstream_corrected.labels(**labels).set(channel.corrected)
            metrics.g_downstream_uncorrectable.labels(**labels).set(channel.uncorrectables)
        elif isinstance(channel, UpstreamChannel):
            metrics.g_upstream_lock_status.labels(**labels).set(int(channel.lock_status))
            metrics.g_upstream_frq_hz.labels(**labels).set(channel.frequency)
            metrics.g_upstream_ch_width_hz.labels(**labels).set(channel.width)
            metrics.g_upstream_power_db.labels(**labels).set(channel.power)


def update_connection_metrics(startup: StatusStartupSequenceResponse) -> None:
    """
    High level connection info from the startup sequence.
    Frequency comes back as '483000000 Hz' so we only keep the first token.
    """
    _v = startup.downstream_frequency.split(" ")[0]
    try:
        metrics.g_startup_downstream_channel_hz.clear()
        metrics.g_startup_downstream_channel_hz.labels(startup.downstream_comment).set(float(_v))
    except ValueError as ve:
        log.error(
            "Failed to convert startup downstream frequency",
            raw=startup.downstream_frequency,
            error=ve,
        )
        metrics.c_meta_parse_result.labels("startup", False).inc()

    metrics.g_startup_step.clear()
    for step, status, comment in (
        ("connectivity", startup.connectivity_status, startup.connectivity_comment),
        ("boot", startup.boot_status, startup.boot_comment),
        ("configuration_file", startup.configuration_file_status, startup.configuration_file_comment),
        ("security", startup.security_status, startup.security_comment),
    ):
        metrics.g_startup_step.labels(step, status, comment).set(1)


def update_modem_metrics(response: GetMultipleHNAPsMetricsResponse) -> None:
    """
    Most of this is strings that go into an Info() metric; they're not expected to change often so we're not
    going to blow up TSDB cardinality by doing this.
    """
    metrics.g_modem_uptime_seconds.set(response.connection_info.system_up_time.total_seconds())
    metrics.g_modem_system_time_seconds.set(response.connection_info.system_time.timestamp())

    modem_info = {
        "model_name": response.register_info.model_name,
        "serial_number": response.register_info.serial_number,
        "mac_address": response.register_info.mac_address,
        "firmware_version": response.device_status.firmware_version,
        "internet_connection": response.device_status.internet_connection,
        "network_access": response.connection_info.network_access,
    }
    log.debug("Modem Info", **modem_info)
    metrics.i_modem_info.info(modem_info)


def select_new_logs(
    entries: Iterable[LogEntry], seen: FixedSizeDedupSet[LogEntry]
) -> list[LogEntry]:
    """Entries we haven't forwarded yet, in modem order. Nothing is marked; see `mark_forwarded`."""
    new_entries = []
    batch: set[LogEntry] = set()
    for entry in entries:
        if seen.contains(entry) or entry in batch:
            continue
        batch.add(entry)
        new_entries.append(entry)
    return new_entries


def mark_forwarded(entries: Iterable[LogEntry], seen: FixedSizeDedupSet[LogEntry]) -> None:
    for entry in entries:
        evicted = seen.insert(entry)
        if evicted is not None:
            log.debug("Evicted oldest seen log line", entry=evicted)


async def forward_logs(
    session: ClientSession | None,
    loki_url: str | None,
    response: GetMultipleHNAPsLogsResponse,
    seen: FixedSizeDedupSet[LogEntry],
    labels: dict[str, str] = loki.DEFAULT_LABELS,
) -> list[LogEntry]:
    """De-dupe the modem event log and ship whatever is new. Without a Loki URL, new lines are just logged.

    Lines are only marked as seen once the push succeeds; a failed push leaves them for the next poll.
    """
    new_entries = select_new_logs(response.status_log.entries, seen)
    log.info(
        "Modem event log",
        total=len(response.status_log.entries),
        new=len(new_entries),
    )

    if loki_url is None or session is None:
        for entry in new_entries:
            log.info("Modem log", ts=entry.timestamp.isoformat(), level=entry.level.name, msg=entry.message)
    else:
        await loki.push_logs(session, loki_url, loki.construct_loki_streams(labels, new_entries))

    mark_forwarded(new_entries, seen)
    metrics.c_meta_logs_forwarded.inc(len(new_entries))
    return new_entries


async def do_modem_scrape(
    client: HNAPClient,
    seen: FixedSizeDedupSet[LogEntry],
    sink_session: ClientSession | None = None,
    loki_url: str | None = None,
) -> None:
    """One poll cycle: metrics call, then logs call. Errors propagate so the loop can decide what to do."""
    try:
        metrics_response = await client.metrics()
    except DecodeError:
        metrics.c_meta_parse_result.labels("metrics", False).inc()
        raise
    metrics.c_meta_parse_result.labels("metrics", True).inc()

    update_modem_metrics(metrics_response)
    update_connection_metrics(metrics_response.startup_sequence)
    log.info(
        "Updating channel metrics...",
        downstream=len(metrics_response.downstream.channels),
        upstream=len(metrics_response.upstream.channels),
    )
    update_connection_channel_metrics(
        [*metrics_response.downstream.channels, *metrics_response.upstream.channels]
    )

    try:
        logs_response = await client.logs()
    except DecodeError:
        metrics.c_meta_parse_result.labels("logs", False).inc()
        raise
    metrics.c_meta_parse_result.labels("logs", True).inc()

    await forward_logs(sink_session, loki_url, logs_response, seen)
