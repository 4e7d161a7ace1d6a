"""
Parsing functions for the delimited strings that the S33 stuffs into otherwise normal JSON.

The HNAP JSON is easy enough; the interesting bits (channel tables, event log, uptime) come back as a single
string per field with `^` between columns and some odd multi-character separator between rows.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog
from err.exceptions import MalformedFieldError
from util.const import LogLevel

log = structlog.get_logger(__name__)

# Rows are separated by these. No, I don't know why they're different.
LOG_RECORD_SEPARATOR = "}-{"
CHANNEL_RECORD_SEPARATOR = "|+|"

# '46 days 12h:55m:21s' and, sometimes, '0 days 00h:01m:55s.00'
_UPTIME_PATTERN = re.compile(r"(\d+) days (\d+)h:(\d+)m:(\d+)s")

# C locale %c, e.g. 'Tue Mar 12 14:20:59 2024'. Single digit days are space padded, strptime is fine with that.
SYSTEM_TIME_FORMAT = "%a %b %d %H:%M:%S %Y"

# 0^08:09:10^01/02/2023^5^Some message
_LOG_PATTERN = re.compile(
    r"0\^(?P<time>[:\d]+)\^(?P<date>[/\d]+)\^(?P<level>\d)\^(?P<message>.*)"
)
LOG_TIME_FORMAT = "%d/%m/%Y %H:%M:%S"

# Modem uses syslog style numbers for severity
_LOG_LEVELS = {
    3: LogLevel.ERROR,
    4: LogLevel.WARNING,
    5: LogLevel.INFO,
    6: LogLevel.DEBUG,
}

# Downstream:   1^Locked^QAM256^9^525000000^1^41^0^0^
# Upstream:     1^Locked^SC-QAM^1^6400000^16400000^46.0^
#
# The two are told apart by shape; downstream has two more columns and an integer power
##
_DOWNSTREAM_PATTERN = re.compile(
    r"(?:\d+)\^(?P<lock_status>\w+)\^(?P<modulation>[\w\d ]+)\^(?P<channel_id>\d+)\^(?P<frequency>\d+)"
    r"\^(?P<power>\d+)\^(?P<snr>\d+)\^(?P<corrected>\d+)\^(?P<uncorrectables>\d+)\^"
)
_UPSTREAM_PATTERN = re.compile(
    r"(?:\d+)\^(?P<lock_status>\w+)\^(?P<modulation>[\w\d -]+)\^(?P<channel_id>\d+)\^(?P<width>\d+)"
    r"\^(?P<frequency>\d+)\^(?P<power>[\d.]+)\^"
)


class Modulation(Enum):
    QAM256 = "QAM-256"
    OFDM_PLC = "OFDM-PLC"
    SC_QAM = "SC-QAM"
    UNKNOWN = "Unknown"

    def __str__(self):
        return self.value


_MODULATIONS = {
    "QAM256": Modulation.QAM256,
    "OFDM PLC": Modulation.OFDM_PLC,
    "SC-QAM": Modulation.SC_QAM,
}


@dataclass(frozen=True)
class DownstreamChannel:
    channel_id: int
    modulation: Modulation
    lock_status: bool
    frequency: int
    power: int
    snr: int
    corrected: int
    uncorrectables: int


@dataclass(frozen=True)
class UpstreamChannel:
    channel_id: int
    modulation: Modulation
    lock_status: bool
    frequency: int
    width: int
    power: float


Channel = DownstreamChannel | UpstreamChannel


@dataclass(frozen=True)
class LogEntry:
    """One line from the modem event log. Hashable on all fields so it can be used for de-dupe."""

    timestamp: datetime
    level: LogLevel
    message: str


class ChannelShape(Enum):
    """Which grammar a channel record matched"""

    DOWNSTREAM = "downstream"
    UPSTREAM = "upstream"
    NO_MATCH = "no_match"


def parse_duration(raw: str) -> timedelta:
    """
    Turns the human-friendly uptime string into a timedelta object

    Input ends up being something like:
        '0 days 00h:01m:55s.00'
            or
        '46 days 12h:55m:21s'
    """
    match = _UPTIME_PATTERN.match(raw)
    if match is None:
        raise MalformedFieldError(f"Unable to parse duration: {raw!r}", raw=raw)

    days, hours, minutes, seconds = map(int, match.groups())
    duration = timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
    log.debug("Parsed duration", raw=raw, seconds=duration.total_seconds())
    return duration


def parse_timestamp(raw: str) -> datetime:
    """Modem reports local time in %c format. We assume the modem clock is UTC and don't convert anything."""
    try:
        parsed = datetime.strptime(raw.strip(), SYSTEM_TIME_FORMAT)
    except ValueError as e:
        raise MalformedFieldError(f"Unable to parse timestamp: {raw!r}", raw=raw) from e
    return parsed.replace(tzinfo=timezone.utc)


def parse_log_line(line: str) -> LogEntry:
    match = _LOG_PATTERN.match(line)
    if match is None:
        raise MalformedFieldError(f"Unable to parse log record: {line!r}", raw=line)

    try:
        naive = datetime.strptime(
            f"{match.group('date')} {match.group('time')}", LOG_TIME_FORMAT
        )
    except ValueError as e:
        raise MalformedFieldError(
            f"Unable to parse date/time in log record: {line!r}", raw=line
        ) from e

    return LogEntry(
        timestamp=naive.replace(tzinfo=timezone.utc),
        level=_LOG_LEVELS.get(int(match.group("level")), LogLevel.ERROR),
        message=match.group("message"),
    )


def parse_logs(raw: str) -> list[LogEntry]:
    """Splits the event log blob into records. An empty blob is an empty log, not an error."""
    if raw == "":
        return []
    entries = [parse_log_line(line) for line in raw.split(LOG_RECORD_SEPARATOR)]
    log.debug("Parsed log entries", count=len(entries))
    return entries


def match_channel(record: str) -> tuple[ChannelShape, re.Match | None]:
    """Try each channel grammar in turn. Not matching is not an error here; caller decides."""
    if (match := _DOWNSTREAM_PATTERN.match(record)) is not None:
        return ChannelShape.DOWNSTREAM, match
    if (match := _UPSTREAM_PATTERN.match(record)) is not None:
        return ChannelShape.UPSTREAM, match
    return ChannelShape.NO_MATCH, None


def parse_channel(record: str) -> Channel:
    shape, match = match_channel(record)
    if shape is ChannelShape.NO_MATCH or match is None:
        raise MalformedFieldError(
            f"Unable to match {record!r} with any channel pattern", raw=record
        )

    lock_status = match.group("lock_status") == "Locked"
    modulation = _MODULATIONS.get(match.group("modulation"), Modulation.UNKNOWN)

    try:
        if shape is ChannelShape.DOWNSTREAM:
            return DownstreamChannel(
                channel_id=int(match.group("channel_id")),
                modulation=modulation,
                lock_status=lock_status,
                frequency=int(match.group("frequency")),
                power=int(match.group("power")),
                snr=int(match.group("snr")),
                corrected=int(match.group("corrected")),
                uncorrectables=int(match.group("uncorrectables")),
            )
        return UpstreamChannel(
            channel_id=int(match.group("channel_id")),
            modulation=modulation,
            lock_status=lock_status,
            frequency=int(match.group("frequency")),
            width=int(match.group("width")),
            power=float(match.group("power")),
        )
    # The regex only lets digits through but e.g. '4.3.0' is still [\d.]+
    except ValueError as e:
        raise MalformedFieldError(
            f"Unable to convert numeric field in channel record {record!r}", raw=record
        ) from e


def parse_channels(raw: str) -> list[Channel]:
    if raw == "":
        return []
    channels = [parse_channel(record) for record in raw.split(CHANNEL_RECORD_SEPARATOR)]
    log.debug("Parsed channels", count=len(channels))
    return channels
