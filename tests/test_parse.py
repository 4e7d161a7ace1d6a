from datetime import datetime, timedelta, timezone

import pytest
from err.exceptions import MalformedFieldError
from s33 import parse
from s33.parse import (
    ChannelShape,
    DownstreamChannel,
    LogEntry,
    Modulation,
    UpstreamChannel,
)
from util.const import LogLevel


def test_duration():
    assert parse.parse_duration("2 days 03h:04m:05s") == timedelta(
        seconds=2 * 86400 + 3 * 3600 + 4 * 60 + 5
    )


def test_duration_with_fractional_suffix():
    assert parse.parse_duration("46 days 12h:55m:21s.00").total_seconds() == 4020921


@pytest.mark.parametrize("raw", ["2 03h:04m:05s", "", "two days 03h:04m:05s", "2 days 03:04:05"])
def test_duration_malformed(raw):
    with pytest.raises(MalformedFieldError) as excinfo:
        parse.parse_duration(raw)
    assert excinfo.value.raw == raw


def test_timestamp_is_utc_without_conversion():
    assert parse.parse_timestamp("Tue Mar 12 14:20:59 2024") == datetime(
        2024, 3, 12, 14, 20, 59, tzinfo=timezone.utc
    )


def test_timestamp_space_padded_day():
    assert parse.parse_timestamp("Fri Mar  1 01:02:03 2024") == datetime(
        2024, 3, 1, 1, 2, 3, tzinfo=timezone.utc
    )


def test_timestamp_malformed():
    with pytest.raises(MalformedFieldError):
        parse.parse_timestamp("2024-03-12T14:20:59Z")


def test_logs():
    entries = parse.parse_logs(
        "0^08:09:10^01/02/2023^5^hello}-{0^09:09:10^01/02/2023^3^world"
    )
    assert entries == [
        LogEntry(datetime(2023, 2, 1, 8, 9, 10, tzinfo=timezone.utc), LogLevel.INFO, "hello"),
        LogEntry(datetime(2023, 2, 1, 9, 9, 10, tzinfo=timezone.utc), LogLevel.ERROR, "world"),
    ]


@pytest.mark.parametrize(
    "digit,level",
    [
        ("3", LogLevel.ERROR),
        ("4", LogLevel.WARNING),
        ("5", LogLevel.INFO),
        ("6", LogLevel.DEBUG),
        ("7", LogLevel.ERROR),
        ("0", LogLevel.ERROR),
    ],
)
def test_log_levels(digit, level):
    (entry,) = parse.parse_logs(f"0^00:00:00^31/12/2022^{digit}^msg")
    assert entry.level is level


def test_log_message_keeps_carets_and_spaces():
    (entry,) = parse.parse_logs("0^00:00:01^02/01/2023^6^DHCP ^ renew; CM-MAC=aa:bb")
    assert entry.message == "DHCP ^ renew; CM-MAC=aa:bb"


def test_empty_log_blob_is_empty_list():
    assert parse.parse_logs("") == []


def test_malformed_log_record_names_record():
    with pytest.raises(MalformedFieldError) as excinfo:
        parse.parse_logs("0^08:09:10^01/02/2023^5^ok}-{garbage record")
    assert excinfo.value.raw == "garbage record"
    assert "garbage record" in str(excinfo.value)


def test_log_record_with_impossible_date():
    with pytest.raises(MalformedFieldError):
        parse.parse_logs("0^08:09:10^31/02/2023^5^nope")


def test_log_entries_hash_on_all_fields():
    ts = datetime(2023, 2, 1, tzinfo=timezone.utc)
    a = LogEntry(ts, LogLevel.INFO, "x")
    assert a == LogEntry(ts, LogLevel.INFO, "x")
    assert hash(a) == hash(LogEntry(ts, LogLevel.INFO, "x"))
    assert a != LogEntry(ts, LogLevel.ERROR, "x")
    assert a != LogEntry(ts, LogLevel.INFO, "y")
    assert a != LogEntry(ts + timedelta(seconds=1), LogLevel.INFO, "x")


def test_downstream_channel():
    (channel,) = parse.parse_channels("1^Locked^QAM256^9^525000000^1^41^10^2^")
    assert channel == DownstreamChannel(
        channel_id=9,
        modulation=Modulation.QAM256,
        lock_status=True,
        frequency=525000000,
        power=1,
        snr=41,
        corrected=10,
        uncorrectables=2,
    )


def test_upstream_channel():
    (channel,) = parse.parse_channels("1^Locked^SC-QAM^1^6400000^16400000^46.0^")
    assert channel == UpstreamChannel(
        channel_id=1,
        modulation=Modulation.SC_QAM,
        lock_status=True,
        frequency=16400000,
        width=6400000,
        power=46.0,
    )


def test_mixed_channels_and_modulations():
    channels = parse.parse_channels(
        "1^Locked^QAM256^9^525000000^1^41^10^2^"
        "|+|2^Locked^OFDM PLC^33^850000000^4^38^1000^0^"
        "|+|3^Locked^SC-QAM^1^6400000^16400000^46.0^"
    )
    assert [type(c) for c in channels] == [DownstreamChannel, DownstreamChannel, UpstreamChannel]
    assert [c.modulation for c in channels] == [
        Modulation.QAM256,
        Modulation.OFDM_PLC,
        Modulation.SC_QAM,
    ]


def test_not_locked():
    (channel,) = parse.parse_channels("1^Unlocked^QAM256^9^525000000^1^41^10^2^")
    assert channel.lock_status is False


def test_unknown_modulation_is_not_an_error():
    (channel,) = parse.parse_channels("1^Locked^QAM64^9^525000000^1^41^10^2^")
    assert channel.modulation is Modulation.UNKNOWN
    (channel,) = parse.parse_channels("1^Locked^OFDMA^2^6400000^16400000^46.0^")
    assert channel.modulation is Modulation.UNKNOWN


def test_match_channel_returns_shape_without_raising():
    assert parse.match_channel("1^Locked^QAM256^9^525000000^1^41^10^2^")[0] is ChannelShape.DOWNSTREAM
    assert parse.match_channel("1^Locked^SC-QAM^1^6400000^16400000^46.0^")[0] is ChannelShape.UPSTREAM
    assert parse.match_channel("nope") == (ChannelShape.NO_MATCH, None)


def test_channel_matching_neither_grammar():
    with pytest.raises(MalformedFieldError) as excinfo:
        parse.parse_channels("1^Locked^QAM256^9^525000000^1^41^10^2^|+|1^Locked^QAM256^x^")
    assert excinfo.value.raw == "1^Locked^QAM256^x^"


def test_upstream_power_that_is_not_a_number():
    with pytest.raises(MalformedFieldError) as excinfo:
        parse.parse_channels("1^Locked^SC-QAM^1^6400000^16400000^4.6.0^")
    assert excinfo.value.raw == "1^Locked^SC-QAM^1^6400000^16400000^4.6.0^"


def test_modulation_str_is_tag_value():
    assert str(Modulation.OFDM_PLC) == "OFDM-PLC"
    assert str(Modulation.QAM256) == "QAM-256"
