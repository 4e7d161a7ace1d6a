"""All the boiler plate / init code for defining metrics.

Unlike the HTML scraping approach, HNAP hands us typed channel records so there's no need to map column headers
to metrics; each channel field gets its own gauge labelled by channel_id and modulation.
"""

from prometheus_client import Counter, Gauge, Info, Summary, disable_created_metrics

# By default, client will automatically create a "_created" meta metric for
#   each metric defined below.
# Having the unix epoch time of when the metric was created isn't that useful for us
#   so we'll disable it.
disable_created_metrics()


METRICS_NS = "s33"
META_NS = "meta"

CHANNEL_LABELS = ["channel_id", "modulation"]

##
# Meta Metrics
##
# summary comes with both a count and a sum so we don't need to count the number of requests ourselves
s_meta_scrape_time = Summary(
    f"{META_NS}_request_duration_seconds",
    "Time spent waiting for modem to respond",
    # login_challenge, login, metrics, logs
    labelnames=["scrape_target"],
)

c_meta_scrape_result = Counter(
    f"{META_NS}_scrape_result",
    "Count of successful vs failed requests",
    labelnames=["http_code", "scrape_target"],
)

# Time to decode isn't interesting but decode failures are; they usually mean a firmware update changed something
c_meta_parse_result = Counter(
    f"{META_NS}_parse_result",
    "Count of successful vs failed parse attempts",
    labelnames=["parse_target", "parse_result"],
)

c_meta_logs_forwarded = Counter(
    f"{META_NS}_logs_forwarded",
    "Count of modem event log lines forwarded to the log sink",
)

##
# General hardware info / metrics
##
# Info() is perfect for key/value pairs that are not expected to change often.
i_modem_info = Info(
    f"{METRICS_NS}_modem",
    "Assorted Modem Info",
)

g_modem_uptime_seconds = Gauge(
    f"{METRICS_NS}_modem_uptime_seconds",
    "Count of seconds since modem was last booted.",
)

g_modem_system_time_seconds = Gauge(
    f"{METRICS_NS}_modem_system_time_seconds",
    "Modem clock as unix epoch seconds; drift from wall clock hints at NTP trouble.",
)

##
# Startup sequence
##
# metric=CustomerConnDSFreq value='483000000 Hz' comment='Locked'
g_startup_downstream_channel_hz = Gauge(
    f"{METRICS_NS}_startup_downstream_channel_hz",
    "Initial frequency of the downstream channel.",
    labelnames=["comment"],
)

# Connectivity, boot, config file and security all come back as (status, comment) string pairs.
# A gauge set to 1 for the current (status, comment) is easier to alert on than Enum() since we
#   don't know every status string the firmware might produce.
g_startup_step = Gauge(
    f"{METRICS_NS}_startup_step",
    "Current status of each startup step; value is always 1.",
    labelnames=["step", "status", "comment"],
)

##
# Downstream channels
##
g_downstream_lock_status = Gauge(
    f"{METRICS_NS}_downstream_lock_status",
    "1 if the channel is locked, 0 otherwise.",
    labelnames=CHANNEL_LABELS,
)

g_downstream_frq_hz = Gauge(
    f"{METRICS_NS}_downstream_frequency_hz",
    "Frequency of the channel.",
    labelnames=CHANNEL_LABELS,
)

g_downstream_power_db = Gauge(
    f"{METRICS_NS}_downstream_power_dbmv",
    "Received power of the channel.",
    labelnames=CHANNEL_LABELS,
)

g_downstream_snr_db = Gauge(
    f"{METRICS_NS}_downstream_snr_db",
    "Signal to Noise Ratio / Modulation Error Ratio of the channel.",
    labelnames=CHANNEL_LABELS,
)

# Modem keeps these as running totals since boot so a Gauge is correct; they reset when the modem does
g_downstream_corrected = Gauge(
    f"{METRICS_NS}_downstream_corrected",
    "Count of corrected errors on the channel since modem boot.",
    labelnames=CHANNEL_LABELS,
)

g_downstream_uncorrectable = Gauge(
    f"{METRICS_NS}_downstream_uncorrectable",
    "Count of uncorrectable errors on the channel since modem boot.",
    labelnames=CHANNEL_LABELS,
)

##
# Upstream channels
##
g_upstream_lock_status = Gauge(
    f"{METRICS_NS}_upstream_lock_status",
    "1 if the channel is locked, 0 otherwise.",
    labelnames=CHANNEL_LABELS,
)

g_upstream_frq_hz = Gauge(
    f"{METRICS_NS}_upstream_frequency_hz",
    "Frequency of the upstream channel.",
    labelnames=CHANNEL_LABELS,
)

g_upstream_ch_width_hz = Gauge(
    f"{METRICS_NS}_upstream_ch_width_hz",
    "Width of upstream channel.",
    labelnames=CHANNEL_LABELS,
)

g_upstream_power_db = Gauge(
    f"{METRICS_NS}_upstream_power_dbmv",
    "Transmit power of the channel.",
    labelnames=CHANNEL_LABELS,
)
