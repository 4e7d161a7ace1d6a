#!/usr/bin/env python3
"""
Main / entry point for the S33 (HNAP) modem exporter.

"""
import asyncio
import sys
from os import getenv

import structlog
from aiohttp import ClientSession, ClientTimeout, DummyCookieJar
from err.exceptions import ModemError
from prometheus_client import start_http_server
from s33.hnap import HNAPClient
from s33.parse import LogEntry
from s33.scrape import do_modem_scrape
from util.const import REQUEST_HEADERS, LogLevel
from util.dedup import DedupInvariantError, FixedSizeDedupSet


def parse_bool_env(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# cfg-file/arg-arse/clip is overkill for the few things that need to be configured.
# k8s makes it trivial to define env-vars so we'll just use that.
##
MODEM_ENDPOINT = getenv("MODEM_ENDPOINT", "https://192.168.100.1/HNAP1/")

MODEM_USERNAME = getenv("MODEM_USERNAME", "admin")
# No sane default; require user provides
MODEM_PASSWORD = getenv("MODEM_PASSWORD", None)

# Modem ships a self-signed cert; turn this on unless you have pinned it somewhere
MODEM_ACCEPT_INVALID_CERTS = parse_bool_env(getenv("MODEM_ACCEPT_INVALID_CERTS"))

# default prometheus_client implementation does not support setting the path, only the port.
METRICS_PORT = int(getenv("METRICS_PORT", "8033"))
METRICS_POLL_INTERVAL_SECONDS = int(getenv("METRICS_POLL_INTERVAL_SECONDS", "60"))
REQUEST_TIMEOUT_SECONDS = int(getenv("REQUEST_TIMEOUT_SECONDS", "30"))

# e.g. http://loki:3100/loki/api/v1/push ; if unset, modem event log lines are only written to our own log
LOKI_PUSH_URL = getenv("LOKI_PUSH_URL", None)
# Modem event log is small; only need to remember enough lines to cover what it hands back per poll
LOG_DEDUP_CAPACITY = int(getenv("LOG_DEDUP_CAPACITY", "30"))


if getenv("LOG_LEVEL") not in LogLevel.__members__ or getenv("LOG_LEVEL") is None:
    print(f"Defaulting to {LogLevel.INFO} log level")
    log_level = LogLevel.INFO
else:
    log_level = LogLevel[getenv("LOG_LEVEL")]  # type: ignore
    print(f"Using log level {log_level.value}")


structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(log_level.value)
)

log = structlog.get_logger(__name__)


async def main() -> int:
    """Main entry point."""
    log.info("Starting up")
    # Check that user set auth
    if MODEM_USERNAME is None or MODEM_PASSWORD is None:
        log.error("Missing MODEM_USERNAME or MODEM_PASSWORD")
        return 1

    # In testing, server responds to requests on / and /metrics so there's no real
    #   need to allow customizing the path, I think.
    server, _ = start_http_server(port=METRICS_PORT)
    log.info("Metrics server started", server=server.server_address)

    log.debug("Setting up connection to modem...", endpoint=MODEM_ENDPOINT)
    modem_session = ClientSession(
        headers=REQUEST_HEADERS,
        timeout=ClientTimeout(total=REQUEST_TIMEOUT_SECONDS),
        # We build the Cookie header by hand; a real jar would try to merge Set-Cookie values into it
        cookie_jar=DummyCookieJar(),
    )
    sink_session = ClientSession(timeout=ClientTimeout(total=REQUEST_TIMEOUT_SECONDS))
    client = HNAPClient(modem_session, MODEM_ENDPOINT, MODEM_ACCEPT_INVALID_CERTS)
    seen_logs: FixedSizeDedupSet[LogEntry] = FixedSizeDedupSet(LOG_DEDUP_CAPACITY)

    try:
        # No retry on login; modem locks the account after too many attempts.
        # If this fails, bail and let whatever runs us decide when to try again.
        try:
            await client.login(MODEM_USERNAME, MODEM_PASSWORD)
        except ModemError as e:
            log.error("Login failed. Can't continue.", error=e, error_type=type(e).__name__)
            return 1

        while True:
            try:
                await do_modem_scrape(client, seen_logs, sink_session, LOKI_PUSH_URL)
            except ModemError as e:
                # One bad cycle; session is still good so just try again next time around
                log.error("Poll cycle failed", error=e, error_type=type(e).__name__)
            except DedupInvariantError:
                log.critical("Seen-log index is corrupt; giving up")
                raise
            # pylint: disable=broad-exception-caught
            except Exception as e:
                _e = "Unforeseen exception. Treating as non-fatal."
                log.error(_e, error=e)

            log.info(
                f"Sleeping {METRICS_POLL_INTERVAL_SECONDS} seconds before next poll"
            )
            await asyncio.sleep(METRICS_POLL_INTERVAL_SECONDS)
    finally:
        await modem_session.close()
        await sink_session.close()


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
