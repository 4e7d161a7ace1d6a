"""
HNAP client for the S33.

The modem speaks JSON flavored HNAP. Every request is signed with HMAC-MD5; before login the key is a well known
constant, after login it's a private key derived from the login challenge.

Login is two round trips:
    1. `Login` with Action=request gets us a PublicKey, Challenge and Cookie
    2. PrivateKey = HMAC(PublicKey + password, Challenge)
       LoginPassword = HMAC(PrivateKey, Challenge)
       `Login` with Action=login and the LoginPassword, signed with the new PrivateKey

There's no way back from a failed login; caller is expected to give up.
"""

import asyncio
import hashlib
import hmac
import json
import time
from enum import Enum
from typing import Any, TypeVar

import structlog
from aiohttp import ClientError, ClientSession
from err.exceptions import (
    CredentialsError,
    DecodeError,
    LockedOutError,
    ModemError,
    ModemNotOkError,
    RebootRequiredError,
    SessionStateError,
    SettingsResetRequiredError,
    TransportError,
    UnexpectedStatusError,
)
from s33 import metrics
from s33.payloads import (
    GetMultipleHNAPsLogsResponse,
    GetMultipleHNAPsMetricsResponse,
    HasResult,
    LoginResponse,
    LoginWithChallengeResponse,
    decode_envelope,
)
from util.const import SOAP_NAMESPACE, UNDEFINED_PRIVATE_KEY

log = structlog.get_logger(__name__)

R = TypeVar("R", bound=HasResult)

LOGIN_ACTION = "Login"
MULTIPLE_ACTION = "GetMultipleHNAPs"

# Sub-actions batched into a single GetMultipleHNAPs. Empty string means "include this one".
METRICS_ACTIONS = (
    "GetArrisDeviceStatus",
    "GetArrisRegisterInfo",
    "GetCustomerStatusStartupSequence",
    "GetCustomerStatusConnectionInfo",
    "GetCustomerStatusDownstreamChannelInfo",
    "GetCustomerStatusUpstreamChannelInfo",
)
LOGS_ACTIONS = ("GetCustomerStatusLog",)

# LoginResult values that mean we're not getting in
_LOGIN_FAILURES = {
    "FAILED": (CredentialsError, "Username or password error"),
    "LOCKUP": (LockedOutError, "Max number of login attempts reached"),
    "REBOOT": (RebootRequiredError, "Account locked, reboot required to re-enable account"),
    "OK_CHANGED": (SettingsResetRequiredError, "Modem wants login settings reset"),
}


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_OBTAINED = "challenge_obtained"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def hex_hmac_md5(key: str, message: str) -> str:
    """HMAC-MD5 as upper case hex; matches what the modem's SOAPAction.js does"""
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.md5).hexdigest().upper()


def hnap_auth(private_key: str, action: str, timestamp: str) -> str:
    """Value for the HNAP_AUTH header: `<HMAC(key, timestamp + namespace + action)> <timestamp>`"""
    code = hex_hmac_md5(private_key, f"{timestamp}{SOAP_NAMESPACE}{action}")
    return f"{code} {timestamp}"


def _now_millis() -> str:
    return str(time.time_ns() // 1_000_000)


class HNAPClient:
    """Owns the auth state for one modem.

    All requests go through one lock so login can't change the key/cookie out from under a request being signed.
    """

    def __init__(
        self,
        session: ClientSession,
        endpoint: str,
        accept_invalid_certs: bool = False,
    ):
        self.session = session
        self.endpoint = endpoint
        # aiohttp: ssl=False skips cert validation, True uses the default context
        self._ssl = not accept_invalid_certs
        self.private_key = UNDEFINED_PRIVATE_KEY
        self.cookie = ""
        self.state = SessionState.UNAUTHENTICATED
        self._lock = asyncio.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def _headers(self, action: str) -> dict[str, str]:
        return {
            "SOAPAction": f"{SOAP_NAMESPACE}{action}",
            "HNAP_AUTH": hnap_auth(self.private_key, action, _now_millis()),
            "Cookie": f"Secure; uid={self.cookie}; PrivateKey={self.private_key}",
        }

    async def _send_action(
        self,
        action: str,
        params: dict[str, str],
        response_type: type[R],
        scrape_target: str,
    ) -> R:
        """Sign, send and decode one action. Raises on anything other than a usable reply."""
        # params get nested under the action for no reason; modem won't accept it otherwise
        payload = {action: params}

        async with self._lock:
            headers = self._headers(action)
            log.debug("Sending action", action=action, target=scrape_target)
            with metrics.s_meta_scrape_time.labels(scrape_target).time():
                try:
                    async with self.session.post(
                        self.endpoint, json=payload, headers=headers, ssl=self._ssl
                    ) as resp:
                        metrics.c_meta_scrape_result.labels(resp.status, scrape_target).inc()
                        if resp.status != 200:
                            text = await resp.text(errors="replace")
                            log.error(
                                "Modem did not return 200 OK",
                                action=action,
                                status=resp.status,
                                body=text[:500],
                            )
                            raise ModemNotOkError(
                                f"{action} failed. Status={resp.status}",
                                status_code=resp.status,
                                payload=text,
                            )
                        raw = await resp.read()
                except (ClientError, asyncio.TimeoutError) as e:
                    metrics.c_meta_scrape_result.labels("none", scrape_target).inc()
                    raise TransportError(f"{action} request failed: {e}") from e

        # bad charset is a DecodeError, same as bad JSON
        try:
            body: Any = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(
                f"{action} reply is not valid JSON",
                payload=raw[:500].decode("utf-8", errors="replace"),
            ) from e
        log.debug("JSON reply from modem", action=action, body=body)

        return decode_envelope(action, body, response_type)

    async def login(self, username: str, password: str) -> None:
        """Run both login phases. Any failure leaves the client in FAILED for good."""
        if self.state is not SessionState.UNAUTHENTICATED:
            raise SessionStateError(f"Can't login from state {self.state.value}")

        try:
            challenge = await self._request_challenge(username)
            await self._login_with_challenge(username, password, challenge)
        except ModemError:
            self.state = SessionState.FAILED
            raise

        self.state = SessionState.AUTHENTICATED
        log.info("Logged in", username=username)

    async def _request_challenge(self, username: str) -> LoginResponse:
        # challenge and pubkey should be contained here
        response = await self._send_action(
            LOGIN_ACTION,
            {"Action": "request", "Username": username},
            LoginResponse,
            "login_challenge",
        )
        self.state = SessionState.CHALLENGE_OBTAINED
        log.debug("Got login challenge", public_key=response.public_key[:8])
        return response

    async def _login_with_challenge(
        self, username: str, password: str, challenge: LoginResponse
    ) -> LoginWithChallengeResponse:
        private_key = hex_hmac_md5(challenge.public_key + password, challenge.challenge)
        async with self._lock:
            self.cookie = challenge.cookie
            self.private_key = private_key
        log.debug("Derived private key", private_key=private_key[:8])

        login_password = hex_hmac_md5(private_key, challenge.challenge)

        # this second login attempt is the real login attempt
        response = await self._send_action(
            LOGIN_ACTION,
            {
                "Action": "login",
                "Username": username,
                "LoginPassword": login_password,
                "Captcha": "",
                "PrivateLogin": "LoginPassword",
            },
            LoginWithChallengeResponse,
            "login",
        )

        result = response.get_result()
        if result == "OK":
            return response
        if result in _LOGIN_FAILURES:
            error_class, message = _LOGIN_FAILURES[result]
            log.error("Login rejected", result=result, reason=message)
            raise error_class(message, payload=result)
        log.error("Unknown login result from modem", result=result)
        raise UnexpectedStatusError(f"Unknown login result {result!r}", payload=result)

    def _require_authenticated(self, what: str) -> None:
        if not self.is_authenticated:
            raise SessionStateError(f"{what} requires login; state is {self.state.value}")

    async def metrics(self) -> GetMultipleHNAPsMetricsResponse:
        self._require_authenticated("metrics")
        return await self._send_action(
            MULTIPLE_ACTION,
            {name: "" for name in METRICS_ACTIONS},
            GetMultipleHNAPsMetricsResponse,
            "metrics",
        )

    async def logs(self) -> GetMultipleHNAPsLogsResponse:
        self._require_authenticated("logs")
        return await self._send_action(
            MULTIPLE_ACTION,
            {name: "" for name in LOGS_ACTIONS},
            GetMultipleHNAPsLogsResponse,
            "logs",
        )
