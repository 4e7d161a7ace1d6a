import copy
from dataclasses import dataclass, field

import pytest
from aiohttp import web
from s33.hnap import hex_hmac_md5, hnap_auth
from util.const import SOAP_NAMESPACE, UNDEFINED_PRIVATE_KEY

USERNAME = "admin"
PASSWORD = "hunter2"
PUBLIC_KEY = "0123456789ABCDEF0123"
CHALLENGE = "FEDCBA9876543210FEDC"
COOKIE = "1234567890"

DERIVED_PRIVATE_KEY = hex_hmac_md5(PUBLIC_KEY + PASSWORD, CHALLENGE)

DOWNSTREAM_RAW = (
    "1^Locked^QAM256^9^525000000^1^41^10^2^"
    "|+|2^Locked^OFDM PLC^33^850000000^4^38^1000^0^"
)
UPSTREAM_RAW = (
    "1^Locked^SC-QAM^1^6400000^16400000^46.0^"
    "|+|2^Locked^SC-QAM^2^6400000^22800000^45.5^"
)
LOG_RAW = (
    "0^08:09:10^01/02/2023^5^hello"
    "}-{0^09:09:10^01/02/2023^3^world"
)

_METRICS_BODY = {
    "GetMultipleHNAPsResponse": {
        "GetArrisDeviceStatusResponse": {
            "FirmwareVersion": "TB01.03.001.10_012022_212.S3",
            "InternetConnection": "Connected",
            "DownstreamFrequency": "525000000 Hz",
            "DownstreamSignalPower": "1 dBmV",
            "DownstreamSignalSnr": "41 dB",
            "GetArrisDeviceStatusResult": "OK",
        },
        "GetArrisRegisterInfoResponse": {
            "MacAddress": "AA:BB:CC:DD:EE:FF",
            "SerialNumber": "ABC123456789",
            "ModelName": "S33",
            "GetArrisRegisterInfoResult": "OK",
        },
        "GetCustomerStatusStartupSequenceResponse": {
            "CustomerConnDSFreq": "525000000 Hz",
            "CustomerConnDSComment": "Locked",
            "CustomerConnConnectivityStatus": "OK",
            "CustomerConnConnectivityComment": "Operational",
            "CustomerConnBootStatus": "OK",
            "CustomerConnBootComment": "Operational",
            "CustomerConnConfigurationFileStatus": "OK",
            "CustomerConnConfigurationFileComment": "",
            "CustomerConnSecurityStatus": "Enabled",
            "CustomerConnSecurityComment": "BPI+",
            "GetCustomerStatusStartupSequenceResult": "OK",
        },
        "GetCustomerStatusConnectionInfoResponse": {
            "CustomerConnSystemUpTime": "2 days 03h:04m:05s.00",
            "CustomerCurSystemTime": "Tue Mar 12 14:20:59 2024",
            "CustomerConnNetworkAccess": "Allowed",
            "GetCustomerStatusConnectionInfoResult": "OK",
        },
        "GetCustomerStatusDownstreamChannelInfoResponse": {
            "CustomerConnDownstreamChannel": DOWNSTREAM_RAW,
            "GetCustomerStatusDownstreamChannelInfoResult": "OK",
        },
        "GetCustomerStatusUpstreamChannelInfoResponse": {
            "CustomerConnUpstreamChannel": UPSTREAM_RAW,
            "GetCustomerStatusUpstreamChannelInfoResult": "OK",
        },
        "GetMultipleHNAPsResult": "OK",
    }
}

_LOGS_BODY = {
    "GetMultipleHNAPsResponse": {
        "GetCustomerStatusLogResponse": {
            "CustomerStatusLogList": LOG_RAW,
            "GetCustomerStatusLogResult": "OK",
        },
        "GetMultipleHNAPsResult": "OK",
    }
}


@pytest.fixture
def metrics_body():
    return copy.deepcopy(_METRICS_BODY)


@pytest.fixture
def logs_body():
    return copy.deepcopy(_LOGS_BODY)


@dataclass
class FakeModem:
    """Just enough of the S33 HNAP endpoint to exercise login and polling.

    Every request has its HNAP_AUTH checked against the key the modem expects at that point in the login dance.
    """

    metrics_body: dict
    logs_body: dict
    challenge_body: dict | None = None
    login_result: str | None = None
    status: int = 200
    # raw bytes returned for the second login step instead of a JSON reply
    login_raw: bytes | None = None
    requests: list[dict] = field(default_factory=list)
    logged_in: bool = False

    def _expected_key(self, payload: dict) -> str:
        login = payload.get("Login", {})
        if login.get("Action") == "request":
            return UNDEFINED_PRIVATE_KEY
        return DERIVED_PRIVATE_KEY

    async def handle(self, request: web.Request) -> web.StreamResponse:
        payload = await request.json()
        soap_action = request.headers["SOAPAction"]
        action = soap_action.removeprefix(SOAP_NAMESPACE)
        code, timestamp = request.headers["HNAP_AUTH"].split(" ")
        self.requests.append(
            {
                "action": action,
                "payload": payload,
                "auth": request.headers["HNAP_AUTH"],
                "cookie": request.headers.get("Cookie"),
            }
        )

        if self.status != 200:
            return web.Response(status=self.status, text="nope")

        key = self._expected_key(payload)
        signed_ok = f"{code} {timestamp}" == hnap_auth(key, action, timestamp)

        # modem answers a badly signed login with FAILED rather than an HTTP error
        if action == "Login":
            return self._login(payload["Login"], request.headers.get("Cookie"), signed_ok)
        if not signed_ok:
            return web.Response(status=401, text="bad HNAP_AUTH")
        if not self.logged_in:
            return web.Response(status=401, text="not logged in")
        if "GetCustomerStatusLog" in payload["GetMultipleHNAPs"]:
            return web.json_response(self.logs_body)
        return web.json_response(self.metrics_body)

    def _login(self, params: dict, cookie: str | None, signed_ok: bool) -> web.StreamResponse:
        if params["Action"] == "request":
            body = self.challenge_body or {
                "LoginResponse": {
                    "Challenge": CHALLENGE,
                    "Cookie": COOKIE,
                    "PublicKey": PUBLIC_KEY,
                    "LoginResult": "OK",
                }
            }
            return web.json_response(body)

        if self.login_raw is not None:
            return web.Response(body=self.login_raw, content_type="application/json")

        result = self.login_result
        if result is None:
            expected_cookie = f"Secure; uid={COOKIE}; PrivateKey={DERIVED_PRIVATE_KEY}"
            password_ok = params["LoginPassword"] == hex_hmac_md5(DERIVED_PRIVATE_KEY, CHALLENGE)
            result = "OK" if signed_ok and password_ok and cookie == expected_cookie else "FAILED"
        self.logged_in = result == "OK"
        return web.json_response({"LoginResponse": {"LoginResult": result}})

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/HNAP1/", self.handle)
        return app


@pytest.fixture
def fake_modem(metrics_body, logs_body):
    return FakeModem(metrics_body=metrics_body, logs_body=logs_body)
