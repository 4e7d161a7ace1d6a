"""
Typed versions of the JSON the modem sends back for each HNAP action.

Every reply looks like `{"<Action>Response": {..., "<Action>Result": "OK"}}`. The Result field is how the modem
tells us something went wrong; HTTP status is 200 regardless.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol, TypeVar

import structlog
from err.exceptions import ApplicationError, DecodeError
from s33 import parse
from s33.parse import Channel, LogEntry

log = structlog.get_logger(__name__)


class HasResult(Protocol):
    """Anything that carries an `<Action>Result` string"""

    def get_result(self) -> str: ...

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HasResult": ...


R = TypeVar("R", bound=HasResult)


def _field(data: dict[str, Any], name: str) -> str:
    """Pull a string field out of a decoded reply, complaining loudly if it's missing"""
    if not isinstance(data, dict):
        raise DecodeError(f"Expected object containing {name}, got {type(data).__name__}", payload=data)
    if name not in data:
        raise DecodeError(f"Missing field {name}", payload=data)
    value = data[name]
    if not isinstance(value, str):
        raise DecodeError(f"Field {name} is {type(value).__name__}, expected string", payload=data)
    return value


def _object(data: dict[str, Any], name: str) -> dict[str, Any]:
    if not isinstance(data, dict) or not isinstance(data.get(name), dict):
        raise DecodeError(f"Missing or non-object field {name}", payload=data)
    return data[name]


@dataclass
class LoginResponse:
    public_key: str
    challenge: str
    cookie: str
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            public_key=_field(data, "PublicKey"),
            challenge=_field(data, "Challenge"),
            cookie=_field(data, "Cookie"),
            result=_field(data, "LoginResult"),
        )


@dataclass
class LoginWithChallengeResponse:
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(result=_field(data, "LoginResult"))


@dataclass
class StatusStartupSequenceResponse:
    downstream_frequency: str
    downstream_comment: str
    connectivity_status: str
    connectivity_comment: str
    boot_status: str
    boot_comment: str
    configuration_file_status: str
    configuration_file_comment: str
    security_status: str
    security_comment: str
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            downstream_frequency=_field(data, "CustomerConnDSFreq"),
            downstream_comment=_field(data, "CustomerConnDSComment"),
            connectivity_status=_field(data, "CustomerConnConnectivityStatus"),
            connectivity_comment=_field(data, "CustomerConnConnectivityComment"),
            boot_status=_field(data, "CustomerConnBootStatus"),
            boot_comment=_field(data, "CustomerConnBootComment"),
            configuration_file_status=_field(data, "CustomerConnConfigurationFileStatus"),
            configuration_file_comment=_field(data, "CustomerConnConfigurationFileComment"),
            security_status=_field(data, "CustomerConnSecurityStatus"),
            security_comment=_field(data, "CustomerConnSecurityComment"),
            result=_field(data, "GetCustomerStatusStartupSequenceResult"),
        )


@dataclass
class StatusConnectionInfoResponse:
    system_up_time: timedelta
    system_time: datetime
    network_access: str
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            system_up_time=parse.parse_duration(_field(data, "CustomerConnSystemUpTime")),
            system_time=parse.parse_timestamp(_field(data, "CustomerCurSystemTime")),
            network_access=_field(data, "CustomerConnNetworkAccess"),
            result=_field(data, "GetCustomerStatusConnectionInfoResult"),
        )


@dataclass
class ArrisDeviceStatusResponse:
    firmware_version: str
    internet_connection: str
    downstream_frequency: str
    downstream_signal_power: str
    downstream_signal_snr: str
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            firmware_version=_field(data, "FirmwareVersion"),
            internet_connection=_field(data, "InternetConnection"),
            downstream_frequency=_field(data, "DownstreamFrequency"),
            downstream_signal_power=_field(data, "DownstreamSignalPower"),
            downstream_signal_snr=_field(data, "DownstreamSignalSnr"),
            result=_field(data, "GetArrisDeviceStatusResult"),
        )


@dataclass
class ArrisRegisterInfoResponse:
    mac_address: str
    serial_number: str
    model_name: str
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            mac_address=_field(data, "MacAddress"),
            serial_number=_field(data, "SerialNumber"),
            model_name=_field(data, "ModelName"),
            result=_field(data, "GetArrisRegisterInfoResult"),
        )


@dataclass
class StatusDownstreamChannelInfo:
    channels: list[Channel]
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            channels=parse.parse_channels(_field(data, "CustomerConnDownstreamChannel")),
            result=_field(data, "GetCustomerStatusDownstreamChannelInfoResult"),
        )


@dataclass
class StatusUpstreamChannelInfo:
    channels: list[Channel]
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            channels=parse.parse_channels(_field(data, "CustomerConnUpstreamChannel")),
            result=_field(data, "GetCustomerStatusUpstreamChannelInfoResult"),
        )


@dataclass
class GetMultipleHNAPsMetricsResponse:
    device_status: ArrisDeviceStatusResponse
    register_info: ArrisRegisterInfoResponse
    connection_info: StatusConnectionInfoResponse
    downstream: StatusDownstreamChannelInfo
    upstream: StatusUpstreamChannelInfo
    startup_sequence: StatusStartupSequenceResponse
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            device_status=ArrisDeviceStatusResponse.from_dict(
                _object(data, "GetArrisDeviceStatusResponse")
            ),
            register_info=ArrisRegisterInfoResponse.from_dict(
                _object(data, "GetArrisRegisterInfoResponse")
            ),
            connection_info=StatusConnectionInfoResponse.from_dict(
                _object(data, "GetCustomerStatusConnectionInfoResponse")
            ),
            downstream=StatusDownstreamChannelInfo.from_dict(
                _object(data, "GetCustomerStatusDownstreamChannelInfoResponse")
            ),
            upstream=StatusUpstreamChannelInfo.from_dict(
                _object(data, "GetCustomerStatusUpstreamChannelInfoResponse")
            ),
            startup_sequence=StatusStartupSequenceResponse.from_dict(
                _object(data, "GetCustomerStatusStartupSequenceResponse")
            ),
            result=_field(data, "GetMultipleHNAPsResult"),
        )


@dataclass
class StatusLogResponse:
    entries: list[LogEntry]
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            entries=parse.parse_logs(_field(data, "CustomerStatusLogList")),
            result=_field(data, "GetCustomerStatusLogResult"),
        )


@dataclass
class GetMultipleHNAPsLogsResponse:
    status_log: StatusLogResponse
    result: str

    def get_result(self) -> str:
        return self.result

    @classmethod
    def from_dict(cls, data):
        return cls(
            status_log=StatusLogResponse.from_dict(_object(data, "GetCustomerStatusLogResponse")),
            result=_field(data, "GetMultipleHNAPsResult"),
        )


def decode_envelope(action: str, body: Any, response_type: type[R]) -> R:
    """Pull `<action>Response` out of the reply and decode it as `response_type`.

    Raises ApplicationError if the modem said ERROR; every other Result value is left for the caller.
    """
    key = f"{action}Response"
    decoded = response_type.from_dict(_object(body, key))

    if decoded.get_result() == "ERROR":
        log.error("Modem reported ERROR", action=action, body=body)
        raise ApplicationError(f"{action} returned ERROR", payload=body)
    return decoded
