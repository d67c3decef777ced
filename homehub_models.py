from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from homehub_client_exceptions import ProtocolException
from homehub_utils import first_non_empty, safe_float, to_bool


class XPath(Enum):
    BANDWIDTH_MONITORING = "Device/Services/BandwidthMonitoring"
    CONNECTED_DEVICES = "Device/Hosts/Hosts"
    DOWNLOADED_BYTES = "Device/IP/Interfaces/Interface[@uid='1']/Stats/BytesReceived"
    DOWNLOAD_RATE = "Device/DSL/Channels/Channel[@uid='1']/DownstreamCurrRate"
    FIRMWARE_VERSION = "Device/DeviceInfo/ExternalFirmwareVersion"
    UPLOADED_BYTES = "Device/IP/Interfaces/Interface[@uid='1']/Stats/BytesSent"
    UPLOAD_RATE = "Device/DSL/Channels/Channel[@uid='1']/UpstreamCurrRate"
    UP_TIME = "Device/DeviceInfo/UpTime"


SUMMARY_XPATHS = (
    XPath.CONNECTED_DEVICES,
    XPath.DOWNLOADED_BYTES,
    XPath.DOWNLOAD_RATE,
    XPath.FIRMWARE_VERSION,
    XPath.UPLOADED_BYTES,
    XPath.UPLOAD_RATE,
    XPath.UP_TIME,
)


class InterfaceType(Enum):
    WIFI = "WiFi"
    ETHERNET = "Ethernet"


class Method(Enum):
    LOG_IN = "logIn"
    GET_VALUE = "getValue"
    UPLOAD_BM_STATISTICS_FILE = "uploadBMStatisticsFile"


# ---- request side ----

@dataclass(frozen=True)
class Nss:
    name: str = "gtw"
    uri: str = "http://sagemcom.com/gateway-data"

    def to_json(self) -> dict:
        return {"name": self.name, "uri": self.uri}


@dataclass(frozen=True)
class ContextFlags:
    get_content_name: bool = False
    local_time: bool = False

    def to_json(self) -> dict:
        return {"get-content-name": self.get_content_name, "local-time": self.local_time}


@dataclass(frozen=True)
class CapabilityFlags:
    """Only flags that are set go on the wire."""
    name: bool = False
    default_value: bool = False
    restriction: bool = False
    description: bool = False
    interface: bool = False

    def to_json(self) -> dict:
        flags = {
            "name": self.name,
            "default-value": self.default_value,
            "restriction": self.restriction,
            "description": self.description,
            "interface": self.interface,
        }
        return {k: v for k, v in flags.items() if v}


@dataclass(frozen=True)
class SessionOptions:
    nss: tuple[Nss, ...] = (Nss(),)
    language: str = "ident"
    context_flags: ContextFlags = ContextFlags(get_content_name=True, local_time=True)
    capability_depth: int = 2
    capability_flags: CapabilityFlags = CapabilityFlags(name=True, restriction=True)
    time_format: str = "ISO_8601"

    def to_json(self) -> dict:
        return {
            "nss": [n.to_json() for n in self.nss],
            "language": self.language,
            "context-flags": self.context_flags.to_json(),
            "capability-flags": self.capability_flags.to_json(),
            "capability-depth": self.capability_depth,
            "time-format": self.time_format,
        }


@dataclass(frozen=True)
class Action:
    id: int
    method: Method
    xpath: Optional[XPath] = None
    parameters: Optional[dict[str, Any]] = None
    capability_flags: Optional[CapabilityFlags] = None

    def to_json(self) -> dict:
        data: dict[str, Any] = {"id": self.id, "method": self.method.value}
        if self.xpath is not None:
            data["xpath"] = self.xpath.value
        if self.parameters is not None:
            data["parameters"] = self.parameters
        if self.capability_flags is not None:
            data["options"] = {"capability-flags": self.capability_flags.to_json()}
        return data


@dataclass
class RequestEnvelope:
    id: int
    session_id: str
    actions: list[Action]
    cnonce: int
    auth_key: str
    priority: bool = False

    def to_json(self) -> dict:
        return {
            "request": {
                "id": self.id,
                "session-id": self.session_id,
                "priority": self.priority,
                "actions": [a.to_json() for a in self.actions],
                "cnonce": self.cnonce,
                "auth-key": self.auth_key,
            }
        }


# ---- response side ----

@dataclass
class ReplyError:
    code: int = 0
    description: str = ""

    @classmethod
    def from_json(cls, data: Optional[dict]) -> ReplyError:
        data = data or {}
        return cls(code=int(data.get("code", 0)), description=str(data.get("description", "")))


@dataclass
class ResponseCallback:
    xpath: str
    parameters: dict[str, Any]
    result: ReplyError = field(default_factory=ReplyError)
    uid: int = 0

    @property
    def value(self) -> Any:
        return self.parameters.get("value")

    @classmethod
    def from_json(cls, data: dict) -> ResponseCallback:
        return cls(
            uid=data.get("uid", 0),
            xpath=data.get("xpath", ""),
            parameters=data.get("parameters") or {},
            result=ReplyError.from_json(data.get("result")),
        )


@dataclass
class ResponseAction:
    callbacks: list[ResponseCallback]
    error: ReplyError = field(default_factory=ReplyError)
    id: int = 0
    uid: int = 0

    @classmethod
    def from_json(cls, data: dict) -> ResponseAction:
        return cls(
            uid=data.get("uid", 0),
            id=data.get("id", 0),
            error=ReplyError.from_json(data.get("error")),
            callbacks=[ResponseCallback.from_json(c) for c in data.get("callbacks") or []],
        )


@dataclass
class ResponseEnvelope:
    error: ReplyError
    actions: list[ResponseAction]
    id: int = 0
    uid: int = 0

    @classmethod
    def from_json(cls, data: dict) -> ResponseEnvelope:
        reply = data["reply"]
        return cls(
            uid=reply.get("uid", 0),
            id=reply.get("id", 0),
            error=ReplyError.from_json(reply.get("error")),
            actions=[ResponseAction.from_json(a) for a in reply.get("actions") or []],
        )

    def first_callback(self) -> ResponseCallback:
        if not self.actions or not self.actions[0].callbacks:
            raise ProtocolException("Reply carries no callbacks")
        return self.actions[0].callbacks[0]


@dataclass
class HubResponse:
    """Decoded HTTP reply: a JSON envelope or an opaque text body."""
    envelope: Optional[ResponseEnvelope] = None
    body: str = ""

    def require_envelope(self) -> ResponseEnvelope:
        if self.envelope is None:
            raise ProtocolException("Expected a JSON reply from the hub")
        return self.envelope


# ---- domain ----

@dataclass
class Device:
    mac_address: str
    ip_address: str
    host_name: str
    interface_type: str
    active: bool

    @classmethod
    def from_json(cls, data: dict) -> Device:
        return cls(
            mac_address=str(data.get("PhysAddress", "")).upper(),
            ip_address=str(data.get("IPAddress", "")),
            host_name=str(first_non_empty(data.get("UserHostName"), data.get("HostName"), data.get("Alias"))),
            interface_type=str(data.get("InterfaceType", "")),
            active=to_bool(data.get("Active", False)),
        )

    @property
    def is_monitored(self) -> bool:
        return self.active and self.interface_type in InterfaceType._value2member_map_


@dataclass
class SummaryStatistics:
    """Values of one summary batch; a field stays None when its callback could not be decoded."""
    devices: Optional[list[Device]] = None
    downloaded_bytes: Optional[float] = None
    download_rate: Optional[float] = None
    firmware_version: Optional[str] = None
    uploaded_bytes: Optional[float] = None
    upload_rate: Optional[float] = None
    uptime: Optional[float] = None


@dataclass(frozen=True)
class ExportTriggered:
    filename: str


@dataclass(frozen=True)
class ExportFetched:
    filename: str
    body: str


@dataclass(frozen=True)
class BandwidthRecord:
    serial: str
    mac_address: str
    date: str
    downloaded: float
    uploaded: float

    @classmethod
    def from_line(cls, line: str) -> Optional[BandwidthRecord]:
        fields = [f.strip() for f in line.strip().split(",")]
        if len(fields) < 5:
            return None
        return cls(
            serial=fields[0],
            mac_address=fields[1].upper(),
            date=fields[2],
            downloaded=safe_float(fields[3]),
            uploaded=safe_float(fields[4]),
        )


@dataclass
class DeviceBandwidth:
    mac_address: str
    uploaded: float = 0.0
    downloaded: float = 0.0

    def add(self, record: BandwidthRecord):
        self.uploaded += record.uploaded
        self.downloaded += record.downloaded
