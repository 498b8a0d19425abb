"""
Models for cnMaestro access points and their radios.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import CnMaestroDataError
from ..logging import get_logger, log_extra_fields
from ..utils import build_model, require_list

logger = get_logger(__name__)

_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")

# Fields requested from the device statistics endpoint. The profile filter
# is formatted with the AP group name.
DEVICE_FIELDS = [
    "$inventory",
    "model", "mac", "tid", "sn", "sys.online", "sys.upTime", "sys.dnTime", "sys.lastRbt.uTs",
    "sys.lastRbt.code", "mgmt.actSw", "cfg.name", "lstUpd", "radio.mac",
    "radio.MIRTName", "config.profile:%s",

    "$radios",
    "id", "rxAvg", "txAvg", "band", "radios.mac", "channel", "chWidth", "rfqlt", "pow",
]


class Band(str, Enum):
    """WiFi band of a radio, as used in metric labels."""

    BGN = "2.4"
    AC = "5"
    UNKNOWN = "unknown"

    @classmethod
    def from_api(cls, value: str) -> "Band":
        if value == "2.4GHz":
            return cls.BGN
        if value == "5GHz":
            return cls.AC
        return cls.UNKNOWN


def parse_int_or_sentinel(value: Any) -> int:
    """
    Parse a decimal integer string, returning -1 for anything unparsable.

    Only an optional sign and ASCII digits are accepted; surrounding blanks,
    underscores and other numerals give -1.
    """
    if isinstance(value, bool):
        return -1
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        return -1
    return int(value)


def epoch_to_datetime(seconds: float, context: str) -> datetime:
    """
    Convert epoch seconds to an aware UTC datetime.

    Raises:
        CnMaestroDataError: If the timestamp is outside the supported range.
    """
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise CnMaestroDataError(f"{context}: timestamp {seconds!r} out of range: {e}") from e


def ms_to_datetime(ms: int, context: str = "timestamp") -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return epoch_to_datetime(ms / 1000, context)


@dataclass
class RebootRecord:
    """One entry of a device's reboot history."""
    unixtime: int = field(default=0, metadata={"api_field": "uTs"})
    reason: str = field(default="", metadata={"api_field": "code"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def rebooted_at(self) -> datetime:
        return epoch_to_datetime(self.unixtime, "sys.lastRbt.uTs")

    def to_dict(self) -> Dict[str, Any]:
        return {"rebooted_at": self.rebooted_at.isoformat(), "reason": self.reason}


@dataclass
class Radio:
    """
    Normalized state of a single AP radio.

    Channel and channel width are -1 when the controller reported something
    that is not a number. Throughput is in bits per second.
    """
    band: Band = Band.UNKNOWN
    channel: int = -1
    channel_width: int = -1
    power: int = 0
    quality: int = 0
    rx: int = 0
    tx: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.__dict__)
        result["band"] = self.band.value
        return result


@dataclass
class RadioResponse:
    """Radio entry as returned by the controller (rates in kbit/s)."""
    id: int = 0
    band: str = ""
    channel_width: Any = field(default="", metadata={"api_field": "chWidth"})
    channel: Any = ""
    mac: str = ""
    power: int = field(default=0, metadata={"api_field": "pow"})
    quality: int = field(default=0, metadata={"api_field": "rfqlt"})
    rx_avg: int = field(default=0, metadata={"api_field": "rxAvg"})
    tx_avg: int = field(default=0, metadata={"api_field": "txAvg"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Any) -> "RadioResponse":
        return build_model(cls, data, "radio")

    def normalize(self) -> Radio:
        return Radio(
            band=Band.from_api(self.band),
            channel=parse_int_or_sentinel(self.channel),
            channel_width=parse_int_or_sentinel(self.channel_width),
            power=self.power,
            quality=self.quality,
            # controller reports kbit/s
            rx=self.rx_avg * 1000,
            tx=self.tx_avg * 1000,
        )


@dataclass
class DeviceConfigResponse:
    name: str = ""

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class DeviceSystemResponse:
    online: bool = False
    up_time: int = field(default=0, metadata={"api_field": "upTime"})
    down_time: int = field(default=0, metadata={"api_field": "dnTime"})
    reboots: List[RebootRecord] = field(default_factory=list, metadata={"api_field": "lastRbt"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class DeviceManagementResponse:
    firmware_version: str = field(default="", metadata={"api_field": "actSw"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class DeviceResponse:
    """
    Device entry as returned by the controller's device statistics endpoint.

    Nested ``cfg``, ``sys`` and ``mgmt`` objects are decoded into their own
    schemas; missing objects fall back to empty defaults.
    """
    model: str = ""
    mac: str = ""
    serial: str = field(default="", metadata={"api_field": "sn"})
    site_name: str = field(default="", metadata={"api_field": "tid"})
    config: DeviceConfigResponse = field(
        default_factory=DeviceConfigResponse, metadata={"api_field": "cfg"})
    system: DeviceSystemResponse = field(
        default_factory=DeviceSystemResponse, metadata={"api_field": "sys"})
    management: DeviceManagementResponse = field(
        default_factory=DeviceManagementResponse, metadata={"api_field": "mgmt"})
    radios: List[RadioResponse] = field(default_factory=list)

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Any) -> "DeviceResponse":
        device = build_model(cls, data, "device")
        context = f"device {device.mac or '?'}"

        device.config = _decode_nested(DeviceConfigResponse, device.config, f"{context} cfg")
        device.management = _decode_nested(
            DeviceManagementResponse, device.management, f"{context} mgmt")
        device.system = _decode_nested(DeviceSystemResponse, device.system, f"{context} sys")
        device.system.reboots = [
            build_model(RebootRecord, r, f"{context} sys.lastRbt")
            for r in require_list(device.system.reboots, f"{context} sys.lastRbt")
        ]
        device.radios = [
            RadioResponse.from_api(r)
            for r in require_list(device.radios, f"{context} radios")
        ]

        for part in (device, device.config, device.system, device.management):
            log_extra_fields(logger, type(part).__name__, device.mac, part._extra_fields)

        return device

    def last_reboot(self) -> Optional[RebootRecord]:
        """Return the reboot record with the latest timestamp, if any."""
        last = None
        for record in self.system.reboots:
            if last is None or record.unixtime > last.unixtime:
                last = record
        return last

    def normalize(self) -> "Device":
        dev = Device(
            model=self.model,
            mac=self.mac,
            serial=self.serial,
            site_name=self.site_name,
            hostname=self.config.name,
            firmware_version=self.management.firmware_version,
        )

        if self.system.online:
            dev.online_since = ms_to_datetime(self.system.up_time, f"device {self.mac} sys.upTime")
        else:
            dev.offline_since = ms_to_datetime(self.system.down_time, f"device {self.mac} sys.dnTime")

        last = self.last_reboot()
        if last is not None:
            dev.last_reboot_at = last.rebooted_at
            dev.reboot_reason = last.reason

        dev.radios = [radio.normalize() for radio in self.radios]
        return dev


def _decode_nested(model_class, value: Any, context: str):
    # absent objects keep their default instance
    if isinstance(value, model_class):
        return value
    return build_model(model_class, value, context)


@dataclass
class Device:
    """
    Basic state of a single WiFi AP, constructed from a DeviceResponse.

    Exactly one of ``online_since`` and ``offline_since`` is set.
    """
    mac: str
    model: str = ""
    serial: str = ""
    site_name: str = ""
    hostname: str = ""
    firmware_version: str = ""
    online_since: Optional[datetime] = None
    offline_since: Optional[datetime] = None
    last_reboot_at: Optional[datetime] = None
    reboot_reason: str = ""
    radios: List[Radio] = field(default_factory=list)

    def uptime(self, now: datetime) -> Optional[float]:
        """Seconds the device has been online, or None if it is offline."""
        return _seconds_between(self.online_since, now)

    def downtime(self, now: datetime) -> Optional[float]:
        """Seconds the device has been offline, or None if it is online."""
        return _seconds_between(self.offline_since, now)

    def since_reboot(self, now: datetime) -> Optional[float]:
        """Seconds since the last known reboot, or None without reboot history."""
        return _seconds_between(self.last_reboot_at, now)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the Device to a dictionary.

        Returns:
            Dictionary representation with timestamps in ISO 8601 format.
        """
        result = {k: v for k, v in self.__dict__.items() if not k.startswith('_')}
        for key in ("online_since", "offline_since", "last_reboot_at"):
            if result[key] is not None:
                result[key] = result[key].isoformat()
        result["radios"] = [radio.to_dict() for radio in self.radios]
        return result


def _seconds_between(instant: Optional[datetime], now: datetime) -> Optional[float]:
    if instant is None:
        return None
    return (now - instant).total_seconds()
