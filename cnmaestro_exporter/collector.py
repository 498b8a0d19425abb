"""
Prometheus collectors for cnMaestro AP groups and guest portals.

A collector instance serves exactly one scrape: every call to ``collect``
queries the controller again and nothing is cached. When any upstream call
fails, only ``cambium_maestro_up 0`` is exported so that a scrape never
carries a partial snapshot.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from .api_client import CnMaestroClient
from .exceptions import CnMaestroError
from .logging import get_logger
from .utils import Deadline

logger = get_logger(__name__)

NAMESPACE = "cambium_maestro"

GROUP_LABELS = ["name"]
AP_LABELS = ["apgroup", "mac"]
RADIO_LABELS = ["apgroup", "ap", "band"]


def _name(*parts: str) -> str:
    return "_".join([NAMESPACE, *parts])


def up_metric(value: float) -> GaugeMetricFamily:
    return GaugeMetricFamily(
        _name("up"), "indicator whether cloud controller is reachable", value=value
    )


class _Families:
    """Ordered set of gauge families built up during one collection."""

    def __init__(self):
        self._families: Dict[str, GaugeMetricFamily] = {}

    def define(self, name: str, documentation: str, labels: List[str]) -> None:
        self._families[name] = GaugeMetricFamily(name, documentation, labels=labels)

    def add(self, name: str, labels: List[str], value: Optional[float]) -> None:
        if value is not None:
            self._families[name].add_metric(labels, float(value))

    def __iter__(self) -> Iterator[GaugeMetricFamily]:
        return iter(self._families.values())


class FleetCollector(Collector):
    """Metrics for one WiFi AP group and all of its access points."""

    def __init__(
        self,
        client: CnMaestroClient,
        ap_group: str,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.client = client
        self.ap_group = ap_group
        self.timeout = timeout
        self.clock = clock

    def collect(self) -> Iterator[Metric]:
        logger.debug(f"collecting metrics for {self.ap_group}")
        deadline = Deadline(self.timeout)

        try:
            group = self.client.fetch_ap_group_data(self.ap_group, timeout=deadline.remaining())
            if group is None:
                raise CnMaestroError(f"AP group {self.ap_group!r} not found")
        except CnMaestroError as e:
            logger.error(f"fetching AP group data for {self.ap_group} failed with {e}")
            yield up_metric(0)
            return

        try:
            devices = self.client.fetch_devices(self.ap_group, timeout=deadline.remaining())
        except CnMaestroError as e:
            logger.error(f"fetching device data for {self.ap_group} failed with {e}")
            yield up_metric(0)
            return

        now = self.clock()
        name = group.name
        families = _Families()

        for metric, help_text, value in (
            ("devices_count", "number of adopted devices", group.device_count),
            ("devices_offline_count", "number of offline devices", group.offline_count),
            ("devices_out_of_sync_count", "number of devices with old configuration",
             group.out_of_sync_count),
            ("client_count", "number of currently connected clients", group.client_count),
            ("client_count_24h", "number of clients seen in the past 24 hours",
             group.client_count_24h),
        ):
            families.define(_name("ap_group", metric), help_text, GROUP_LABELS)
            families.add(_name("ap_group", metric), [name], value)

        families.define(_name("ap", "up"), "details for AP",
                        AP_LABELS + ["model", "hostname", "serial", "site", "firmware"])
        families.define(_name("ap", "uptime"), "number of uptime seconds", AP_LABELS)
        families.define(_name("ap", "downtime"), "number of downtime seconds", AP_LABELS)
        families.define(_name("ap", "reboot"), "number of seconds since last reboot",
                        AP_LABELS + ["reason"])

        families.define(_name("ap_radio", "channel"), "WiFi channel number", RADIO_LABELS)
        families.define(_name("ap_radio", "channel_width"), "WiFi channel width in MHz",
                        RADIO_LABELS)
        families.define(_name("ap_radio", "power"), "RF transmit power", RADIO_LABELS)
        families.define(_name("ap_radio", "quality"),
                        "RF quality measurement in percentage points", RADIO_LABELS)
        families.define(_name("ap_radio", "transfer_rate"), "current traffic rate in bps",
                        RADIO_LABELS + ["direction"])

        for dev in devices:
            mac = dev.mac
            families.add(_name("ap", "up"), [name, mac, dev.model, dev.hostname, dev.serial,
                                             dev.site_name, dev.firmware_version], 1)
            families.add(_name("ap", "uptime"), [name, mac], dev.uptime(now))
            families.add(_name("ap", "downtime"), [name, mac], dev.downtime(now))
            families.add(_name("ap", "reboot"), [name, mac, dev.reboot_reason],
                         dev.since_reboot(now))

            for radio in dev.radios:
                labels = [name, mac, radio.band.value]
                families.add(_name("ap_radio", "channel"), labels, radio.channel)
                families.add(_name("ap_radio", "channel_width"), labels, radio.channel_width)
                families.add(_name("ap_radio", "power"), labels, radio.power)
                families.add(_name("ap_radio", "quality"), labels, radio.quality)
                families.add(_name("ap_radio", "transfer_rate"), labels + ["out"], radio.tx)
                families.add(_name("ap_radio", "transfer_rate"), labels + ["in"], radio.rx)

        yield up_metric(1)
        yield from families


class PortalCollector(Collector):
    """Session metrics for one guest access portal."""

    def __init__(self, client: CnMaestroClient, portal: str, timeout: Optional[float] = None):
        self.client = client
        self.portal = portal
        self.timeout = timeout

    def collect(self) -> Iterator[Metric]:
        logger.debug(f"collecting metrics for portal {self.portal}")

        try:
            aggregate = self.client.fetch_portal_sessions(
                self.portal, deadline=Deadline(self.timeout)
            )
        except CnMaestroError as e:
            logger.error(f"fetching portal data for {self.portal} failed with {e}")
            yield up_metric(0)
            return

        total = GaugeMetricFamily(
            _name("sessions_count"), "number of active sessions", labels=["name"]
        )
        total.add_metric([self.portal], aggregate.total)

        per_ap = GaugeMetricFamily(
            _name("ap_sessions_count"), "number of active sessions", labels=["portal", "mac"]
        )
        for session in aggregate.sessions:
            per_ap.add_metric([self.portal, session.device_mac], session.sessions)

        yield up_metric(1)
        yield total
        yield per_ap
