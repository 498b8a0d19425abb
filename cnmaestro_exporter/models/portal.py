"""
Models for cnMaestro guest access portals and their sessions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class GuestSessionRecord:
    """A single guest session as listed by the portal session endpoint."""
    device_mac: str = field(default="", metadata={"api_field": "apMac"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class PortalSession:
    """Number of active guest sessions on one access point."""
    portal_name: str
    device_mac: str
    sessions: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class PortalSessionAggregate:
    """
    Guest sessions of one portal, counted per access point MAC.

    ``total`` is the grand total reported by the controller and is treated as
    authoritative. ``records`` is the number of session records actually
    received across all pages.
    """
    portal_name: str
    counts: Dict[str, int] = field(default_factory=dict)
    total: int = 0
    records: int = 0
    pages: int = 0

    def add(self, device_mac: str) -> None:
        self.counts[device_mac] = self.counts.get(device_mac, 0) + 1
        self.records += 1

    @property
    def consistent(self) -> bool:
        return self.records == self.total

    @property
    def sessions(self) -> List[PortalSession]:
        return [
            PortalSession(portal_name=self.portal_name, device_mac=mac, sessions=n)
            for mac, n in self.counts.items()
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "portal_name": self.portal_name,
            "total": self.total,
            "sessions": [s.to_dict() for s in self.sessions],
        }
