"""
Data models for cnMaestro controller API responses.

The ``*Response`` dataclasses mirror the JSON shapes returned by the
controller's private ``/0/cn-srv`` API and are decoded strictly: a value of
the wrong JSON type raises :class:`~cnmaestro_exporter.exceptions.CnMaestroDataError`,
while missing fields fall back to their defaults. Fields not declared on a
schema are kept in the ``_extra_fields`` attribute.

The remaining classes are the normalized entities the metric collectors work
with. They are built fresh for every scrape and never cached.
"""

from .device import (
    Band,
    Device,
    DeviceResponse,
    Radio,
    RadioResponse,
    RebootRecord,
)
from .ap_group import APGroupSummary
from .portal import GuestSessionRecord, PortalSession, PortalSessionAggregate

__all__ = [
    "Band",
    "Device",
    "DeviceResponse",
    "Radio",
    "RadioResponse",
    "RebootRecord",
    "APGroupSummary",
    "GuestSessionRecord",
    "PortalSession",
    "PortalSessionAggregate",
]
