"""
Prometheus exporter for the Cambium cnMaestro cloud WiFi controller.

This package reads AP group, access point, radio and guest portal state from
the controller's private web API and exposes it as Prometheus metrics.
"""

__version__ = "0.1.0"

from .api_client import CnMaestroClient
from .collector import FleetCollector, PortalCollector
from .config import Config, load_config
from .session import Session, SessionManager, SessionState
from .login import AuthInfo, StaticSessionProvider
from .models import APGroupSummary, Device, PortalSessionAggregate, Radio
from .exceptions import (
    CnMaestroError,
    CnMaestroAuthenticationError,
    CnMaestroAPIError,
    CnMaestroDataError,
    CnMaestroConfigError,
)

__all__ = [
    "CnMaestroClient",
    "FleetCollector",
    "PortalCollector",
    "Config",
    "load_config",
    "Session",
    "SessionManager",
    "SessionState",
    "AuthInfo",
    "StaticSessionProvider",
    "APGroupSummary",
    "Device",
    "PortalSessionAggregate",
    "Radio",
    "CnMaestroError",
    "CnMaestroAuthenticationError",
    "CnMaestroAPIError",
    "CnMaestroDataError",
    "CnMaestroConfigError",
]
