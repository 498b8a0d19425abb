"""
Exporter configuration loaded from a YAML file.
"""

import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Union

import yaml

from .exceptions import CnMaestroConfigError
from .session import (
    DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_MAX_FAILURES,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_RETRY_INTERVAL,
)

DEFAULT_SCRAPE_TIMEOUT = 10.0

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Union[int, float, str], key: str) -> float:
    """
    Parse a duration given in seconds or with a unit suffix (``"6h"``, ``"30m"``).

    Raises:
        CnMaestroConfigError: If the value is not a positive duration.
    """
    if isinstance(value, bool):
        raise CnMaestroConfigError(f"{key}: expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise CnMaestroConfigError(f"{key}: invalid duration {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise CnMaestroConfigError(f"{key}: duration must be positive")
    return seconds


@dataclass
class Config:
    """
    Settings for one cnMaestro instance.

    Either ``username``/``password`` or a pre-established ``session_id`` is
    required.
    """
    instance: str
    username: str = ""
    password: str = ""
    session_id: str = ""
    verify_ssl: Union[bool, str] = True
    login_timeout: float = DEFAULT_LOGIN_TIMEOUT
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    max_refresh_failures: int = DEFAULT_MAX_FAILURES
    scrape_timeout: float = DEFAULT_SCRAPE_TIMEOUT

    @property
    def uses_credentials(self) -> bool:
        return bool(self.username and self.password)


_DURATION_KEYS = ("login_timeout", "refresh_interval", "retry_interval", "scrape_timeout")
_STRING_KEYS = ("instance", "username", "password", "session_id")


def config_from_dict(data: Dict[str, Any]) -> Config:
    """
    Validate a parsed configuration mapping.

    Raises:
        CnMaestroConfigError: On unknown keys, missing or invalid values.
    """
    if not isinstance(data, dict):
        raise CnMaestroConfigError("configuration must be a mapping")

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise CnMaestroConfigError(f"unknown configuration keys: {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for key in _STRING_KEYS:
        if data.get(key) is None:
            continue
        if not isinstance(data[key], str):
            raise CnMaestroConfigError(f"{key}: expected a string")
        values[key] = data[key].strip()

    if not values.get("instance"):
        raise CnMaestroConfigError("instance: controller URL is required")
    if not values.get("session_id") and not (values.get("username") and values.get("password")):
        raise CnMaestroConfigError("either username and password or session_id is required")

    for key in _DURATION_KEYS:
        if data.get(key) is not None:
            values[key] = parse_duration(data[key], key)

    if data.get("verify_ssl") is not None:
        if not isinstance(data["verify_ssl"], (bool, str)):
            raise CnMaestroConfigError("verify_ssl: expected a boolean or a CA bundle path")
        values["verify_ssl"] = data["verify_ssl"]

    failures = data.get("max_refresh_failures")
    if failures is not None:
        if not isinstance(failures, int) or isinstance(failures, bool) or failures < 0:
            raise CnMaestroConfigError("max_refresh_failures: expected a non-negative integer")
        values["max_refresh_failures"] = failures

    return Config(**values)


def load_config(path: str) -> Config:
    """Load YAML configuration.

    Args:
        path: Path to config YAML.

    Returns:
        Validated configuration.

    Raises:
        CnMaestroConfigError: If the file cannot be read or is invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as e:
        raise CnMaestroConfigError(f"failed to open config file {path!r}: {e}") from e
    except yaml.YAMLError as e:
        raise CnMaestroConfigError(f"loading config file {path!r} failed: {e}") from e

    return config_from_dict(data)
