"""
Functions for turning cnMaestro models into JSON.

Used by the debug endpoint, which dumps exactly what a scrape would see.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models.ap_group import APGroupSummary
from .models.device import Device


class CnMaestroEncoder(json.JSONEncoder):
    def default(self, obj):
        if hasattr(obj, "to_dict") and callable(getattr(obj, "to_dict")):
            return obj.to_dict()
        if isinstance(obj, datetime):
            return obj.isoformat()
        try:
            return super().default(obj)
        except TypeError:
            return str(obj)


def to_dict_list(items: List[Any]) -> List[Dict[str, Any]]:
    """
    Convert a list of cnMaestro model objects to a list of dictionaries.

    Args:
        items: List of model objects (Device, APGroupSummary, ...) or plain dictionaries

    Returns:
        List of dictionaries with standardized structure
    """
    result = []

    for item in items:
        if hasattr(item, "to_dict") and callable(getattr(item, "to_dict")):
            result.append(item.to_dict())
        elif isinstance(item, dict):
            result.append(item)

    return result


def debug_snapshot(group: Optional[APGroupSummary], devices: List[Device]) -> Dict[str, Any]:
    """Combine an AP group summary and its devices into one JSON-ready mapping."""
    return {
        "apgroup": group.to_dict() if group is not None else None,
        "devices": to_dict_list(devices),
    }


def dumps(data: Any, indent: Optional[int] = None) -> str:
    """Serialize ``data`` with support for model objects and datetimes."""
    return json.dumps(data, indent=indent, cls=CnMaestroEncoder)
