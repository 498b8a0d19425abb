"""
Models for cnMaestro AP groups (configuration profiles).
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class APGroupSummary:
    """
    Aggregate counters of one AP group.

    Decoded from the ``/config/profiles`` endpoint when queried with the
    group-scoped field list.
    """
    name: str
    device_count: int = field(default=0, metadata={"api_field": "deviceCount"})
    offline_count: int = field(default=0, metadata={"api_field": "offlineCount"})
    out_of_sync_count: int = field(default=0, metadata={"api_field": "outOfSyncCount"})
    client_count: int = field(default=0, metadata={"api_field": "clientCount"})
    client_count_24h: int = field(default=0, metadata={"api_field": "clientCount24h"})

    _extra_fields: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding internal fields."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}
