"""
Utility functions for the cnMaestro exporter package.
"""

import dataclasses
import inspect
import time
from typing import Any, Dict, List, Optional, Tuple, Type

from .exceptions import CnMaestroAPIError, CnMaestroDataError


_SCALAR_TYPES = (bool, int, float, str)


def get_api_field_mapping(model_class: Type) -> Dict[str, str]:
    """
    Create a mapping between API field names and model attribute names.

    Examines dataclass fields with metadata to find mappings between
    API field names (like 'sn') and Python attribute names (like 'serial').

    Args:
        model_class: The dataclass model to examine for field mappings

    Returns:
        Dictionary mapping controller API field names to Python model attribute names
    """
    if not dataclasses.is_dataclass(model_class):
        return {}

    field_mapping = {}

    for field in dataclasses.fields(model_class):
        if "api_field" in field.metadata:
            field_mapping[field.metadata["api_field"]] = field.name

    return field_mapping


def map_api_data_to_model(
    data: Dict[str, Any], model_class: Type
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Maps API data to model fields, separating model fields from extra fields.

    Keys are matched either directly against the constructor parameters or
    through the ``api_field`` metadata of the dataclass fields. Explicit JSON
    ``null`` values are dropped so the field default applies.

    Args:
        data: Input dictionary from API response
        model_class: The dataclass model to map data to

    Returns:
        Tuple containing (model_fields, extra_fields) where:
            - model_fields: Dictionary of fields that map to the model's attributes
            - extra_fields: Dictionary of extra fields that don't directly map to the model
    """
    signature = inspect.signature(model_class.__init__)
    valid_params = set(signature.parameters.keys())
    valid_params.discard("self")

    field_map = get_api_field_mapping(model_class)

    model_fields = {}
    extra_fields = {}

    for api_key, value in data.items():
        mapped_key = None

        if api_key in field_map and field_map[api_key] in valid_params:
            mapped_key = field_map[api_key]
        elif api_key in valid_params and api_key not in field_map.values():
            mapped_key = api_key

        if mapped_key is None:
            extra_fields[api_key] = value
        elif value is not None:
            model_fields[mapped_key] = value

    return model_fields, extra_fields


def check_scalar_types(model_class: Type, model_fields: Dict[str, Any], context: str) -> None:
    """
    Verify that scalar model fields carry the JSON type their annotation declares.

    Only ``bool``, ``int``, ``float`` and ``str`` annotations are checked; nested
    structures are validated by the model's own decoder.

    Raises:
        CnMaestroDataError: If a value has the wrong type.
    """
    types = {f.name: f.type for f in dataclasses.fields(model_class)}
    for name, value in model_fields.items():
        expected = types.get(name)
        if expected not in _SCALAR_TYPES:
            continue
        if expected is float:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        elif expected is int:
            ok = isinstance(value, int) and not isinstance(value, bool)
        else:
            ok = isinstance(value, expected)
        if not ok:
            raise CnMaestroDataError(
                f"{context}: field '{name}' expected {expected.__name__}, "
                f"got {type(value).__name__}"
            )


def require_object(data: Any, context: str) -> Dict[str, Any]:
    """Return ``data`` if it is a JSON object, raise CnMaestroDataError otherwise."""
    if not isinstance(data, dict):
        raise CnMaestroDataError(f"{context}: expected object, got {type(data).__name__}")
    return data


def require_list(data: Any, context: str) -> List[Any]:
    """Return ``data`` if it is a JSON array, raise CnMaestroDataError otherwise."""
    if not isinstance(data, list):
        raise CnMaestroDataError(f"{context}: expected array, got {type(data).__name__}")
    return data


def dig(data: Any, *keys: str, context: str) -> Any:
    """
    Walk nested JSON objects along ``keys``.

    Every intermediate value must be an object containing the next key.

    Raises:
        CnMaestroDataError: If a level is missing or not an object.
    """
    current = data
    path = []
    for key in keys:
        path.append(key)
        current = require_object(current, context)
        if key not in current:
            raise CnMaestroDataError(f"{context}: missing '{'.'.join(path)}'")
        current = current[key]
    return current


class Deadline:
    """
    Wall-clock budget for one scrape.

    Every upstream call asks for the remaining time and uses it as its
    request timeout. ``None`` means no limit.
    """

    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> Optional[float]:
        """
        Seconds left before the deadline.

        Raises:
            CnMaestroAPIError: If the deadline has already passed.
        """
        if self._expires_at is None:
            return None
        left = self._expires_at - time.monotonic()
        if left <= 0:
            raise CnMaestroAPIError(
                f"scrape deadline of {self.timeout:.1f}s exceeded"
            )
        return left


def build_model(model_class: Type, data: Any, context: str):
    """
    Decode one JSON object into ``model_class``.

    Known fields are type-checked and passed to the constructor, anything
    else lands in the instance's ``_extra_fields``.

    Raises:
        CnMaestroDataError: If ``data`` is not an object or a field has the wrong type.
    """
    data = require_object(data, context)
    model_fields, extra_fields = map_api_data_to_model(data, model_class)
    check_scalar_types(model_class, model_fields, context)
    try:
        instance = model_class(**model_fields)
    except (TypeError, ValueError) as e:
        raise CnMaestroDataError(f"{context}: {e}") from e
    if hasattr(instance, "_extra_fields"):
        instance._extra_fields = extra_fields
    return instance
