"""
Logging helpers for the cnMaestro exporter.

Library modules log through :func:`get_logger` and never configure handlers;
the command line entry point calls :func:`configure_logging` once.
"""

import logging
import json
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "cnmaestro_exporter"
LOG_FORMAT = "%(asctime)s %(levelname)s %(filename)s:%(lineno)d %(message)s"
TRUNCATED = "... [truncated]"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger below the package namespace.

    Args:
        name: Optional module name, usually ``__name__``. Names outside the
              package are nested under it.

    Returns:
        A logger instance for the specified name
    """
    if name is None or name == PACKAGE_LOGGER:
        return logging.getLogger(PACKAGE_LOGGER)
    if name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr with file and line information."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    # connection pool chatter drowns the fetch log at debug level
    logging.getLogger("urllib3").setLevel(logging.INFO)


def _shorten(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + TRUNCATED
    return text


def _loggable(value: Any, max_length: int) -> Any:
    if isinstance(value, (dict, list)):
        try:
            return _shorten(json.dumps(value), max_length)
        except (TypeError, ValueError):
            return f"<complex structure: {type(value).__name__}>"
    if isinstance(value, str):
        return _shorten(value, max_length)
    return value


def log_extra_fields(
    logger: logging.Logger,
    obj_name: str,
    obj_id: str,
    extra_fields: Dict[str, Any],
    max_length: int = 300,
):
    """
    Log fields the controller returned that no response schema declares.

    New controller releases add fields silently, so this is the first place
    to look when a metric goes missing.

    Args:
        logger: Logger to use
        obj_name: Name of the schema (e.g., 'DeviceResponse').
        obj_id: Identifier for the specific object (e.g., MAC address).
        extra_fields: Dictionary of extra fields.
        max_length: Maximum length for field values in the log. Default is 300.
    """
    if not extra_fields or not logger.isEnabledFor(logging.DEBUG):
        return

    fields = {key: _loggable(value, max_length) for key, value in extra_fields.items()}
    logger.debug(f"Extra fields for {obj_name} {obj_id}: {json.dumps(fields)}")


def log_api_response(
    logger: logging.Logger,
    url: str,
    response_data: Any,
    status_code: int,
    truncate: bool = True,
    max_length: int = 500,
):
    """
    Log a decoded API response body at debug level.

    Args:
        logger: Logger to use
        url: The API URL that was called.
        response_data: The decoded JSON body.
        status_code: HTTP status code.
        truncate: Whether to truncate large bodies. Default is True.
        max_length: Maximum length of the logged body if truncated. Default is 500.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return

    try:
        body = json.dumps(response_data)
    except (TypeError, ValueError) as e:
        logger.debug(f"API Response from {url} (Status: {status_code}) - Error serializing: {e}")
        return

    if truncate:
        body = _shorten(body, max_length)
    logger.debug(f"API Response from {url} (Status: {status_code}):\n{body}")
