"""
Login providers exchanging credentials for a controller session.

A provider is any object with a ``login(username, password, timeout)``
method returning :class:`AuthInfo`. Failures are raised, usually as
:class:`~cnmaestro_exporter.exceptions.CnMaestroAuthenticationError`.
"""

from dataclasses import dataclass
from typing import Protocol

from .exceptions import CnMaestroAuthenticationError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class AuthInfo:
    """
    Session material obtained from a successful login.

    An empty ``csrf_token`` means the controller did not issue one yet.
    """
    session_id: str
    csrf_token: str = ""

    def __repr__(self) -> str:
        def mask(value: str) -> str:
            return f"{value[:4]}..." if len(value) > 4 else "***" if value else ""

        return f"AuthInfo(session_id={mask(self.session_id)!r}, csrf_token={mask(self.csrf_token)!r})"


class LoginProvider(Protocol):
    def login(self, username: str, password: str, timeout: float) -> AuthInfo:
        ...


class StaticSessionProvider:
    """
    Provider for a session identifier copied out of a browser by hand.

    The session cannot be renewed, so every call returns the same identifier.
    No CSRF token is returned; the client primes one on its first request.
    """

    def __init__(self, session_id: str):
        if not session_id:
            raise CnMaestroAuthenticationError("no session id configured")
        self.session_id = session_id

    def login(self, username: str, password: str, timeout: float) -> AuthInfo:
        logger.debug("Using pre-established session id")
        return AuthInfo(session_id=self.session_id)
