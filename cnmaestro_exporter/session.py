"""
Shared authentication state and its periodic renewal.

:class:`Session` is the single owner of the controller cookies (``sid`` and
``XSRF-TOKEN``). The :class:`SessionManager` writes to it from a background
thread while scrape requests read snapshots of it concurrently.
"""

import enum
import logging
import os
import threading
from typing import Callable, Optional, Tuple
from urllib.parse import urlparse

from requests.cookies import RequestsCookieJar

from .exceptions import CnMaestroConfigError
from .logging import get_logger
from .login import AuthInfo, LoginProvider

logger = get_logger(__name__)

SESSION_COOKIE = "sid"
CSRF_COOKIE = "XSRF-TOKEN"

DEFAULT_LOGIN_TIMEOUT = 20.0
DEFAULT_REFRESH_INTERVAL = 6 * 60 * 60.0
DEFAULT_RETRY_INTERVAL = 30 * 60.0
DEFAULT_MAX_FAILURES = 24


class Session:
    """
    Cookie store scoped to one controller instance.

    All access goes through an internal lock. Callers never get the live jar,
    only copies, so a reader cannot observe a half-installed login.
    """

    def __init__(self, instance_url: str):
        parsed = urlparse(instance_url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise CnMaestroConfigError(f"invalid instance url: {instance_url!r}")

        self.base_url = f"{parsed.scheme}://{parsed.netloc}"
        self.domain = parsed.hostname
        self._cookies = RequestsCookieJar()
        self._lock = threading.Lock()

    def _remove(self, name: str) -> None:
        for cookie in [c for c in self._cookies if c.name == name]:
            self._cookies.clear(cookie.domain, cookie.path, cookie.name)

    def _value(self, name: str) -> str:
        value = ""
        for cookie in self._cookies:
            if cookie.name == name:
                value = cookie.value or ""
        return value

    def install(self, session_id: str, csrf_token: str) -> None:
        """
        Replace the session cookie and CSRF token in one step.

        An empty ``csrf_token`` removes any previously stored token.
        """
        with self._lock:
            self._remove(SESSION_COOKIE)
            self._remove(CSRF_COOKIE)
            self._cookies.set(SESSION_COOKIE, session_id, domain=self.domain, path="/")
            if csrf_token:
                self._cookies.set(CSRF_COOKIE, csrf_token, domain=self.domain, path="/")

    def update_cookies(self, cookies: RequestsCookieJar) -> None:
        """Merge cookies set by a controller response into the store."""
        with self._lock:
            for cookie in cookies:
                self._remove(cookie.name)
                self._cookies.set_cookie(cookie)

    def csrf_token(self) -> str:
        """Return the current CSRF token, or an empty string if none is set."""
        with self._lock:
            return self._value(CSRF_COOKIE)

    def session_id(self) -> str:
        with self._lock:
            return self._value(SESSION_COOKIE)

    def snapshot(self) -> Tuple[RequestsCookieJar, str]:
        """Return a copy of the cookie store together with the CSRF token it holds."""
        with self._lock:
            return self._cookies.copy(), self._value(CSRF_COOKIE)


class SessionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESH_FAILING = "refresh_failing"
    FATAL = "fatal"


def _exit_process(error: Exception) -> None:
    logging.shutdown()
    os._exit(1)


class SessionManager:
    """
    Logs in through a :class:`LoginProvider` and keeps the session fresh.

    After the initial :meth:`login`, :meth:`start_refresh` renews the session
    every ``refresh_interval`` seconds. A failed renewal is retried every
    ``retry_interval`` seconds; once more than ``max_failures`` consecutive
    renewals have failed the manager becomes ``FATAL`` and calls
    ``on_fatal(error)`` exactly once. The owning process decides how to shut
    down; without a callback the process exits with status 1.
    """

    def __init__(
        self,
        session: Session,
        provider: LoginProvider,
        username: str = "",
        password: str = "",
        login_timeout: float = DEFAULT_LOGIN_TIMEOUT,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_failures: int = DEFAULT_MAX_FAILURES,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        if max_failures < 0:
            raise ValueError("max_failures must not be negative")

        self.session = session
        self.provider = provider
        self.username = username
        self.password = password
        self.login_timeout = login_timeout
        self.refresh_interval = refresh_interval
        self.retry_interval = retry_interval
        self.max_failures = max_failures
        self.on_fatal = on_fatal or _exit_process

        self.state = SessionState.UNAUTHENTICATED
        self.failures = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def login(self) -> AuthInfo:
        """
        Log in once and install the resulting session.

        Raises:
            Whatever the provider raised, unchanged.
        """
        info = self.provider.login(self.username, self.password, self.login_timeout)
        self.session.install(info.session_id, info.csrf_token)
        if self.state is SessionState.UNAUTHENTICATED:
            self.state = SessionState.AUTHENTICATED
        logger.info(f"Logged in to cnMaestro controller {self.session.base_url}")
        return info

    def csrf_token(self) -> str:
        return self.session.csrf_token()

    def start_refresh(self) -> threading.Thread:
        """Start the background refresh thread and return it."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._thread = threading.Thread(
            target=self.run_refresh, name="session-refresh", daemon=True
        )
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Wake the refresh thread and let it end."""
        self._stop.set()

    def run_refresh(self) -> None:
        """Refresh loop; returns on :meth:`stop` or after escalating to FATAL."""
        interval = self.refresh_interval
        while not self._stop.wait(interval):
            if self.refresh():
                interval = self.refresh_interval
            elif self.state is SessionState.FATAL:
                return
            else:
                interval = self.retry_interval

    def refresh(self) -> bool:
        """
        Perform one refresh tick.

        Returns:
            True if the login succeeded.
        """
        if self.state is SessionState.FATAL:
            return False

        try:
            self.login()
        except Exception as e:
            self.failures += 1
            self.state = SessionState.REFRESH_FAILING
            logger.warning(
                f"Session refresh failed ({self.failures} consecutive, "
                f"limit {self.max_failures}): {e}"
            )
            if self.failures > self.max_failures:
                self.state = SessionState.FATAL
                logger.critical(
                    f"Giving up after {self.failures} failed session refreshes"
                )
                self.on_fatal(e)
            return False

        if self.failures:
            logger.info(f"Session refresh recovered after {self.failures} failures")
        self.failures = 0
        self.state = SessionState.AUTHENTICATED
        return True
