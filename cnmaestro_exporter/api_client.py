import time
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests
import urllib3

from .models.device import DEVICE_FIELDS, Device, DeviceResponse
from .models.ap_group import APGroupSummary
from .models.portal import GuestSessionRecord, PortalSessionAggregate
from .session import Session
from .logging import get_logger, log_api_response
from .utils import Deadline, build_model, dig, require_list
from .exceptions import CnMaestroAPIError, CnMaestroDataError

logger = get_logger(__name__)

API_PREFIX = "/0/cn-srv"
USER_ME_PATH = "/user/me"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:89.0) Gecko/20100101 Firefox/89.0"

SESSIONS_PER_PAGE = 200
PORTALS_LIMIT = 10


def path_segment(name: str) -> str:
    """Percent-encode a name for use as a single URL path segment."""
    return quote(name, safe="")


class CnMaestroClient:
    """
    Client for the cnMaestro cloud controller's private web API.

    All requests go to ``<instance>/0/cn-srv``. Authentication state is read
    from a shared :class:`~cnmaestro_exporter.session.Session`, which the
    :class:`~cnmaestro_exporter.session.SessionManager` keeps fresh; this
    client never logs in on its own.

    Note:
        The ``/0/cn-srv`` API is what the controller's web UI uses. It is
        **undocumented**, and response structures may change without notice.
        The controller rejects canonicalized header names, so ``x-cidx`` and
        ``X-XSRF-TOKEN`` are sent with their exact casing.
    """

    def __init__(self, session: Session, verify_ssl=True, http: Optional[requests.Session] = None):
        """
        Initialize the cnMaestro client.

        Args:
            session: Shared authentication state for the controller instance.
            verify_ssl: Whether to verify SSL certificates. Can be:
                       - True: Verify SSL certificates (default, recommended)
                       - False: Disable verification (insecure, not recommended)
                       - str: Path to a CA bundle file or directory with certificates of trusted CAs
            http: Optional transport to use instead of a new ``requests.Session``.
        """
        logger.debug(f"Initializing CnMaestroClient for {session.base_url}")
        self.session = session
        self.verify_ssl = verify_ssl

        if http is None:
            http = requests.Session()
            # cookies live in the shared Session; the transport must not keep its own
            http.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self.http = http

        if not verify_ssl:
            logger.warning(
                "SSL certificate verification is disabled. This is not recommended for production use."
            )
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def instance_url(self) -> str:
        return self.session.base_url

    def build_url(self, path: str) -> str:
        """Join the instance URL, the API prefix and ``path``."""
        if path and not path.startswith("/"):
            path = "/" + path
        return f"{self.session.base_url}{API_PREFIX}{path}"

    def build_headers(self, csrf_token: str) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "x-cidx": "0",
        }
        if csrf_token:
            headers["X-XSRF-TOKEN"] = csrf_token
        return headers

    def fetch(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Issue one authenticated GET request.

        Cookies come from a snapshot of the shared session; cookies set by the
        response are merged back into it.

        Args:
            path: API path below the ``/0/cn-srv`` prefix.
            params: Optional query parameters.
            timeout: Optional request timeout in seconds.

        Returns:
            requests.Response: The response, with a 2xx status.

        Raises:
            CnMaestroAPIError: On network failure, timeout or non-2xx status.
        """
        url = self.build_url(path)
        cookies, csrf_token = self.session.snapshot()
        headers = self.build_headers(csrf_token)

        t0 = time.monotonic()
        try:
            response = self.http.get(
                url,
                params=params,
                headers=headers,
                cookies=cookies,
                timeout=timeout,
                verify=self.verify_ssl,
            )
            self.session.update_cookies(response.cookies)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            error_msg = f"API GET request to {url} failed: {e}"
            logger.info(error_msg)
            raise CnMaestroAPIError(error_msg) from e

        logger.debug(
            f"fetch {response.url} (status {response.status_code}) "
            f"{len(response.content)} bytes in {time.monotonic() - t0:.3f}s"
        )
        return response

    def fetch_csrf_token(self, timeout: Optional[float] = None) -> None:
        """
        Fetch the current user to obtain the initial CSRF cookie.

        The controller sets ``XSRF-TOKEN`` on first contact; most other
        endpoints reject requests without it. The body is discarded.

        Raises:
            CnMaestroAPIError: If the request fails.
        """
        try:
            self.fetch(USER_ME_PATH, timeout=timeout)
        except CnMaestroAPIError as e:
            raise CnMaestroAPIError(f"failed to fetch CSRF token: {e}") from e
        if not self.session.csrf_token():
            logger.warning("Controller did not issue a CSRF token")

    def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        GET ``path`` and decode the JSON body, priming the CSRF cookie first if needed.

        Raises:
            CnMaestroAPIError: If the request fails.
            CnMaestroDataError: If the body is not valid JSON.
        """
        if path != USER_ME_PATH and not self.session.csrf_token():
            self.fetch_csrf_token(timeout=timeout)

        response = self.fetch(path, params=params, timeout=timeout)
        try:
            data = response.json()
        except ValueError as e:
            error_msg = f"Failed to parse API response from {response.url}: {e}"
            logger.error(error_msg)
            raise CnMaestroDataError(error_msg) from e

        log_api_response(logger, response.url, data, response.status_code)
        return data

    def fetch_ap_groups(self, timeout: Optional[float] = None) -> List[str]:
        """
        Get the names of all WiFi AP groups.

        Returns:
            List[str]: AP group names in the order the controller returns them.

        Raises:
            CnMaestroAPIError: If the API request fails.
            CnMaestroDataError: If the response does not match the expected shape.
        """
        try:
            data = self._get_json(
                "/config/profiles",
                {"fields": "name,hasDevices", "limit": "0"},
                timeout=timeout,
            )
        except CnMaestroAPIError as e:
            raise CnMaestroAPIError(f"failed to fetch AP group list: {e}") from e

        context = "AP group list"
        profiles = require_list(dig(data, "data", "profiles", context=context), context)
        return [build_model(APGroupSummary, p, context).name for p in profiles]

    def fetch_ap_group_data(
        self, ap_group: str, timeout: Optional[float] = None
    ) -> Optional[APGroupSummary]:
        """
        Get the summary counters of one AP group.

        Args:
            ap_group: Name of the AP group.
            timeout: Optional request timeout in seconds.

        Returns:
            Optional[APGroupSummary]: The summary, or None if the controller
            returned no matching profile.

        Raises:
            CnMaestroAPIError: If the API request fails.
            CnMaestroDataError: If the response does not match the expected shape.
        """
        fields = (
            "name,deviceCount,offlineCount,outOfSyncCount,clientCount,clientCount24h,"
            f"name:{ap_group}"
        )
        try:
            data = self._get_json("/config/profiles", {"fields": fields}, timeout=timeout)
        except CnMaestroAPIError as e:
            raise CnMaestroAPIError(f"failed to fetch data for AP group {ap_group!r}: {e}") from e

        context = f"AP group {ap_group!r}"
        profiles = require_list(dig(data, "data", "profiles", context=context), context)
        if not profiles:
            return None
        return build_model(APGroupSummary, profiles[0], context)

    def fetch_devices(self, ap_group: str, timeout: Optional[float] = None) -> List[Device]:
        """
        Get all access points of one AP group, normalized.

        Args:
            ap_group: Name of the AP group.
            timeout: Optional request timeout in seconds.

        Returns:
            List[Device]: One normalized device per AP, sorted by hostname.

        Raises:
            CnMaestroAPIError: If the API request fails.
            CnMaestroDataError: If the response does not match the expected shape.
        """
        path = f"/stats/profiles/{path_segment(ap_group)}/devices"
        fields = ",".join(DEVICE_FIELDS) % ap_group
        logger.info(f"Fetching devices for AP group '{ap_group}'")
        try:
            data = self._get_json(
                path,
                {
                    "all": "true",
                    "fields": fields,
                    "limit": "0",
                    "offset": "0",
                    "sortedBy": "cfg.name",
                },
                timeout=timeout,
            )
        except CnMaestroAPIError as e:
            raise CnMaestroAPIError(f"failed to fetch devices for AP group {ap_group!r}: {e}") from e

        context = f"devices of AP group {ap_group!r}"
        devices = require_list(dig(data, "data", "profiles", "devices", context=context), context)
        result = [DeviceResponse.from_api(d).normalize() for d in devices]
        logger.debug(f"Returning {len(result)} devices for AP group '{ap_group}'")
        return result

    def fetch_guest_portals(self, timeout: Optional[float] = None) -> List[str]:
        """
        Get the names of the guest access portals.

        Only the first page of portals is requested.

        Returns:
            List[str]: Portal names.

        Raises:
            CnMaestroAPIError: If the API request fails.
            CnMaestroDataError: If the response does not match the expected shape.
        """
        try:
            data = self._get_json(
                "/services/guest/portal",
                {"limit": str(PORTALS_LIMIT), "offset": "0"},
                timeout=timeout,
            )
        except CnMaestroAPIError as e:
            raise CnMaestroAPIError(f"failed to fetch guest portal list: {e}") from e

        context = "guest portal list"
        portals = require_list(dig(data, "data", "result", context=context), context)
        names = []
        for portal in portals:
            name = dig(portal, "name", context=context)
            if not isinstance(name, str):
                raise CnMaestroDataError(f"{context}: portal name is not a string")
            names.append(name)
        return names

    def fetch_portal_sessions_page(
        self, portal: str, page: int, timeout: Optional[float] = None
    ) -> Tuple[List[GuestSessionRecord], int]:
        """
        Fetch one page of guest sessions.

        Returns:
            Tuple of the session records on the page and the reported total.

        Raises:
            CnMaestroAPIError: If the API request fails.
            CnMaestroDataError: If the response does not match the expected shape.
        """
        data = self._get_json(
            f"/services/guest/session/{path_segment(portal)}",
            {"limit": str(SESSIONS_PER_PAGE), "offset": str(SESSIONS_PER_PAGE * page)},
            timeout=timeout,
        )

        context = f"sessions of portal {portal!r} (page {page})"
        sessions = require_list(dig(data, "data", "sessions", context=context), context)
        total = dig(data, "data", "meta", "total", context=context)
        if not isinstance(total, int) or isinstance(total, bool):
            raise CnMaestroDataError(f"{context}: meta.total is not an integer")

        records = [build_model(GuestSessionRecord, s, context) for s in sessions]
        return records, total

    def fetch_portal_sessions(
        self, portal: str, deadline: Optional[Deadline] = None
    ) -> PortalSessionAggregate:
        """
        Count the active guest sessions of a portal per access point.

        Pages of ``SESSIONS_PER_PAGE`` records are fetched in order until the
        reported total says no further page exists, or a page comes back
        empty. The reported total is authoritative; a mismatch with the number
        of records received is logged.

        Args:
            portal: Name of the guest access portal.
            deadline: Optional :class:`~cnmaestro_exporter.utils.Deadline`
                      bounding the whole loop.

        Returns:
            PortalSessionAggregate: Per-AP session counts and the total.

        Raises:
            CnMaestroAPIError: If any page request fails or the deadline expires.
            CnMaestroDataError: If any page does not match the expected shape.
        """
        aggregate = PortalSessionAggregate(portal_name=portal)

        page = 0
        while True:
            timeout = deadline.remaining() if deadline is not None else None
            try:
                records, total = self.fetch_portal_sessions_page(portal, page, timeout=timeout)
            except CnMaestroAPIError as e:
                raise CnMaestroAPIError(
                    f"failed to fetch portal sessions for {portal} (page {page}): {e}"
                ) from e

            aggregate.pages = page + 1
            aggregate.total = total
            for record in records:
                aggregate.add(record.device_mac)

            if total < SESSIONS_PER_PAGE * (page + 1):
                break  # no more results on the next page
            if not records:
                logger.warning(
                    f"Portal {portal}: page {page} is empty although {total} sessions are reported"
                )
                break
            page += 1

        if not aggregate.consistent:
            logger.warning(
                f"Portal {portal}: received {aggregate.records} sessions in "
                f"{aggregate.pages} pages, controller reports {aggregate.total}"
            )
        return aggregate
