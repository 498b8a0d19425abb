"""Shared fixtures: an in-memory transport standing in for the controller."""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import requests

from cnmaestro_exporter.api_client import API_PREFIX, CnMaestroClient
from cnmaestro_exporter.session import Session

HOST = "cloud.example.com"
BASE_URL = f"https://{HOST}"


def make_response(
    url: str,
    payload: Any = None,
    status: int = 200,
    cookies: Optional[Dict[str, str]] = None,
    body: Optional[bytes] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Error"
    response.url = url
    response.encoding = "utf-8"
    response.headers["Content-Type"] = "application/json"
    response._content = body if body is not None else json.dumps(payload).encode("utf-8")
    for name, value in (cookies or {}).items():
        response.cookies.set(name, value, domain=HOST, path="/")
    return response


Route = Union[Any, Callable[[Dict[str, Any]], Any]]


class FakeTransport:
    """
    Answers ``get`` calls from a path -> route table and records every call.

    A route is a JSON payload, a ready ``requests.Response``, an exception to
    raise, or a callable receiving the recorded call and returning any of those.
    """

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = {
            "/user/me": lambda call: make_response(
                call["url"], {"data": {}}, cookies={"XSRF-TOKEN": "csrf-1"}
            ),
        }
        self.routes.update(routes or {})
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, cookies=None, timeout=None, verify=None):
        call = {
            "url": url,
            "path": url[len(BASE_URL + API_PREFIX):],
            "params": dict(params or {}),
            "headers": dict(headers or {}),
            "cookies": {c.name: c.value for c in cookies} if cookies is not None else {},
            "timeout": timeout,
            "verify": verify,
        }
        self.calls.append(call)

        route = self.routes.get(call["path"])
        if route is None:
            return make_response(url, {"error": "not found"}, status=404)
        if callable(route):
            route = route(call)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, requests.Response):
            return route
        return make_response(url, route)

    @property
    def paths(self) -> List[str]:
        return [call["path"] for call in self.calls]


@pytest.fixture
def session():
    s = Session(BASE_URL)
    s.install("sid-1", "")
    return s


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(session, transport):
    return CnMaestroClient(session, http=transport)


def group_payload(**overrides) -> Dict[str, Any]:
    profile = {
        "name": "hq",
        "deviceCount": 10,
        "offlineCount": 1,
        "outOfSyncCount": 0,
        "clientCount": 42,
        "clientCount24h": 77,
    }
    profile.update(overrides)
    return {"data": {"profiles": [profile]}}


def device_payload(devices: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"data": {"profiles": {"devices": devices}}}
