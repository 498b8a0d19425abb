"""Tests for the HTTP endpoints using Flask's test client."""

import json

import pytest

from cnmaestro_exporter.api_client import CnMaestroClient
from cnmaestro_exporter.exceptions import CnMaestroAPIError
from cnmaestro_exporter.models import APGroupSummary
from cnmaestro_exporter.models.portal import PortalSessionAggregate
from cnmaestro_exporter.server import SCRAPE_TIMEOUT_HEADER, create_app

from conftest import FakeTransport, device_payload, group_payload


class FakeClient:
    instance_url = "https://cloud.example.com"

    def __init__(self, error=None):
        self.error = error
        self.timeouts = []

    def _check(self, timeout):
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error

    def fetch_ap_groups(self, timeout=None):
        self._check(timeout)
        return ["hq", "branch"]

    def fetch_ap_group_data(self, ap_group, timeout=None):
        self._check(timeout)
        return APGroupSummary(name=ap_group, device_count=2)

    def fetch_devices(self, ap_group, timeout=None):
        self._check(timeout)
        return []

    def fetch_guest_portals(self, timeout=None):
        self._check(timeout)
        return ["lobby"]

    def fetch_portal_sessions(self, portal, deadline=None):
        self._check(deadline.remaining() if deadline is not None else None)
        aggregate = PortalSessionAggregate(portal_name=portal, total=1)
        aggregate.add("aa:bb")
        return aggregate


@pytest.fixture
def fake():
    return FakeClient()


@pytest.fixture
def http(fake):
    return create_app(fake, version="1.2.3", default_timeout=10).test_client()


def test_index_lists_groups(http):
    response = http.get("/")

    assert response.status_code == 200
    page = response.get_data(as_text=True)
    assert "1.2.3" in page
    assert 'href="/apgroups/hq/metrics"' in page
    assert 'href="/apgroups/branch/debug"' in page
    assert "https://cloud.example.com" in page


def test_index_renders_when_listing_fails():
    http = create_app(FakeClient(error=CnMaestroAPIError("down"))).test_client()

    response = http.get("/")

    assert response.status_code == 200
    assert "/apgroups/hq/metrics" not in response.get_data(as_text=True)


def test_list_ap_groups(http):
    response = http.get("/apgroups")

    assert response.status_code == 200
    assert response.mimetype == "application/json"
    assert json.loads(response.get_data(as_text=True)) == ["hq", "branch"]


def test_list_portals(http):
    response = http.get("/portals")

    assert json.loads(response.get_data(as_text=True)) == ["lobby"]


def test_listing_error_is_bad_gateway():
    http = create_app(FakeClient(error=CnMaestroAPIError("down"))).test_client()

    assert http.get("/apgroups").status_code == 502
    assert http.get("/portals").status_code == 502
    assert http.get("/apgroups/hq/debug").status_code == 502


def test_metrics_endpoint(http):
    response = http.get("/apgroups/hq/metrics")

    assert response.status_code == 200
    assert response.mimetype == "text/plain"
    text = response.get_data(as_text=True)
    assert "cambium_maestro_up 1.0" in text
    assert 'cambium_maestro_ap_group_devices_count{name="hq"} 2.0' in text


def test_metrics_failure_is_still_200():
    http = create_app(FakeClient(error=CnMaestroAPIError("down"))).test_client()

    response = http.get("/apgroups/hq/metrics")

    assert response.status_code == 200
    assert "cambium_maestro_up 0.0" in response.get_data(as_text=True)


def test_scrape_timeout_header(http, fake):
    http.get("/apgroups/hq/metrics", headers={SCRAPE_TIMEOUT_HEADER: "2.5"})

    assert 0 < fake.timeouts[0] <= 2.0


def test_tiny_scrape_timeout_header_is_kept(http, fake):
    http.get("/apgroups/hq/metrics", headers={SCRAPE_TIMEOUT_HEADER: "0.4"})

    assert 0 < fake.timeouts[0] <= 0.4


def test_invalid_scrape_timeout_header_uses_default(http, fake):
    http.get("/apgroups/hq/metrics", headers={SCRAPE_TIMEOUT_HEADER: "soon"})

    assert 2.5 < fake.timeouts[0] <= 10


def test_debug_endpoint(http):
    response = http.get("/apgroups/hq/debug")

    data = json.loads(response.get_data(as_text=True))
    assert data["apgroup"]["name"] == "hq"
    assert data["apgroup"]["device_count"] == 2
    assert data["devices"] == []


def test_portal_metrics(http):
    text = http.get("/portals/lobby/metrics").get_data(as_text=True)

    assert 'cambium_maestro_sessions_count{name="lobby"} 1.0' in text
    assert 'cambium_maestro_ap_sessions_count{portal="lobby",mac="aa:bb"} 1.0' in text


def test_out_of_range_reboot_timestamp_reports_down(session):
    session.install("sid-1", "csrf-1")
    transport = FakeTransport({
        "/config/profiles": group_payload(),
        "/stats/profiles/hq/devices": device_payload([{
            "mac": "aa:bb",
            "sys": {"online": True, "upTime": 1000, "lastRbt": [{"uTs": 1700000000000, "code": "power"}]},
        }]),
    })
    http = create_app(CnMaestroClient(session, http=transport)).test_client()

    response = http.get("/apgroups/hq/metrics")

    assert response.status_code == 200
    text = response.get_data(as_text=True)
    assert "cambium_maestro_up 0.0" in text
    assert "cambium_maestro_ap_group_devices_count" not in text
