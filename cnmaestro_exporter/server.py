"""
HTTP endpoints of the exporter.

Metrics endpoints build a fresh registry per request holding a single
collector, so every scrape queries the controller again.
"""

from typing import Optional

from flask import Flask, Response, render_template_string, request
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from .api_client import CnMaestroClient
from .collector import FleetCollector, PortalCollector
from .config import DEFAULT_SCRAPE_TIMEOUT
from .exceptions import CnMaestroError
from .export import debug_snapshot, dumps
from .logging import get_logger

logger = get_logger(__name__)

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"
# subtracted from the timeout Prometheus announces
SCRAPE_TIMEOUT_OFFSET = 0.5

INDEX_TEMPLATE = """<!doctype html>
<html>
<head>
	<meta charset="UTF-8">
	<title>Cambium cnMaestro Cloud Exporter (Version {{ version }})</title>
</head>
<body>
	<h1>Cambium cnMaestro Cloud Exporter</h1>
	<p>Version: {{ version }}</p>
	<p><a href="{{ instance }}" target="_blank">Open controller in new tab.</a></p>

	<h2>Endpoints</h2>
	<ul>
		<li>
			<a href="/apgroups">List of WiFi AP Group names</a> (JSON)
		</li>
		<li>
			<a href="/portals">List of guest portal names</a> (JSON)
		</li>
		<li>
			<strong>Metrics</strong>
			<ul>{% for group in groups %}
				<li>
					<a href="/apgroups/{{ group }}/metrics">{{ group }}</a> &bull;
					<a href="/apgroups/{{ group }}/debug">debug data</a> (JSON)
				</li>
			{% endfor %}</ul>
		</li>
	</ul>
</body>
</html>
"""


def _json(data, status: int = 200) -> Response:
    return Response(dumps(data), status=status, mimetype="application/json")


def _bad_gateway(error: Exception) -> Response:
    return Response(f"{error}\n", status=502, mimetype="text/plain")


def scrape_timeout(default: float) -> float:
    """
    Timeout for the current scrape.

    Prometheus announces its own scrape timeout in a request header; use it,
    less ``SCRAPE_TIMEOUT_OFFSET``, when it is present and sane, otherwise
    fall back to ``default``.
    """
    value = request.headers.get(SCRAPE_TIMEOUT_HEADER)
    if value:
        try:
            timeout = float(value)
        except ValueError:
            logger.debug(f"Ignoring invalid {SCRAPE_TIMEOUT_HEADER} header: {value!r}")
        else:
            if timeout > SCRAPE_TIMEOUT_OFFSET:
                return timeout - SCRAPE_TIMEOUT_OFFSET
            if timeout > 0:
                return timeout
    return default


def _exposition(collector) -> Response:
    registry = CollectorRegistry(auto_describe=False)
    registry.register(collector)
    return Response(generate_latest(registry), content_type=CONTENT_TYPE_LATEST)


def create_app(
    client: CnMaestroClient,
    version: str = "dev",
    default_timeout: Optional[float] = DEFAULT_SCRAPE_TIMEOUT,
) -> Flask:
    """
    Build the Flask application serving the exporter endpoints.

    Args:
        client: Controller client shared by all requests.
        version: Version string shown on the index page.
        default_timeout: Scrape timeout used when Prometheus sends none.
    """
    app = Flask(__name__)

    @app.route("/")
    def index():
        try:
            groups = client.fetch_ap_groups(timeout=default_timeout)
        except CnMaestroError as e:
            logger.error(f"fetching AP groups failed: {e}")
            groups = []

        return render_template_string(
            INDEX_TEMPLATE,
            instance=client.instance_url,
            groups=groups,
            version=version,
        )

    @app.route("/apgroups")
    def list_ap_groups():
        try:
            return _json(client.fetch_ap_groups(timeout=default_timeout))
        except CnMaestroError as e:
            return _bad_gateway(e)

    @app.route("/apgroups/<ap_group>/metrics")
    def ap_group_metrics(ap_group: str):
        timeout = scrape_timeout(default_timeout)
        return _exposition(FleetCollector(client, ap_group, timeout=timeout))

    @app.route("/apgroups/<ap_group>/debug")
    def ap_group_debug(ap_group: str):
        try:
            devices = client.fetch_devices(ap_group, timeout=default_timeout)
            group = client.fetch_ap_group_data(ap_group, timeout=default_timeout)
        except CnMaestroError as e:
            return _bad_gateway(e)

        return _json(debug_snapshot(group, devices))

    @app.route("/portals")
    def list_portals():
        try:
            return _json(client.fetch_guest_portals(timeout=default_timeout))
        except CnMaestroError as e:
            return _bad_gateway(e)

    @app.route("/portals/<portal>/metrics")
    def portal_metrics(portal: str):
        timeout = scrape_timeout(default_timeout)
        return _exposition(PortalCollector(client, portal, timeout=timeout))

    return app
