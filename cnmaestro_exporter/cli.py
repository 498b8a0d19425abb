"""
Command line entry point of the exporter.
"""

import argparse
import sys
import threading
from importlib import metadata
from typing import List, Optional, Tuple

from werkzeug.serving import make_server

from . import __version__
from .api_client import CnMaestroClient
from .config import Config, load_config
from .exceptions import CnMaestroConfigError, CnMaestroError
from .logging import configure_logging, get_logger
from .login import LoginProvider, StaticSessionProvider
from .server import create_app
from .session import Session, SessionManager

logger = get_logger(__name__)

DEPENDENCIES = ["requests", "urllib3", "prometheus-client", "flask", "werkzeug", "PyYAML", "selenium"]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cnmaestro-exporter",
        description="Prometheus exporter for Cambium cnMaestro cloud WiFi controllers",
    )
    parser.add_argument("--web.listen-address", dest="listen_address", default=":9836",
                        help="address to listen on for HTTP requests (default=:9836)")
    parser.add_argument("--config", default="./config.yaml",
                        help="path to the YAML configuration file (default=./config.yaml)")
    parser.add_argument("--login", action="store_true",
                        help="log in once, report the result and exit")
    parser.add_argument("-V", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("-v", "--version", action="store_true",
                        help="print version information and exit")
    return parser.parse_args(argv)


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split ``host:port`` into its parts. An empty host listens on all interfaces.

    Raises:
        CnMaestroConfigError: If the port is missing or not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise CnMaestroConfigError(f"invalid listen address {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def version_info() -> str:
    lines = [f"cnmaestro-exporter {__version__}", f"python {sys.version.split()[0]}"]
    for name in DEPENDENCIES:
        try:
            lines.append(f"{name} {metadata.version(name)}")
        except metadata.PackageNotFoundError:
            lines.append(f"{name} (not installed)")
    return "\n".join(lines)


def make_provider(config: Config, session: Session) -> LoginProvider:
    """Pick the browser login when credentials are configured, the static session otherwise."""
    if config.uses_credentials:
        from .browser_login import BrowserLoginProvider

        return BrowserLoginProvider(session.base_url)
    return StaticSessionProvider(config.session_id)


def check_login(config: Config, provider: LoginProvider) -> int:
    try:
        info = provider.login(config.username, config.password, config.login_timeout)
    except CnMaestroError as e:
        logger.error(f"Login failed: {e}")
        return 1
    logger.info(f"Login succeeded: {info!r}")
    return 0


def serve(config: Config, listen_address: str) -> int:
    """
    Log in, start the session refresh and serve HTTP until a fatal error.

    Returns:
        The process exit status.
    """
    host, port = parse_listen_address(listen_address)
    session = Session(config.instance)
    provider = make_provider(config, session)

    fatal = threading.Event()
    manager = SessionManager(
        session,
        provider,
        username=config.username,
        password=config.password,
        login_timeout=config.login_timeout,
        refresh_interval=config.refresh_interval,
        retry_interval=config.retry_interval,
        max_failures=config.max_refresh_failures,
        on_fatal=lambda error: fatal.set(),
    )

    try:
        manager.login()
    except CnMaestroError as e:
        logger.critical(f"Initial login failed: {e}")
        return 1

    # a hand-copied session id cannot be renewed
    if config.uses_credentials:
        manager.start_refresh()

    client = CnMaestroClient(session, verify_ssl=config.verify_ssl)
    app = create_app(client, version=__version__, default_timeout=config.scrape_timeout)
    server = make_server(host, port, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="http-server", daemon=True)
    thread.start()
    logger.info(f"Listening on {host}:{port}")

    status = 0
    try:
        fatal.wait()
        logger.critical("Session could not be renewed, shutting down")
        status = 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        manager.stop()
        server.shutdown()
        thread.join()
    return status


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.version:
        print(version_info())
        return 0

    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        if args.login:
            session = Session(config.instance)
            return check_login(config, make_provider(config, session))
        return serve(config, args.listen_address)
    except CnMaestroConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
