"""Tests for the command line entry point."""

import threading

import pytest

from cnmaestro_exporter import cli
from cnmaestro_exporter.config import Config
from cnmaestro_exporter.exceptions import CnMaestroAuthenticationError, CnMaestroConfigError
from cnmaestro_exporter.login import AuthInfo, StaticSessionProvider


class FakeServer:
    def __init__(self):
        self._stopped = threading.Event()
        self.shut_down = False

    def serve_forever(self):
        self._stopped.wait(5)

    def shutdown(self):
        self.shut_down = True
        self._stopped.set()


class FlakyProvider:
    """Succeeds once, then fails every time."""

    def __init__(self):
        self.calls = 0

    def login(self, username, password, timeout):
        self.calls += 1
        if self.calls == 1:
            return AuthInfo("sid-1", "csrf-1")
        raise CnMaestroAuthenticationError("sso down")


def _write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


@pytest.mark.parametrize("address,expected", [
    (":9836", ("0.0.0.0", 9836)),
    ("127.0.0.1:8080", ("127.0.0.1", 8080)),
    ("[::1]:9836", ("::1", 9836)),
])
def test_parse_listen_address(address, expected):
    assert cli.parse_listen_address(address) == expected


@pytest.mark.parametrize("address", ["9836", "localhost:", "host:http"])
def test_parse_listen_address_rejects(address):
    with pytest.raises(CnMaestroConfigError):
        cli.parse_listen_address(address)


def test_parse_args_defaults():
    args = cli.parse_args([])

    assert args.listen_address == ":9836"
    assert args.config == "./config.yaml"
    assert not args.login
    assert not args.verbose


def test_version(capsys):
    assert cli.main(["--version"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("cnmaestro-exporter ")
    assert "requests" in out


def test_static_session_without_credentials():
    config = Config(instance="https://cloud.example.com", session_id="abc")
    session = cli.Session(config.instance)

    assert isinstance(cli.make_provider(config, session), StaticSessionProvider)


def test_login_check(tmp_path):
    path = _write_config(tmp_path, "instance: https://cloud.example.com\nsession_id: abc\n")

    assert cli.main(["--config", path, "--login"]) == 0


def test_login_check_failure(tmp_path, monkeypatch):
    path = _write_config(
        tmp_path, "instance: https://cloud.example.com\nusername: u\npassword: p\n"
    )

    class Failing:
        def login(self, username, password, timeout):
            raise CnMaestroAuthenticationError("bad password")

    monkeypatch.setattr(cli, "make_provider", lambda config, session: Failing())

    assert cli.main(["--config", path, "--login"]) == 1


def test_invalid_config_exits_1(tmp_path):
    path = _write_config(tmp_path, "username: u\n")

    assert cli.main(["--config", path]) == 1


def test_initial_login_failure_exits_1(tmp_path, monkeypatch):
    path = _write_config(
        tmp_path, "instance: https://cloud.example.com\nusername: u\npassword: p\n"
    )
    provider = FlakyProvider()
    provider.calls = 1
    monkeypatch.setattr(cli, "make_provider", lambda config, session: provider)
    monkeypatch.setattr(cli, "make_server", lambda *args, **kwargs: pytest.fail("server started"))

    assert cli.main(["--config", path]) == 1


def test_fatal_refresh_shuts_down(tmp_path, monkeypatch):
    path = _write_config(
        tmp_path,
        "instance: https://cloud.example.com\n"
        "username: u\n"
        "password: p\n"
        "refresh_interval: 10ms\n"
        "retry_interval: 10ms\n"
        "max_refresh_failures: 1\n",
    )
    provider = FlakyProvider()
    server = FakeServer()
    monkeypatch.setattr(cli, "make_provider", lambda config, session: provider)
    monkeypatch.setattr(cli, "make_server", lambda host, port, app, threaded: server)

    assert cli.main(["--config", path, "--web.listen-address", "127.0.0.1:0"]) == 1
    assert server.shut_down
    # initial login plus two failed refreshes
    assert provider.calls == 3
