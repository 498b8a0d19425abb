"""Tests for YAML configuration loading."""

import pytest

from cnmaestro_exporter.config import DEFAULT_SCRAPE_TIMEOUT, config_from_dict, load_config, parse_duration
from cnmaestro_exporter.exceptions import CnMaestroConfigError
from cnmaestro_exporter.session import DEFAULT_MAX_FAILURES, DEFAULT_REFRESH_INTERVAL


def test_load_full_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "instance: https://cloud.example.com\n"
        "username: user@example.com\n"
        "password: secret\n"
        "verify_ssl: false\n"
        "login_timeout: 45s\n"
        "refresh_interval: 2h\n"
        "retry_interval: 10m\n"
        "max_refresh_failures: 5\n"
        "scrape_timeout: 7.5\n"
    )

    config = load_config(str(path))

    assert config.instance == "https://cloud.example.com"
    assert config.uses_credentials
    assert config.verify_ssl is False
    assert config.login_timeout == 45
    assert config.refresh_interval == 7200
    assert config.retry_interval == 600
    assert config.max_refresh_failures == 5
    assert config.scrape_timeout == 7.5


def test_defaults_with_session_id():
    config = config_from_dict({"instance": "https://cloud.example.com", "session_id": "abc"})

    assert not config.uses_credentials
    assert config.verify_ssl is True
    assert config.refresh_interval == DEFAULT_REFRESH_INTERVAL
    assert config.max_refresh_failures == DEFAULT_MAX_FAILURES
    assert config.scrape_timeout == DEFAULT_SCRAPE_TIMEOUT


@pytest.mark.parametrize("data,message", [
    ({"session_id": "abc"}, "instance"),
    ({"instance": "https://cloud.example.com"}, "username and password"),
    ({"instance": "https://cloud.example.com", "username": "u"}, "username and password"),
    ({"instance": "https://cloud.example.com", "session_id": "abc", "colour": "red"}, "colour"),
    ({"instance": "https://cloud.example.com", "session_id": 12}, "session_id"),
    ({"instance": "https://cloud.example.com", "session_id": "abc", "retry_interval": "soon"}, "retry_interval"),
    ({"instance": "https://cloud.example.com", "session_id": "abc", "max_refresh_failures": -1}, "max_refresh_failures"),
    ({"instance": "https://cloud.example.com", "session_id": "abc", "verify_ssl": 1}, "verify_ssl"),
])
def test_invalid_config(data, message):
    with pytest.raises(CnMaestroConfigError, match=message):
        config_from_dict(data)


def test_config_must_be_a_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- instance\n")

    with pytest.raises(CnMaestroConfigError, match="mapping"):
        load_config(str(path))


def test_unreadable_config(tmp_path):
    with pytest.raises(CnMaestroConfigError, match="failed to open"):
        load_config(str(tmp_path / "missing.yaml"))


def test_broken_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("instance: [unclosed\n")

    with pytest.raises(CnMaestroConfigError, match="loading config file"):
        load_config(str(path))


@pytest.mark.parametrize("value,expected", [
    (30, 30.0),
    (1.5, 1.5),
    ("45s", 45.0),
    ("30m", 1800.0),
    ("6h", 21600.0),
    ("250ms", 0.25),
    ("90", 90.0),
])
def test_parse_duration(value, expected):
    assert parse_duration(value, "key") == pytest.approx(expected)


@pytest.mark.parametrize("value", [0, -5, "0s", "ten", True, "5d"])
def test_parse_duration_rejects(value):
    with pytest.raises(CnMaestroConfigError):
        parse_duration(value, "key")
