"""Tests for the selenium login provider that do not start a browser."""

import pytest
from selenium.common.exceptions import WebDriverException

from cnmaestro_exporter.browser_login import BrowserLoginProvider
from cnmaestro_exporter.exceptions import CnMaestroAuthenticationError


def test_headless_by_default(monkeypatch):
    monkeypatch.delenv("HEADLESS", raising=False)
    monkeypatch.delenv("CHROME_BINARY", raising=False)

    provider = BrowserLoginProvider("https://cloud.example.com")

    assert provider.headless is True
    assert provider.binary is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("HEADLESS", "0")
    monkeypatch.setenv("CHROME_BINARY", "/usr/bin/chromium")

    provider = BrowserLoginProvider("https://cloud.example.com")

    assert provider.headless is False
    assert provider.binary == "/usr/bin/chromium"


def test_driver_failure_is_an_authentication_error(monkeypatch):
    provider = BrowserLoginProvider("https://cloud.example.com")

    def broken_driver():
        raise WebDriverException("chrome not reachable")

    monkeypatch.setattr(provider, "_driver", broken_driver)

    with pytest.raises(CnMaestroAuthenticationError, match="chrome not reachable"):
        provider.login("user@example.com", "secret", 1)


def test_browser_is_closed_after_failure(monkeypatch):
    class FakeDriver:
        def __init__(self):
            self.quit_called = False

        def set_page_load_timeout(self, timeout):
            pass

        def get(self, url):
            raise WebDriverException("page did not load")

        def quit(self):
            self.quit_called = True

    driver = FakeDriver()
    provider = BrowserLoginProvider("https://cloud.example.com")
    monkeypatch.setattr(provider, "_driver", lambda: driver)

    with pytest.raises(CnMaestroAuthenticationError):
        provider.login("user@example.com", "secret", 1)
    assert driver.quit_called
