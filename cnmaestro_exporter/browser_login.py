"""
Interactive login through a real browser.

The cnMaestro cloud only hands out sessions through its single sign-on web
flow, so the login form is driven with selenium and the resulting cookies
are read back from the browser.
"""

import os
import random
import time
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .exceptions import CnMaestroAuthenticationError
from .logging import get_logger
from .login import AuthInfo
from .session import CSRF_COOKIE, SESSION_COOKIE

logger = get_logger(__name__)

SSO_LINK = 'a[href="/cn-rtr/sso"]'
LOGIN_FORM = "form#login"
SETTLE_SECONDS = 5


class BrowserLoginProvider:
    """
    Log in by filling the controller's SSO form in headless Chrome.

    Honours the ``HEADLESS=0`` environment variable to show the browser and
    ``CHROME_BINARY`` to pick a specific Chrome/Chromium executable.
    """

    def __init__(
        self,
        instance_url: str,
        headless: Optional[bool] = None,
        binary: Optional[str] = None,
    ):
        self.instance_url = instance_url
        self.headless = os.getenv("HEADLESS") != "0" if headless is None else headless
        self.binary = binary if binary is not None else os.getenv("CHROME_BINARY")

    def _driver(self) -> webdriver.Chrome:
        options = webdriver.ChromeOptions()
        if self.headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        if self.binary:
            options.binary_location = self.binary
        return webdriver.Chrome(options=options)

    @staticmethod
    def _type(element, text: str) -> None:
        for char in text:
            element.send_keys(char)
            time.sleep((25 + random.randint(0, 29)) / 1000)

    def login(self, username: str, password: str, timeout: float) -> AuthInfo:
        """
        Run the SSO flow and return the session cookies.

        Raises:
            CnMaestroAuthenticationError: If the browser fails, the flow times
                out, or no session cookie was issued.
        """
        logger.debug(f"Starting browser login at {self.instance_url}")
        driver = None
        try:
            driver = self._driver()
            driver.set_page_load_timeout(timeout)
            wait = WebDriverWait(driver, timeout)

            driver.get(self.instance_url)
            wait.until(EC.element_to_be_clickable((By.CSS_SELECTOR, SSO_LINK))).click()
            form = wait.until(EC.visibility_of_element_located((By.CSS_SELECTOR, LOGIN_FORM)))

            self._type(form.find_element(By.CSS_SELECTOR, 'input[name="email"]'), username)
            self._type(form.find_element(By.CSS_SELECTOR, 'input[name="password"]'), password)
            form.find_element(By.CSS_SELECTOR, 'input[name="remember"]').click()
            form.find_element(By.CSS_SELECTOR, 'button[type="submit"]').click()
            time.sleep(SETTLE_SECONDS)

            info = AuthInfo(session_id="")
            for cookie in driver.get_cookies():
                if cookie.get("name") == SESSION_COOKIE:
                    info.session_id = cookie.get("value", "")
                elif cookie.get("name") == CSRF_COOKIE:
                    info.csrf_token = cookie.get("value", "")
        except WebDriverException as e:
            raise CnMaestroAuthenticationError(f"failed to login: {e}") from e
        finally:
            if driver is not None:
                driver.quit()

        if not info.session_id:
            raise CnMaestroAuthenticationError("failed to login: no session cookie issued")
        return info
