import logging
import uuid
from typing import Any, Dict, Optional

from playwright.async_api import Page

from webqa_casegen.browser.config import DEFAULT_CONFIG
from webqa_casegen.browser.driver import Driver

BLANK_PAGE_SCRIPT = "!document.body || document.body.innerText.trim().length === 0"


class BrowserSession:
    """A browser scoped to one extraction or execution run.

    Use as ``async with BrowserSession(...) as session`` or call
    :meth:`initialize` and :meth:`close` explicitly.
    """

    def __init__(self, session_id: Optional[str] = None, browser_config: Optional[Dict[str, Any]] = None):
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.browser_config = {**DEFAULT_CONFIG, **(browser_config or {})}
        self.driver: Optional[Driver] = None
        self.closed = False

    async def initialize(self):
        if self.closed:
            raise RuntimeError(f"Browser session {self.session_id} is closed")
        if self.driver is None:
            logging.debug(f"Browser session {self.session_id} starting")
            self.driver = await Driver.launch(self.browser_config)

    def get_page(self) -> Page:
        if self.closed or self.driver is None:
            raise RuntimeError(f"Browser session {self.session_id} is not running")
        return self.driver.page

    async def navigate_to(self, url: str, **kwargs) -> Page:
        """Open ``url`` in the session page and return the page.

        Waiting for network idle is best effort. A page whose body has no
        text after loading is treated as a failed navigation.
        """
        page = self.get_page()
        kwargs.setdefault("timeout", self.browser_config["navigation_timeout"])
        kwargs.setdefault("wait_until", "domcontentloaded")

        logging.info(f"Navigating to {url}")
        await page.goto(url, **kwargs)
        try:
            await page.wait_for_load_state("networkidle", timeout=self.browser_config["load_state_timeout"])
        except Exception as e:
            logging.debug(f"{url} never went network idle: {e}")

        try:
            blank = await page.evaluate(BLANK_PAGE_SCRIPT)
        except Exception as e:
            logging.warning(f"Could not inspect page content of {url}: {e}")
            blank = False
        if blank:
            raise RuntimeError(f"Page load timeout or blank content after navigation to {url}")
        return page

    async def close(self):
        if self.closed:
            return
        self.closed = True
        driver, self.driver = self.driver, None
        if driver is not None:
            try:
                await driver.stop()
            except Exception as e:
                logging.error(f"Error closing browser session {self.session_id}: {e}")

    async def __aenter__(self) -> "BrowserSession":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
