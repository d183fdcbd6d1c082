import asyncio
import logging
from typing import Any, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route, async_playwright

CHROMIUM_ARGS = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
]


class Driver:
    """Owns one Playwright process, one Chromium browser and its single page."""

    # Chromium launches are serialized; parallel launches in one event loop
    # fight over the same Playwright driver process.
    _launch_lock: Optional[asyncio.Lock] = None

    def __init__(self, browser_config: Dict[str, Any]):
        self.config = browser_config
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._stopped = False

    @classmethod
    async def launch(cls, browser_config: Dict[str, Any]) -> "Driver":
        """Start Chromium with ``browser_config`` and open a page.

        Args:
            browser_config (dict): see :data:`webqa_casegen.browser.config.DEFAULT_CONFIG`.
                ``headless``, ``viewport``, ``language`` and ``navigation_timeout``
                are required; ``user_agent`` and ``block_resources`` are optional.
        """
        if cls._launch_lock is None:
            cls._launch_lock = asyncio.Lock()
        driver = cls(browser_config)
        async with cls._launch_lock:
            try:
                await driver._start()
            except Exception:
                logging.error("Failed to launch browser", exc_info=True)
                await driver.stop()
                raise
        return driver

    async def _start(self):
        viewport = self.config["viewport"]
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.config["headless"],
            args=CHROMIUM_ARGS + [f'--window-size={viewport["width"]},{viewport["height"]}'],
        )

        context_options = {"viewport": dict(viewport), "locale": self.config["language"]}
        if self.config.get("user_agent"):
            context_options["user_agent"] = self.config["user_agent"]
        self.context = await self.browser.new_context(**context_options)
        self.context.set_default_navigation_timeout(self.config["navigation_timeout"])

        if self.config.get("block_resources"):
            await self.context.route("**/*", self._route_filter)

        self.page = await self.context.new_page()
        logging.debug(f"Chromium started (headless={self.config['headless']}, viewport={viewport})")

    async def _route_filter(self, route: Route):
        if route.request.resource_type in (self.config.get("blocked_resource_types") or ()):
            await route.abort()
        else:
            await route.continue_()

    async def stop(self):
        """Close the browser and stop Playwright; safe to call twice."""
        if self._stopped:
            return
        self._stopped = True
        try:
            if self.browser:
                await self.browser.close()
        finally:
            if self.playwright:
                await self.playwright.stop()
            self.page = self.context = self.browser = self.playwright = None
        logging.debug("Chromium stopped")
