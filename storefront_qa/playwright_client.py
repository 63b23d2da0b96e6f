"""
Playwright Client
=================

Launches Playwright in-process and hands out pages configured for the
storefront: Indian locale and timezone, a desktop viewport (or an emulated
device), relaxed HTTPS checks for staging certificates, and the action and
navigation timeouts the suite expects.

Usage:
    from storefront_qa.playwright_client import PlaywrightClient

    async with PlaywrightClient(headless=True) as client:
        page = await client.new_page()
        await page.goto("https://www.yesmadam.com/delhi-at-home-services")
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)

ACTION_TIMEOUT_MS = 15000
NAVIGATION_TIMEOUT_MS = 30000

DEFAULT_CONTEXT_OPTIONS: Dict[str, Any] = {
    "locale": "en-IN",
    "timezone_id": "Asia/Kolkata",
    "viewport": {"width": 1280, "height": 720},
    "ignore_https_errors": True,
}


class PlaywrightClient:
    """
    In-process Playwright browser with storefront context defaults.

    Example:
        async with PlaywrightClient(device="iPhone 13") as client:
            page = await client.new_page()
    """

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        action_timeout: int = ACTION_TIMEOUT_MS,
        navigation_timeout: int = NAVIGATION_TIMEOUT_MS,
        storage_state_path: Optional[str] = None,
        device: Optional[str] = None,
        slow_mo: int = 0,
    ):
        """
        Args:
            browser_type: chromium, firefox or webkit
            headless: Run without a visible window
            action_timeout: Default timeout for element actions in milliseconds
            navigation_timeout: Default timeout for navigations in milliseconds
            storage_state_path: Saved session to start from, ignored if missing
            device: Playwright device descriptor name to emulate, e.g. "iPhone 13"
        """
        self.browser_type = browser_type
        self.headless = headless
        self.action_timeout = action_timeout
        self.navigation_timeout = navigation_timeout
        self.storage_state_path = storage_state_path
        self.device = device
        self.slow_mo = slow_mo

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "PlaywrightClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def context_options(self) -> Dict[str, Any]:
        """Options for new contexts: defaults, then device descriptor, then session."""
        options: Dict[str, Any] = dict(DEFAULT_CONTEXT_OPTIONS)
        if self.device:
            if not self._playwright:
                raise RuntimeError("Client not connected. Use 'async with' or call connect()")
            descriptor = dict(self._playwright.devices[self.device])
            # device descriptors name the engine to use, not a context option
            descriptor.pop("default_browser_type", None)
            options.update(descriptor)

        storage_state_path = self.storage_state_path
        if storage_state_path and not os.path.exists(storage_state_path):
            logger.warning("storage_state_path does not exist, ignoring: %s", storage_state_path)
            storage_state_path = None
        if storage_state_path:
            options["storage_state"] = storage_state_path
        return options

    async def connect(self) -> None:
        """Launch the browser and open the default context."""
        self._playwright = await async_playwright().start()

        launcher = getattr(self._playwright, self.browser_type, None)
        if launcher is None:
            raise ValueError(f"Unknown browser type: {self.browser_type}")
        self._browser = await launcher.launch(headless=self.headless, slow_mo=self.slow_mo)
        self._context = await self.new_context()
        logger.info(
            "Launched %s (headless=%s, device=%s)",
            self.browser_type,
            self.headless,
            self.device or "desktop",
        )

    async def new_context(self, **overrides: Any) -> BrowserContext:
        """Create a context with the storefront defaults plus overrides."""
        if not self._browser:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")

        options = self.context_options()
        options.update(overrides)
        context = await self._browser.new_context(**options)
        context.set_default_timeout(self.action_timeout)
        context.set_default_navigation_timeout(self.navigation_timeout)
        return context

    async def new_page(self) -> Page:
        """Open a page in the default context."""
        if not self._context:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")
        return await self._context.new_page()

    async def close(self) -> None:
        """Close the context, the browser and the Playwright driver."""
        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def context(self) -> BrowserContext:
        if not self._context:
            raise RuntimeError("Client not connected")
        return self._context


@asynccontextmanager
async def playwright_session(
    headless: bool = True,
    storage_state_path: Optional[str] = None,
    device: Optional[str] = None,
    browser_type: str = "chromium",
) -> AsyncIterator[Page]:
    """
    Yield a ready page and tear the browser down afterwards.

    Usage:
        async with playwright_session(headless=False) as page:
            await page.goto("https://example.com")
    """
    client = PlaywrightClient(
        browser_type=browser_type,
        headless=headless,
        storage_state_path=storage_state_path,
        device=device,
    )
    await client.connect()
    try:
        yield await client.new_page()
    finally:
        await client.close()
