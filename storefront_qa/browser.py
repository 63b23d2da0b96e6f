"""Page-level browser capability: navigation, storage, cookies, screenshots."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

from playwright.async_api import Dialog, Locator, Page, Request, Route
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from storefront_qa.config import EnvironmentProfile
from storefront_qa.errors import InteractionError

logger = logging.getLogger(__name__)

JsonResponder = Callable[[Request], Tuple[int, Any]]


class Browser:
    """Convenience wrapper over a Playwright page for one scenario."""

    def __init__(self, page: Page, profile: EnvironmentProfile, screenshot_dir: Path | str = "screenshots") -> None:
        self._page = page
        self.profile = profile
        self.screenshot_dir = Path(screenshot_dir)
        self.current_url: str | None = None
        self.current_title: str | None = None
        self.dialog_messages: List[str] = []

    @property
    def page(self) -> Page:
        return self._page

    async def _update_state(self) -> None:
        self.current_url = self._page.url
        self.current_title = await self._page.title()

    async def reset(self) -> Dict[str, Any]:
        """Navigate to about:blank."""
        await self._page.goto("about:blank")
        await self._update_state()
        return {"url": self.current_url, "title": self.current_title}

    async def goto(self, url: str, wait_until: str = "networkidle", timeout: int | None = None) -> Dict[str, Any]:
        """Navigate to URL and return url, title and response status.

        A storefront with analytics beacons may never reach "networkidle";
        when that times out the navigation is repeated with
        "domcontentloaded" before giving up.
        """
        timeout = timeout if timeout is not None else self.profile.timeouts.long
        try:
            response = await self._page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeout as exc:
            if wait_until != "networkidle":
                raise InteractionError(name="goto", payload={"url": url, "wait_until": wait_until}, message=str(exc)) from exc
            logger.warning("networkidle timed out for %s, retrying with domcontentloaded", url)
            try:
                response = await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout)
            except PlaywrightTimeout as retry_exc:
                raise InteractionError(
                    name="goto", payload={"url": url, "wait_until": "domcontentloaded"}, message=str(retry_exc)
                ) from retry_exc
        await self._update_state()
        status = response.status if response else None
        logger.info("Navigated to %s (status=%s)", self.current_url, status)
        return {"url": self.current_url, "title": self.current_title, "status": status}

    async def goto_relative(self, path: str, wait_until: str = "domcontentloaded") -> Dict[str, Any]:
        """Navigate to a path below the profile's base URL."""
        return await self.goto(self.profile.url(path), wait_until=wait_until)

    async def go_back(self) -> None:
        await self._page.go_back()
        await self._update_state()

    async def reload(self) -> None:
        await self._page.reload()
        await self._update_state()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Execute JavaScript in the page context."""
        try:
            return await self._page.evaluate(script, arg)
        except PlaywrightError as exc:
            raise InteractionError(name="evaluate", payload={"script": script}, message=str(exc)) from exc

    # Screenshots

    def _screenshot_path(self, name: str) -> Path:
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        return self.screenshot_dir / f"{name}-{stamp}.png"

    async def screenshot(self, name: str, full_page: bool = True) -> Path:
        """Save a PNG of the page as <screenshot_dir>/<name>-<timestamp>.png."""
        path = self._screenshot_path(name)
        try:
            await self._page.screenshot(path=str(path), full_page=full_page, type="png")
        except PlaywrightError as exc:
            raise InteractionError(name="screenshot", payload={"name": name}, message=str(exc)) from exc
        logger.info("Screenshot saved: %s", path)
        return path

    async def element_screenshot(self, locator: Locator, name: str) -> Path:
        path = self._screenshot_path(name)
        try:
            await locator.first.screenshot(path=str(path))
        except PlaywrightError as exc:
            raise InteractionError(name="element_screenshot", payload={"name": name}, message=str(exc)) from exc
        return path

    # Scrolling

    async def scroll_to_top(self) -> None:
        await self.evaluate("() => window.scrollTo(0, 0)")

    async def scroll_to_bottom(self) -> None:
        await self.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")

    async def set_viewport(self, width: int, height: int) -> None:
        await self._page.set_viewport_size({"width": width, "height": height})

    # Local storage

    async def set_local_storage(self, key: str, value: str) -> None:
        await self.evaluate("([k, v]) => window.localStorage.setItem(k, v)", [key, value])

    async def get_local_storage(self, key: str) -> str | None:
        return await self.evaluate("(k) => window.localStorage.getItem(k)", key)

    async def clear_local_storage(self) -> None:
        await self.evaluate("() => window.localStorage.clear()")

    # Cookies

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        """Add cookies; entries without url/domain are scoped to the base URL."""
        prepared = [
            cookie if ("url" in cookie or "domain" in cookie) else {**cookie, "url": self.profile.base_url}
            for cookie in cookies
        ]
        await self._page.context.add_cookies(prepared)

    async def get_cookies(self) -> List[Dict[str, Any]]:
        return list(await self._page.context.cookies())

    async def clear_cookies(self) -> None:
        await self._page.context.clear_cookies()

    # Dialogs

    def auto_handle_dialogs(self, accept: bool = True, prompt_text: str | None = None) -> None:
        """Accept (or dismiss) every alert/confirm/prompt and record its message."""

        async def _handle(dialog: Dialog) -> None:
            self.dialog_messages.append(dialog.message)
            logger.info("Dialog %s: %s", dialog.type, dialog.message)
            if accept and prompt_text is not None:
                await dialog.accept(prompt_text)
            elif accept:
                await dialog.accept()
            else:
                await dialog.dismiss()

        self._page.on("dialog", _handle)

    # Request interception

    async def mock_json_route(self, pattern: str, responder: JsonResponder) -> None:
        """Answer every request matching pattern with responder's (status, body)."""

        async def _fulfil(route: Route) -> None:
            status, body = responder(route.request)
            logger.debug("Mocked %s %s -> %s", route.request.method, route.request.url, status)
            await route.fulfill(status=status, content_type="application/json", body=json.dumps(body))

        await self._page.route(pattern, _fulfil)

    async def unroute(self, pattern: str) -> None:
        await self._page.unroute(pattern)
