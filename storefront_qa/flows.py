"""Reusable storefront flows for UI coverage.

Flows are plain async functions taking a UiSession. They look elements up by
semantic name in the locator registry and act through the interaction
engine, so none of them holds selectors or page state of its own.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from playwright.async_api import Page

from storefront_qa.browser import Browser
from storefront_qa.config import SuiteConfig
from storefront_qa.errors import AssertionFailure
from storefront_qa.interactions import InteractionEngine
from storefront_qa.locators import ElementReference, LocatorRegistry, storefront_registry
from storefront_qa.outcomes import StepResult
from storefront_qa.verification import CountOp, TextMatch, Verifier

logger = logging.getLogger(__name__)


@dataclass
class UiSession:
    """Everything a flow needs for one scenario's page."""

    browser: Browser
    engine: InteractionEngine
    verify: Verifier
    registry: LocatorRegistry
    config: SuiteConfig

    @classmethod
    def for_page(
        cls,
        page: Page,
        config: SuiteConfig,
        registry: Optional[LocatorRegistry] = None,
        poll_interval_ms: int = 100,
    ) -> "UiSession":
        engine = InteractionEngine(page, config.profile.timeouts, poll_interval_ms=poll_interval_ms)
        return cls(
            browser=Browser(page, config.profile, config.screenshot_dir),
            engine=engine,
            verify=Verifier(engine),
            registry=registry or storefront_registry(),
            config=config,
        )

    @property
    def page(self) -> Page:
        return self.browser.page

    def ref(self, name: str) -> ElementReference:
        return self.registry.resolve(name)


def _stripped(texts: List[str]) -> List[str]:
    return [text.strip() for text in texts if text and text.strip()]


# ---------------------------------------------------------------------------
# Home page
# ---------------------------------------------------------------------------


async def open_home(session: UiSession) -> None:
    await session.browser.goto_relative("/")
    await session.engine.wait_for_page_load()


async def verify_home_loaded(session: UiSession) -> None:
    await session.verify.assert_visible(session.ref("home.get_app_button"))
    await session.verify.assert_visible(session.ref("home.hero_section"))
    await session.verify.assert_visible(session.ref("home.services_grid"))
    logger.info("Home page loaded successfully")


async def open_account(session: UiSession) -> None:
    await session.engine.click(session.ref("home.account_button"))
    await session.engine.wait_for_page_load("domcontentloaded")


async def search_for_service(session: UiSession, service_name: str) -> None:
    await session.engine.click(session.ref("home.search_icon"))
    await session.engine.wait_for_page_load("domcontentloaded")
    await session.engine.fill(session.ref("home.search_input"), service_name)
    await session.engine.wait_for_page_load()


async def open_first_search_result(session: UiSession) -> None:
    await session.engine.click(session.ref("home.search_suggestion"), timeout_ms=session.config.profile.timeouts.short)
    await session.engine.wait_for_page_load()


async def select_location(session: UiSession, location: str) -> None:
    await open_home(session)
    selector = session.ref("home.location_selector")
    await session.engine.click(selector)
    await session.verify.assert_visible(selector, timeout_ms=session.config.profile.timeouts.medium)
    await session.engine.fill(session.ref("home.location_search_input"), location)


async def click_category(session: UiSession, category_name: str) -> None:
    tile = session.ref("home.category_tiles").with_text(category_name).nth(0)
    await session.engine.click(tile, timeout_ms=session.config.profile.timeouts.medium)
    await session.engine.wait_for_page_load("domcontentloaded")


async def services_list(session: UiSession) -> List[str]:
    """Names in the services grid of the open bottom sheet."""
    items = session.ref("home.services_list")
    await session.verify.assert_visible(items.nth(0), timeout_ms=session.config.profile.timeouts.medium)
    services = _stripped(await session.engine.all_texts(items))
    logger.info("Found %d services", len(services))
    return services


async def open_category_services(session: UiSession, category_name: str) -> List[str]:
    await click_category(session, category_name)
    return await services_list(session)


async def click_service(session: UiSession, service_name: str) -> None:
    service = session.ref("home.service_categories").with_text(service_name).nth(0)
    await session.engine.click(service)
    await session.engine.wait_for_page_load("domcontentloaded")


async def close_bottom_sheet(session: UiSession) -> StepResult:
    close = session.ref("home.bottom_sheet_close")
    if not await session.engine.is_visible_tolerant(close):
        return StepResult.skipped("close_bottom_sheet", "no bottom sheet open")
    await session.engine.click(close)
    return StepResult.succeeded("close_bottom_sheet")


async def open_cart(session: UiSession) -> None:
    await session.engine.click(session.ref("home.cart_icon"))


async def cart_item_count(session: UiSession) -> int:
    """Number on the cart badge, 0 when the badge is not shown."""
    badge = session.ref("home.cart_badge").within(session.ref("home.cart_icon"))
    if not await session.engine.is_visible_tolerant(badge):
        return 0
    digits = re.sub(r"\D", "", await session.engine.read_text(badge))
    return int(digits) if digits else 0


async def verify_service_page(session: UiSession, city: str, slug: str) -> None:
    """Open /<city>/<slug> on the storefront host and expect service cards."""
    parts = urlsplit(session.config.profile.base_url)
    await session.browser.goto(f"{parts.scheme}://{parts.netloc}/{city}/{slug}", wait_until="domcontentloaded")
    await session.verify.assert_visible(
        session.ref("home.service_cards").nth(0), timeout_ms=session.config.profile.timeouts.short
    )
    logger.info("Services loaded for /%s/%s", city, slug)


async def main_categories_list(session: UiSession) -> List[str]:
    return _stripped(await session.engine.all_texts(session.ref("home.main_categories")))


async def service_categories_list(session: UiSession) -> List[str]:
    return _stripped(await session.engine.all_texts(session.ref("home.service_categories")))


async def verify_main_categories(session: UiSession) -> List[str]:
    """Every main category tile is visible; returns their names."""
    categories = session.ref("home.main_categories")
    await session.verify.assert_count(categories, CountOp.GTE, 1)
    total = await session.engine.count(categories)
    for index in range(total):
        await session.verify.assert_visible(categories.nth(index))
    names = await main_categories_list(session)
    logger.info("All %d service categories are visible: %s", total, ", ".join(names))
    return names


async def verify_featured_services_after_category_click(session: UiSession) -> List[str]:
    first_category = session.ref("home.main_categories").nth(0)
    await session.verify.assert_visible(first_category)
    await session.engine.click(first_category)

    services = await services_list(session)
    if not services:
        raise AssertionFailure(
            locator="home.services_list", expected="at least one service", actual=[], check="featured_services"
        )
    await close_bottom_sheet(session)
    return services


async def _verify_section(session: UiSession, name: str) -> None:
    section = session.ref(name)
    await session.engine.scroll_into_view(section)
    await session.verify.assert_visible(section)


async def verify_how_it_works(session: UiSession) -> None:
    await _verify_section(session, "home.how_it_works")


async def verify_customer_reviews(session: UiSession) -> int:
    await _verify_section(session, "home.customer_reviews")
    reviews = session.ref("home.review_items").within(session.ref("home.customer_reviews"))
    await session.verify.assert_count(reviews, CountOp.GTE, 1)
    return await session.engine.count(reviews)


async def verify_footer(session: UiSession) -> None:
    await _verify_section(session, "home.footer")


# ---------------------------------------------------------------------------
# Email / password login
# ---------------------------------------------------------------------------


async def verify_login_page_loaded(session: UiSession) -> None:
    await session.verify.assert_visible(session.ref("login.email_input"))
    await session.verify.assert_visible(session.ref("login.password_input"))
    await session.verify.assert_visible(session.ref("login.submit_button"))


async def login(session: UiSession, email: str, password: str, remember_me: bool = False) -> None:
    await session.engine.fill(session.ref("login.email_input"), email)
    await session.engine.fill(session.ref("login.password_input"), password)
    if remember_me:
        remember = session.ref("login.remember_me")
        if await session.engine.is_visible_tolerant(remember):
            await session.engine.click(remember)
    await session.engine.click(session.ref("login.submit_button"))


async def verify_successful_login(session: UiSession, url_pattern: str = "**/dashboard") -> None:
    await session.engine.wait_for_url(url_pattern, timeout_ms=10000)
    logger.info("Login successful")


async def verify_login_error(session: UiSession, expected_message: Optional[str] = None) -> None:
    error = session.ref("login.error_message")
    await session.verify.assert_visible(error)
    if expected_message:
        await session.verify.assert_text(error, expected_message, TextMatch.CONTAINS)


async def error_message(session: UiSession) -> str:
    error = session.ref("login.error_message")
    if await session.engine.is_visible_tolerant(error):
        return (await session.engine.read_text(error)).strip()
    return ""


async def verify_email_validation(session: UiSession) -> None:
    await session.engine.fill(session.ref("login.email_input"), "invalid-email")
    await session.engine.click(session.ref("login.submit_button"))
    await session.verify.assert_visible(session.ref("login.email_validation"))


async def verify_password_validation(session: UiSession) -> None:
    await session.engine.fill(session.ref("login.email_input"), "test@example.com")
    await session.engine.click(session.ref("login.submit_button"))
    await session.verify.assert_visible(session.ref("login.password_validation"))


async def verify_social_login_options(session: UiSession) -> StepResult:
    if not await session.engine.is_visible_tolerant(session.ref("login.social_login")):
        return StepResult.skipped("social_login_options", "social login not offered")
    await session.verify.assert_visible(session.ref("login.google_button"))
    await session.verify.assert_visible(session.ref("login.facebook_button"))
    return StepResult.succeeded("social_login_options")


async def login_with_google(session: UiSession) -> None:
    await session.engine.click(session.ref("login.google_button"))


async def login_with_facebook(session: UiSession) -> None:
    await session.engine.click(session.ref("login.facebook_button"))


async def click_forgot_password(session: UiSession) -> None:
    await session.engine.click(session.ref("login.forgot_password_link"))


async def open_signup(session: UiSession) -> None:
    await session.engine.click(session.ref("login.signup_link"))


async def toggle_password_visibility(session: UiSession) -> StepResult:
    toggle = session.ref("login.show_password_toggle")
    if not await session.engine.is_visible_tolerant(toggle):
        return StepResult.skipped("toggle_password_visibility", "no show-password toggle")
    await session.engine.click(toggle)
    return StepResult.succeeded("toggle_password_visibility")


async def is_remember_me_checked(session: UiSession) -> bool:
    remember = session.ref("login.remember_me")
    if not await session.engine.is_visible_tolerant(remember):
        return False
    return await session.engine.is_checked(remember)


async def clear_login_form(session: UiSession) -> None:
    await session.engine.fill(session.ref("login.email_input"), "")
    await session.engine.fill(session.ref("login.password_input"), "")
    if await is_remember_me_checked(session):
        await session.engine.click(session.ref("login.remember_me"))


# ---------------------------------------------------------------------------
# OTP login drawer
# ---------------------------------------------------------------------------


async def open_otp_login(session: UiSession) -> None:
    await session.engine.click(session.ref("otp.login_drawer"))
    await session.verify.assert_visible(session.ref("otp.mobile_input"))


async def request_otp(session: UiSession, mobile: str) -> None:
    await session.engine.fill(session.ref("otp.mobile_input"), mobile)
    # the Continue button sits under the drawer's sticky footer overlay
    await session.engine.click(session.ref("otp.continue_button"), force=True)


async def invalid_mobile_toast(session: UiSession, timeout_ms: int = 5000) -> Optional[str]:
    """Toast text when the storefront rejects the mobile number, else None."""
    toast = session.ref("otp.invalid_mobile_toast")
    if not await session.engine.is_visible_tolerant(toast, timeout_ms=timeout_ms):
        return None
    return (await session.engine.read_text(toast)).strip()


async def enter_otp(session: UiSession, otp: str) -> None:
    await session.engine.fill(session.ref("otp.code_input"), otp, timeout_ms=10000)


async def verify_otp_login(session: UiSession) -> None:
    await session.verify.assert_visible(session.ref("otp.logged_in_heading"))


async def otp_login(session: UiSession, mobile: str, otp: str) -> Optional[str]:
    """Full drawer flow; returns the invalid-mobile toast text if one appeared."""
    await open_otp_login(session)
    await request_otp(session, mobile)
    toast = await invalid_mobile_toast(session)
    if toast:
        logger.info("Toast message is: %s", toast)
    await enter_otp(session, otp)
    await verify_otp_login(session)
    return toast


# ---------------------------------------------------------------------------
# Mobile web
# ---------------------------------------------------------------------------

SWIPES: Dict[str, Tuple[Tuple[int, int], Tuple[int, int]]] = {
    "left": ((300, 300), (100, 300)),
    "right": ((100, 300), (300, 300)),
    "up": ((200, 500), (200, 100)),
    "down": ((200, 100), (200, 500)),
}


async def mobile_home_loaded(session: UiSession) -> bool:
    return await session.engine.is_visible_tolerant(session.ref("mobile.home_marker"))


async def mobile_search(session: UiSession, term: str) -> None:
    search = session.ref("mobile.search_input")
    await session.engine.click(search)
    await session.engine.fill(search, term)


async def navigate_to_tab(session: UiSession, tab_name: str) -> None:
    await session.engine.click(session.ref("mobile.tabs").with_text(tab_name))


async def handle_permissions(session: UiSession) -> StepResult:
    allow = session.ref("mobile.allow_button")
    if not await session.engine.is_visible_tolerant(allow):
        return StepResult.skipped("handle_permissions", "no permission prompt")
    await session.engine.click(allow)
    return StepResult.succeeded("handle_permissions")


async def swipe(session: UiSession, direction: str) -> None:
    try:
        (start_x, start_y), (end_x, end_y) = SWIPES[direction]
    except KeyError:
        raise ValueError(f"Unknown swipe direction: {direction}") from None
    mouse = session.page.mouse
    await mouse.move(start_x, start_y)
    await mouse.down()
    await mouse.move(end_x, end_y)
    await mouse.up()


async def press_back(session: UiSession) -> None:
    await session.browser.go_back()


async def wait_for_mobile_page(session: UiSession) -> None:
    await session.engine.wait_for_page_load("load")
