import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront_qa.config import SuiteConfig, load_config
from storefront_qa.interactions import InteractionEngine
from storefront_qa.locators import storefront_registry
from tests.fakes import FAST_TIMEOUTS, FakePage


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: drives a real browser against a live storefront")
    config.addinivalue_line("markers", "api: calls the live storefront API")
    config.addinivalue_line("markers", "smoke: minimal health checks")


def pytest_collection_modifyitems(config, items):
    """Live tests only run when STOREFRONT_E2E is enabled."""
    if os.environ.get("STOREFRONT_E2E", "").lower() in {"1", "true", "yes", "on"}:
        return
    skip_live = pytest.mark.skip(reason="set STOREFRONT_E2E=1 to run against the live storefront")
    for item in items:
        if "e2e" in item.keywords or "api" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture()
def suite_env(tmp_path):
    """Environment mapping for load_config with every output under tmp_path."""
    return {
        "TEST_ENV": "staging",
        "LOG_DIR": str(tmp_path / "logs"),
        "AUTH_STATE_PATH": str(tmp_path / "auth" / "storageState.json"),
        "SCREENSHOT_DIR": str(tmp_path / "screenshots"),
        "ALLURE_RESULTS_DIR": str(tmp_path / "allure-results"),
        "ALLURE_REPORT_DIR": str(tmp_path / "allure-report"),
    }


@pytest.fixture()
def suite_config(suite_env) -> SuiteConfig:
    return load_config(suite_env)


@pytest.fixture()
def registry():
    return storefront_registry()


@pytest.fixture()
def fake_page():
    return FakePage(url="https://www.yesmadam.com/delhi-at-home-services")


@pytest.fixture()
def engine(fake_page):
    """Interaction engine over the fake page with a 20ms poll interval."""
    return InteractionEngine(fake_page, FAST_TIMEOUTS, poll_interval_ms=20)


# ============================================================================
# Mock SMTP server fixtures
# ============================================================================

@pytest.fixture(scope="function")
def mock_smtp_server():
    """Fixture that provides a running mock SMTP server on a free port.

    Usage:
        def test_email(mock_smtp_server):
            # ... send to mock_smtp_server.host:mock_smtp_server.port ...
            assert mock_smtp_server.captured_emails[0].subject == "Test Subject"
    """
    from storefront_qa.mock_smtp_server import MockSMTPServer

    server = MockSMTPServer(host="127.0.0.1")
    server.start()

    yield server

    server.stop()


# ============================================================================
# Live browser fixtures
# ============================================================================

@pytest.fixture(scope="session")
def live_config() -> SuiteConfig:
    """Configuration from the process environment and .env files."""
    return load_config()


@pytest_asyncio.fixture()
async def playwright_client(live_config):
    from storefront_qa.global_setup import storage_state_path
    from storefront_qa.playwright_client import PlaywrightClient

    async with PlaywrightClient(
        headless=live_config.profile.headless,
        action_timeout=live_config.profile.timeouts.medium,
        navigation_timeout=live_config.profile.timeouts.long,
        storage_state_path=storage_state_path(live_config),
    ) as client:
        yield client


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Remember each phase's report so fixtures can see whether the test failed."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, "rep_" + report.when, report)


@pytest_asyncio.fixture()
async def ui_session(request, playwright_client, live_config):
    """UiSession on a fresh page; a failing test gets a screenshot in the Allure report."""
    from storefront_qa.allure_support import attach_screenshot
    from storefront_qa.flows import UiSession

    page = await playwright_client.new_page()
    session = UiSession.for_page(page, live_config)

    yield session

    report = getattr(request.node, "rep_call", None)
    if report is not None and report.failed:
        await attach_screenshot(page, label=f"failure-{request.node.name}", full_page=True)
