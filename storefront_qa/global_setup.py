"""
Suite-wide authentication bootstrap and cleanup.

Setup never aborts the run. It is skipped when CI or SKIP_GLOBAL_SETUP is
set. In production it only visits the landing page; elsewhere it tries the
email/password login up to 1 + profile.retries times. Whatever storage state
the browser ends up with is written to the auth state file either way, and
the outcome is reported as a StepResult.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

import httpx
from playwright.async_api import BrowserContext
from playwright.async_api import Error as PlaywrightError
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from storefront_qa import flows
from storefront_qa.api_client import StorefrontApi
from storefront_qa.config import SuiteConfig
from storefront_qa.datastores import DatabaseManager
from storefront_qa.errors import AssertionFailure, InteractionError
from storefront_qa.outcomes import StepResult, StepStatus
from storefront_qa.playwright_client import PlaywrightClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., PlaywrightClient]

_LOGIN_ERRORS = (InteractionError, AssertionFailure, PlaywrightError)
_SETUP_ERRORS = _LOGIN_ERRORS + (OSError,)


async def save_storage_state(context: BrowserContext, path: Path) -> Path:
    """Write cookies and local storage of context to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    await context.storage_state(path=str(path))
    logger.info("Saved auth state to: %s", path)
    return path


def storage_state_path(config: SuiteConfig) -> Optional[str]:
    """The saved auth state file, if a previous setup produced one."""
    return str(config.auth_state_path) if config.auth_state_path.exists() else None


async def _login_with_retries(session: flows.UiSession, config: SuiteConfig) -> StepResult:
    attempts = 1 + config.profile.retries
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            await session.browser.goto(config.profile.url("login"), wait_until="domcontentloaded")
            await flows.login(session, config.credentials.email, config.credentials.password)
            await session.engine.wait_for_page_load("networkidle")
        except _LOGIN_ERRORS as exc:
            last_error = exc
            logger.warning("Login attempt %d/%d failed: %s", attempt, attempts, exc)
            continue
        logger.info("Login successful on attempt %d", attempt)
        return StepResult.succeeded("login", f"attempt {attempt}")
    return StepResult.failed("login", last_error, f"{attempts} attempts failed")


async def _prepare_auth_state(client: PlaywrightClient, config: SuiteConfig) -> StepResult:
    await client.connect()
    page = await client.new_page()
    session = flows.UiSession.for_page(page, config)

    if config.profile.name == "production":
        logger.info("Skipping login in production")
        try:
            await session.browser.goto(config.profile.base_url, wait_until="domcontentloaded")
            result = StepResult.skipped("login", "production profile")
        except _LOGIN_ERRORS as exc:
            logger.error("Landing page did not load: %s", exc)
            result = StepResult.failed("landing_page", exc)
    else:
        logger.info("Performing user authentication...")
        result = await _login_with_retries(session, config)
        if result.status is StepStatus.FAILED:
            logger.warning("Login failed, continuing without authentication: %s", result.error)

    try:
        await save_storage_state(client.context, config.auth_state_path)
    except (PlaywrightError, OSError) as exc:
        logger.error("Could not save auth state to %s: %s", config.auth_state_path, exc)
        return StepResult.failed("save_storage_state", exc)
    return result


async def _close_client(client: PlaywrightClient) -> None:
    try:
        await client.close()
    except PlaywrightError as exc:
        logger.warning("Browser did not shut down cleanly: %s", exc)


async def run_global_setup(config: SuiteConfig, client_factory: ClientFactory = PlaywrightClient) -> StepResult:
    """Prepare the shared auth state; never raises for login or browser failures."""
    logger.info("Starting global setup...")
    if config.should_skip_global_setup:
        reason = "CI" if config.ci else "SKIP_GLOBAL_SETUP"
        logger.info("Skipping global setup (%s)", reason)
        return StepResult.skipped("global_setup", reason)

    client = client_factory(headless=True)
    try:
        result = await _prepare_auth_state(client, config)
    except _SETUP_ERRORS as exc:
        logger.error("Global setup failed: %s", exc)
        result = StepResult.failed("global_setup", exc)
    finally:
        # connect() may have started the driver before failing
        await _close_client(client)
    logger.info("Global setup completed")
    return result


async def run_global_teardown(
    config: SuiteConfig,
    database: Optional[DatabaseManager] = None,
    api: Optional[StorefrontApi] = None,
    cleanup_endpoints: Iterable[str] = (),
) -> StepResult:
    """Remove test data and close shared connections; failures are logged and reported."""
    logger.info("Starting global teardown...")
    failures = []

    if api is not None:
        failed = await api.cleanup_resources(cleanup_endpoints)
        if failed:
            failures.append(f"cleanup failed for {', '.join(failed)}")
        try:
            await api.aclose()
        except (httpx.HTTPError, OSError) as exc:
            logger.error("Closing the API client failed: %s", exc)
            failures.append(f"api close failed: {exc}")

    if database is not None:
        try:
            database.close_all()
        except (SQLAlchemyError, PyMongoError) as exc:
            logger.error("Closing database connections failed: %s", exc)
            failures.append(f"database close failed: {exc}")

    if failures:
        detail = "; ".join(failures)
        logger.error("Global teardown finished with errors: %s", detail)
        return StepResult.failed("global_teardown", RuntimeError(detail), detail)
    logger.info("Global teardown completed successfully for %s", config.profile.name)
    return StepResult.succeeded("global_teardown")
