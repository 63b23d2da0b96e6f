"""Allure report helpers: screenshots, labels and the environment widget."""
from __future__ import annotations

import logging
import platform
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

import allure
from playwright.async_api import Page

from storefront_qa.config import SuiteConfig

logger = logging.getLogger(__name__)


async def attach_screenshot(page: Page, label: str = "Screenshot", full_page: bool = False) -> bytes:
    """Capture the page and attach it to the current Allure test."""
    image = await page.screenshot(full_page=full_page)
    allure.attach(image, name=label, attachment_type=allure.attachment_type.PNG)
    return image


def attach_json(name: str, body: str) -> None:
    allure.attach(body, name=name, attachment_type=allure.attachment_type.JSON)


def add_meta(
    feature: Optional[str] = None,
    severity: Optional[str] = None,
    epic: Optional[str] = None,
    owner: Optional[str] = None,
) -> None:
    """Label the running test; unset values are left alone."""
    if feature:
        allure.dynamic.feature(feature)
    if severity:
        allure.dynamic.severity(allure.severity_level(severity.lower()))
    if epic:
        allure.dynamic.epic(epic)
    if owner:
        allure.dynamic.label("owner", owner)


def environment_properties(config: SuiteConfig, browser: str = "chromium") -> Mapping[str, str]:
    return {
        "Environment": config.profile.name.capitalize(),
        "Base.URL": config.profile.base_url,
        "API.URL": config.profile.api_url,
        "Browser": browser,
        "Headless": str(config.profile.headless).lower(),
        "Platform": platform.system(),
        "Python": platform.python_version(),
        "Build": date.today().isoformat(),
    }


def write_environment(config: SuiteConfig, browser: str = "chromium", results_dir: Optional[Path] = None) -> Path:
    """Write environment.properties into the Allure results directory."""
    target_dir = Path(results_dir or config.allure_results_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / "environment.properties"
    lines = [f"{key}={value}" for key, value in environment_properties(config, browser).items()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Allure environment written to %s", path)
    return path
