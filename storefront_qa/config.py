"""Suite configuration.

One named environment profile is selected with TEST_ENV:
- production: live storefront and API, three retries, always headless
- staging (default, also used for unknown names): staging API
- development: dev API, shorter timeouts, headed browser

`load_config()` builds a frozen SuiteConfig once; pytest hands it to every
fixture that needs it. Nothing in this module keeps mutable global state.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Tuple
from urllib.parse import quote_plus, urljoin

from storefront_qa.env_defaults import merged_environment

DEFAULT_BASE_URL = "https://www.yesmadam.com/delhi-at-home-services"
DEFAULT_OTP_API_URL = "https://api-live.yesmadam.com"
DEFAULT_PROFILE = "staging"


@dataclass(frozen=True)
class Timeouts:
    """Timeout tiers in milliseconds."""

    short: int
    medium: int
    long: int


@dataclass(frozen=True)
class EnvironmentProfile:
    """Read-only settings for one target environment."""

    name: str
    base_url: str
    api_url: str
    timeouts: Timeouts
    retries: int
    headless: bool

    def url(self, path: str) -> str:
        """Return an absolute storefront URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))


@dataclass(frozen=True)
class DatabaseSettings:
    host: str
    port: int
    name: str
    username: str
    password: str
    mongo_url: str = "mongodb://localhost:27017"
    url_override: str | None = None

    @property
    def sql_url(self) -> str:
        """SQLAlchemy URL for the relational store (DATABASE_URL wins)."""
        if self.url_override:
            return self.url_override
        auth = quote_plus(self.username)
        if self.password:
            auth += ":" + quote_plus(self.password)
        return f"mysql+pymysql://{auth}@{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class MailSettings:
    host: str
    port: int
    username: str
    password: str
    recipients: Tuple[str, ...]
    subject: str = "Playwright Automation Test Report"
    sender_name: str = "Automation Bot"

    @property
    def use_ssl(self) -> bool:
        return self.port == 465

    @property
    def sender(self) -> str:
        return f'"{self.sender_name}" <{self.username}>'


@dataclass(frozen=True)
class UserCredentials:
    email: str
    password: str
    mobile: str
    otp: str


@dataclass(frozen=True)
class SuiteConfig:
    """Everything the suite reads from the environment, resolved once."""

    profile: EnvironmentProfile
    otp_api_url: str
    credentials: UserCredentials
    database: DatabaseSettings
    mail: MailSettings
    skip_global_setup: bool = False
    ci: bool = False
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    auth_state_path: Path = Path("auth/storageState.json")
    screenshot_dir: Path = Path("screenshots")
    allure_results_dir: Path = Path("allure-results")
    allure_report_dir: Path = Path("allure-report")
    run_e2e: bool = False

    @property
    def should_skip_global_setup(self) -> bool:
        return self.ci or self.skip_global_setup

    def with_profile(self, profile: EnvironmentProfile) -> "SuiteConfig":
        """Return a copy targeting another profile."""
        return replace(self, profile=profile)


# name -> (api url, timeouts, retries, headless, database env prefix)
_PROFILES: Dict[str, tuple] = {
    "production": ("https://api.yesmadam.com", Timeouts(5000, 15000, 30000), 3, True, "PROD"),
    "staging": ("https://api-staging.yesmadam.com", Timeouts(5000, 15000, 30000), 2, True, "STAGING"),
    "development": ("https://api-dev.yesmadam.com", Timeouts(3000, 10000, 20000), 1, False, "DEV"),
}

_DEV_DATABASE_DEFAULTS = {"HOST": "localhost", "NAME": "yesmadam_dev", "USER": "root"}


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def profile_names() -> list[str]:
    return list(_PROFILES)


def build_profile(name: str | None, env: Mapping[str, str]) -> EnvironmentProfile:
    """Build the named profile; unknown names fall back to staging."""
    key = (name or DEFAULT_PROFILE).strip().lower()
    if key not in _PROFILES:
        key = DEFAULT_PROFILE
    api_url, timeouts, retries, headless, _ = _PROFILES[key]

    headless_override = env.get("PLAYWRIGHT_HEADLESS")
    if headless_override:
        headless = _flag(headless_override)
    if _flag(env.get("CI")):
        headless = True

    return EnvironmentProfile(
        name=key,
        base_url=env.get("BASE_URL") or DEFAULT_BASE_URL,
        api_url=env.get("API_URL") or api_url,
        timeouts=timeouts,
        retries=retries,
        headless=headless,
    )


def _database_settings(profile_name: str, env: Mapping[str, str]) -> DatabaseSettings:
    prefix = _PROFILES[profile_name][4]
    defaults = _DEV_DATABASE_DEFAULTS if profile_name == "development" else {}

    def read(suffix: str, fallback: str = "") -> str:
        return env.get(f"{prefix}_DB_{suffix}") or defaults.get(suffix, fallback)

    return DatabaseSettings(
        host=read("HOST"),
        port=int(read("PORT", "3306")),
        name=read("NAME"),
        username=read("USER"),
        password=read("PASSWORD"),
        mongo_url=env.get("MONGO_URL") or "mongodb://localhost:27017",
        url_override=env.get("DATABASE_URL") or None,
    )


def _mail_settings(env: Mapping[str, str]) -> MailSettings:
    recipients = tuple(
        address.strip() for address in (env.get("EMAIL_TO") or "").split(",") if address.strip()
    )
    return MailSettings(
        host=env.get("EMAIL_HOST", ""),
        port=int(env.get("EMAIL_PORT") or "587"),
        username=env.get("EMAIL_USER", ""),
        password=env.get("EMAIL_PASS", ""),
        recipients=recipients,
        subject=env.get("EMAIL_SUBJECT") or "Playwright Automation Test Report",
    )


def load_config(environ: Mapping[str, str] | None = None) -> SuiteConfig:
    """Resolve the suite configuration.

    Args:
        environ: Variables to read. Defaults to the process environment
            layered over `.env.defaults`/`.env`.
    """
    env = merged_environment(os.environ) if environ is None else dict(environ)
    profile = build_profile(env.get("TEST_ENV"), env)

    return SuiteConfig(
        profile=profile,
        otp_api_url=env.get("OTP_API_URL") or DEFAULT_OTP_API_URL,
        credentials=UserCredentials(
            email=env.get("TEST_USER_EMAIL") or "test@yesmadam.com",
            password=env.get("TEST_USER_PASSWORD") or "Password123",
            mobile=env.get("TEST_USER_MOBILE") or "9855566677",
            otp=env.get("TEST_USER_OTP") or "2222",
        ),
        database=_database_settings(profile.name, env),
        mail=_mail_settings(env),
        skip_global_setup=_flag(env.get("SKIP_GLOBAL_SETUP")),
        ci=_flag(env.get("CI")),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_dir=Path(env.get("LOG_DIR") or "logs"),
        auth_state_path=Path(env.get("AUTH_STATE_PATH") or "auth/storageState.json"),
        screenshot_dir=Path(env.get("SCREENSHOT_DIR") or "screenshots"),
        allure_results_dir=Path(env.get("ALLURE_RESULTS_DIR") or "allure-results"),
        allure_report_dir=Path(env.get("ALLURE_REPORT_DIR") or "allure-report"),
        run_e2e=_flag(env.get("STOREFRONT_E2E")),
    )
