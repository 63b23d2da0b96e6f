"""Semantic locator registry.

Every element the suite touches is declared once in STOREFRONT_LOCATORS as an
ordered list of candidate strategies. Resolution tries the candidates in
order against the live page and the first one matching at least one element
wins. When nothing matches, the reference resolves to an empty Resolution and
the caller decides whether that is a failure.

References are immutable and are re-resolved on every use; the DOM can change
between two operations, so nothing is cached.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from functools import reduce
from typing import Dict, Iterator, Mapping, Sequence, Tuple, Union

from playwright.async_api import Locator, Page

from storefront_qa.errors import UnknownLocatorError

Root = Union[Page, Locator]


class Strategy:
    """One way of finding elements below a root page or locator."""

    def build(self, root: Root) -> Locator:
        raise NotImplementedError

    def describe(self) -> str:
        return repr(self)


@dataclass(frozen=True)
class Css(Strategy):
    """CSS selector (or any Playwright selector such as `xpath=...`)."""

    selector: str
    has_text: str | None = None

    def build(self, root: Root) -> Locator:
        if self.has_text is not None:
            return root.locator(self.selector, has_text=self.has_text)
        return root.locator(self.selector)

    def describe(self) -> str:
        if self.has_text is not None:
            return f"css={self.selector} has_text={self.has_text!r}"
        return f"css={self.selector}"


@dataclass(frozen=True)
class Text(Strategy):
    """Text match: exact, or case-insensitive substring when exact is False."""

    text: str
    exact: bool = False

    def build(self, root: Root) -> Locator:
        return root.get_by_text(self.text, exact=self.exact)

    def describe(self) -> str:
        return f"text={self.text!r} exact={self.exact}"


@dataclass(frozen=True)
class Role(Strategy):
    """ARIA role, optionally narrowed by accessible name."""

    role: str
    name: str | None = None
    exact: bool = False

    def build(self, root: Root) -> Locator:
        if self.name is None:
            return root.get_by_role(self.role)
        return root.get_by_role(self.role, name=self.name, exact=self.exact)

    def describe(self) -> str:
        return f"role={self.role} name={self.name!r}"


@dataclass(frozen=True)
class Placeholder(Strategy):
    text: str
    exact: bool = False

    def build(self, root: Root) -> Locator:
        return root.get_by_placeholder(self.text, exact=self.exact)

    def describe(self) -> str:
        return f"placeholder={self.text!r}"


@dataclass(frozen=True)
class Attribute(Strategy):
    """Exact attribute value match, e.g. data-testid."""

    attribute: str
    value: str
    tag: str = "*"

    def build(self, root: Root) -> Locator:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"')
        return root.locator(f'{self.tag}[{self.attribute}="{escaped}"]')

    def describe(self) -> str:
        return f"{self.tag}[{self.attribute}={self.value!r}]"


@dataclass(frozen=True)
class Nth(Strategy):
    """The index-th match of another strategy (negative counts from the end)."""

    inner: Strategy
    index: int

    def build(self, root: Root) -> Locator:
        return self.inner.build(root).nth(self.index)

    def describe(self) -> str:
        return f"{self.inner.describe()} >> nth={self.index}"


@dataclass(frozen=True)
class HasText(Strategy):
    """Matches of another strategy narrowed to those containing text."""

    inner: Strategy
    text: str

    def build(self, root: Root) -> Locator:
        return self.inner.build(root).filter(has_text=self.text)

    def describe(self) -> str:
        return f"{self.inner.describe()} >> has_text={self.text!r}"


@dataclass(frozen=True)
class Within(Strategy):
    """Child matches that are descendants of parent matches."""

    parent: Strategy
    child: Strategy

    def build(self, root: Root) -> Locator:
        return self.child.build(self.parent.build(root))

    def describe(self) -> str:
        return f"{self.parent.describe()} >> {self.child.describe()}"


@dataclass(frozen=True)
class AllOf(Strategy):
    """Elements matching every part."""

    parts: Tuple[Strategy, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError(f"{type(self).__name__} needs at least one part")

    def build(self, root: Root) -> Locator:
        return reduce(lambda acc, part: acc.and_(part.build(root)), self.parts[1:], self.parts[0].build(root))

    def describe(self) -> str:
        return " AND ".join(part.describe() for part in self.parts)


@dataclass(frozen=True)
class AnyOf(Strategy):
    """Elements matching at least one part."""

    parts: Tuple[Strategy, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError(f"{type(self).__name__} needs at least one part")

    def build(self, root: Root) -> Locator:
        return reduce(lambda acc, part: acc.or_(part.build(root)), self.parts[1:], self.parts[0].build(root))

    def describe(self) -> str:
        return " OR ".join(part.describe() for part in self.parts)


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a reference once against the live page."""

    reference: "ElementReference"
    strategy: Strategy | None
    index: int
    locator: Locator | None
    count: int

    @property
    def empty(self) -> bool:
        return self.count == 0


@dataclass(frozen=True)
class ElementReference:
    """Named, lazily resolved handle to zero or more elements."""

    name: str
    candidates: Tuple[Strategy, ...]
    scope: "ElementReference | None" = None

    async def resolve(self, page: Page) -> Resolution:
        """Try each candidate in order; the first with a live match wins."""
        root: Root = page
        if self.scope is not None:
            parent = await self.scope.resolve(page)
            if parent.empty:
                return Resolution(self, None, -1, None, 0)
            root = parent.locator

        for index, strategy in enumerate(self.candidates):
            locator = strategy.build(root)
            count = await locator.count()
            if count > 0:
                return Resolution(self, strategy, index, locator, count)
        return Resolution(self, None, -1, None, 0)

    def within(self, parent: "ElementReference") -> "ElementReference":
        return replace(self, name=f"{parent.name} > {self.name}", scope=parent)

    def nth(self, index: int) -> "ElementReference":
        return replace(
            self,
            name=f"{self.name}[{index}]",
            candidates=tuple(Nth(candidate, index) for candidate in self.candidates),
        )

    def with_text(self, text: str) -> "ElementReference":
        return replace(
            self,
            name=f"{self.name}({text!r})",
            candidates=tuple(HasText(candidate, text) for candidate in self.candidates),
        )

    def describe(self) -> str:
        return " | ".join(candidate.describe() for candidate in self.candidates)


def _as_candidates(value: Union[Strategy, Sequence[Strategy]]) -> Tuple[Strategy, ...]:
    candidates = (value,) if isinstance(value, Strategy) else tuple(value)
    if not candidates:
        raise ValueError("a locator needs at least one candidate strategy")
    return candidates


class LocatorRegistry:
    """Table of semantic names to ordered candidate strategies."""

    def __init__(self, table: Mapping[str, Union[Strategy, Sequence[Strategy]]]) -> None:
        self._table: Dict[str, Tuple[Strategy, ...]] = {
            name: _as_candidates(value) for name, value in table.items()
        }

    def resolve(self, name: str) -> ElementReference:
        try:
            candidates = self._table[name]
        except KeyError:
            raise UnknownLocatorError(
                payload={"name": name},
                message=f"no locator registered as '{name}'",
            ) from None
        return ElementReference(name=name, candidates=candidates)

    def with_entries(self, table: Mapping[str, Union[Strategy, Sequence[Strategy]]]) -> "LocatorRegistry":
        merged: Dict[str, Union[Strategy, Sequence[Strategy]]] = dict(self._table)
        merged.update(table)
        return LocatorRegistry(merged)

    def names(self) -> list[str]:
        return sorted(self._table)

    def __contains__(self, name: object) -> bool:
        return name in self._table

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._table)


def _testid(value: str, tag: str = "*") -> Attribute:
    return Attribute("data-testid", value, tag)


STOREFRONT_LOCATORS: Dict[str, Tuple[Strategy, ...]] = {
    # Home page
    "home.get_app_button": (Css("button", has_text="Get App"),),
    "home.search_icon": (Css(".lucide.lucide-search"),),
    "home.search_input": (Css(".flex-grow.outline-none.text-sm.font-semibold"),),
    "home.search_suggestion": (Nth(Css(".text-xs.font-semibold"), 0),),
    "home.services_grid": (Css(".grid.grid-cols-4.gap-3.mt-4"),),
    "home.hero_section": (Css(".flex.items-center.flex-grow.gap-2"),),
    "home.location_selector": (Css(".flex.items-center.gap-3"),),
    "home.location_search_input": (
        Css('xpath=//input[@placeholder="Search for area, street name…"]'),
        Placeholder("Search for area"),
    ),
    "home.main_categories": (Css("p.text-xs.text-center.text-black"),),
    "home.category_tiles": (Css("p.text-black.text-center"),),
    "home.service_categories": (Css("p.text-xs.text-center.font-inter"),),
    "home.services_list": (Within(Css("div.grid.grid-cols-3.gap-6"), Css("p.text-xs.text-center.font-inter")),),
    "home.service_cards": (Css("a.w-full:has(p)"),),
    "home.bottom_sheet_close": (Css(".lucide.lucide-x"),),
    "home.cart_icon": (_testid("cart-icon"), Css(".cart-icon")),
    "home.cart_badge": (Css(".cart-count"), Css(".badge")),
    "home.how_it_works": (Css(".text-sm.font-semibold.text-black"), Css(".how-it-works")),
    "home.customer_reviews": (_testid("customer-reviews"), Css(".reviews")),
    "home.review_items": (Css(".review-item"), Css(".customer-review")),
    "home.footer": (Css(".text-base.font-semibold.my-2"), Css("footer")),
    "home.account_button": (Nth(Css("div.font-medium.text-stone-500", has_text="Account"), 1),),
    # Email/password login form
    "login.email_input": (_testid("email-input"), Css('input[type="email"]'), Css('input[name="email"]')),
    "login.password_input": (
        _testid("password-input"),
        Css('input[type="password"]'),
        Css('input[name="password"]'),
    ),
    "login.submit_button": (_testid("login-button"), Css("button", has_text="Login"), Css('button[type="submit"]')),
    "login.forgot_password_link": (_testid("forgot-password"), Css("a", has_text="Forgot Password")),
    "login.signup_link": (_testid("signup-link"), Css("a", has_text="Sign Up")),
    "login.social_login": (_testid("social-login"), Css(".social-login")),
    "login.google_button": (_testid("google-login"), Css("button", has_text="Google")),
    "login.facebook_button": (_testid("facebook-login"), Css("button", has_text="Facebook")),
    "login.error_message": (_testid("error-message"), Css(".error-message"), Css(".alert-error")),
    "login.success_message": (_testid("success-message"), Css(".success-message"), Css(".alert-success")),
    "login.show_password_toggle": (_testid("show-password"), Css(".show-password-toggle")),
    "login.remember_me": (_testid("remember-me"), Css('input[name="remember"]')),
    "login.email_validation": (_testid("email-validation"), Css(".email-error")),
    "login.password_validation": (_testid("password-validation"), Css(".password-error")),
    # OTP login drawer
    "otp.login_drawer": (Css("#login_drawer"),),
    "otp.mobile_input": (Placeholder("Mobile Number*", exact=True), Attribute("type", "tel", "input")),
    "otp.continue_button": (Css("button", has_text="Continue"), Role("button", name="Continue")),
    "otp.invalid_mobile_toast": (Text("Please enter valid Mobile Number", exact=True),),
    "otp.code_input": (
        Css('xpath=//input[@autocomplete="one-time-code"]'),
        Attribute("autocomplete", "one-time-code", "input"),
    ),
    "otp.logged_in_heading": (Css("h4", has_text="Test"),),
    # Mobile web home
    "mobile.home_marker": (Text("Home", exact=True),),
    "mobile.search_input": (Placeholder("Search"),),
    "mobile.tabs": (Role("tab"),),
    "mobile.allow_button": (Text("Allow", exact=True), Role("button", name="Allow")),
}


def storefront_registry() -> LocatorRegistry:
    return LocatorRegistry(STOREFRONT_LOCATORS)
