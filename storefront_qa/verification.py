"""Declarative assertions built on the interaction engine.

Each assertion waits (through the engine) where waiting makes sense, reads
the state once, and either returns quietly or raises AssertionFailure with
the locator name, expected and actual values, and how long it waited.
"""
from __future__ import annotations

import operator
import re
from enum import Enum
from typing import Awaitable, Callable, Optional, Pattern, Tuple, Union

import anyio
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator

from storefront_qa.errors import AssertionFailure, WaitTimeoutError
from storefront_qa.interactions import ActionOutcome, InteractionEngine, WaitState
from storefront_qa.locators import ElementReference, Resolution


class TextMatch(str, Enum):
    EXACT = "exact"
    CONTAINS = "contains"


class CountOp(str, Enum):
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"

    @property
    def compare(self) -> Callable[[int, int], bool]:
        return {"eq": operator.eq, "gte": operator.ge, "lte": operator.le}[self.value]

    @property
    def symbol(self) -> str:
        return {"eq": "==", "gte": ">=", "lte": "<="}[self.value]


def _elapsed_ms(started: float) -> int:
    return max(0, int((anyio.current_time() - started) * 1000))


class Verifier:
    """Stateless assertions; safe to call repeatedly."""

    def __init__(self, engine: InteractionEngine) -> None:
        self.engine = engine

    async def _resolve_or_fail(
        self, ref: ElementReference, state: WaitState, timeout_ms: int | None, check: str
    ) -> Tuple[ActionOutcome, Resolution]:
        try:
            return await self.engine.wait_for_resolution(ref, self.engine.spec(state, timeout_ms))
        except WaitTimeoutError as exc:
            raise AssertionFailure(
                locator=ref.name,
                expected=state.value,
                actual=exc.last_state,
                elapsed_ms=exc.elapsed_ms,
                check=check,
            ) from exc

    async def _wait_or_fail(
        self, ref: ElementReference, state: WaitState, timeout_ms: int | None, check: str
    ) -> ActionOutcome:
        outcome, _ = await self._resolve_or_fail(ref, state, timeout_ms, check)
        return outcome

    async def _read_visible(
        self,
        ref: ElementReference,
        read: Callable[[Locator], Awaitable[Optional[str]]],
        timeout_ms: int | None,
        started: float,
        check: str,
    ) -> str:
        """Wait once for visibility, then read from the element that wait found."""
        _, resolution = await self._resolve_or_fail(ref, WaitState.VISIBLE, timeout_ms, check)
        try:
            return (await read(resolution.locator.first)) or ""
        except PlaywrightError as exc:
            raise AssertionFailure(
                locator=ref.name,
                expected="readable element",
                actual="detached",
                elapsed_ms=_elapsed_ms(started),
                check=check,
            ) from exc

    async def assert_visible(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        return await self._wait_or_fail(ref, WaitState.VISIBLE, timeout_ms, "assert_visible")

    async def assert_hidden(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        return await self._wait_or_fail(ref, WaitState.HIDDEN, timeout_ms, "assert_hidden")

    async def assert_enabled(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        return await self._wait_or_fail(ref, WaitState.ENABLED, timeout_ms, "assert_enabled")

    async def assert_text(
        self,
        ref: ElementReference,
        expected: str,
        mode: TextMatch = TextMatch.EXACT,
        timeout_ms: int | None = None,
    ) -> ActionOutcome:
        """Compare the element's trimmed text content with expected."""
        started = anyio.current_time()
        text = await self._read_visible(ref, lambda element: element.text_content(), timeout_ms, started, "assert_text")
        actual = text.strip()
        matched = actual == expected if mode is TextMatch.EXACT else expected in actual
        if not matched:
            raise AssertionFailure(
                locator=ref.name,
                expected=expected if mode is TextMatch.EXACT else f"text containing {expected!r}",
                actual=actual,
                elapsed_ms=_elapsed_ms(started),
                check="assert_text",
            )
        return ActionOutcome(True, _elapsed_ms(started))

    async def assert_value(self, ref: ElementReference, expected: str, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        actual = await self._read_visible(ref, lambda element: element.input_value(), timeout_ms, started, "assert_value")
        if actual != expected:
            raise AssertionFailure(
                locator=ref.name, expected=expected, actual=actual, elapsed_ms=_elapsed_ms(started), check="assert_value"
            )
        return ActionOutcome(True, _elapsed_ms(started))

    async def assert_count(
        self, ref: ElementReference, op: CountOp, n: int, timeout_ms: int | None = None
    ) -> ActionOutcome:
        """Compare the number of live matches with n.

        When the comparison needs at least one match, the engine first waits
        for the element to attach; the count itself is read once.
        """
        started = anyio.current_time()
        if n > 0 and op in (CountOp.EQ, CountOp.GTE):
            try:
                await self.engine.wait_for(ref, self.engine.spec(WaitState.ATTACHED, timeout_ms))
            except WaitTimeoutError as exc:
                # reported below together with the actual number
                last_state = exc.last_state
            else:
                last_state = "attached"
        else:
            last_state = "not awaited"
        actual = await self.engine.count(ref)
        if not op.compare(actual, n):
            raise AssertionFailure(
                locator=ref.name,
                expected=f"count {op.symbol} {n}",
                actual=actual,
                elapsed_ms=_elapsed_ms(started),
                check=f"assert_count[{last_state}]",
            )
        return ActionOutcome(True, _elapsed_ms(started))

    async def assert_url(self, pattern: Union[str, Pattern[str]]) -> ActionOutcome:
        """A plain string must equal the current URL; a compiled pattern must match somewhere in it."""
        started = anyio.current_time()
        actual = self.engine.current_url()
        if isinstance(pattern, re.Pattern):
            matched = pattern.search(actual) is not None
            expected = f"url matching /{pattern.pattern}/"
        else:
            matched = actual == pattern
            expected = pattern
        if not matched:
            raise AssertionFailure(
                locator="page.url", expected=expected, actual=actual, elapsed_ms=_elapsed_ms(started), check="assert_url"
            )
        return ActionOutcome(True, _elapsed_ms(started))

    async def assert_title(self, expected: str, mode: TextMatch = TextMatch.EXACT) -> ActionOutcome:
        started = anyio.current_time()
        actual = await self.engine.title()
        matched = actual == expected if mode is TextMatch.EXACT else expected in actual
        if not matched:
            raise AssertionFailure(
                locator="page.title", expected=expected, actual=actual, elapsed_ms=_elapsed_ms(started), check="assert_title"
            )
        return ActionOutcome(True, _elapsed_ms(started))
