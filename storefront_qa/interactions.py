"""Wait-then-act primitives over element references.

Every operation resolves its reference afresh, waits for a precondition with
a hard ceiling, performs the action and logs a structured record of what it
did. Waiting is done by polling with anyio sleeps so other scenarios on the
same event loop keep running between polls.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Pattern, Sequence, Tuple, Union

import anyio
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from storefront_qa.config import Timeouts
from storefront_qa.errors import InteractionError, StaleElementError, WaitTimeoutError
from storefront_qa.locators import ElementReference, Resolution
from storefront_qa.log import meta

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100
TOLERANT_TIMEOUT_MS = 2000

_DETACHED_MARKERS = ("not attached", "detached", "element is not connected", "execution context was destroyed")


class WaitState(str, Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    ENABLED = "enabled"
    ATTACHED = "attached"


@dataclass(frozen=True)
class WaitSpec:
    """How long and how often to poll for a target state."""

    target_state: WaitState
    timeout_ms: int
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.poll_interval_ms > self.timeout_ms:
            raise ValueError(
                f"poll_interval_ms ({self.poll_interval_ms}) must not exceed timeout_ms ({self.timeout_ms})"
            )


@dataclass(frozen=True)
class ActionOutcome:
    succeeded: bool
    elapsed_ms: int
    diagnostic: str | None = None


def _elapsed_ms(started: float) -> int:
    return max(0, int((anyio.current_time() - started) * 1000))


def _is_detached(exc: PlaywrightError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _DETACHED_MARKERS)


def _holds(target: WaitState, state: str) -> bool:
    if target is WaitState.VISIBLE:
        return state in ("visible", "enabled", "disabled")
    if target is WaitState.HIDDEN:
        return state in ("absent", "hidden")
    if target is WaitState.ENABLED:
        return state == "enabled"
    return state != "absent" and state != "detached"


class InteractionEngine:
    """Wait-then-act operations bound to one page."""

    def __init__(self, page: Page, timeouts: Timeouts, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS) -> None:
        if poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        self.page = page
        self.timeouts = timeouts
        self.poll_interval_ms = poll_interval_ms

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def spec(self, state: WaitState, timeout_ms: int | None = None) -> WaitSpec:
        """Build a WaitSpec with this engine's poll interval, clamped to the timeout."""
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        timeout = max(1, timeout)
        return WaitSpec(state, timeout, min(self.poll_interval_ms, timeout))

    async def _observe(self, ref: ElementReference, target: WaitState) -> Tuple[str, Resolution | None]:
        try:
            resolution = await ref.resolve(self.page)
            if resolution.empty:
                return "absent", resolution
            if target is WaitState.ATTACHED:
                return "attached", resolution
            first = resolution.locator.first
            if not await first.is_visible():
                return "hidden", resolution
            if target is WaitState.ENABLED and not await first.is_enabled():
                return "disabled", resolution
            return ("enabled" if target is WaitState.ENABLED else "visible"), resolution
        except PlaywrightError as exc:
            logger.debug("Observation of %s failed: %s", ref.name, exc)
            return "detached", None

    async def _wait(self, ref: ElementReference, spec: WaitSpec, action: str) -> Tuple[ActionOutcome, Resolution | None]:
        started = anyio.current_time()
        deadline = started + spec.timeout_ms / 1000
        poll = spec.poll_interval_ms / 1000
        state = "unknown"
        resolution: Resolution | None = None

        while True:
            remaining = deadline - anyio.current_time()
            if remaining <= 0:
                break
            await anyio.sleep(min(poll, remaining))
            state, resolution = await self._observe(ref, spec.target_state)
            if _holds(spec.target_state, state):
                return ActionOutcome(True, _elapsed_ms(started), f"{ref.name} is {state}"), resolution

        elapsed = _elapsed_ms(started)
        self._log(action, ref.name, elapsed, "timeout", level=logging.WARNING, target=spec.target_state.value, last_state=state)
        raise WaitTimeoutError(
            name=action,
            payload={"locator": ref.name, "target_state": spec.target_state.value, "timeout_ms": spec.timeout_ms},
            message=f"'{ref.name}' did not become {spec.target_state.value} within {spec.timeout_ms}ms",
            elapsed_ms=elapsed,
            last_state=state,
        )

    async def wait_for(self, ref: ElementReference, spec: WaitSpec) -> ActionOutcome:
        """Poll until spec.target_state holds; raise WaitTimeoutError at the ceiling."""
        outcome, _ = await self.wait_for_resolution(ref, spec)
        return outcome

    async def wait_for_resolution(
        self, ref: ElementReference, spec: WaitSpec
    ) -> Tuple[ActionOutcome, Resolution | None]:
        """Like wait_for, but also hand back the resolution the wait succeeded on."""
        outcome, resolution = await self._wait(ref, spec, "wait_for")
        self._log("wait_for", ref.name, outcome.elapsed_ms, "ok", target=spec.target_state.value)
        return outcome, resolution

    async def _visible(self, ref: ElementReference, timeout_ms: int | None, action: str) -> Resolution:
        _, resolution = await self._wait(ref, self.spec(WaitState.VISIBLE, timeout_ms), action)
        return resolution

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def click(self, ref: ElementReference, timeout_ms: int | None = None, force: bool = False) -> ActionOutcome:
        """Wait for the element to be visible, then click it.

        With force=True the visibility wait is skipped: the element only has
        to be attached, and the click is dispatched even if something covers
        it. This is logged as a warning every time.
        """
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        if force:
            logger.warning(
                "Forced click on %s bypasses the visibility check", ref.name, extra=meta(locator=ref.name, action="click")
            )
            _, resolution = await self._wait(ref, self.spec(WaitState.ATTACHED, timeout), "click")
        else:
            resolution = await self._visible(ref, timeout, "click")

        await self._dispatch("click", ref, started, timeout, resolution.locator.first.click(force=force, timeout=timeout))
        return self._done("click", ref, started, force=force)

    async def double_click(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "double_click")
        await self._dispatch("double_click", ref, started, timeout, resolution.locator.first.dblclick(timeout=timeout))
        return self._done("double_click", ref, started)

    async def right_click(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "right_click")
        await self._dispatch(
            "right_click", ref, started, timeout, resolution.locator.first.click(button="right", timeout=timeout)
        )
        return self._done("right_click", ref, started)

    async def fill(
        self,
        ref: ElementReference,
        text: str,
        clear_first: bool = True,
        timeout_ms: int | None = None,
    ) -> ActionOutcome:
        """Write text into an input.

        clear_first=False appends to the current value. If the element
        detaches mid-write the reference is resolved again and the write is
        retried once; a second detach raises StaleElementError.
        """
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        last_error: PlaywrightError | None = None

        for attempt in (1, 2):
            resolution = await self._visible(ref, timeout, "fill")
            target = resolution.locator.first
            try:
                value = text if clear_first else (await target.input_value(timeout=timeout)) + text
                await target.fill(value, timeout=timeout)
            except PlaywrightTimeout as exc:
                raise self._timeout("fill", ref, started, str(exc)) from exc
            except PlaywrightError as exc:
                if not _is_detached(exc):
                    raise InteractionError(name="fill", payload={"locator": ref.name}, message=str(exc)) from exc
                last_error = exc
                logger.warning(
                    "Element %s detached during fill (attempt %d)",
                    ref.name,
                    attempt,
                    extra=meta(locator=ref.name, action="fill", attempt=attempt),
                )
                continue
            return self._done("fill", ref, started, attempts=attempt)

        self._log("fill", ref.name, _elapsed_ms(started), "stale", level=logging.ERROR)
        raise StaleElementError(
            name="fill",
            payload={"locator": ref.name},
            message=str(last_error),
            attempts=2,
        )

    async def type_text(
        self, ref: ElementReference, text: str, delay_ms: int = 50, timeout_ms: int | None = None
    ) -> ActionOutcome:
        """Type key by key, for inputs that react to individual keystrokes."""
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "type_text")
        await self._dispatch(
            "type_text", ref, started, timeout, resolution.locator.first.press_sequentially(text, delay=delay_ms)
        )
        return self._done("type_text", ref, started)

    async def select_option(
        self, ref: ElementReference, values: Union[str, Sequence[str]], timeout_ms: int | None = None
    ) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "select_option")
        options = [values] if isinstance(values, str) else list(values)
        await self._dispatch(
            "select_option", ref, started, timeout, resolution.locator.first.select_option(options, timeout=timeout)
        )
        return self._done("select_option", ref, started)

    async def check(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "check")
        await self._dispatch("check", ref, started, timeout, resolution.locator.first.check(timeout=timeout))
        return self._done("check", ref, started)

    async def uncheck(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        resolution = await self._visible(ref, timeout, "uncheck")
        await self._dispatch("uncheck", ref, started, timeout, resolution.locator.first.uncheck(timeout=timeout))
        return self._done("uncheck", ref, started)

    async def scroll_into_view(self, ref: ElementReference, timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.medium
        _, resolution = await self._wait(ref, self.spec(WaitState.ATTACHED, timeout), "scroll_into_view")
        await self._dispatch(
            "scroll_into_view", ref, started, timeout, resolution.locator.first.scroll_into_view_if_needed(timeout=timeout)
        )
        return self._done("scroll_into_view", ref, started)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def is_visible_tolerant(self, ref: ElementReference, timeout_ms: int = TOLERANT_TIMEOUT_MS) -> bool:
        """Presence check for optional UI. Returns False instead of raising."""
        started = anyio.current_time()
        try:
            await self._wait(ref, self.spec(WaitState.VISIBLE, timeout_ms), "is_visible_tolerant")
        except (InteractionError, PlaywrightError) as exc:
            self._log("is_visible_tolerant", ref.name, _elapsed_ms(started), "absent", level=logging.DEBUG, reason=str(exc))
            return False
        self._log("is_visible_tolerant", ref.name, _elapsed_ms(started), "visible", level=logging.DEBUG)
        return True

    async def is_enabled(self, ref: ElementReference, timeout_ms: int | None = None) -> bool:
        resolution = await self._visible(ref, timeout_ms, "is_enabled")
        return await resolution.locator.first.is_enabled()

    async def is_checked(self, ref: ElementReference, timeout_ms: int | None = None) -> bool:
        resolution = await self._visible(ref, timeout_ms, "is_checked")
        return await resolution.locator.first.is_checked()

    async def read_text(self, ref: ElementReference, timeout_ms: int | None = None) -> str:
        resolution = await self._visible(ref, timeout_ms, "read_text")
        return (await resolution.locator.first.text_content()) or ""

    async def read_value(self, ref: ElementReference, timeout_ms: int | None = None) -> str:
        resolution = await self._visible(ref, timeout_ms, "read_value")
        return await resolution.locator.first.input_value()

    async def read_attribute(self, ref: ElementReference, attribute: str, timeout_ms: int | None = None) -> str | None:
        _, resolution = await self._wait(ref, self.spec(WaitState.ATTACHED, timeout_ms), "read_attribute")
        return await resolution.locator.first.get_attribute(attribute)

    async def count(self, ref: ElementReference) -> int:
        """Number of live matches right now (0 when nothing matches)."""
        resolution = await ref.resolve(self.page)
        return resolution.count

    async def all_texts(self, ref: ElementReference) -> List[str]:
        resolution = await ref.resolve(self.page)
        if resolution.empty:
            return []
        return await resolution.locator.all_text_contents()

    def current_url(self) -> str:
        return self.page.url

    async def title(self) -> str:
        return await self.page.title()

    # ------------------------------------------------------------------
    # Page-level post-conditions
    # ------------------------------------------------------------------

    async def wait_for_page_load(self, state: str = "networkidle", timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.long
        try:
            await self.page.wait_for_load_state(state, timeout=timeout)
        except PlaywrightTimeout as exc:
            raise WaitTimeoutError(
                name="wait_for_page_load",
                payload={"state": state, "timeout_ms": timeout},
                message=str(exc),
                elapsed_ms=_elapsed_ms(started),
                last_state=f"not {state}",
            ) from exc
        elapsed = _elapsed_ms(started)
        self._log("wait_for_page_load", "page", elapsed, "ok", state=state)
        return ActionOutcome(True, elapsed)

    async def wait_for_url(self, pattern: Union[str, Pattern[str]], timeout_ms: int | None = None) -> ActionOutcome:
        started = anyio.current_time()
        timeout = timeout_ms if timeout_ms is not None else self.timeouts.long
        try:
            await self.page.wait_for_url(pattern, timeout=timeout)
        except PlaywrightTimeout as exc:
            raise WaitTimeoutError(
                name="wait_for_url",
                payload={"pattern": pattern.pattern if isinstance(pattern, re.Pattern) else pattern},
                message=str(exc),
                elapsed_ms=_elapsed_ms(started),
                last_state=self.page.url,
            ) from exc
        elapsed = _elapsed_ms(started)
        self._log("wait_for_url", "page", elapsed, "ok", url=self.page.url)
        return ActionOutcome(True, elapsed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _dispatch(self, action: str, ref: ElementReference, started: float, timeout: int, call) -> None:
        try:
            await call
        except PlaywrightTimeout as exc:
            raise self._timeout(action, ref, started, str(exc)) from exc
        except PlaywrightError as exc:
            self._log(action, ref.name, _elapsed_ms(started), "error", level=logging.ERROR, error=str(exc))
            raise InteractionError(name=action, payload={"locator": ref.name, "timeout_ms": timeout}, message=str(exc)) from exc

    def _timeout(self, action: str, ref: ElementReference, started: float, message: str) -> WaitTimeoutError:
        elapsed = _elapsed_ms(started)
        self._log(action, ref.name, elapsed, "timeout", level=logging.WARNING)
        return WaitTimeoutError(
            name=action,
            payload={"locator": ref.name},
            message=message,
            elapsed_ms=elapsed,
            last_state="not actionable",
        )

    def _done(self, action: str, ref: ElementReference, started: float, **fields) -> ActionOutcome:
        elapsed = _elapsed_ms(started)
        self._log(action, ref.name, elapsed, "ok", **fields)
        return ActionOutcome(True, elapsed)

    def _log(self, action: str, name: str, duration_ms: int, outcome: str, level: int = logging.INFO, **fields) -> None:
        logger.log(
            level,
            "%s %s -> %s (%dms)",
            action,
            name,
            outcome,
            duration_ms,
            extra=meta(locator=name, action=action, duration_ms=duration_ms, outcome=outcome, **fields),
        )
