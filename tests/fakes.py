"""In-memory stand-ins for Playwright pages and browser clients.

FakePage keeps a table of selector keys to FakeElement lists. A key is the
selector string handed to `locator()`, or `text=...`, `role=...` and
`placeholder=...` for the get_by_* helpers; nested lookups join the parent
and child keys with " >> ". Tests mutate the table between calls to model a
changing DOM.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from storefront_qa.config import Timeouts

DETACHED = "Element is not attached to the DOM"

# Fast tiers for unit tests against fake pages.
FAST_TIMEOUTS = Timeouts(short=300, medium=500, long=1000)


class FakeElement:
    def __init__(
        self,
        text: str = "",
        visible: bool = True,
        enabled: bool = True,
        value: str = "",
        checked: bool = False,
        attributes: Optional[Dict[str, str]] = None,
        visible_after: int = 0,
    ):
        self.text = text
        self.visible = visible
        self.enabled = enabled
        self.value = value
        self.checked = checked
        self.attributes = attributes or {}
        # is_visible() reports False for the first `visible_after` checks
        self.visible_after = visible_after
        self.visibility_checks = 0
        self.clicks: List[Dict[str, Any]] = []
        self.fill_errors: List[Exception] = []
        self.fills: List[str] = []
        self.typed: List[str] = []

    def __repr__(self) -> str:
        return f"<FakeElement text={self.text!r} visible={self.visible}>"


def detached_error() -> PlaywrightError:
    return PlaywrightError(DETACHED)


class FakeLocator:
    def __init__(self, page: "FakePage", key: str, resolver: Callable[[], List[FakeElement]]):
        self.page = page
        self.key = key
        self._resolver = resolver

    def elements(self) -> List[FakeElement]:
        return list(self._resolver())

    def _child(self, key: str) -> "FakeLocator":
        full_key = f"{self.key} >> {key}"
        return FakeLocator(self.page, full_key, lambda: self.page.lookup(full_key) if self.elements() else [])

    # Locator builders

    def locator(self, selector: str, has_text: Optional[str] = None) -> "FakeLocator":
        child = self._child(selector)
        return child.filter(has_text=has_text) if has_text is not None else child

    def get_by_text(self, text: str, exact: bool = False) -> "FakeLocator":
        return self._child(f"text={text}")

    def get_by_role(self, role: str, name: Optional[str] = None, exact: bool = False) -> "FakeLocator":
        child = self._child(f"role={role}")
        return child.filter(has_text=name) if name is not None else child

    def get_by_placeholder(self, text: str, exact: bool = False) -> "FakeLocator":
        return self._child(f"placeholder={text}")

    def filter(self, has_text: Optional[str] = None) -> "FakeLocator":
        if has_text is None:
            return self
        needle = has_text.lower()
        return FakeLocator(
            self.page,
            f"{self.key} >> has_text={has_text}",
            lambda: [element for element in self.elements() if needle in element.text.lower()],
        )

    def nth(self, index: int) -> "FakeLocator":
        def pick() -> List[FakeElement]:
            found = self.elements()
            try:
                return [found[index]]
            except IndexError:
                return []

        return FakeLocator(self.page, f"{self.key} >> nth={index}", pick)

    @property
    def first(self) -> "FakeLocator":
        return self.nth(0)

    def or_(self, other: "FakeLocator") -> "FakeLocator":
        def union() -> List[FakeElement]:
            merged = self.elements()
            merged.extend(element for element in other.elements() if element not in merged)
            return merged

        return FakeLocator(self.page, f"{self.key} | {other.key}", union)

    def and_(self, other: "FakeLocator") -> "FakeLocator":
        return FakeLocator(
            self.page,
            f"{self.key} & {other.key}",
            lambda: [element for element in self.elements() if element in other.elements()],
        )

    # Queries

    async def count(self) -> int:
        self.page.count_calls += 1
        return len(self.elements())

    def _target(self) -> FakeElement:
        found = self.elements()
        if not found:
            raise PlaywrightTimeout(f"Timeout waiting for locator('{self.key}')")
        return found[0]

    async def is_visible(self) -> bool:
        found = self.elements()
        if not found:
            return False
        element = found[0]
        element.visibility_checks += 1
        if element.visibility_checks <= element.visible_after:
            return False
        return element.visible

    async def is_enabled(self) -> bool:
        return self._target().enabled

    async def is_checked(self) -> bool:
        return self._target().checked

    async def text_content(self) -> Optional[str]:
        return self._target().text

    async def all_text_contents(self) -> List[str]:
        return [element.text for element in self.elements()]

    async def input_value(self, timeout: Optional[int] = None) -> str:
        return self._target().value

    async def get_attribute(self, name: str) -> Optional[str]:
        return self._target().attributes.get(name)

    # Actions

    async def click(self, force: bool = False, timeout: Optional[int] = None, button: str = "left") -> None:
        element = self._target()
        element.clicks.append({"force": force, "button": button})
        self.page.clicked.append(self.key)

    async def dblclick(self, timeout: Optional[int] = None) -> None:
        self._target().clicks.append({"force": False, "button": "double"})

    async def fill(self, value: str, timeout: Optional[int] = None) -> None:
        element = self._target()
        if element.fill_errors:
            raise element.fill_errors.pop(0)
        element.value = value
        element.fills.append(value)

    async def press_sequentially(self, text: str, delay: int = 0) -> None:
        element = self._target()
        element.value += text
        element.typed.append(text)

    async def select_option(self, values: List[str], timeout: Optional[int] = None) -> List[str]:
        self._target().value = values[0]
        return values

    async def check(self, timeout: Optional[int] = None) -> None:
        self._target().checked = True

    async def uncheck(self, timeout: Optional[int] = None) -> None:
        self._target().checked = False

    async def scroll_into_view_if_needed(self, timeout: Optional[int] = None) -> None:
        self._target()

    async def screenshot(self, path: Optional[str] = None, **kwargs: Any) -> bytes:
        if path:
            Path(path).write_bytes(b"\x89PNG")
        return b"\x89PNG"


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeMouse:
    def __init__(self):
        self.events: List[tuple] = []

    async def move(self, x: int, y: int) -> None:
        self.events.append(("move", x, y))

    async def down(self) -> None:
        self.events.append(("down",))

    async def up(self) -> None:
        self.events.append(("up",))


class FakeContext:
    def __init__(self):
        self.cookies_added: List[Dict[str, Any]] = []
        self.state: Dict[str, Any] = {"cookies": [], "origins": []}

    async def add_cookies(self, cookies: List[Dict[str, Any]]) -> None:
        self.cookies_added.extend(cookies)

    async def cookies(self) -> List[Dict[str, Any]]:
        return list(self.cookies_added)

    async def clear_cookies(self) -> None:
        self.cookies_added.clear()

    async def storage_state(self, path: Optional[str] = None) -> Dict[str, Any]:
        if path:
            Path(path).write_text(json.dumps(self.state), encoding="utf-8")
        return self.state


class FakePage:
    def __init__(self, elements: Optional[Dict[str, List[FakeElement]]] = None, url: str = "about:blank"):
        self.elements: Dict[str, List[FakeElement]] = elements or {}
        self.url = url
        self.page_title = "Yes Madam"
        self.count_calls = 0
        self.clicked: List[str] = []
        self.visited: List[Dict[str, Any]] = []
        self.load_states: List[str] = []
        self.goto_errors: List[Exception] = []
        self.load_state_error: Optional[Exception] = None
        self.routes: Dict[str, Callable] = {}
        self.handlers: Dict[str, Callable] = {}
        self.evaluated: List[tuple] = []
        self.mouse = FakeMouse()
        self.context = FakeContext()

    def lookup(self, key: str) -> List[FakeElement]:
        return self.elements.get(key, [])

    def _root(self, key: str) -> FakeLocator:
        return FakeLocator(self, key, lambda: self.lookup(key))

    def locator(self, selector: str, has_text: Optional[str] = None) -> FakeLocator:
        root = self._root(selector)
        return root.filter(has_text=has_text) if has_text is not None else root

    def get_by_text(self, text: str, exact: bool = False) -> FakeLocator:
        return self._root(f"text={text}")

    def get_by_role(self, role: str, name: Optional[str] = None, exact: bool = False) -> FakeLocator:
        root = self._root(f"role={role}")
        return root.filter(has_text=name) if name is not None else root

    def get_by_placeholder(self, text: str, exact: bool = False) -> FakeLocator:
        return self._root(f"placeholder={text}")

    async def title(self) -> str:
        return self.page_title

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None) -> FakeResponse:
        self.visited.append({"url": url, "wait_until": wait_until})
        if self.goto_errors:
            raise self.goto_errors.pop(0)
        self.url = url
        return FakeResponse(200)

    async def go_back(self) -> None:
        self.visited.append({"url": "back", "wait_until": None})

    async def reload(self) -> None:
        self.visited.append({"url": self.url, "wait_until": "reload"})

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        if self.load_state_error is not None:
            raise self.load_state_error
        self.load_states.append(state)

    async def wait_for_url(self, pattern: Any, timeout: Optional[int] = None) -> None:
        if isinstance(pattern, str) and pattern.replace("**", "") not in self.url:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {pattern}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append((script, arg))
        return None

    async def screenshot(self, path: Optional[str] = None, **kwargs: Any) -> bytes:
        if path:
            Path(path).write_bytes(b"\x89PNG")
        return b"\x89PNG"

    async def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport = size

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes[pattern] = handler

    async def unroute(self, pattern: str) -> None:
        self.routes.pop(pattern, None)

    def on(self, event: str, handler: Callable) -> None:
        self.handlers[event] = handler


class FakeRequest:
    def __init__(self, body: Any = None, raw: Optional[str] = None, method: str = "POST", url: str = ""):
        self._body = body
        self.post_data = raw if raw is not None else (json.dumps(body) if body is not None else None)
        self.method = method
        self.url = url

    @property
    def post_data_json(self) -> Any:
        if self.post_data is None:
            return None
        return json.loads(self.post_data)


class FakeRoute:
    def __init__(self, request: FakeRequest):
        self.request = request
        self.fulfilled: Optional[Dict[str, Any]] = None

    async def fulfill(self, status: int, content_type: str, body: str) -> None:
        self.fulfilled = {"status": status, "content_type": content_type, "body": body}


class FakePlaywrightClient:
    """Replacement for PlaywrightClient in global setup tests."""

    def __init__(
        self,
        page: Optional[FakePage] = None,
        connect_error: Optional[Exception] = None,
        new_page_error: Optional[Exception] = None,
        **kwargs: Any,
    ):
        self.page = page or FakePage()
        self.connect_error = connect_error
        self.new_page_error = new_page_error
        self.kwargs = kwargs
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def new_page(self) -> FakePage:
        if self.new_page_error is not None:
            raise self.new_page_error
        return self.page

    @property
    def context(self) -> FakeContext:
        return self.page.context

    async def close(self) -> None:
        self.closed = True
