"""Error kinds raised by the interaction, verification and API layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(eq=False)
class InteractionError(Exception):
    """Raised when a browser interaction cannot be completed."""

    name: str
    payload: Dict[str, Any]
    message: str

    def __str__(self) -> str:  # pragma: no cover - human readable helper
        return f"{self.name} failed ({self.message}) with payload={self.payload}"


@dataclass(eq=False)
class UnknownLocatorError(InteractionError):
    """A semantic locator name is not present in the registry."""

    name: str = "resolve"
    payload: Dict[str, Any] = field(default_factory=dict)
    message: str = "unknown locator"


@dataclass(eq=False)
class WaitTimeoutError(InteractionError):
    """A wait precondition was not reached before its ceiling."""

    elapsed_ms: int = 0
    last_state: str = "unknown"

    def __str__(self) -> str:
        return (
            f"{self.name} timed out after {self.elapsed_ms}ms "
            f"(last state: {self.last_state}): {self.message} payload={self.payload}"
        )


@dataclass(eq=False)
class StaleElementError(InteractionError):
    """The element detached from the DOM while an action was in flight."""

    attempts: int = 2


@dataclass(eq=False)
class AssertionFailure(AssertionError):
    """A declarative verification did not hold.

    Carries enough context for a report to point at the failing element
    without re-running the scenario.
    """

    locator: str
    expected: Any
    actual: Any
    elapsed_ms: int = 0
    check: str = "assert"

    def __str__(self) -> str:
        return (
            f"{self.check} on '{self.locator}' failed: expected {self.expected!r}, "
            f"got {self.actual!r} (waited {self.elapsed_ms}ms)"
        )


@dataclass(eq=False)
class ApiError(Exception):
    """Raised when an API response is not successful."""

    method: str
    url: str
    status: int
    body: Any = None

    def __str__(self) -> str:
        return f"API request failed: {self.method} {self.url} -> {self.status} - {self.body!r}"
