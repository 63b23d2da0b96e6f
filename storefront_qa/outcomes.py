"""Tri-state outcome for steps that may legitimately not run."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    """What happened to a soft-fail step.

    SKIPPED means the step was not attempted (its precondition did not hold);
    FAILED means it was attempted and went wrong, with the error kept for
    reporting.
    """

    name: str
    status: StepStatus
    detail: str = ""
    error: BaseException | None = None

    @classmethod
    def succeeded(cls, name: str, detail: str = "") -> "StepResult":
        return cls(name, StepStatus.SUCCEEDED, detail)

    @classmethod
    def skipped(cls, name: str, detail: str = "") -> "StepResult":
        return cls(name, StepStatus.SKIPPED, detail)

    @classmethod
    def failed(cls, name: str, error: BaseException, detail: str = "") -> "StepResult":
        return cls(name, StepStatus.FAILED, detail or str(error), error)

    @property
    def ok(self) -> bool:
        return self.status is not StepStatus.FAILED
