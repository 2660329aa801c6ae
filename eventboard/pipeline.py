"""
Ordered fan-out steps with per-step outcomes.

Each step is tagged critical or best-effort. A best-effort failure is logged
and recorded; a critical failure is recorded and stops the run, and every
later step is reported as skipped. An ``enabled`` check that raises counts
as a failure of its step.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

logger = logging.getLogger(__name__)


class StepPolicy(str, enum.Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class StepStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Step:
    name: str
    policy: StepPolicy
    action: Callable[[], Any]
    enabled: Union[bool, Callable[[], bool]] = True

    def is_enabled(self) -> bool:
        return bool(self.enabled() if callable(self.enabled) else self.enabled)


@dataclass
class StepOutcome:
    name: str
    policy: StepPolicy
    status: StepStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "policy": self.policy.value,
            "status": self.status.value,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class PipelineResult:
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(
            step.policy == StepPolicy.CRITICAL and step.status == StepStatus.FAILED
            for step in self.steps
        )

    @property
    def critical_failure(self) -> Optional[StepOutcome]:
        for step in self.steps:
            if step.policy == StepPolicy.CRITICAL and step.status == StepStatus.FAILED:
                return step
        return None

    def outcome(self, name: str) -> Optional[StepOutcome]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def value(self, name: str) -> Any:
        step = self.outcome(name)
        return step.value if step else None

    def raise_for_failure(self) -> None:
        failed = self.critical_failure
        if failed is not None and failed.error is not None:
            raise failed.error

    def as_dict(self) -> list[dict]:
        return [step.as_dict() for step in self.steps]


def run_pipeline(steps: Iterable[Step], *, label: str = "pipeline") -> PipelineResult:
    result = PipelineResult()
    aborted = False
    for step in steps:
        if aborted:
            result.steps.append(StepOutcome(step.name, step.policy, StepStatus.SKIPPED))
            continue
        try:
            if not step.is_enabled():
                result.steps.append(
                    StepOutcome(step.name, step.policy, StepStatus.SKIPPED)
                )
                continue
            value = step.action()
        except Exception as exc:
            if step.policy == StepPolicy.CRITICAL:
                logger.error("[%s] critical step %s failed: %s", label, step.name, exc)
                aborted = True
            else:
                logger.warning("[%s] step %s failed: %s", label, step.name, exc)
            result.steps.append(
                StepOutcome(step.name, step.policy, StepStatus.FAILED, error=exc)
            )
            continue
        result.steps.append(
            StepOutcome(step.name, step.policy, StepStatus.SUCCEEDED, value=value)
        )
    return result
