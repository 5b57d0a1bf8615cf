"""Sequential multi-step writes with partial-failure reporting.

Each step is a data-access call returning a ``DbResult``. Steps commit on
their own, so when step N fails the rows created by steps 1..N-1 stay in
the database. The report lists them so callers can show what was left
behind instead of losing it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class PipelineAborted(Exception):
    def __init__(self, report: "PipelineReport"):
        super().__init__(f"{report.name} stopped at '{report.failed_step}'")
        self.report = report


@dataclass
class StepResult:
    name: str
    ok: bool
    record_id: Optional[Any] = None
    error: Optional[str] = None


@dataclass
class PipelineReport:
    name: str
    steps: List[StepResult] = field(default_factory=list)
    result: Any = None

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failed_step(self) -> Optional[str]:
        for step in self.steps:
            if not step.ok:
                return step.name
        return None

    @property
    def error(self) -> Optional[str]:
        for step in self.steps:
            if not step.ok:
                return step.error
        return None

    def created(self) -> List[StepResult]:
        return [step for step in self.steps if step.ok and step.record_id is not None]

    def as_dict(self) -> dict:
        return {
            "pipeline": self.name,
            "ok": self.ok,
            "failed_step": self.failed_step,
            "error": self.error,
            "steps": [
                {"name": s.name, "ok": s.ok, "record_id": s.record_id, "error": s.error}
                for s in self.steps
            ],
        }


class StepPipeline:
    def __init__(self, name: str):
        self.report = PipelineReport(name=name)

    def run(self, step_name: str, fn: Callable, *args, **kwargs):
        """Run one step; on error record it and raise ``PipelineAborted``."""
        if not self.report.ok:
            raise PipelineAborted(self.report)

        data, error = fn(*args, **kwargs)
        if error or data is None:
            message = error or "no row returned"
            self.report.steps.append(StepResult(name=step_name, ok=False, error=message))
            created = [(s.name, s.record_id) for s in self.report.created()]
            logger.warning("%s failed at '%s': %s (left behind: %s)",
                           self.report.name, step_name, message, created)
            raise PipelineAborted(self.report)

        record_id = data if isinstance(data, (str, int)) else getattr(data, "id", None)
        self.report.steps.append(StepResult(name=step_name, ok=True, record_id=record_id))
        return data
