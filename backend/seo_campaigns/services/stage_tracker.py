"""
Stage Tracker — per-run status of each pipeline step, reported back to the caller.

Built fresh for every action; nothing here is persisted.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StepState(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class StepResult(str, enum.Enum):
    """Display classification of a step."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Lower-confidence fallback markers, matched against the lowercased JSON of a debug payload.
SUCCESS_MARKERS = (
    "completed successfully",
    "saved successfully",
    "generated successfully",
    "run started",
    "success: true",
    '"success": true',
)
ERROR_MARKERS = (
    "error",
    "failed",
    "method not allowed",
)
WARNING_MARKERS = (
    "warning",
    "skipped",
)


@dataclass
class StepStatus:
    id: str
    title: str
    description: str = ""
    status: StepState = StepState.PENDING
    message: Optional[str] = None
    error_message: Optional[str] = None
    debug: Any = None
    explicit: bool = False  # True once any caller has set `status`


def infer_result_from_debug(debug: Any) -> Optional[StepResult]:
    """
    Heuristic: look for known success, error and warning words in the debug payload.
    Error words alone mean ERROR; error words next to success words mean a partial
    result (WARNING).
    Returns None when nothing matches. A display hint only; never authoritative.
    """
    if debug is None:
        return None
    try:
        text = json.dumps(debug, default=str).lower()
    except (TypeError, ValueError):
        text = str(debug).lower()
    has_success = any(marker in text for marker in SUCCESS_MARKERS)
    has_error = any(marker in text for marker in ERROR_MARKERS)
    has_warning = any(marker in text for marker in WARNING_MARKERS)
    if has_error:
        return StepResult.WARNING if has_success else StepResult.ERROR
    if has_success:
        return StepResult.SUCCESS
    if has_warning:
        return StepResult.WARNING
    return None


class StageTracker:
    """Ordered steps, each mutable by id, with equal-weight progress."""

    def __init__(self, steps: list[tuple[str, str, str]]):
        self._steps: dict[str, StepStatus] = {}
        for step_id, title, description in steps:
            if step_id in self._steps:
                raise ValueError(f"Duplicate step id: {step_id}")
            self._steps[step_id] = StepStatus(id=step_id, title=title, description=description)

    def __iter__(self):
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def get(self, step_id: str) -> StepStatus:
        try:
            return self._steps[step_id]
        except KeyError:
            raise KeyError(f"Unknown step: {step_id}") from None

    def update(
        self,
        step_id: str,
        status: Optional[StepState] = None,
        message: Optional[str] = None,
        error_message: Optional[str] = None,
        debug: Any = None,
    ) -> StepStatus:
        step = self.get(step_id)
        if status is not None:
            step.status = StepState(status)
            step.explicit = True
        if message is not None:
            step.message = message
        if error_message is not None:
            step.error_message = error_message
        if debug is not None:
            step.debug = debug
        logger.debug(f"Step {step_id} -> {step.status.value}: {step.message or ''}")
        return step

    def start(self, step_id: str, message: Optional[str] = None) -> StepStatus:
        return self.update(step_id, StepState.RUNNING, message=message)

    def complete(self, step_id: str, message: Optional[str] = None, debug: Any = None) -> StepStatus:
        return self.update(step_id, StepState.COMPLETED, message=message, debug=debug)

    def fail(self, step_id: str, error_message: str, debug: Any = None) -> StepStatus:
        return self.update(step_id, StepState.ERROR, error_message=error_message, debug=debug)

    def progress(self) -> float:
        """Completed steps count fully, the running step counts half."""
        if not self._steps:
            return 0.0
        weight = 100.0 / len(self._steps)
        total = 0.0
        for step in self._steps.values():
            if step.status is StepState.COMPLETED:
                total += weight
            elif step.status is StepState.RUNNING:
                total += weight / 2
        return round(total, 2)

    def effective_result(self, step_id: str) -> tuple[StepResult, bool]:
        """
        Classify a step for display. Returns (result, inferred).
        An explicit status always wins; the debug heuristic applies only to steps
        nobody has set a status on.
        """
        step = self.get(step_id)
        if step.status is StepState.ERROR or step.error_message:
            return StepResult.ERROR, False
        if step.explicit:
            if step.status is StepState.COMPLETED:
                return StepResult.SUCCESS, False
            if step.status is StepState.RUNNING:
                return StepResult.RUNNING, False
            return StepResult.PENDING, False

        inferred = infer_result_from_debug(step.debug)
        if inferred is not None:
            return inferred, True
        return StepResult.PENDING, False

    def snapshot(self) -> list[dict]:
        out = []
        for step in self._steps.values():
            result, inferred = self.effective_result(step.id)
            out.append({
                "id": step.id,
                "title": step.title,
                "description": step.description,
                "status": step.status.value,
                "message": step.message,
                "errorMessage": step.error_message,
                "debug": step.debug,
                "result": result.value,
                "resultInferred": inferred,
            })
        return out
