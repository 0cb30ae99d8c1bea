"""
Saga-style transition records.

A mutation of the publish state machine is a fixed, declared sequence of
table-service calls. There are no transactions underneath, so each step
declares up front whether a failure at that point leaves the store in a
state that a plain retry of the whole operation repairs. The transition
records which steps ran, which failed and which were skipped.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, NamedTuple, Optional
import uuid

import structlog

from ..errors import TransitionFailedError

logger = structlog.get_logger()


class StepStatus(Enum):
    """Individual step status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TransitionStatus(Enum):
    """Transition execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepPlan(NamedTuple):
    name: str
    description: str
    recoverable_by_retry: bool


# Declared plans, keyed by (operation, source status). A step marked
# recoverable_by_retry=False leaves an orphaned shadow row when it fails.
PLANS: Dict[tuple, List[StepPlan]] = {
    ("create", "new"): [
        StepPlan("create_row", "insert the new row", True),
    ],
    ("update", "published"): [
        StepPlan("create_shadow", "insert a 'changed' copy linked to the published row", True),
        StepPlan(
            "mark_published_has_changes",
            "flip the published row to 'published-has-changes' and link it to the shadow",
            False,
        ),
    ],
    ("update", "draft"): [
        StepPlan("update_row", "write the edits to the draft row", True),
    ],
    ("update", "changed"): [
        StepPlan("update_shadow", "write the edits to the shadow row", True),
    ],
    ("delete", "published"): [
        StepPlan("mark_to_be_deleted", "flip the row to 'published-to-be-deleted'", True),
    ],
    ("delete", "draft"): [
        StepPlan("mark_deleted", "flip the row to 'deleted'", True),
    ],
    ("delete", "changed"): [
        StepPlan(
            "mark_counterpart_to_be_deleted",
            "flip the published counterpart to 'published-to-be-deleted'",
            True,
        ),
        StepPlan("destroy_shadow", "remove the shadow row", False),
    ],
    ("publish", "draft"): [
        StepPlan("mark_published", "flip the row to 'published'", True),
    ],
    ("publish", "changed"): [
        StepPlan(
            "fold_shadow_into_published",
            "replace the counterpart's fields with the shadow's and mark it 'published'",
            True,
        ),
        StepPlan("destroy_shadow", "remove the shadow row", False),
    ],
    ("publish", "published-to-be-deleted"): [
        StepPlan("mark_deleted", "flip the row to 'deleted'", True),
    ],
}


class TransitionStep:
    """Represents a single table-service call in a transition."""

    def __init__(self, plan: StepPlan):
        self.name = plan.name
        self.description = plan.description
        self.recoverable_by_retry = plan.recoverable_by_retry
        self.status = StepStatus.PENDING
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.result: Optional[Any] = None
        self.error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "recoverable_by_retry": self.recoverable_by_retry,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result,
            "error": self.error,
        }


class Transition:
    """
    One run of a declared plan against one record.

    Steps must be run in plan order through ``run_step``; the first failure
    skips the rest and raises ``TransitionFailedError``.
    """

    def __init__(self, operation: str, table: str, record_id: str, source_status: str):
        key = (operation, source_status)
        if key not in PLANS:
            raise KeyError(f"No transition plan for {operation} from '{source_status}'")
        self.id = str(uuid.uuid4())
        self.operation = operation
        self.table = table
        self.record_id = record_id
        self.source_status = source_status
        self.steps = [TransitionStep(plan) for plan in PLANS[key]]
        self.status = TransitionStatus.PENDING
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self._next = 0
        self.logger = logger.bind(
            transition_id=self.id,
            operation=operation,
            table=table,
            record_id=record_id,
            source_status=source_status,
        )

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]

    @property
    def failed_step(self) -> Optional[TransitionStep]:
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None

    async def run_step(self, name: str, action: Callable[[], Awaitable[Any]]) -> Any:
        """Run the next planned step; ``name`` must match the plan."""
        if self._next >= len(self.steps):
            raise RuntimeError(f"Transition {self.operation} has no step left for '{name}'")
        step = self.steps[self._next]
        if step.name != name:
            raise RuntimeError(f"Expected step '{step.name}', got '{name}'")
        self._next += 1

        if self.status == TransitionStatus.PENDING:
            self.status = TransitionStatus.RUNNING
            self.started_at = datetime.now(timezone.utc)

        step.status = StepStatus.RUNNING
        step.started_at = datetime.now(timezone.utc)
        try:
            result = await action()
        except Exception as e:
            step.status = StepStatus.FAILED
            step.error = str(e)
            step.completed_at = datetime.now(timezone.utc)
            self._fail()
            self.logger.error(
                "transition_step_failed",
                step=step.name,
                recoverable=step.recoverable_by_retry,
                error=str(e),
            )
            raise TransitionFailedError(self, step.name, step.recoverable_by_retry, e) from e

        step.status = StepStatus.COMPLETED
        step.completed_at = datetime.now(timezone.utc)
        step.result = getattr(result, "id", None)
        self.logger.debug("transition_step_completed", step=step.name)
        if self._next == len(self.steps):
            self.status = TransitionStatus.COMPLETED
            self.completed_at = datetime.now(timezone.utc)
        return result

    def _fail(self) -> None:
        for step in self.steps[self._next:]:
            step.status = StepStatus.SKIPPED
        self._next = len(self.steps)
        self.status = TransitionStatus.FAILED
        self.completed_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "table": self.table,
            "record_id": self.record_id,
            "source_status": self.source_status,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "steps": [step.to_dict() for step in self.steps],
        }


class TransitionLog:
    """In-process history of transitions, oldest evicted first."""

    def __init__(self, max_entries: int = 1000):
        self._entries: Deque[Transition] = deque(maxlen=max_entries)

    def begin(self, operation: str, table: str, record_id: str, source_status: str) -> Transition:
        transition = Transition(operation, table, record_id, source_status)
        self._entries.append(transition)
        return transition

    @property
    def entries(self) -> List[Transition]:
        return list(self._entries)

    @property
    def last(self) -> Optional[Transition]:
        return self._entries[-1] if self._entries else None

    def for_record(self, record_id: str) -> List[Transition]:
        return [t for t in self._entries if t.record_id == record_id]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self._entries]
