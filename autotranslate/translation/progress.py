"""
Task Progress Data Class

Contains the TaskProgress dataclass and the status rules of fetch tasks.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

QUEUED = "queued"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

STATUSES = (QUEUED, RUNNING, COMPLETED, FAILED)

# status -> statuses it may move to
ALLOWED_TRANSITIONS = {
    QUEUED: (RUNNING, FAILED),
    RUNNING: (COMPLETED, FAILED),
    COMPLETED: (),
    FAILED: (),
}


class InvalidTransitionError(Exception):
    """Raised when a task status change would go backwards or skip a state."""

    def __init__(self, task_id: str, current: Optional[str], target: str):
        super().__init__(f"Task {task_id}: cannot move from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target


def sources_for(target: str):
    """Statuses from which `target` can be reached."""
    return [status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets]


@dataclass
class TaskProgress:
    """Progress information for a fetch task."""
    task_id: str
    task_type: str
    total_entries: int
    processed_entries: int = 0
    status: str = QUEUED
    failure_reason: str = ""
    created_at: Optional[str] = None
    modified_at: Optional[str] = None

    @property
    def percentage(self) -> int:
        if self.total_entries <= 0:
            return 100 if self.status == COMPLETED else 0
        return min(100, (100 * self.processed_entries) // self.total_entries)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TaskProgress":
        return cls(
            task_id=row["task_id"],
            task_type=row["task_type"],
            total_entries=row["total_entries"],
            processed_entries=row["processed_entries"],
            status=row["status"],
            failure_reason=row.get("failure_reason") or "",
            created_at=row.get("created_at"),
            modified_at=row.get("modified_at"),
        )

    def to_status(self) -> Dict[str, Any]:
        return {"status": self.status, "percentage": self.percentage}
