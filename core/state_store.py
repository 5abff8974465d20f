"""
In-memory task ledger.

Tracks the lifecycle of every request the kernel is working on. Tasks are owned
by the store: every public method hands back a copy, so callers can never
mutate the ledger except through ``update``.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .types import now_ms

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

DEFAULT_MAX_AGE_MS = 3_600_000  # 1 hour

_UPDATABLE_FIELDS = {"status", "end_time", "progress", "data"}


@dataclass
class Task:
    """One lifecycle record."""
    id: str
    status: str = RUNNING
    start_time: int = field(default_factory=now_ms)
    end_time: Optional[int] = None
    progress: Optional[float] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.end_time is not None and self.status != RUNNING


def _copy(task: Task) -> Task:
    return replace(task, data=dict(task.data))


class StateStore:
    """Dictionary-backed task store; insertion order is creation order."""

    def __init__(self):
        self._tasks: Dict[str, Task] = {}

    def create(self, task_id: str, data: Optional[Dict[str, Any]] = None) -> Task:
        """Register a new running task (replacing any task with the same id)."""
        task = Task(id=task_id, status=RUNNING, start_time=now_ms(), data=dict(data or {}))
        self._tasks.pop(task_id, None)
        self._tasks[task_id] = task
        logger.debug(f"Task created: {task_id}")
        return _copy(task)

    def get(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return _copy(task) if task else None

    def update(self, task_id: str, patch: Dict[str, Any]) -> Optional[Task]:
        """
        Apply ``patch`` to a task.

        ``data`` is shallow-merged into the existing data; every other field in
        the patch replaces the current value. ``id``, ``start_time`` and unknown
        keys are ignored.

        Returns:
            The updated task, or None if no task has this id
        """
        task = self._tasks.get(task_id)
        if task is None:
            return None

        ignored = set(patch) - _UPDATABLE_FIELDS
        if ignored:
            logger.debug(f"Ignoring non-updatable task fields for {task_id}: {sorted(ignored)}")

        changes = {k: v for k, v in patch.items() if k in _UPDATABLE_FIELDS and k != "data"}
        merged_data = dict(task.data)
        if patch.get("data"):
            merged_data.update(patch["data"])

        updated = replace(task, data=merged_data, **changes)
        self._tasks[task_id] = updated
        return _copy(updated)

    def complete(self, task_id: str, data: Optional[Dict[str, Any]] = None) -> Optional[Task]:
        return self.update(
            task_id,
            {"status": COMPLETED, "end_time": now_ms(), "progress": 1.0, "data": data or {}},
        )

    def fail(self, task_id: str, error: str) -> Optional[Task]:
        return self.update(task_id, {"status": FAILED, "end_time": now_ms(), "data": {"error": error}})

    def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def list(self) -> List[Task]:
        return [_copy(task) for task in self._tasks.values()]

    def cleanup(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> int:
        """
        Drop finished tasks whose end time is older than ``max_age_ms``.

        Running tasks are never removed, however old they are.

        Returns:
            Number of tasks removed
        """
        cutoff = now_ms() - max_age_ms
        stale = [
            task_id
            for task_id, task in self._tasks.items()
            if task.is_terminal and task.end_time < cutoff
        ]
        for task_id in stale:
            del self._tasks[task_id]
        if stale:
            logger.info(f"🧹 Cleaned up {len(stale)} finished task(s)")
        return len(stale)
