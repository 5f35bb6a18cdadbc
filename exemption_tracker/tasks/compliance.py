"""
Compliance checklist.

A short list of to-dos the user ticks off during the tax year.
Completing a task raises a success notification; reopening it is silent.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from exemption_tracker.models.income import ComplianceTask, NotificationSeverity
from exemption_tracker.notifications import NotificationSink


logger = structlog.get_logger()


DEFAULT_TASKS = [
    ComplianceTask(
        id=1,
        text="File January income declaration",
        details="Send the monthly declaration to the tax office",
    ),
    ComplianceTask(
        id=2,
        text="Complete Stripe API integration",
        details="Enter API key under Settings > Integrations",
    ),
    ComplianceTask(
        id=3,
        text="Schedule a meeting with the accountant",
        details="Consult before the exemption limit is exceeded",
    ),
]


class ComplianceTaskList:
    """Ordered checklist of compliance tasks."""

    COMPLETED_TITLE = "Task completed!"

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        tasks: Optional[list[ComplianceTask]] = None,
        today: Callable[[], date] = date.today,
    ):
        source = DEFAULT_TASKS if tasks is None else tasks
        self._tasks = [task.model_copy() for task in source]
        self._sink = sink
        self._today = today

    @property
    def tasks(self) -> list[ComplianceTask]:
        return list(self._tasks)

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self._tasks if task.completed)

    @property
    def pending_count(self) -> int:
        return len(self._tasks) - self.completed_count

    def get(self, task_id: int) -> ComplianceTask:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise KeyError(f"Unknown task id: {task_id}")

    def toggle(self, task_id: int) -> ComplianceTask:
        """
        Flip a task between pending and completed.

        Raises:
            KeyError: If no task has this id
        """
        current = self.get(task_id)
        completing = not current.completed

        updated = current.model_copy(update={
            "completed": completing,
            "completed_date": self._today() if completing else None,
        })
        self._tasks[self._tasks.index(current)] = updated

        logger.info("task_toggled", task_id=task_id, completed=completing)

        if completing and self._sink is not None:
            self._sink.notify(
                self.COMPLETED_TITLE,
                updated.text,
                NotificationSeverity.SUCCESS,
            )

        return updated
