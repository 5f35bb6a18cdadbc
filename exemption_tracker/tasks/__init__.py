"""Compliance task checklist."""

from exemption_tracker.tasks.compliance import DEFAULT_TASKS, ComplianceTaskList

__all__ = ["DEFAULT_TASKS", "ComplianceTaskList"]
