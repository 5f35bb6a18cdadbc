"""Audit logging package."""

from exemption_tracker.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
