"""
Data Models Package

This package contains all Pydantic models used in the Exemption Tracker.
All data flowing through the system must conform to these schemas.
"""

from exemption_tracker.models.income import (
    DOMESTIC_CURRENCY,
    CompanyStatus,
    ComplianceTask,
    Currency,
    ExportKind,
    IncomeEntry,
    IncomeEntryCandidate,
    IncomeSource,
    MonthlyBucket,
    Notification,
    NotificationSeverity,
    RateQuote,
    RateTable,
    ThresholdState,
    ThresholdStatus,
    UserProfile,
    ValidationIssue,
    ValidationResult,
)
from exemption_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Income models
    "DOMESTIC_CURRENCY",
    "CompanyStatus",
    "ComplianceTask",
    "Currency",
    "ExportKind",
    "IncomeEntry",
    "IncomeEntryCandidate",
    "IncomeSource",
    "MonthlyBucket",
    "Notification",
    "NotificationSeverity",
    "RateQuote",
    "RateTable",
    "ThresholdState",
    "ThresholdStatus",
    "UserProfile",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
