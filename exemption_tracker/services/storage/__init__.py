"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves demo mode.
"""

from exemption_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IncomeStorageInterface,
    NotFoundError,
    ProfileStorageInterface,
    StorageError,
)
from exemption_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryIncomeStorage,
    InMemoryProfileStorage,
)
from exemption_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIncomeStorage,
    GoogleSheetsProfileStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "IncomeStorageInterface",
    "ProfileStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryIncomeStorage",
    "InMemoryProfileStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIncomeStorage",
    "GoogleSheetsProfileStorage",
]
