"""Income entry validation."""

from exemption_tracker.validation.validator import IncomeEntryValidator

__all__ = ["IncomeEntryValidator"]
