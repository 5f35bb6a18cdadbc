"""Income ledger package."""

from exemption_tracker.ledger.ledger import ExemptionLedger, InvalidEntry, format_amount

__all__ = ["ExemptionLedger", "InvalidEntry", "format_amount"]
