"""
Exemption Tracker - Source Package

Tracks foreign-sourced income against an annual tax exemption threshold.

DESIGN PRINCIPLES:
1. Entries are immutable once recorded
2. The ledger is the single source of truth for limit status
3. Exchange rates are captured at entry time, never recomputed
4. Collaborator failures are visible but never corrupt the ledger
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Exemption Tracker Team"
