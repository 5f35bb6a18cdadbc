"""User onboarding."""

from exemption_tracker.onboarding.wizard import (
    MIN_PASSWORD_LENGTH,
    SignupWizard,
    is_valid_national_id,
)

__all__ = ["MIN_PASSWORD_LENGTH", "SignupWizard", "is_valid_national_id"]
