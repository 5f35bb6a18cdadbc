"""
Signup Wizard

A linear four-step form:
    1. Identity: first name, last name, national ID
    2. Tax: tax office, tax ID, address
    3. Contact and account: phone, email, password
    4. Income: income source, company status

Each step is validated before the wizard moves forward. The password is
kept on the wizard for the account backend and never copied into the
UserProfile.
"""

import re
from enum import Enum
from typing import Any, Optional

import structlog

from exemption_tracker.models.income import (
    CompanyStatus,
    IncomeSource,
    UserProfile,
    ValidationIssue,
)


logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 8

STEP_FIELDS: dict[int, tuple[str, ...]] = {
    1: ("first_name", "last_name", "national_id"),
    2: ("tax_office", "tax_id", "address"),
    3: ("phone", "email", "password"),
    4: ("income_source", "company_status"),
}

STEP_TITLES: dict[int, str] = {
    1: "Let's get to know you",
    2: "Your tax details",
    3: "Create your account",
    4: "Your income source",
}


def is_valid_national_id(value: str) -> bool:
    """11 digits, first digit non-zero."""
    return len(value) == 11 and value.isdigit() and value[0] != "0"


def _required(issues: list, data: dict, field: str, label: str) -> None:
    if not str(data.get(field) or "").strip():
        issues.append(ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"{label} is required",
            severity="error",
        ))


class SignupWizard:
    """Collects a new user's profile step by step."""

    def __init__(self):
        self._step = 1
        self._data: dict[str, Any] = {
            "income_source": IncomeSource.DIGITAL_PLATFORMS.value,
            "company_status": CompanyStatus.NONE.value,
        }

    @property
    def current_step(self) -> int:
        return self._step

    @property
    def total_steps(self) -> int:
        return len(STEP_FIELDS)

    @property
    def progress(self) -> float:
        return self._step / self.total_steps

    @property
    def title(self) -> str:
        return STEP_TITLES[self._step]

    @property
    def is_last_step(self) -> bool:
        return self._step == self.total_steps

    @property
    def data(self) -> dict[str, Any]:
        """Entered values, password excluded."""
        return {k: v for k, v in self._data.items() if k != "password"}

    @property
    def password(self) -> str:
        return self._data.get("password", "")

    def update(self, **fields) -> None:
        """
        Set form values.

        Raises:
            ValueError: If a field does not belong to any step
        """
        known = {name for names in STEP_FIELDS.values() for name in names}
        unknown = set(fields) - known
        if unknown:
            raise ValueError(f"Unknown signup fields: {', '.join(sorted(unknown))}")

        for name, value in fields.items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, str) and name != "password":
                value = value.strip()
            self._data[name] = value

    def validate_step(self, step: Optional[int] = None) -> list[ValidationIssue]:
        """Issues blocking the given step (default: the current one)."""
        step = step or self._step
        data = self._data
        issues: list[ValidationIssue] = []

        if step == 1:
            _required(issues, data, "first_name", "First name")
            _required(issues, data, "last_name", "Last name")
            national_id = str(data.get("national_id") or "")
            if not is_valid_national_id(national_id):
                issues.append(ValidationIssue(
                    field="national_id",
                    issue_type="invalid_value",
                    message="National ID must be 11 digits and not start with 0",
                    severity="error",
                ))

        elif step == 2:
            _required(issues, data, "tax_office", "Tax office")
            tax_id = str(data.get("tax_id") or "")
            if tax_id and not tax_id.isdigit():
                issues.append(ValidationIssue(
                    field="tax_id",
                    issue_type="invalid_value",
                    message="Tax ID must contain digits only",
                    severity="error",
                ))

        elif step == 3:
            if not EMAIL_PATTERN.match(str(data.get("email") or "")):
                issues.append(ValidationIssue(
                    field="email",
                    issue_type="invalid_value",
                    message="Enter a valid email address",
                    severity="error",
                ))
            if len(data.get("password") or "") < MIN_PASSWORD_LENGTH:
                issues.append(ValidationIssue(
                    field="password",
                    issue_type="invalid_value",
                    message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                    severity="error",
                ))

        elif step == 4:
            if data.get("income_source") not in {s.value for s in IncomeSource}:
                issues.append(ValidationIssue(
                    field="income_source",
                    issue_type="invalid_value",
                    message="Choose an income source",
                    severity="error",
                ))
            if data.get("company_status") not in {s.value for s in CompanyStatus}:
                issues.append(ValidationIssue(
                    field="company_status",
                    issue_type="invalid_value",
                    message="Choose a company status",
                    severity="error",
                ))

        return issues

    def next(self) -> list[ValidationIssue]:
        """
        Advance one step if the current step is valid.

        Returns:
            The blocking issues; empty when the wizard moved forward
            (or is already on the last step and that step is valid).
        """
        issues = self.validate_step()
        if issues:
            logger.info(
                "signup_step_invalid",
                step=self._step,
                fields=[issue.field for issue in issues],
            )
            return issues

        if self._step < self.total_steps:
            self._step += 1
        return []

    def back(self) -> None:
        if self._step > 1:
            self._step -= 1

    def build_profile(self) -> UserProfile:
        """
        Assemble the profile from every step.

        Raises:
            ValueError: If any step still has blocking issues
        """
        issues = [
            issue
            for step in STEP_FIELDS
            for issue in self.validate_step(step)
        ]
        if issues:
            raise ValueError(
                "Signup form is incomplete: "
                + ", ".join(issue.field for issue in issues)
            )

        return UserProfile(
            first_name=self._data["first_name"],
            last_name=self._data["last_name"],
            national_id=self._data["national_id"],
            tax_office=self._data["tax_office"],
            address=self._data.get("address", ""),
            tax_id=self._data.get("tax_id", ""),
            phone=self._data.get("phone", ""),
            email=self._data["email"],
            income_source=IncomeSource(self._data["income_source"]),
            company_status=CompanyStatus(self._data["company_status"]),
        )
