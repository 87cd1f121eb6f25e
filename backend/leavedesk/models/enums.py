from __future__ import annotations

import enum


class EmployeeRole(enum.StrEnum):
    """Role carried by an employee profile."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"


class LeaveType(enum.StrEnum):
    """Fixed leave categories, each backed by its own balance field."""

    VACATION = "VACATION"
    SICK = "SICK"

    @property
    def balance_field(self) -> str:
        """Name of the Employee column debited for this leave type."""
        return "vacation_balance" if self is LeaveType.VACATION else "sick_balance"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests: PENDING -> APPROVED | REJECTED."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DecisionOutcome(enum.StrEnum):
    """Terminal outcome a manager may apply to a pending request."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RequestFilter(enum.StrEnum):
    """Status filter accepted by the request listing."""

    ALL = "ALL"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def status(self) -> RequestStatus | None:
        return None if self is RequestFilter.ALL else RequestStatus(self.value)


class IdentityStatus(enum.StrEnum):
    """Resolution state of a client's identity."""

    LOADING = "LOADING"
    ANONYMOUS = "ANONYMOUS"
    AUTHENTICATED = "AUTHENTICATED"
    NO_PROFILE = "NO_PROFILE"
