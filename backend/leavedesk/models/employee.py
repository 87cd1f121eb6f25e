from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from leavedesk.models.base import TimestampMixin, UUIDBase
from leavedesk.models.enums import EmployeeRole, LeaveType


class Employee(UUIDBase, TimestampMixin, table=True):
    """Employee profile with role and per-type leave balances.

    The id matches the identity provider's user id.
    """

    __tablename__ = "employee"
    __table_args__ = (
        sa.CheckConstraint("vacation_balance >= 0", name="ck_employee_vacation_balance_non_negative"),
        sa.CheckConstraint("sick_balance >= 0", name="ck_employee_sick_balance_non_negative"),
    )

    name: str = Field(max_length=255)
    email: str = Field(max_length=255, unique=True, index=True)
    role: str = Field(
        default=EmployeeRole.EMPLOYEE, max_length=50, sa_column_kwargs={"server_default": "EMPLOYEE"}
    )
    vacation_balance: int = Field(default=0, ge=0, sa_column_kwargs={"server_default": "0"})
    sick_balance: int = Field(default=0, ge=0, sa_column_kwargs={"server_default": "0"})

    @property
    def is_manager(self) -> bool:
        return self.role == EmployeeRole.MANAGER

    def balance_for(self, leave_type: LeaveType) -> int:
        """Return the balance backing the given leave type."""
        return getattr(self, leave_type.balance_field)
