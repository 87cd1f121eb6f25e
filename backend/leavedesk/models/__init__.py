from sqlmodel import SQLModel

from leavedesk.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leavedesk.models.employee import Employee
from leavedesk.models.enums import (
    DecisionOutcome,
    EmployeeRole,
    IdentityStatus,
    LeaveType,
    RequestFilter,
    RequestStatus,
)
from leavedesk.models.request import LeaveRequest

__all__ = [
    "DecisionOutcome",
    "Employee",
    "EmployeeRole",
    "IdentityStatus",
    "LeaveRequest",
    "LeaveType",
    "RequestFilter",
    "RequestStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
