# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from leavedesk.models.enums import EmployeeRole


class EmployeeSummary(BaseModel):
    """Compact employee view embedded in request listings."""

    id: uuid.UUID
    name: str
    email: str
    role: EmployeeRole


class EmployeeResponse(EmployeeSummary):
    """Full employee profile including balances."""

    vacation_balance: int
    sick_balance: int
    created_at: datetime
