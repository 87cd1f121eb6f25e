# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leavedesk.models.enums import LeaveType, RequestStatus
from leavedesk.schemas.employee import EmployeeSummary

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a new leave request.

    ``days`` is the debit amount and is not derived from the dates.
    """

    type: LeaveType
    start_date: date
    end_date: date
    days: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """A leave request joined with its requester and, once decided, its processor."""

    id: uuid.UUID
    employee_id: uuid.UUID
    type: LeaveType
    start_date: date
    end_date: date
    days: int
    status: RequestStatus
    processed_by: uuid.UUID | None
    balance_debited: bool
    created_at: datetime
    updated_at: datetime
    employee: EmployeeSummary | None = None
    processor: EmployeeSummary | None = None


class RequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int


class RequestSummaryResponse(BaseModel):
    """Per-status request counts visible to the viewer."""

    all: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class ReconcileResult(BaseModel):
    """Outcome of a reconciliation pass over undebited approvals."""

    examined: int = 0
    repaired: int = 0
    failed: int = 0
