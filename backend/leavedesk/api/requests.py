# ruff: noqa: B008
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leavedesk.api.deps import CurrentEmployeeDep, ManagerDep, SettingsDep, StoreDep
from leavedesk.models.enums import RequestFilter
from leavedesk.schemas.request import (
    LeaveRequestResponse,
    RequestListResponse,
    RequestSummaryResponse,
    SubmitLeavePayload,
)
from leavedesk.services import request as request_service

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitLeavePayload,
    store: StoreDep,
    employee: CurrentEmployeeDep,
    settings: SettingsDep,
) -> LeaveRequestResponse:
    """Submit a new leave request for the signed-in employee."""
    return await request_service.submit_request(store, employee, payload, settings)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    store: StoreDep,
    employee: CurrentEmployeeDep,
    status_filter: RequestFilter = Query(default=RequestFilter.ALL, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> RequestListResponse:
    """List leave requests visible to the signed-in employee."""
    return await request_service.list_requests(store, employee, status_filter, offset, limit)


@requests_router.get("/summary", response_model=RequestSummaryResponse)
async def summarize_requests(store: StoreDep, employee: CurrentEmployeeDep) -> RequestSummaryResponse:
    """Per-status counts of visible requests."""
    return await request_service.summarize_requests(store, employee)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    store: StoreDep,
    employee: CurrentEmployeeDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(store, employee, request_id)


@requests_router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    store: StoreDep,
    manager: ManagerDep,
    settings: SettingsDep,
) -> LeaveRequestResponse:
    """Approve a pending leave request (managers only)."""
    return await request_service.approve_request(store, manager, request_id, settings)


@requests_router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    store: StoreDep,
    manager: ManagerDep,
    settings: SettingsDep,
) -> LeaveRequestResponse:
    """Reject a pending leave request (managers only)."""
    return await request_service.reject_request(store, manager, request_id, settings)
