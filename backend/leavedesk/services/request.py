# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from leavedesk.config import get_settings
from leavedesk.exceptions import (
    AlreadyProcessed,
    AppError,
    Forbidden,
    InsufficientBalance,
    InvalidLeaveRequest,
    NotFound,
    PartialApplyError,
    StoreUnavailable,
)
from leavedesk.models.base import now_utc
from leavedesk.models.enums import DecisionOutcome, LeaveType, RequestFilter, RequestStatus
from leavedesk.schemas.employee import EmployeeSummary
from leavedesk.schemas.request import (
    LeaveRequestResponse,
    ReconcileResult,
    RequestListResponse,
    RequestSummaryResponse,
)

if TYPE_CHECKING:
    from leavedesk.config import Settings
    from leavedesk.models.employee import Employee
    from leavedesk.models.request import LeaveRequest
    from leavedesk.schemas.request import SubmitLeavePayload
    from leavedesk.services.store import LeaveStore

logger = logging.getLogger(__name__)
reconciliation_logger = logging.getLogger("leavedesk.reconciliation")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_employee_summary(employee: Employee | None) -> EmployeeSummary | None:
    if employee is None:
        return None
    return EmployeeSummary(id=employee.id, name=employee.name, email=employee.email, role=employee.role)


def _build_request_response(
    request: LeaveRequest,
    employee: Employee | None = None,
    processor: Employee | None = None,
) -> LeaveRequestResponse:
    """Map a request model (and its joined employees) to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        type=LeaveType(request.type),
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        status=RequestStatus(request.status),
        processed_by=request.processed_by,
        balance_debited=request.balance_debited,
        created_at=request.created_at,
        updated_at=request.updated_at,
        employee=_build_employee_summary(employee),
        processor=_build_employee_summary(processor),
    )


def _insufficient_balance(available: int, leave_type: LeaveType) -> InsufficientBalance:
    return InsufficientBalance(f"Insufficient balance. You have {available} {leave_type.lower()} days available.")


def _validate_submission(payload: SubmitLeavePayload, settings: Settings) -> None:
    """Shape rules that do not depend on stored state."""
    if payload.days < 1:
        raise InvalidLeaveRequest("Requested days must be at least 1")
    if not settings.enforce_date_span:
        return
    if payload.end_date < payload.start_date:
        raise InvalidLeaveRequest("end_date must not be before start_date")
    span = (payload.end_date - payload.start_date).days + 1
    if payload.days > span:
        raise InvalidLeaveRequest(f"Requested {payload.days} days but the date range only covers {span}")


async def _fetch_joined(store: LeaveStore, request_id: uuid.UUID) -> LeaveRequestResponse:
    rows = await store.query_requests(request_id=request_id)
    if not rows:
        raise NotFound("Leave request not found")
    return _build_request_response(*rows[0])


async def _debit_balance(
    store: LeaveStore,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    days: int,
    attempts: int,
) -> bool:
    """Debit ``days`` from a balance read fresh, by compare-and-swap.

    A CAS miss means another writer touched the balance in between; re-read
    and try again. Returns False once ``attempts`` misses are used up.
    """
    for _ in range(max(attempts, 1)):
        employee = await store.get_employee(employee_id)
        if employee is None:
            raise NotFound("Requesting employee not found")
        current = employee.balance_for(leave_type)
        if current < days:
            raise _insufficient_balance(current, leave_type)
        swapped = await store.update_employee_balance(
            employee_id, leave_type.balance_field, current - days, expected=current
        )
        if swapped:
            return True
        logger.info("Balance for employee %s changed concurrently, retrying debit", employee_id)
    return False


async def _settle_debit(store: LeaveStore, request: LeaveRequest, attempts: int) -> bool:
    """Apply the debit for an APPROVED request whose debit has not landed.

    The ``balance_debited`` flag is claimed with a conditional write before
    the debit, so two settlers can never both charge the same request. Each
    attempt commits or rolls back on its own and makes one compare-and-swap
    try, so ``attempts`` bounds the total number of balance writes.
    """
    leave_type = LeaveType(request.type)
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            claimed = await store.update_request(
                request.id,
                {"balance_debited": True},
                expected_status=RequestStatus.APPROVED,
                expected_debited=False,
            )
            if not claimed:
                await store.rollback()
                logger.info("Debit for request %s already settled", request.id)
                return True
            if await _debit_balance(store, request.employee_id, leave_type, request.days, attempts=1):
                await store.commit()
                return True
            await store.rollback()
        except (StoreUnavailable, InsufficientBalance, NotFound) as exc:
            await store.rollback()
            logger.warning("Debit attempt %d for request %s failed: %s", attempt, request.id, exc.message)
            if not isinstance(exc, StoreUnavailable):
                # Retrying cannot fix a missing employee or a drained balance.
                return False
    return False


def _report_partial_apply(request: LeaveRequest) -> PartialApplyError:
    reconciliation_logger.error(
        "Request %s is APPROVED but its debit did not land: employee=%s type=%s days=%d",
        request.id,
        request.employee_id,
        request.type,
        request.days,
    )
    return PartialApplyError(
        "Request was approved but the balance debit failed; it has been queued for reconciliation",
        request_id=request.id,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_request(
    store: LeaveStore,
    requester: Employee,
    payload: SubmitLeavePayload,
    settings: Settings | None = None,
) -> LeaveRequestResponse:
    """Submit a leave request on behalf of ``requester``.

    The balance is checked against the requester's stored balance but not
    debited; the debit happens on approval. Exactly one insert on success,
    no write at all on failure.
    """
    settings = settings or get_settings()

    if requester.is_manager and not settings.allow_manager_self_submit:
        logger.warning("Manager %s attempted to submit a leave request", requester.id)
        raise Forbidden("Managers cannot submit leave requests")

    _validate_submission(payload, settings)

    current = await store.get_employee(requester.id)
    if current is None:
        raise NotFound("Employee profile not found")

    available = current.balance_for(payload.type)
    if payload.days > available:
        logger.warning(
            "Rejected %s request from %s: %d days requested, %d available",
            payload.type,
            requester.id,
            payload.days,
            available,
        )
        raise _insufficient_balance(available, payload.type)

    now = now_utc()
    request_id = await store.insert_request(
        {
            "employee_id": requester.id,
            "type": payload.type.value,
            "start_date": payload.start_date,
            "end_date": payload.end_date,
            "days": payload.days,
            "status": RequestStatus.PENDING.value,
            "processed_by": None,
            "created_at": now,
            "updated_at": now,
        }
    )
    await store.commit()
    logger.info("Employee %s submitted %s request %s for %d days", requester.id, payload.type, request_id, payload.days)
    return await _fetch_joined(store, request_id)


async def decide_request(
    store: LeaveStore,
    decider: Employee,
    request_id: uuid.UUID,
    outcome: DecisionOutcome,
    settings: Settings | None = None,
) -> LeaveRequestResponse:
    """Move a PENDING request to APPROVED or REJECTED.

    The status write is conditional on the row still being PENDING, so of two
    managers racing on the same request exactly one wins and the other gets
    ``AlreadyProcessed``. Approval also debits the requester's balance, read
    fresh at decision time.
    """
    settings = settings or get_settings()

    if not decider.is_manager:
        logger.warning("Non-manager %s attempted to decide request %s", decider.id, request_id)
        raise Forbidden("Only managers can approve or reject leave requests")

    request = await store.get_request(request_id)
    if request is None:
        raise NotFound("Leave request not found")
    if request.status != RequestStatus.PENDING.value:
        raise AlreadyProcessed(f"Leave request has already been {request.status.lower()}")

    if outcome is DecisionOutcome.REJECTED:
        await _reject(store, decider, request)
    elif settings.atomic_decisions:
        await _approve_atomically(store, decider, request, settings)
    else:
        await _approve_with_compensation(store, decider, request, settings)

    logger.info("Manager %s %s request %s", decider.id, outcome.lower(), request_id)
    return await _fetch_joined(store, request_id)


async def approve_request(
    store: LeaveStore,
    decider: Employee,
    request_id: uuid.UUID,
    settings: Settings | None = None,
) -> LeaveRequestResponse:
    """Approve a pending request and debit the requester's balance."""
    return await decide_request(store, decider, request_id, DecisionOutcome.APPROVED, settings)


async def reject_request(
    store: LeaveStore,
    decider: Employee,
    request_id: uuid.UUID,
    settings: Settings | None = None,
) -> LeaveRequestResponse:
    """Reject a pending request. Balances are untouched."""
    return await decide_request(store, decider, request_id, DecisionOutcome.REJECTED, settings)


async def _claim_decision(
    store: LeaveStore,
    decider: Employee,
    request: LeaveRequest,
    status: RequestStatus,
    *,
    debited: bool,
) -> None:
    claimed = await store.update_request(
        request.id,
        {
            "status": status.value,
            "processed_by": decider.id,
            "balance_debited": debited,
            "updated_at": now_utc(),
        },
        expected_status=RequestStatus.PENDING,
    )
    if not claimed:
        await store.rollback()
        logger.info("Request %s was decided concurrently", request.id)
        raise AlreadyProcessed("Leave request has already been processed")


async def _reject(store: LeaveStore, decider: Employee, request: LeaveRequest) -> None:
    await _claim_decision(store, decider, request, RequestStatus.REJECTED, debited=False)
    await store.commit()


async def _approve_atomically(
    store: LeaveStore,
    decider: Employee,
    request: LeaveRequest,
    settings: Settings,
) -> None:
    """Status write and debit in one transaction: both land or neither does."""
    leave_type = LeaveType(request.type)
    try:
        await _claim_decision(store, decider, request, RequestStatus.APPROVED, debited=True)
        debited = await _debit_balance(
            store, request.employee_id, leave_type, request.days, settings.debit_retry_attempts
        )
        if not debited:
            msg = "Balance kept changing during approval, please retry"
            raise StoreUnavailable(msg)
        await store.commit()
    except AppError:
        await store.rollback()
        raise


async def _approve_with_compensation(
    store: LeaveStore,
    decider: Employee,
    request: LeaveRequest,
    settings: Settings,
) -> None:
    """Commit the status first, then settle the debit with retries.

    Used against stores without multi-row transactions. A debit that still
    fails after the retries leaves the request APPROVED with
    ``balance_debited`` false for ``reconcile_debits`` to pick up.
    """
    employee = await store.get_employee(request.employee_id)
    if employee is None:
        raise NotFound("Requesting employee not found")
    leave_type = LeaveType(request.type)
    available = employee.balance_for(leave_type)
    if available < request.days:
        raise _insufficient_balance(available, leave_type)

    await _claim_decision(store, decider, request, RequestStatus.APPROVED, debited=False)
    await store.commit()

    if not await _settle_debit(store, request, settings.debit_retry_attempts):
        raise _report_partial_apply(request)


async def get_request(
    store: LeaveStore,
    viewer: Employee,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Get a single request. Employees only see their own."""
    response = await _fetch_joined(store, request_id)
    if not viewer.is_manager and response.employee_id != viewer.id:
        raise NotFound("Leave request not found")
    return response


async def list_requests(
    store: LeaveStore,
    viewer: Employee,
    status_filter: RequestFilter = RequestFilter.ALL,
    offset: int = 0,
    limit: int | None = None,
) -> RequestListResponse:
    """List requests visible to ``viewer``, newest first.

    Managers see every employee's requests; employees see only their own
    whatever the filter.
    """
    employee_id = None if viewer.is_manager else viewer.id
    rows = await store.query_requests(
        status=status_filter.status, employee_id=employee_id, offset=offset, limit=limit
    )
    total = await store.count_requests(status=status_filter.status, employee_id=employee_id)
    return RequestListResponse(items=[_build_request_response(*row) for row in rows], total=total)


async def summarize_requests(store: LeaveStore, viewer: Employee) -> RequestSummaryResponse:
    """Count the viewer's visible requests per status."""
    counts = await store.count_by_status(employee_id=None if viewer.is_manager else viewer.id)
    return RequestSummaryResponse(
        all=sum(counts.values()),
        pending=counts.get(RequestStatus.PENDING, 0),
        approved=counts.get(RequestStatus.APPROVED, 0),
        rejected=counts.get(RequestStatus.REJECTED, 0),
    )


async def reconcile_debits(store: LeaveStore, settings: Settings | None = None) -> ReconcileResult:
    """Re-apply debits for approved requests whose debit never landed."""
    settings = settings or get_settings()
    pending = await store.find_undebited_approvals()
    result = ReconcileResult(examined=len(pending))
    for request in pending:
        if await _settle_debit(store, request, settings.debit_retry_attempts):
            result.repaired += 1
            reconciliation_logger.info("Reconciled debit for request %s", request.id)
        else:
            result.failed += 1
            reconciliation_logger.error(
                "Could not reconcile request %s: employee=%s type=%s days=%d",
                request.id,
                request.employee_id,
                request.type,
                request.days,
            )
    return result
