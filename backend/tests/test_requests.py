"""Lifecycle engine tests: submit, approve, reject, list, visibility and
balance invariants, called directly against the store.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select

from leavedesk.exceptions import AlreadyProcessed, Forbidden, InsufficientBalance, InvalidLeaveRequest, NotFound
from leavedesk.models.employee import Employee
from leavedesk.models.enums import DecisionOutcome, LeaveType, RequestFilter, RequestStatus
from leavedesk.models.request import LeaveRequest
from leavedesk.schemas.request import SubmitLeavePayload
from leavedesk.services import request as request_service

if TYPE_CHECKING:
    from leavedesk.config import Settings
    from leavedesk.services.store import LeaveStore


def _payload(
    leave_type: LeaveType = LeaveType.VACATION,
    days: int = 3,
    start: date = date(2026, 7, 6),
    end: date = date(2026, 7, 8),
) -> SubmitLeavePayload:
    return SubmitLeavePayload(type=leave_type, start_date=start, end_date=end, days=days)


async def _count_requests(store: LeaveStore) -> int:
    result = await store.session.execute(select(func.count()).select_from(LeaveRequest))
    return result.scalar_one()


async def _balance(store: LeaveStore, employee: Employee, leave_type: LeaveType) -> int:
    fresh = await store.get_employee(employee.id)
    assert fresh is not None
    return fresh.balance_for(leave_type)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


async def test_submit_creates_pending_request_without_debit(
    store: LeaveStore, ana: Employee, settings: Settings
) -> None:
    result = await request_service.submit_request(store, ana, _payload(days=3), settings)

    assert result.status == RequestStatus.PENDING
    assert result.processed_by is None
    assert result.processor is None
    assert result.balance_debited is False
    assert result.employee_id == ana.id
    assert result.employee is not None
    assert result.employee.name == "Ana"
    assert result.days == 3
    assert await _balance(store, ana, LeaveType.VACATION) == 10
    assert await _count_requests(store) == 1


async def test_submit_full_balance_is_allowed(store: LeaveStore, ana: Employee, settings: Settings) -> None:
    result = await request_service.submit_request(store, ana, _payload(days=10), settings)
    assert result.status == RequestStatus.PENDING


async def test_submit_insufficient_balance_writes_nothing(
    store: LeaveStore, ben: Employee, settings: Settings
) -> None:
    with pytest.raises(InsufficientBalance) as exc_info:
        await request_service.submit_request(store, ben, _payload(LeaveType.SICK, days=5), settings)

    assert exc_info.value.message == "Insufficient balance. You have 2 sick days available."
    assert await _count_requests(store) == 0
    assert await _balance(store, ben, LeaveType.SICK) == 2


async def test_submit_checks_balance_of_requested_type(
    store: LeaveStore, ben: Employee, settings: Settings
) -> None:
    # Ben has 4 vacation days but only 2 sick days.
    await request_service.submit_request(store, ben, _payload(LeaveType.VACATION, days=4), settings)
    with pytest.raises(InsufficientBalance, match="vacation"):
        await request_service.submit_request(store, ben, _payload(LeaveType.VACATION, days=5), settings)


async def test_submit_uses_stored_balance_not_caller_copy(
    store: LeaveStore, ana: Employee, settings: Settings
) -> None:
    stale = Employee(id=ana.id, name=ana.name, email=ana.email, role=ana.role, vacation_balance=99, sick_balance=99)
    with pytest.raises(InsufficientBalance):
        await request_service.submit_request(store, stale, _payload(days=20), settings)


async def test_submit_rejects_zero_days(store: LeaveStore, ana: Employee, settings: Settings) -> None:
    payload = SubmitLeavePayload.model_construct(
        type=LeaveType.VACATION, start_date=date(2026, 7, 6), end_date=date(2026, 7, 6), days=0
    )
    with pytest.raises(InvalidLeaveRequest):
        await request_service.submit_request(store, ana, payload, settings)
    assert await _count_requests(store) == 0


async def test_submit_by_manager_forbidden_by_default(
    store: LeaveStore, manager: Employee, settings: Settings
) -> None:
    with pytest.raises(Forbidden):
        await request_service.submit_request(store, manager, _payload(days=1), settings)
    assert await _count_requests(store) == 0


async def test_submit_by_manager_allowed_when_configured(
    store: LeaveStore, manager: Employee, settings: Settings
) -> None:
    settings.allow_manager_self_submit = True
    result = await request_service.submit_request(store, manager, _payload(days=1), settings)
    assert result.employee_id == manager.id


async def test_submit_dates_are_permissive_by_default(store: LeaveStore, ana: Employee, settings: Settings) -> None:
    # days is independent of the dates, and reversed dates pass unless the span check is on.
    result = await request_service.submit_request(
        store, ana, _payload(days=5, start=date(2026, 7, 8), end=date(2026, 7, 6)), settings
    )
    assert result.days == 5


async def test_submit_enforces_date_span_when_configured(
    store: LeaveStore, ana: Employee, settings: Settings
) -> None:
    settings.enforce_date_span = True
    with pytest.raises(InvalidLeaveRequest, match="before"):
        await request_service.submit_request(
            store, ana, _payload(days=1, start=date(2026, 7, 8), end=date(2026, 7, 6)), settings
        )
    with pytest.raises(InvalidLeaveRequest, match="only covers 3"):
        await request_service.submit_request(store, ana, _payload(days=4), settings)

    result = await request_service.submit_request(store, ana, _payload(days=3), settings)
    assert result.days == 3


# ---------------------------------------------------------------------------
# Decide
# ---------------------------------------------------------------------------


async def test_approve_scenario_debits_exactly_once(
    store: LeaveStore, ana: Employee, manager: Employee, second_manager: Employee, settings: Settings
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(days=3), settings)
    assert await _balance(store, ana, LeaveType.VACATION) == 10

    approved = await request_service.approve_request(store, manager, submitted.id, settings)
    assert approved.status == RequestStatus.APPROVED
    assert approved.processed_by == manager.id
    assert approved.processor is not None
    assert approved.processor.name == "Marta"
    assert approved.balance_debited is True
    assert await _balance(store, ana, LeaveType.VACATION) == 7

    with pytest.raises(AlreadyProcessed):
        await request_service.approve_request(store, second_manager, submitted.id, settings)
    assert await _balance(store, ana, LeaveType.VACATION) == 7

    stored = await store.get_request(submitted.id)
    assert stored is not None
    assert stored.processed_by == manager.id


async def test_approve_debits_only_the_matching_balance(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(LeaveType.SICK, days=2), settings)
    await request_service.approve_request(store, manager, submitted.id, settings)

    assert await _balance(store, ana, LeaveType.SICK) == 3
    assert await _balance(store, ana, LeaveType.VACATION) == 10


async def test_reject_never_changes_balance(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(days=3), settings)

    rejected = await request_service.reject_request(store, manager, submitted.id, settings)
    assert rejected.status == RequestStatus.REJECTED
    assert rejected.processed_by == manager.id
    assert rejected.balance_debited is False
    assert await _balance(store, ana, LeaveType.VACATION) == 10


@pytest.mark.parametrize(
    ("first", "second"),
    [
        (DecisionOutcome.APPROVED, DecisionOutcome.REJECTED),
        (DecisionOutcome.REJECTED, DecisionOutcome.APPROVED),
        (DecisionOutcome.REJECTED, DecisionOutcome.REJECTED),
    ],
)
async def test_second_decision_fails_and_leaves_state(
    store: LeaveStore,
    ana: Employee,
    manager: Employee,
    settings: Settings,
    first: DecisionOutcome,
    second: DecisionOutcome,
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(days=2), settings)
    decided = await request_service.decide_request(store, manager, submitted.id, first, settings)
    balance_after_first = await _balance(store, ana, LeaveType.VACATION)

    with pytest.raises(AlreadyProcessed):
        await request_service.decide_request(store, manager, submitted.id, second, settings)

    stored = await store.get_request(submitted.id)
    assert stored is not None
    assert stored.status == decided.status.value
    assert await _balance(store, ana, LeaveType.VACATION) == balance_after_first


async def test_decide_by_employee_forbidden(
    store: LeaveStore, ana: Employee, ben: Employee, settings: Settings
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(days=1), settings)
    with pytest.raises(Forbidden):
        await request_service.approve_request(store, ben, submitted.id, settings)

    stored = await store.get_request(submitted.id)
    assert stored is not None
    assert stored.status == RequestStatus.PENDING.value
    assert stored.processed_by is None


async def test_decide_unknown_request_not_found(store: LeaveStore, manager: Employee, settings: Settings) -> None:
    with pytest.raises(NotFound):
        await request_service.approve_request(store, manager, uuid.uuid4(), settings)


async def test_decide_rechecks_stored_status(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    """A decision made elsewhere is seen even though this session loaded the row earlier."""
    submitted = await request_service.submit_request(store, ana, _payload(days=1), settings)
    loaded = await store.get_request(submitted.id)
    assert loaded is not None

    await store.update_request(
        submitted.id,
        {"status": RequestStatus.REJECTED.value, "processed_by": manager.id},
        expected_status=RequestStatus.PENDING,
    )
    await store.commit()

    with pytest.raises(AlreadyProcessed):
        await request_service.approve_request(store, manager, submitted.id, settings)
    assert await _balance(store, ana, LeaveType.VACATION) == 10


@pytest.mark.parametrize("outcome", [DecisionOutcome.APPROVED, DecisionOutcome.REJECTED])
async def test_losing_manager_in_a_decision_race_changes_nothing(
    outcome: DecisionOutcome,
    store: LeaveStore,
    ana: Employee,
    manager: Employee,
    second_manager: Employee,
    settings: Settings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The status write only lands while the row is still PENDING, whatever the caller read."""
    submitted = await request_service.submit_request(store, ana, _payload(days=3), settings)
    stale = await store.get_request(submitted.id)
    assert stale is not None
    await request_service.approve_request(store, manager, submitted.id, settings)

    async def _stale_read(request_id: uuid.UUID) -> LeaveRequest:
        return stale

    rollbacks: list[None] = []
    original_rollback = store.rollback

    async def _counting_rollback() -> None:
        rollbacks.append(None)
        await original_rollback()

    monkeypatch.setattr(store, "get_request", _stale_read)
    monkeypatch.setattr(store, "rollback", _counting_rollback)

    with pytest.raises(AlreadyProcessed):
        await request_service.decide_request(store, second_manager, submitted.id, outcome, settings)

    assert rollbacks
    monkeypatch.undo()
    stored = await store.get_request(submitted.id)
    assert stored is not None
    assert stored.status == RequestStatus.APPROVED.value
    assert stored.processed_by == manager.id
    assert await _balance(store, ana, LeaveType.VACATION) == 7


async def test_approval_uses_fresh_balance(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    first = await request_service.submit_request(store, ana, _payload(days=6), settings)
    second = await request_service.submit_request(store, ana, _payload(days=3), settings)

    await request_service.approve_request(store, manager, first.id, settings)
    await request_service.approve_request(store, manager, second.id, settings)

    assert await _balance(store, ana, LeaveType.VACATION) == 1


async def test_approval_exceeding_fresh_balance_rolls_back(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    first = await request_service.submit_request(store, ana, _payload(days=8), settings)
    second = await request_service.submit_request(store, ana, _payload(days=5), settings)
    await request_service.approve_request(store, manager, first.id, settings)

    with pytest.raises(InsufficientBalance, match="You have 2 vacation days"):
        await request_service.approve_request(store, manager, second.id, settings)

    stored = await store.get_request(second.id)
    assert stored is not None
    assert stored.status == RequestStatus.PENDING.value
    assert stored.processed_by is None
    assert await _balance(store, ana, LeaveType.VACATION) == 2

    rejected = await request_service.reject_request(store, manager, second.id, settings)
    assert rejected.status == RequestStatus.REJECTED


async def test_approval_retries_after_concurrent_balance_change(
    store: LeaveStore,
    ana: Employee,
    manager: Employee,
    settings: Settings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A compare-and-swap miss re-reads the balance instead of overwriting it."""
    submitted = await request_service.submit_request(store, ana, _payload(days=3), settings)

    original = store.update_employee_balance
    calls: list[int] = []

    async def _racing_update(employee_id: uuid.UUID, field: str, new_value: int, *, expected: int) -> bool:
        calls.append(expected)
        if len(calls) == 1:
            # Another approval lands between our read and our write.
            await original(employee_id, field, expected - 2, expected=expected)
        return await original(employee_id, field, new_value, expected=expected)

    monkeypatch.setattr(store, "update_employee_balance", _racing_update)

    await request_service.approve_request(store, manager, submitted.id, settings)

    assert calls == [10, 8]
    assert await _balance(store, ana, LeaveType.VACATION) == 5


# ---------------------------------------------------------------------------
# List / get / summary
# ---------------------------------------------------------------------------


async def test_list_manager_sees_all_employee_sees_own(
    store: LeaveStore, ana: Employee, ben: Employee, manager: Employee, settings: Settings
) -> None:
    ana_req = await request_service.submit_request(store, ana, _payload(days=1), settings)
    ben_req = await request_service.submit_request(store, ben, _payload(days=1), settings)
    await request_service.approve_request(store, manager, ben_req.id, settings)

    everyone = await request_service.list_requests(store, manager)
    assert everyone.total == 2
    assert {item.id for item in everyone.items} == {ana_req.id, ben_req.id}

    for status_filter in RequestFilter:
        own = await request_service.list_requests(store, ana, status_filter)
        assert all(item.employee_id == ana.id for item in own.items)

    assert [i.id for i in (await request_service.list_requests(store, ana, RequestFilter.ALL)).items] == [ana_req.id]
    assert (await request_service.list_requests(store, ana, RequestFilter.APPROVED)).total == 0
    assert (await request_service.list_requests(store, ben, RequestFilter.APPROVED)).total == 1


async def test_list_filters_and_joins(
    store: LeaveStore, ana: Employee, manager: Employee, settings: Settings
) -> None:
    approved = await request_service.submit_request(store, ana, _payload(days=1), settings)
    rejected = await request_service.submit_request(store, ana, _payload(days=1), settings)
    pending = await request_service.submit_request(store, ana, _payload(days=1), settings)
    await request_service.approve_request(store, manager, approved.id, settings)
    await request_service.reject_request(store, manager, rejected.id, settings)

    only_pending = await request_service.list_requests(store, manager, RequestFilter.PENDING)
    assert [item.id for item in only_pending.items] == [pending.id]
    assert only_pending.items[0].processor is None

    only_rejected = await request_service.list_requests(store, manager, RequestFilter.REJECTED)
    assert [item.id for item in only_rejected.items] == [rejected.id]
    assert only_rejected.items[0].processor is not None
    assert only_rejected.items[0].processor.id == manager.id
    assert only_rejected.items[0].employee is not None
    assert only_rejected.items[0].employee.id == ana.id


async def test_list_orders_newest_first(store: LeaveStore, ana: Employee, manager: Employee) -> None:
    ids = []
    for day in (1, 3, 2):
        request_id = await store.insert_request(
            {
                "employee_id": ana.id,
                "type": LeaveType.VACATION.value,
                "start_date": date(2026, 8, day),
                "end_date": date(2026, 8, day),
                "days": 1,
                "created_at": datetime(2026, 1, day, 12, 0),
            }
        )
        ids.append(request_id)
    await store.commit()

    listing = await request_service.list_requests(store, manager)
    assert [item.id for item in listing.items] == [ids[1], ids[2], ids[0]]

    page = await request_service.list_requests(store, manager, offset=1, limit=1)
    assert [item.id for item in page.items] == [ids[2]]
    assert page.total == 3


async def test_get_request_visibility(
    store: LeaveStore, ana: Employee, ben: Employee, manager: Employee, settings: Settings
) -> None:
    submitted = await request_service.submit_request(store, ana, _payload(days=1), settings)

    assert (await request_service.get_request(store, ana, submitted.id)).id == submitted.id
    assert (await request_service.get_request(store, manager, submitted.id)).id == submitted.id
    with pytest.raises(NotFound):
        await request_service.get_request(store, ben, submitted.id)
    with pytest.raises(NotFound):
        await request_service.get_request(store, manager, uuid.uuid4())


async def test_summary_counts_visible_requests(
    store: LeaveStore, ana: Employee, ben: Employee, manager: Employee, settings: Settings
) -> None:
    a1 = await request_service.submit_request(store, ana, _payload(days=1), settings)
    await request_service.submit_request(store, ana, _payload(days=1), settings)
    b1 = await request_service.submit_request(store, ben, _payload(days=1), settings)
    await request_service.approve_request(store, manager, a1.id, settings)
    await request_service.reject_request(store, manager, b1.id, settings)

    team = await request_service.summarize_requests(store, manager)
    assert (team.all, team.pending, team.approved, team.rejected) == (3, 1, 1, 1)

    own = await request_service.summarize_requests(store, ana)
    assert (own.all, own.pending, own.approved, own.rejected) == (2, 1, 1, 0)
