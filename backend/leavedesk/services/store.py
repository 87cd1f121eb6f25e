# ruff: noqa: TC003
"""Row-level access to employees and leave requests.

The store carries no business rules. It offers inserts, conditional updates
and joined reads, and turns connectivity failures into ``StoreUnavailable``.
Writes are flushed inside the caller's transaction; ``commit`` and
``rollback`` are explicit so the lifecycle engine decides transaction
boundaries.

Rows are handed out detached from the session. Every read therefore hits
the database, and a rollback never expires objects a caller is holding.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import aliased
from sqlmodel import SQLModel, col

from leavedesk.exceptions import StoreUnavailable
from leavedesk.models.employee import Employee
from leavedesk.models.enums import LeaveType, RequestStatus
from leavedesk.models.request import LeaveRequest

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

BALANCE_FIELDS = frozenset(t.balance_field for t in LeaveType)

_REQUEST_FIELDS = frozenset(LeaveRequest.model_fields) - {"id"}

_RowT = TypeVar("_RowT", bound=SQLModel)


class RequestRow(NamedTuple):
    """A leave request joined with its requester and optional processor."""

    request: LeaveRequest
    employee: Employee
    processor: Employee | None


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate connectivity failures into StoreUnavailable.

    Integrity violations are data errors, not outages, and pass through.
    """
    try:
        yield
    except IntegrityError:
        raise
    except (DBAPIError, PoolTimeoutError, OSError) as exc:
        logger.exception("Store operation %s failed", operation)
        msg = "The leave store is unavailable, please retry"
        raise StoreUnavailable(msg) from exc


def _check_request_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - _REQUEST_FIELDS
    if unknown:
        msg = f"Unknown leave request fields: {sorted(unknown)}"
        raise ValueError(msg)


class LeaveStore:
    """Thin adapter over an ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # -- employees ---------------------------------------------------------

    async def get_employee(self, employee_id: uuid.UUID) -> Employee | None:
        """Read an employee row as currently stored."""
        with _store_errors("get_employee"):
            result = await self.session.execute(select(Employee).where(col(Employee.id) == employee_id))
            return self._detach(result.scalar_one_or_none())

    async def get_employee_by_email(self, email: str) -> Employee | None:
        with _store_errors("get_employee_by_email"):
            result = await self.session.execute(select(Employee).where(col(Employee.email) == email))
            return self._detach(result.scalar_one_or_none())

    async def insert_employee(self, employee: Employee) -> uuid.UUID:
        with _store_errors("insert_employee"):
            self.session.add(employee)
            await self.session.flush()
        self._detach(employee)
        return employee.id

    async def update_employee_balance(
        self,
        employee_id: uuid.UUID,
        field: str,
        new_value: int,
        *,
        expected: int,
    ) -> bool:
        """Compare-and-swap a balance column.

        Writes ``new_value`` only while the column still holds ``expected``.
        Returns False when another writer got there first.
        """
        if field not in BALANCE_FIELDS:
            msg = f"Unknown balance field: {field}"
            raise ValueError(msg)
        if new_value < 0:
            msg = "Balance cannot be negative"
            raise ValueError(msg)
        column = getattr(Employee, field)
        with _store_errors("update_employee_balance"):
            result = await self.session.execute(
                update(Employee)
                .where(col(Employee.id) == employee_id, column == expected)
                .values({field: new_value})
                .execution_options(synchronize_session=False)
            )
        return result.rowcount == 1  # ty: ignore[unresolved-attribute]

    # -- leave requests ----------------------------------------------------

    async def insert_request(self, fields: Mapping[str, Any]) -> uuid.UUID:
        """Insert a leave request and return its id."""
        _check_request_fields(fields)
        request = LeaveRequest(**fields)
        with _store_errors("insert_request"):
            self.session.add(request)
            await self.session.flush()
        self._detach(request)
        return request.id

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequest | None:
        """Read a leave request as currently stored."""
        with _store_errors("get_request"):
            result = await self.session.execute(select(LeaveRequest).where(col(LeaveRequest.id) == request_id))
            return self._detach(result.scalar_one_or_none())

    async def update_request(
        self,
        request_id: uuid.UUID,
        fields: Mapping[str, Any],
        *,
        expected_status: RequestStatus | None = None,
        expected_debited: bool | None = None,
    ) -> bool:
        """Update a leave request, optionally only while it is in an expected state.

        Returns False when no row matched, which under a status guard means a
        concurrent writer already moved the request on.
        """
        _check_request_fields(fields)
        query = update(LeaveRequest).where(col(LeaveRequest.id) == request_id)
        if expected_status is not None:
            query = query.where(col(LeaveRequest.status) == expected_status.value)
        if expected_debited is not None:
            query = query.where(col(LeaveRequest.balance_debited) == expected_debited)
        with _store_errors("update_request"):
            result = await self.session.execute(
                query.values(dict(fields)).execution_options(synchronize_session=False)
            )
        return result.rowcount == 1  # ty: ignore[unresolved-attribute]

    async def query_requests(
        self,
        *,
        status: RequestStatus | None = None,
        employee_id: uuid.UUID | None = None,
        request_id: uuid.UUID | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[RequestRow]:
        """Select requests joined with requester and processor, newest first."""
        requester = aliased(Employee, name="requester")
        processor = aliased(Employee, name="processor")
        query = (
            select(LeaveRequest, requester, processor)
            .join(requester, col(LeaveRequest.employee_id) == requester.id)
            .outerjoin(processor, col(LeaveRequest.processed_by) == processor.id)
            .where(*self._filters(status, employee_id, request_id))
            .order_by(col(LeaveRequest.created_at).desc(), col(LeaveRequest.id).desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        with _store_errors("query_requests"):
            result = await self.session.execute(query)
            rows = [RequestRow(*row) for row in result.all()]
        self.session.expunge_all()
        return rows

    async def count_requests(
        self,
        *,
        status: RequestStatus | None = None,
        employee_id: uuid.UUID | None = None,
    ) -> int:
        with _store_errors("count_requests"):
            result = await self.session.execute(
                select(func.count()).select_from(LeaveRequest).where(*self._filters(status, employee_id, None))
            )
            return result.scalar_one()

    async def count_by_status(self, *, employee_id: uuid.UUID | None = None) -> dict[RequestStatus, int]:
        """Return request counts keyed by status (statuses with no rows are omitted)."""
        with _store_errors("count_by_status"):
            result = await self.session.execute(
                select(col(LeaveRequest.status), func.count())
                .where(*self._filters(None, employee_id, None))
                .group_by(col(LeaveRequest.status))
            )
            return {RequestStatus(status): count for status, count in result.all()}

    async def find_undebited_approvals(self) -> list[LeaveRequest]:
        """Approved requests whose balance debit has not landed yet."""
        with _store_errors("find_undebited_approvals"):
            result = await self.session.execute(
                select(LeaveRequest)
                .where(
                    col(LeaveRequest.status) == RequestStatus.APPROVED.value,
                    col(LeaveRequest.balance_debited).is_(False),
                )
                .order_by(col(LeaveRequest.updated_at))
            )
            requests = list(result.scalars().all())
        self.session.expunge_all()
        return requests

    # -- transactions ------------------------------------------------------

    async def commit(self) -> None:
        with _store_errors("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        with _store_errors("rollback"):
            await self.session.rollback()

    def _detach(self, instance: _RowT | None) -> _RowT | None:
        if instance is not None and instance in self.session:
            self.session.expunge(instance)
        return instance

    @staticmethod
    def _filters(
        status: RequestStatus | None,
        employee_id: uuid.UUID | None,
        request_id: uuid.UUID | None,
    ) -> list[Any]:
        filters: list[Any] = []
        if status is not None:
            filters.append(col(LeaveRequest.status) == status.value)
        if employee_id is not None:
            filters.append(col(LeaveRequest.employee_id) == employee_id)
        if request_id is not None:
            filters.append(col(LeaveRequest.id) == request_id)
        return filters
