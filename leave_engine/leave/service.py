"""Leave service layer — request lifecycle, balances and calendar read models.

Business logic:
  - Create: range, advance notice, birthday rule, limited balance net of
    pending requests, own overlap
  - Respond: one-shot approve/reject; approval consumes balance and marks the
    schedule
  - Cancel: owner-only delete of a pending request
  - Balance read/override, department overlap advisory, approved-by-month

Every rule is checked before the first write, so a failed call leaves nothing
behind once the request-scoped session rolls back. Notifications are
best-effort: each one runs in its own savepoint and a failure is logged, not
propagated.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leave_engine.common.audit import create_audit_entry
from leave_engine.common.constants import (
    LeaveDecision,
    LeaveStatus,
    LeaveType,
    NotificationKind,
)
from leave_engine.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leave_engine.common.pagination import PaginatedResponse, PaginationParams, fetch_page
from leave_engine.core_hr.models import Employee
from leave_engine.core_hr.service import EmployeeService
from leave_engine.leave.balances import BalanceLedger
from leave_engine.leave.calendar import business_day_count, business_days, month_bounds
from leave_engine.leave.exceptions import (
    AdvanceNoticeError,
    AlreadyProcessedError,
    BirthdayLeaveError,
    InsufficientBalanceError,
    InvalidRangeError,
    NotCancellableError,
    OverlapConflictError,
)
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.overlaps import OverlapDetector
from leave_engine.leave.policy import DEFAULT_POLICY, LeavePolicy
from leave_engine.leave.schemas import (
    ApprovedLeaveDays,
    LeaveBalanceOut,
    LeaveBalanceUpdate,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from leave_engine.notifications.service import (
    InAppNotificationDispatcher,
    NotificationDispatcher,
)
from leave_engine.schedules.service import ScheduleSynchronizer

logger = logging.getLogger(__name__)

_READ_OPTIONS = (
    selectinload(LeaveRequest.employee),
    selectinload(LeaveRequest.approver),
)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Leave request state machine plus the reads built around it."""

    def __init__(
        self,
        policy: LeavePolicy = DEFAULT_POLICY,
        dispatcher: Optional[NotificationDispatcher] = None,
        *,
        ledger: Optional[BalanceLedger] = None,
        detector: Optional[OverlapDetector] = None,
        synchronizer: Optional[ScheduleSynchronizer] = None,
    ) -> None:
        self.policy = policy
        self.dispatcher = dispatcher or InAppNotificationDispatcher()
        self.ledger = ledger or BalanceLedger(policy)
        self.detector = detector or OverlapDetector()
        self.synchronizer = synchronizer or ScheduleSynchronizer(policy)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        leave_req = (await db.execute(query)).scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_req

    @staticmethod
    async def _read_model(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequestOut:
        """Re-read a request with employee/approver briefs attached."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(*_READ_OPTIONS)
            .execution_options(populate_existing=True)
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        return LeaveRequestOut.model_validate(leave_req)

    def _event_payload(
        self,
        leave_req: LeaveRequest,
        employee: Employee,
    ) -> dict[str, Any]:
        return {
            "request_id": str(leave_req.id),
            "employee_id": str(employee.id),
            "employee_name": employee.full_name,
            "leave_type": leave_req.leave_type.value,
            "leave_label": self.policy.label(leave_req.leave_type),
            "start_date": leave_req.start_date.isoformat(),
            "end_date": leave_req.end_date.isoformat(),
            "days": business_day_count(leave_req.start_date, leave_req.end_date),
            "status": leave_req.status.value,
            "response_message": leave_req.response_message,
        }

    async def _dispatch(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        payload: dict[str, Any],
    ) -> None:
        try:
            async with db.begin_nested():
                await self.dispatcher.notify(db, recipient_id, kind, payload)
        except Exception:
            logger.exception(
                "Notification %s to %s failed for leave %s",
                kind.value, recipient_id, payload.get("request_id"),
            )

    def _check_birthday(
        self,
        employee: Employee,
        start_date: date,
        days: int,
    ) -> None:
        if employee.birth_date is None:
            raise BirthdayLeaveError(
                "Birthday leave requires a recorded birth date."
            )
        birthday = (employee.birth_date.month, employee.birth_date.day)
        if (start_date.month, start_date.day) != birthday:
            raise BirthdayLeaveError(
                "Birthday leave can only be taken on your birthday "
                f"({employee.birth_date.strftime('%d %B')})."
            )
        if days > 1:
            raise BirthdayLeaveError("Birthday leave is limited to a single day.")

    @staticmethod
    async def _get_pending_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> int:
        """Business days of pending requests charged to this balance."""
        result = await db.execute(
            select(LeaveRequest.start_date, LeaveRequest.end_date).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.leave_type == leave_type,
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        )
        return sum(business_day_count(start, end) for start, end in result.all())

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    async def apply_leave(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Validate and persist a pending request, then notify admins and
        the requester."""

        # ── Range ───────────────────────────────────────────────────
        if data.start_date > data.end_date:
            raise InvalidRangeError(data.start_date, data.end_date)

        days = business_day_count(data.start_date, data.end_date)

        # ── Advance notice ──────────────────────────────────────────
        if self.policy.requires_notice(data.leave_type):
            earliest = date.today() + timedelta(days=self.policy.min_notice_days)
            if data.start_date < earliest:
                raise AdvanceNoticeError(earliest)

        # Row lock serializes overlap check + insert per employee
        employee = await EmployeeService.get_employee(db, employee_id, for_update=True)

        # ── Birthday rule ───────────────────────────────────────────
        if data.leave_type == LeaveType.birthday:
            self._check_birthday(employee, data.start_date, days)

        # ── Balance ─────────────────────────────────────────────────
        balance = await self.ledger.get_or_create(
            db, employee_id, data.leave_type, data.start_date.year,
        )
        if self.ledger.is_limited(data.leave_type):
            # Pending requests hold their days until they are answered
            pending = await self._get_pending_days(
                db, employee_id, data.leave_type, data.start_date.year,
            )
            available = max(balance.remaining_days - pending, 0)
            if available < days:
                raise InsufficientBalanceError(
                    self.policy.label(data.leave_type), available, days,
                )

        # ── Own overlap ─────────────────────────────────────────────
        conflict = await self.detector.find_own_conflict(
            db, employee_id, data.start_date, data.end_date,
        )
        if conflict is not None:
            raise OverlapConflictError(conflict.start_date, conflict.end_date)

        # ── Persist ─────────────────────────────────────────────────
        leave_req = LeaveRequest(
            employee_id=employee_id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason,
            status=LeaveStatus.pending,
            approver_id=None,
            response_message=None,
            responded_at=None,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=employee_id,
            new_values={
                "leave_type": data.leave_type.value,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "days": days,
                "status": LeaveStatus.pending.value,
            },
        )
        logger.info(
            "Leave request %s created: employee=%s type=%s %s..%s (%d day(s))",
            leave_req.id, employee_id, data.leave_type.value,
            data.start_date, data.end_date, days,
        )

        # ── Notify ──────────────────────────────────────────────────
        payload = self._event_payload(leave_req, employee)
        for admin in await EmployeeService.list_active_admins(db):
            await self._dispatch(
                db, admin.id, NotificationKind.leave_request_created, payload,
            )
        await self._dispatch(
            db, employee_id, NotificationKind.leave_request_submitted, payload,
        )

        return await self._read_model(db, leave_req.id)

    # ─────────────────────────────────────────────────────────────────
    # Respond
    # ─────────────────────────────────────────────────────────────────

    async def respond(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        decision: LeaveDecision,
        message: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve or reject a pending request, exactly once."""

        leave_req = await self._load_request(db, request_id, for_update=True)
        await EmployeeService.get_employee(db, approver_id)

        if leave_req.status != LeaveStatus.pending:
            raise AlreadyProcessedError(leave_req.status.value)

        days = business_day_count(leave_req.start_date, leave_req.end_date)
        if decision == LeaveDecision.approved and self.ledger.is_limited(leave_req.leave_type):
            # Totals may have been lowered by an override since the request was made
            balance = await self.ledger.get_or_create(
                db, leave_req.employee_id, leave_req.leave_type, leave_req.start_date.year,
            )
            if balance.remaining_days < days:
                raise InsufficientBalanceError(
                    self.policy.label(leave_req.leave_type),
                    max(balance.remaining_days, 0),
                    days,
                )

        now = datetime.now(timezone.utc)
        leave_req.status = decision.status
        leave_req.approver_id = approver_id
        leave_req.response_message = message
        leave_req.responded_at = now
        leave_req.updated_at = now
        await db.flush()

        if decision == LeaveDecision.approved:
            await self.ledger.consume(
                db,
                leave_req.employee_id,
                leave_req.leave_type,
                leave_req.start_date.year,
                days,
            )
            await self.synchronizer.apply_leave(db, leave_req)

        await create_audit_entry(
            db,
            action="approve" if decision == LeaveDecision.approved else "reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": decision.value, "message": message},
        )
        logger.info(
            "Leave request %s %s by %s", leave_req.id, decision.value, approver_id,
        )

        # ── Notify ──────────────────────────────────────────────────
        requester = await db.get(Employee, leave_req.employee_id)
        payload = self._event_payload(leave_req, requester)
        kind = (
            NotificationKind.leave_request_approved
            if decision == LeaveDecision.approved
            else NotificationKind.leave_request_rejected
        )
        await self._dispatch(db, requester.id, kind, payload)

        if decision == LeaveDecision.approved:
            manager_id = await EmployeeService.get_department_manager_id(
                db, requester.department_id,
            )
            if manager_id is not None and manager_id != requester.id:
                await self._dispatch(
                    db, manager_id, NotificationKind.leave_department_approval, payload,
                )

        return await self._read_model(db, leave_req.id)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    async def cancel_leave(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
        requester_id: uuid.UUID,
    ) -> None:
        """Delete the caller's own pending request. No balance or schedule
        effects, since none were applied yet."""

        leave_req = await self._load_request(db, request_id, for_update=True)

        if leave_req.employee_id != requester_id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        if leave_req.status != LeaveStatus.pending:
            raise NotCancellableError(leave_req.status.value)

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=requester_id,
            old_values={
                "leave_type": leave_req.leave_type.value,
                "start_date": leave_req.start_date.isoformat(),
                "end_date": leave_req.end_date.isoformat(),
                "status": leave_req.status.value,
            },
        )
        await db.delete(leave_req)
        await db.flush()
        logger.info("Leave request %s cancelled by %s", request_id, requester_id)

    # ─────────────────────────────────────────────────────────────────
    # Request reads
    # ─────────────────────────────────────────────────────────────────

    async def get_request(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        return await self._read_model(db, request_id)

    async def list_my_requests(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """The employee's own requests, newest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)
        )
        rows, meta = await fetch_page(
            db, query,
            page=pagination.page,
            page_size=pagination.page_size,
            options=_READ_OPTIONS,
        )
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in rows],
            meta=meta,
        )

    async def list_requests(
        self,
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """All requests (admin view), optionally filtered by status."""
        query = select(LeaveRequest).order_by(
            LeaveRequest.created_at.desc(), LeaveRequest.id,
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        rows, meta = await fetch_page(
            db, query,
            page=pagination.page,
            page_size=pagination.page_size,
            options=_READ_OPTIONS,
        )
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in rows],
            meta=meta,
        )

    async def check_overlaps(
        self,
        db: AsyncSession,
        request_id: uuid.UUID,
    ) -> list[LeaveRequestOut]:
        """Department colleagues' active requests intersecting this one."""
        leave_req = await self._load_request(db, request_id)
        conflicts = await self.detector.find_department_conflicts(db, leave_req)
        return [LeaveRequestOut.model_validate(c) for c in conflicts]

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    async def get_balance(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        """One row per leave type, creating the missing ones."""
        await EmployeeService.get_employee(db, employee_id)
        year = year or date.today().year
        balances = await self.ledger.ensure_year(db, employee_id, year)
        return [LeaveBalanceOut.model_validate(b) for b in balances]

    async def set_balance(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveBalanceUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalanceOut:
        """Administrative override of a single balance row."""
        await EmployeeService.get_employee(db, employee_id)
        year = data.year or date.today().year

        balance = await self.ledger.get_or_create(db, employee_id, data.leave_type, year)
        old_values = {"total_days": balance.total_days, "used_days": balance.used_days}

        balance = await self.ledger.override(
            db, employee_id, data.leave_type, year,
            total_days=data.total_days,
            used_days=data.used_days,
        )
        await create_audit_entry(
            db,
            action="override",
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={"total_days": balance.total_days, "used_days": balance.used_days},
        )
        logger.info(
            "Balance %s/%s/%d set to total=%d used=%d by %s",
            employee_id, data.leave_type.value, year,
            balance.total_days, balance.used_days, actor_id,
        )
        return LeaveBalanceOut.model_validate(balance)

    # ─────────────────────────────────────────────────────────────────
    # Calendar
    # ─────────────────────────────────────────────────────────────────

    async def get_approved_by_month(
        self,
        db: AsyncSession,
        month_year: str,
    ) -> list[ApprovedLeaveDays]:
        """Approved business days per request, clipped to one month."""
        try:
            month_start, month_end = month_bounds(month_year)
        except ValueError:
            raise ValidationException(
                {"month_year": [f"Expected a YYYY-MM month, got '{month_year}'."]}
            )

        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= month_end,
                LeaveRequest.end_date >= month_start,
            )
            .options(selectinload(LeaveRequest.employee))
            .order_by(
                LeaveRequest.start_date,
                LeaveRequest.employee_id,
                LeaveRequest.id,
            )
        )

        entries: list[ApprovedLeaveDays] = []
        for leave_req in result.scalars().all():
            dates = list(
                business_days(
                    max(leave_req.start_date, month_start),
                    min(leave_req.end_date, month_end),
                )
            )
            if not dates:
                continue
            entries.append(
                ApprovedLeaveDays(
                    employee_id=leave_req.employee_id,
                    employee_name=leave_req.employee.full_name,
                    leave_type=leave_req.leave_type,
                    dates=dates,
                )
            )
        return entries
