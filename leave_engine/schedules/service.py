"""Schedule synchronizer — turns an approved leave into rest-day entries."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveType
from leave_engine.leave.calendar import business_days
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.policy import DEFAULT_POLICY, LeavePolicy
from leave_engine.schedules.models import ScheduleEntry

logger = logging.getLogger(__name__)


class ScheduleSynchronizer:

    def __init__(self, policy: LeavePolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    @staticmethod
    async def _find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        shift_date: date,
    ) -> Optional[ScheduleEntry]:
        result = await db.execute(
            select(ScheduleEntry).where(
                ScheduleEntry.employee_id == employee_id,
                ScheduleEntry.shift_date == shift_date,
            )
        )
        return result.scalars().first()

    async def _upsert_rest_day(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        shift_date: date,
        leave_type: LeaveType,
    ) -> ScheduleEntry:
        notes = f"Leave: {self.policy.label(leave_type)}"

        entry = await self._find(db, employee_id, shift_date)
        if entry is None:
            entry = ScheduleEntry(
                employee_id=employee_id,
                shift_date=shift_date,
                is_rest_day=True,
                leave_type=leave_type,
                notes=notes,
            )
            try:
                async with db.begin_nested():
                    db.add(entry)
                    await db.flush()
                return entry
            except IntegrityError:
                # Someone else created the slot meanwhile; update theirs
                entry = await self._find(db, employee_id, shift_date)
                if entry is None:
                    raise

        entry.is_rest_day = True
        entry.leave_type = leave_type
        entry.notes = notes
        await db.flush()
        return entry

    async def apply_leave(
        self,
        db: AsyncSession,
        request: LeaveRequest,
    ) -> list[ScheduleEntry]:
        """Mark every business day of *request* as a rest day.

        Safe to re-run: existing ``(employee, day)`` slots are updated in
        place, never duplicated.
        """
        entries = [
            await self._upsert_rest_day(
                db, request.employee_id, day, request.leave_type,
            )
            for day in business_days(request.start_date, request.end_date)
        ]
        logger.info(
            "Schedule synced for leave %s: %d rest day(s) for employee %s",
            request.id, len(entries), request.employee_id,
        )
        return entries
