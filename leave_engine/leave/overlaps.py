"""Overlap detection between leave requests.

Two inclusive ranges intersect when ``a.start <= b.end and a.end >= b.start``.
Only pending and approved requests hold calendar days.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leave_engine.common.constants import ACTIVE_LEAVE_STATUSES
from leave_engine.core_hr.models import Employee
from leave_engine.leave.models import LeaveRequest


def _intersects(start_date: date, end_date: date):
    return (
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
        LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
    )


class OverlapDetector:

    @staticmethod
    async def find_own_conflict(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> Optional[LeaveRequest]:
        """First active request of the employee intersecting the range."""
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                *_intersects(start_date, end_date),
            )
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def find_department_conflicts(
        db: AsyncSession,
        request: LeaveRequest,
    ) -> Sequence[LeaveRequest]:
        """Active requests of department colleagues intersecting *request*.

        Advisory only. Empty when the requester has no department.
        """
        department_id = (
            await db.execute(
                select(Employee.department_id).where(
                    Employee.id == request.employee_id
                )
            )
        ).scalar_one_or_none()
        if department_id is None:
            return []

        result = await db.execute(
            select(LeaveRequest)
            .join(Employee, Employee.id == LeaveRequest.employee_id)
            .where(
                Employee.department_id == department_id,
                LeaveRequest.id != request.id,
                *_intersects(request.start_date, request.end_date),
            )
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.approver),
            )
            .order_by(LeaveRequest.start_date, LeaveRequest.id)
        )
        return result.scalars().all()
