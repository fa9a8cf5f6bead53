"""Overlap detector tests — own-range conflicts and department advisory."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveStatus, LeaveType
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.overlaps import OverlapDetector
from tests.conftest import _seed_department, _seed_employee


async def _seed_request(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start: date,
    end: date,
    *,
    status: LeaveStatus = LeaveStatus.pending,
    leave_type: LeaveType = LeaveType.vacation,
) -> LeaveRequest:
    req = LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        status=status,
    )
    db.add(req)
    await db.flush()
    return req


class TestFindOwnConflict:

    async def test_intersecting_pending_request(self, db: AsyncSession):
        emp = await _seed_employee(db)
        existing = await _seed_request(db, emp.id, date(2025, 3, 3), date(2025, 3, 7))

        hit = await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 6), date(2025, 3, 10),
        )

        assert hit is not None
        assert hit.id == existing.id

    async def test_shared_boundary_day_conflicts(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_request(db, emp.id, date(2025, 3, 3), date(2025, 3, 7))

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 7), date(2025, 3, 7),
        ) is not None
        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 2, 28), date(2025, 3, 3),
        ) is not None

    async def test_adjacent_ranges_do_not_conflict(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_request(db, emp.id, date(2025, 3, 3), date(2025, 3, 7))

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 8), date(2025, 3, 12),
        ) is None
        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 2, 24), date(2025, 3, 2),
        ) is None

    async def test_containing_range_conflicts(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_request(db, emp.id, date(2025, 3, 5), date(2025, 3, 5))

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 1), date(2025, 3, 31),
        ) is not None

    async def test_approved_request_conflicts(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_request(
            db, emp.id, date(2025, 3, 3), date(2025, 3, 3), status=LeaveStatus.approved,
        )

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 3), date(2025, 3, 3),
        ) is not None

    async def test_rejected_request_ignored(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_request(
            db, emp.id, date(2025, 3, 3), date(2025, 3, 7), status=LeaveStatus.rejected,
        )

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 3), date(2025, 3, 7),
        ) is None

    async def test_other_employee_ignored(self, db: AsyncSession):
        emp = await _seed_employee(db)
        other = await _seed_employee(db)
        await _seed_request(db, other.id, date(2025, 3, 3), date(2025, 3, 7))

        assert await OverlapDetector.find_own_conflict(
            db, emp.id, date(2025, 3, 3), date(2025, 3, 7),
        ) is None


class TestFindDepartmentConflicts:

    async def test_returns_intersecting_colleague_requests(self, db: AsyncSession):
        dept = await _seed_department(db)
        other_dept = await _seed_department(db, name="Sales")
        emp = await _seed_employee(db, department_id=dept.id)
        colleague = await _seed_employee(db, department_id=dept.id)
        outsider = await _seed_employee(db, department_id=other_dept.id)

        target = await _seed_request(db, emp.id, date(2025, 3, 3), date(2025, 3, 7))
        pending = await _seed_request(db, colleague.id, date(2025, 3, 6), date(2025, 3, 6))
        approved = await _seed_request(
            db, colleague.id, date(2025, 3, 7), date(2025, 3, 11),
            status=LeaveStatus.approved,
        )
        # Rejected, disjoint, and other-department requests are never returned
        await _seed_request(
            db, colleague.id, date(2025, 3, 4), date(2025, 3, 4),
            status=LeaveStatus.rejected,
        )
        await _seed_request(db, colleague.id, date(2025, 3, 17), date(2025, 3, 18))
        await _seed_request(db, outsider.id, date(2025, 3, 3), date(2025, 3, 7))

        conflicts = await OverlapDetector.find_department_conflicts(db, target)

        assert [c.id for c in conflicts] == [pending.id, approved.id]
        assert target.id not in {c.id for c in conflicts}

    async def test_no_department_means_no_conflicts(self, db: AsyncSession):
        emp = await _seed_employee(db)
        other = await _seed_employee(db)
        target = await _seed_request(db, emp.id, date(2025, 3, 3), date(2025, 3, 7))
        await _seed_request(db, other.id, date(2025, 3, 3), date(2025, 3, 7))

        assert await OverlapDetector.find_department_conflicts(db, target) == []
