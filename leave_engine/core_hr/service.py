"""Identity / department lookups consumed by the leave engine.

Uses:
  - ``NotFoundException`` from leave_engine.common.exceptions
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import UserRole
from leave_engine.common.exceptions import NotFoundException
from leave_engine.core_hr.models import Department, Employee


class EmployeeService:
    """Read-only access to employees and their departments."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Employee:
        """Return an active employee or raise NotFound.

        With ``for_update`` the row stays locked until the transaction ends,
        which serializes concurrent writers acting for the same employee.
        """
        query = select(Employee).where(
            Employee.id == employee_id,
            Employee.is_active.is_(True),
        )
        if for_update:
            query = query.with_for_update()
        employee = (await db.execute(query)).scalars().first()
        if employee is None:
            raise NotFoundException("Employee", employee_id)
        return employee

    @staticmethod
    async def list_active_admins(db: AsyncSession) -> Sequence[Employee]:
        result = await db.execute(
            select(Employee)
            .where(
                Employee.role == UserRole.admin,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.employee_code)
        )
        return result.scalars().all()

    @staticmethod
    async def get_department_manager_id(
        db: AsyncSession,
        department_id: Optional[uuid.UUID],
    ) -> Optional[uuid.UUID]:
        """Manager of a department, or None when unset / no department."""
        if department_id is None:
            return None
        result = await db.execute(
            select(Department.manager_id).where(Department.id == department_id)
        )
        return result.scalar_one_or_none()
