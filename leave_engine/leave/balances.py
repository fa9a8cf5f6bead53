"""Balance ledger — per (employee, leave type, year) allowance and usage.

Rows are created lazily with the policy's default allowance. Creation is
race-safe through the ``uq_leave_balance`` constraint, and consumption is a
single SQL increment so concurrent approvals never lose an update.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import LeaveType
from leave_engine.leave.models import LeaveBalance
from leave_engine.leave.policy import DEFAULT_POLICY, LeavePolicy


class BalanceLedger:

    def __init__(self, policy: LeavePolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def is_limited(self, leave_type: LeaveType) -> bool:
        return self.policy.is_limited(leave_type)

    @staticmethod
    async def _find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()

    async def get_or_create(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> LeaveBalance:
        """Return the balance row, inserting the default allowance if absent."""
        balance = await self._find(db, employee_id, leave_type, year)
        if balance is not None:
            return balance

        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            total_days=self.policy.allowance(leave_type),
            used_days=0,
        )
        try:
            async with db.begin_nested():
                db.add(balance)
                await db.flush()
        except IntegrityError:
            # A concurrent transaction inserted the same key first
            balance = await self._find(db, employee_id, leave_type, year)
            if balance is None:
                raise
        return balance

    async def ensure_year(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalance]:
        """One row per leave type for *year*, in ``LeaveType`` order."""
        return [
            await self.get_or_create(db, employee_id, leave_type, year)
            for leave_type in LeaveType
        ]

    async def consume(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
        days: int,
    ) -> Optional[LeaveBalance]:
        """Add *days* to ``used_days``. Unlimited types are left untouched."""
        if not self.is_limited(leave_type):
            return None

        balance = await self.get_or_create(db, employee_id, leave_type, year)
        await db.execute(
            update(LeaveBalance)
            .where(LeaveBalance.id == balance.id)
            .values(
                used_days=LeaveBalance.used_days + days,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(balance)
        return balance

    async def override(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
        *,
        total_days: int,
        used_days: Optional[int] = None,
    ) -> LeaveBalance:
        """Administrative overwrite of a row's totals, creating it if needed."""
        balance = await self.get_or_create(db, employee_id, leave_type, year)
        balance.total_days = total_days
        if used_days is not None:
            balance.used_days = used_days
        await db.flush()
        return balance
