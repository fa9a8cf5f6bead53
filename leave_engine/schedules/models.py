"""Schedule ORM model: one calendar slot per employee per day."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.constants import LeaveType
from leave_engine.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleEntry(Base):
    __tablename__ = "schedule_entries"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "shift_date", name="uq_schedule_entry_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    shift_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    is_rest_day: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE"),
    )
    leave_type: Mapped[Optional[LeaveType]] = mapped_column(
        sa.Enum(LeaveType, name="leave_type"),
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    def __repr__(self) -> str:
        return f"<ScheduleEntry {self.employee_id} {self.shift_date} rest={self.is_rest_day}>"
