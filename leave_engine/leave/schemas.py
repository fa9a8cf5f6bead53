"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request / *Update  → request bodies (write)
  - *Out                          → response bodies (read)
  - *Brief                        → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leave_engine.common.constants import LeaveDecision, LeaveStatus, LeaveType
from leave_engine.common.pagination import PaginatedResponse


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    full_name: str
    email: str
    department_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type; ``remaining_days`` is derived."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    year: int
    total_days: int
    used_days: int
    remaining_days: int


class LeaveBalanceUpdate(BaseModel):
    """Administrative override of one balance row."""

    leave_type: LeaveType
    total_days: int = Field(..., ge=0, le=366)
    used_days: Optional[int] = Field(None, ge=0, le=366)
    year: Optional[int] = Field(None, ge=2000, le=2100)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request.

    Range ordering is checked by the service so it surfaces as an
    ``invalid-range`` problem rather than a field error.
    """

    leave_type: LeaveType
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request read model."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Optional[str] = None
    status: LeaveStatus
    approver_id: Optional[uuid.UUID] = None
    response_message: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    employee: Optional[EmployeeBrief] = None
    approver: Optional[EmployeeBrief] = None


LeaveRequestListResponse = PaginatedResponse[LeaveRequestOut]


# ═════════════════════════════════════════════════════════════════════
# Leave Respond
# ═════════════════════════════════════════════════════════════════════


class LeaveRespondRequest(BaseModel):
    """Payload for approving or rejecting a pending request."""

    decision: LeaveDecision
    message: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Calendar
# ═════════════════════════════════════════════════════════════════════


class ApprovedLeaveDays(BaseModel):
    """Business days of one approved request that fall in a month."""

    employee_id: uuid.UUID
    employee_name: str
    leave_type: LeaveType
    dates: list[date]
