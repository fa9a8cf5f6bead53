"""Leave router — requests, responses, balances and the approved-leave calendar.

All endpoints require authentication. Admin-only endpoints enforce role checks.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.auth.dependencies import get_current_user, require_role
from leave_engine.common.constants import LeaveStatus, UserRole
from leave_engine.common.pagination import PaginationParams
from leave_engine.core_hr.models import Employee
from leave_engine.database import get_db
from leave_engine.dependencies import get_leave_service
from leave_engine.leave.schemas import (
    ApprovedLeaveDays,
    LeaveBalanceOut,
    LeaveBalanceUpdate,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestOut,
    LeaveRespondRequest,
)
from leave_engine.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Apply for leave. Validates range, notice, birthday, balance and overlap."""
    return await service.apply_leave(db, employee.id, body)


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine", response_model=LeaveRequestListResponse)
async def my_requests(
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """The authenticated user's leave requests, newest first."""
    return await service.list_my_requests(db, employee.id, pagination)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=LeaveRequestListResponse)
async def all_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Every leave request, optionally filtered by status."""
    return await service.list_requests(db, pagination, status=status)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    return await service.get_request(db, request_id)


# ── GET /requests/{id}/overlaps ─────────────────────────────────────

@router.get("/requests/{request_id}/overlaps", response_model=list[LeaveRequestOut])
async def department_overlaps(
    request_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Advisory: colleagues in the same department off at the same time."""
    return await service.check_overlaps(db, request_id)


# ── PATCH /requests/{id}/respond ────────────────────────────────────

@router.patch("/requests/{request_id}/respond", response_model=LeaveRequestOut)
async def respond(
    request_id: uuid.UUID,
    body: LeaveRespondRequest,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Approve or reject a pending request. Approval consumes balance and
    marks the schedule."""
    return await service.respond(
        db, request_id, employee.id, body.decision, body.message,
    )


# ── DELETE /requests/{id} ───────────────────────────────────────────

@router.delete("/requests/{request_id}", status_code=204)
async def cancel_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Cancel (delete) one of your own pending requests."""
    await service.cancel_leave(db, request_id, employee.id)
    return Response(status_code=204)


# ── GET /balances/mine ──────────────────────────────────────────────

@router.get("/balances/mine", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    return await service.get_balance(db, employee.id, year)


# ── GET /balances/{employee_id} ─────────────────────────────────────

@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    return await service.get_balance(db, employee_id, year)


# ── PATCH /balances/{employee_id} ───────────────────────────────────

@router.patch("/balances/{employee_id}", response_model=LeaveBalanceOut)
async def set_balance(
    employee_id: uuid.UUID,
    body: LeaveBalanceUpdate,
    employee: Employee = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Override total (and optionally used) days for one leave type."""
    return await service.set_balance(db, employee_id, body, actor_id=employee.id)


# ── GET /calendar/approved ──────────────────────────────────────────

@router.get("/calendar/approved", response_model=list[ApprovedLeaveDays])
async def approved_by_month(
    month_year: str = Query(..., description="Month as YYYY-MM"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
):
    """Approved business days per request for painting a month calendar."""
    return await service.get_approved_by_month(db, month_year)
