"""Common module — shared utilities for the leave engine."""

from leave_engine.common.audit import AuditTrail, create_audit_entry
from leave_engine.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MONTH_FORMAT,
    LeaveDecision,
    LeaveStatus,
    LeaveType,
    NotificationKind,
    UserRole,
)
from leave_engine.common.exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from leave_engine.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    fetch_page,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "ACTIVE_LEAVE_STATUSES",
    "LeaveDecision",
    "LeaveStatus",
    "LeaveType",
    "NotificationKind",
    "UserRole",
    "MONTH_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "fetch_page",
]
