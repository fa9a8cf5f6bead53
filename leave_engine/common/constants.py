"""Enums and constants for the leave engine — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    user = "user"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    vacation = "vacation"
    medical = "medical"
    birthday = "birthday"
    special = "special"
    extra_days = "extra_days"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class LeaveDecision(str, enum.Enum):
    """The two terminal outcomes an approver may choose."""

    approved = "approved"
    rejected = "rejected"

    @property
    def status(self) -> LeaveStatus:
        return LeaveStatus(self.value)


# Statuses that still hold calendar days (block overlaps, show on calendars)
ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
)


# ── Notifications ───────────────────────────────────────────────────

class NotificationKind(str, enum.Enum):
    leave_request_created = "leave_request_created"
    leave_request_submitted = "leave_request_submitted"
    leave_request_approved = "leave_request_approved"
    leave_request_rejected = "leave_request_rejected"
    leave_department_approval = "leave_department_approval"


# ── Misc ────────────────────────────────────────────────────────────

MONTH_FORMAT = "%Y-%m"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
