"""Notification dispatch — the interface the leave engine calls, and the
in-app outbox that implements it.

The engine only knows ``NotificationDispatcher.notify``. Delivery over push
or e-mail would be a different dispatcher reading the same outbox.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import NotificationKind
from leave_engine.notifications.models import Notification


class NotificationDispatcher(Protocol):
    """Anything the leave engine can hand lifecycle events to."""

    async def notify(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        payload: dict[str, Any],
    ) -> None:
        ...


# ── Title / message builders ────────────────────────────────────────
# Payload keys are set by LeaveService._event_payload.


def _period(p: dict[str, Any]) -> str:
    return f"{p['start_date']} to {p['end_date']}"


_BUILDERS: dict[NotificationKind, Callable[[dict[str, Any]], tuple[str, str]]] = {
    NotificationKind.leave_request_created: lambda p: (
        "New Leave Request",
        f"{p['employee_name']} requested {p['leave_label']} "
        f"from {_period(p)} ({p['days']} day(s)).",
    ),
    NotificationKind.leave_request_submitted: lambda p: (
        "Leave Request Submitted",
        f"Your {p['leave_label']} request from {_period(p)} "
        f"was submitted and is awaiting approval.",
    ),
    NotificationKind.leave_request_approved: lambda p: (
        "Leave Request Approved",
        f"Your {p['leave_label']} request from {_period(p)} has been approved."
        + (f" Message: {p['response_message']}" if p.get("response_message") else ""),
    ),
    NotificationKind.leave_request_rejected: lambda p: (
        "Leave Request Rejected",
        f"Your {p['leave_label']} request from {_period(p)} was rejected."
        + (f" Reason: {p['response_message']}" if p.get("response_message") else ""),
    ),
    NotificationKind.leave_department_approval: lambda p: (
        "Department Leave Approved",
        f"{p['employee_name']} will be on {p['leave_label']} from {_period(p)}.",
    ),
}


def render_notification(
    kind: NotificationKind,
    payload: dict[str, Any],
) -> tuple[str, str]:
    """Return ``(title, message)`` for an event."""
    return _BUILDERS[kind](payload)


# ── In-app outbox ───────────────────────────────────────────────────


class InAppNotificationDispatcher:
    """Writes one ``Notification`` row per event into the caller's session."""

    async def notify(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        payload: dict[str, Any],
    ) -> None:
        title, message = render_notification(kind, payload)
        db.add(
            Notification(
                recipient_id=recipient_id,
                kind=kind,
                title=title,
                message=message,
                payload=payload,
            )
        )
        await db.flush()
