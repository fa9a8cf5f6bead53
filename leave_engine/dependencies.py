"""Shared FastAPI dependencies."""

from leave_engine.leave.policy import DEFAULT_POLICY
from leave_engine.leave.service import LeaveService
from leave_engine.notifications.service import InAppNotificationDispatcher

_leave_service = LeaveService(DEFAULT_POLICY, InAppNotificationDispatcher())


def get_leave_service() -> LeaveService:
    """Inject the process-wide ``LeaveService``.

    Tests override this via ``app.dependency_overrides`` to plug in a
    different policy or dispatcher.
    """
    return _leave_service
