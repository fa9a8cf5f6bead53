"""Leave domain errors, rendered as RFC 7807 problem details."""

from __future__ import annotations

from datetime import date

from leave_engine.common.exceptions import AppException


class LeaveDomainError(AppException):
    """Base for every rule violation raised by the leave engine."""


class InvalidRangeError(LeaveDomainError):
    def __init__(self, start_date: date, end_date: date) -> None:
        super().__init__(
            status_code=422,
            error_type="invalid-range",
            title="Invalid Date Range",
            detail=f"Start date {start_date} is after end date {end_date}.",
        )


class AdvanceNoticeError(LeaveDomainError):
    def __init__(self, earliest: date) -> None:
        super().__init__(
            status_code=422,
            error_type="advance-notice",
            title="Advance Notice Required",
            detail=f"This leave type must start on or after {earliest}.",
        )


class BirthdayLeaveError(LeaveDomainError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=422,
            error_type="birthday-leave-mismatch",
            title="Birthday Leave Not Allowed",
            detail=detail,
        )


class InsufficientBalanceError(LeaveDomainError):
    """Carries the leave label and both day counts for the caller."""

    def __init__(self, leave_type: str, remaining: int, requested: int) -> None:
        self.leave_type = leave_type
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Leave Balance",
            detail=(
                f"Insufficient {leave_type} balance: {remaining} day(s) remaining, "
                f"{requested} requested."
            ),
            errors={
                "leave_type": [leave_type],
                "remaining": [str(remaining)],
                "requested": [str(requested)],
            },
        )


class OverlapConflictError(LeaveDomainError):
    def __init__(self, start_date: date, end_date: date) -> None:
        super().__init__(
            status_code=409,
            error_type="overlap-conflict",
            title="Overlapping Leave Request",
            detail=(
                f"You already have a pending or approved leave request "
                f"overlapping {start_date} to {end_date}."
            ),
        )


class AlreadyProcessedError(LeaveDomainError):
    def __init__(self, status: str) -> None:
        super().__init__(
            status_code=409,
            error_type="already-processed",
            title="Leave Request Already Processed",
            detail=f"This leave request is already {status}.",
        )


class NotCancellableError(LeaveDomainError):
    def __init__(self, status: str) -> None:
        super().__init__(
            status_code=409,
            error_type="not-cancellable",
            title="Leave Request Not Cancellable",
            detail=f"Only pending requests can be cancelled; this one is {status}.",
        )
