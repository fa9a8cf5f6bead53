"""Leave policy — per-type allowances, limits and notice rules.

A ``LeavePolicy`` is immutable and handed to the engine when it is built;
domain code never reads these values from module globals.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leave_engine.common.constants import LeaveType


class LeavePolicy(BaseModel):
    """Closed-set configuration for the five leave types."""

    model_config = ConfigDict(frozen=True)

    default_allowances: dict[LeaveType, int] = Field(
        default_factory=lambda: {
            LeaveType.vacation: 21,
            LeaveType.medical: 180,
            LeaveType.birthday: 1,
            LeaveType.special: 5,
            LeaveType.extra_days: 0,
        },
    )
    # Only these types are checked against the remaining balance
    limited_types: frozenset[LeaveType] = frozenset(
        {LeaveType.birthday, LeaveType.medical},
    )
    # Types that may start today or in the past
    notice_exempt_types: frozenset[LeaveType] = frozenset({LeaveType.medical})
    min_notice_days: int = Field(default=1, ge=0)
    labels: dict[LeaveType, str] = Field(
        default_factory=lambda: {
            LeaveType.vacation: "Vacation leave",
            LeaveType.medical: "Medical leave",
            LeaveType.birthday: "Birthday leave",
            LeaveType.special: "Special leave",
            LeaveType.extra_days: "Extra days",
        },
    )

    @model_validator(mode="after")
    def _covers_every_type(self) -> LeavePolicy:
        for table in ("default_allowances", "labels"):
            missing = set(LeaveType) - set(getattr(self, table))
            if missing:
                names = ", ".join(sorted(t.value for t in missing))
                raise ValueError(f"{table} is missing leave types: {names}")
        if any(days < 0 for days in self.default_allowances.values()):
            raise ValueError("default_allowances must not be negative")
        return self

    def allowance(self, leave_type: LeaveType) -> int:
        return self.default_allowances[leave_type]

    def label(self, leave_type: LeaveType) -> str:
        return self.labels[leave_type]

    def is_limited(self, leave_type: LeaveType) -> bool:
        return leave_type in self.limited_types

    def requires_notice(self, leave_type: LeaveType) -> bool:
        return leave_type not in self.notice_exempt_types


DEFAULT_POLICY = LeavePolicy()
