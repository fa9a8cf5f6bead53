"""Core HR module — Employee and Department models plus identity lookups."""

from leave_engine.core_hr.models import Department, Employee

__all__ = ["Employee", "Department"]
