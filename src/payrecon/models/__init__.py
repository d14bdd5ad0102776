"""SQLAlchemy ORM models."""

from payrecon.models.base import Base, TimestampMixin
from payrecon.models.payroll import (
    DeductionRuleRow,
    OvertimeRequestRow,
    PayrollLineRow,
    PayrollRecordRow,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "DeductionRuleRow",
    "OvertimeRequestRow",
    "PayrollLineRow",
    "PayrollRecordRow",
]
