"""Type definitions for the payroll computation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from payrecon.errors import ValidationError

ZERO = Decimal("0")


class PayRuleClass(str, Enum):
    """Pay-rule class derived from position and department."""

    RANK_AND_FILE = "rank_and_file"
    NON_RANK_AND_FILE = "non_rank_and_file"


class EmployeeStatus(str, Enum):
    """Employment status."""

    PROBATIONARY = "PROBATIONARY"
    REGULAR = "REGULAR"
    TERMINATED = "TERMINATED"


class DeductionKind(str, Enum):
    """Statutory deduction kinds.

    LATE_PENALTY is computed directly from late hours and never appears
    in a bracket table.
    """

    SSS = "SSS"
    PAG_IBIG = "PAG_IBIG"
    PHILHEALTH = "PHILHEALTH"
    WITHHOLDING_TAX = "WITHHOLDING_TAX"
    LATE_PENALTY = "LATE_PENALTY"


TABLE_KINDS = (
    DeductionKind.SSS,
    DeductionKind.PAG_IBIG,
    DeductionKind.PHILHEALTH,
    DeductionKind.WITHHOLDING_TAX,
)


class OvertimeStatus(str, Enum):
    """Overtime request lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveStatus(str, Enum):
    """Leave request states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LineType(str, Enum):
    """Pay line item types."""

    EARNING = "EARNING"
    BENEFIT = "BENEFIT"
    DEDUCTION = "DEDUCTION"
    TAX = "TAX"


def weekdays_between(start: date, end: date) -> list[date]:
    """Mon-Fri dates in the inclusive range (empty when start > end)."""
    days: list[date] = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


@dataclass
class Employee:
    """An employee as seen by the payroll pipeline.

    Pay-rule class and hourly rate are derived on demand and never stored.
    """

    employee_id: str
    first_name: str
    last_name: str
    monthly_salary: Decimal
    department: str = ""
    position_title: str = ""
    position_id: str | None = None
    status: EmployeeStatus = EmployeeStatus.REGULAR

    def __post_init__(self) -> None:
        if self.monthly_salary < 0:
            raise ValidationError(
                f"Monthly salary cannot be negative: {self.monthly_salary}",
                code="negative_salary",
                employee_id=self.employee_id,
            )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status != EmployeeStatus.TERMINATED


@dataclass(frozen=True)
class PayPeriod:
    """A pay period with an inclusive date range."""

    pay_period_id: str
    start_date: date
    end_date: date
    name: str = ""

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValidationError(
                f"Pay period start {self.start_date} is after end {self.end_date}",
                code="inverted_period",
                pay_period_id=self.pay_period_id,
            )

    def weekdays(self) -> list[date]:
        return weekdays_between(self.start_date, self.end_date)

    @property
    def working_days(self) -> int:
        """Number of Mon-Fri days in the period."""
        return len(self.weekdays())

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: PayPeriod) -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date


@dataclass(frozen=True)
class AttendanceMetrics:
    """Hours derived from a single punch pair."""

    worked_hours: Decimal = ZERO
    late_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    undertime_hours: Decimal = ZERO
    is_complete: bool = False

    @property
    def is_late(self) -> bool:
        return self.late_hours > 0


@dataclass(frozen=True)
class AttendanceRecord:
    """A raw in/out punch pair for one employee and day.

    Metrics are never stored on the record; they are computed from the
    punches by ``TimeAccountingEngine.measure`` every time.
    """

    employee_id: str
    work_date: date
    time_in: time | None = None
    time_out: time | None = None

    def with_punches(self, time_in: time | None, time_out: time | None) -> AttendanceRecord:
        return replace(self, time_in=time_in, time_out=time_out)


@dataclass(frozen=True)
class OvertimeRequest:
    """An overtime request on a single calendar day."""

    request_id: str
    employee_id: str
    start: datetime
    end: datetime
    reason: str = ""
    status: OvertimeStatus = OvertimeStatus.PENDING
    requires_higher_approval: bool = False
    auto_approved: bool = False
    reviewer_notes: str | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None

    @property
    def work_date(self) -> date:
        return self.start.date()

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def raw_hours(self) -> Decimal:
        return Decimal(int((self.end - self.start).total_seconds())) / Decimal(3600)


@dataclass(frozen=True)
class LeaveRequest:
    """A leave request spanning an inclusive date range."""

    request_id: str
    employee_id: str
    leave_type: str
    start_date: date
    end_date: date
    status: LeaveStatus = LeaveStatus.PENDING
    paid: bool | None = None

    @property
    def is_paid(self) -> bool:
        """Explicit flag wins; otherwise unpaid/LWOP type names are unpaid."""
        if self.paid is not None:
            return self.paid
        name = self.leave_type.lower()
        return "unpaid" not in name and "lwop" not in name

    @property
    def is_approved(self) -> bool:
        return self.status == LeaveStatus.APPROVED

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def weekdays_within(self, period: PayPeriod) -> list[date]:
        start = max(self.start_date, period.start_date)
        end = min(self.end_date, period.end_date)
        return weekdays_between(start, end)


@dataclass(frozen=True)
class BenefitAssignment:
    """A recurring benefit attached to a position."""

    position_id: str
    benefit_type: str
    amount: Decimal


@dataclass(frozen=True)
class DeductionRule:
    """One bracket of a deduction table.

    Rules with ``pay_period_id`` set override the master (None) table for
    that period. For PHILHEALTH the bounds are the contribution floor and
    ceiling rather than an income range.
    """

    rule_id: str
    kind: DeductionKind
    lower_bound: Decimal | None = None
    upper_bound: Decimal | None = None
    amount: Decimal | None = None
    rate: Decimal | None = None
    base_amount: Decimal | None = None
    pay_period_id: str | None = None

    @property
    def is_master(self) -> bool:
        return self.pay_period_id is None

    def contains(self, income: Decimal) -> bool:
        if self.lower_bound is not None and income < self.lower_bound:
            return False
        if self.upper_bound is not None and income > self.upper_bound:
            return False
        return True

    def sort_key(self) -> tuple[bool, Decimal]:
        return (self.lower_bound is not None, self.lower_bound or ZERO)


@dataclass
class PayLine:
    """A typed, signed line on a payroll record."""

    line_type: LineType
    code: str
    amount: Decimal  # Signed per LineType conventions
    quantity: Decimal | None = None
    rate: Decimal | None = None
    rule_id: str | None = None
    explanation: str | None = None

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "line_type": self.line_type.value,
            "code": self.code,
            "amount": str(self.amount),
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "rate": str(self.rate) if self.rate is not None else None,
            "rule_id": self.rule_id,
        }


@dataclass
class PayrollRecord:
    """Per-employee, per-period payroll result.

    ``gross_income`` is earnings before benefits; ``gross_pay`` adds
    benefits. Net always equals gross_income + benefits - deductions.
    """

    employee_id: str
    pay_period_id: str
    basic_salary: Decimal
    overtime_pay: Decimal
    gross_income: Decimal
    total_benefits: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    lines: list[PayLine] = field(default_factory=list)
    fingerprint: str = ""

    @property
    def gross_pay(self) -> Decimal:
        return self.gross_income + self.total_benefits

    def deduction_amount(self, code: str) -> Decimal:
        """Positive total of deduction/tax lines with the given code."""
        return sum(
            (-line.amount for line in self.lines
             if line.code == code and line.line_type in (LineType.DEDUCTION, LineType.TAX)),
            ZERO,
        )
