"""Payroll aggregation - main orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from payrecon.calculators.deduction_resolver import DeductionBracketResolver, MandatoryDeductions
from payrecon.calculators.eligibility import EligibilityClassifier
from payrecon.calculators.line_builder import PayLineBuilder
from payrecon.calculators.rate_resolver import RateResolver
from payrecon.calculators.time_accounting import TimeAccountingEngine
from payrecon.calculators.types import (
    ZERO,
    DeductionKind,
    Employee,
    LeaveRequest,
    OvertimeRequest,
    OvertimeStatus,
    PayLine,
    PayPeriod,
    PayrollRecord,
)
from payrecon.config import SalaryBasis, Settings, get_settings
from payrecon.errors import ErrorKind, NotFoundError, Outcome, PayrollError
from payrecon.permissions import Capability, Role, require_capability

if TYPE_CHECKING:
    from payrecon.stores.base import PayrollRecordStore, PayrollSources

logger = logging.getLogger(__name__)

OVERTIME_CODE = "OVERTIME"
LATE_PENALTY_CODE = DeductionKind.LATE_PENALTY.value
UNPAID_LEAVE_CODE = "UNPAID_LEAVE"


@dataclass
class EmployeeFailure:
    """An employee skipped during generation."""

    employee_id: str
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class UnmatchedDeduction:
    """A deduction that resolved to zero because no bracket held the income."""

    employee_id: str
    kind: DeductionKind
    income: Decimal


@dataclass
class GenerationSummary:
    """Result of generating payroll for a whole period."""

    pay_period_id: str
    records: list[PayrollRecord] = field(default_factory=list)
    failures: list[EmployeeFailure] = field(default_factory=list)
    unmatched: list[UnmatchedDeduction] = field(default_factory=list)
    deleted: int = 0
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO

    @property
    def generated(self) -> int:
        return len(self.records)

    @property
    def success(self) -> bool:
        """The run fails overall only when no record was produced."""
        return self.generated > 0

    @property
    def partial_success(self) -> bool:
        return self.success and len(self.failures) > 0


def basic_salary_for(employee: Employee, period: PayPeriod, settings: Settings) -> Decimal:
    """Carry the monthly salary into the period per the configured basis."""
    salary = employee.monthly_salary
    if settings.salary_basis is SalaryBasis.SEMI_MONTHLY:
        salary = salary / 2
    elif settings.salary_basis is SalaryBasis.PRORATED:
        salary = salary * period.working_days / settings.working_days_per_month
    return settings.round_money(salary)


def approved_overtime_in(requests: list[OvertimeRequest], period: PayPeriod) -> list[OvertimeRequest]:
    """Approved requests inside the period, in a stable order."""
    approved = [
        r for r in requests
        if r.status == OvertimeStatus.APPROVED and period.contains(r.work_date)
    ]
    return sorted(approved, key=lambda r: (r.start, r.request_id))


class PayrollAggregator:
    """Builds PayrollRecords for a period.

    Calculation pipeline (stable order per employee):
    1) Basic salary per salary basis
    2) Approved overtime pay (rule-eligible employees only)
    3) Position benefits
    4) Statutory deductions (SSS, Pag-IBIG, PhilHealth, withholding tax)
    5) Late penalty (rule-eligible employees only)
    6) Unpaid leave
    7) Totals and fingerprint

    ``generate_period`` isolates failures per employee and replaces the
    period's stored records in one step.
    """

    def __init__(
        self,
        sources: PayrollSources,
        records: PayrollRecordStore,
        settings: Settings | None = None,
    ):
        self.sources = sources
        self.records = records
        self.settings = settings or get_settings()
        self.time_engine = TimeAccountingEngine(self.settings)
        self.classifier = EligibilityClassifier(self.settings)
        self.rates = RateResolver(self.settings)
        self.resolver = DeductionBracketResolver(sources.rules, self.settings)
        self.line_builder = PayLineBuilder(self.settings)

    def generate_period(self, pay_period_id: str, actor_role: Role | None = None) -> GenerationSummary:
        """Generate payroll for every active employee in a period.

        Args:
            pay_period_id: Period to generate
            actor_role: When given, must hold GENERATE_PAYROLL

        Returns:
            GenerationSummary with records, per-employee failures and totals

        Raises:
            NotFoundError: If the period does not exist
            PermissionDeniedError: If actor_role may not generate payroll
        """
        if actor_role is not None:
            require_capability(actor_role, Capability.GENERATE_PAYROLL)

        period = self._load_period(pay_period_id)
        self.resolver.clear_cache()
        summary = GenerationSummary(pay_period_id=pay_period_id)

        employees = sorted(self.sources.directory.list_active_employees(), key=lambda e: e.employee_id)
        for employee in employees:
            if not employee.is_active:
                continue
            try:
                record, mandatory = self._compute(employee, period)
            except PayrollError as e:
                logger.warning(
                    "Payroll for employee %s in period %s failed (%s): %s",
                    employee.employee_id, pay_period_id, e.kind.value, e.message,
                )
                summary.failures.append(
                    EmployeeFailure(employee_id=employee.employee_id, kind=e.kind, message=e.message)
                )
                continue

            summary.records.append(record)
            summary.unmatched.extend(
                UnmatchedDeduction(employee.employee_id, r.kind, r.income) for r in mandatory.unmatched
            )
            summary.total_gross += record.gross_pay
            summary.total_net += record.net_salary

        if not summary.records:
            logger.warning("No payroll records generated for period %s; stored records left untouched", pay_period_id)
            return summary

        summary.deleted = self.records.replace_period(pay_period_id, summary.records)
        if summary.unmatched:
            logger.warning(
                "Period %s: %d deductions matched no bracket; check the bracket tables",
                pay_period_id, len(summary.unmatched),
            )
        logger.info(
            "Generated %d payroll records for period %s (%d failed, %d replaced)",
            summary.generated, pay_period_id, len(summary.failures), summary.deleted,
        )
        return summary

    def calculate_employee(self, employee_id: str, pay_period_id: str) -> Outcome[PayrollRecord]:
        """Compute one employee's record without persisting it."""
        try:
            employee = self.sources.directory.get_employee(employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)
            period = self._load_period(pay_period_id)
            return Outcome.success(self.compute_record(employee, period))
        except PayrollError as e:
            logger.warning("Payroll for employee %s in period %s failed: %s", employee_id, pay_period_id, e.message)
            return Outcome.failure(e)

    def compute_record(self, employee: Employee, period: PayPeriod) -> PayrollRecord:
        """Build the payroll record for one employee and period.

        Raises:
            ValidationError: If attendance punches are malformed
            ComputationError: If the hourly rate cannot be derived
        """
        record, _ = self._compute(employee, period)
        return record

    def _compute(self, employee: Employee, period: PayPeriod) -> tuple[PayrollRecord, MandatoryDeductions]:
        rule_eligible = self.classifier.is_rule_eligible(employee)
        hourly_rate = self.rates.hourly_rate(employee)
        lines: list[PayLine] = []

        basic = basic_salary_for(employee, period, self.settings)
        lines.append(self.line_builder.earning_line("BASIC", basic, explanation="Basic salary"))

        if rule_eligible:
            lines.extend(self._overtime_lines(employee, period, hourly_rate))

        lines.extend(self._benefit_lines(employee))

        overtime_pay = sum(
            (line.amount for line in lines if line.code == OVERTIME_CODE), ZERO
        )
        mandatory = self.resolver.resolve_mandatory(
            contribution_base=basic,
            taxable_earnings=basic + overtime_pay,
            pay_period_id=period.pay_period_id,
        )
        for resolution in mandatory.resolutions():
            if resolution.amount <= 0:
                continue
            rule_id = resolution.rule.rule_id if resolution.rule else None
            if resolution.kind is DeductionKind.WITHHOLDING_TAX:
                lines.append(self.line_builder.tax_line(resolution.kind.value, resolution.amount, rule_id))
            else:
                lines.append(
                    self.line_builder.deduction_line(
                        resolution.kind.value,
                        resolution.amount,
                        rule_id=rule_id,
                        explanation=f"{resolution.kind.value} contribution",
                    )
                )

        lines.extend(self._late_lines(employee, period, hourly_rate, rule_eligible))
        lines.extend(self._unpaid_leave_lines(employee, period, hourly_rate))

        gross_income = self.line_builder.calculate_gross_income(lines)
        benefits = self.line_builder.calculate_benefits(lines)
        deductions = self.line_builder.calculate_deductions(lines)

        record = PayrollRecord(
            employee_id=employee.employee_id,
            pay_period_id=period.pay_period_id,
            basic_salary=basic,
            overtime_pay=overtime_pay,
            gross_income=gross_income,
            total_benefits=benefits,
            total_deductions=deductions,
            net_salary=gross_income + benefits - deductions,
            lines=lines,
            fingerprint=self.line_builder.compute_fingerprint(
                employee.employee_id, period.pay_period_id, lines
            ),
        )
        return record, mandatory

    # === Line Builders ===

    def _overtime_lines(self, employee: Employee, period: PayPeriod, hourly_rate: Decimal) -> list[PayLine]:
        requests = list(self.sources.overtime.list_overtime(employee.employee_id, period.start_date, period.end_date))
        lines: list[PayLine] = []
        for request in approved_overtime_in(requests, period):
            pay = self.rates.overtime_pay(request, hourly_rate)
            if pay <= 0:
                continue
            lines.append(
                self.line_builder.earning_line(
                    OVERTIME_CODE,
                    pay,
                    quantity=self.rates.overtime_hours(request),
                    rate=hourly_rate,
                    explanation=f"Overtime {request.work_date} ({request.request_id})",
                )
            )
        return lines

    def _benefit_lines(self, employee: Employee) -> list[PayLine]:
        if not employee.position_id:
            return []
        benefits = self.sources.benefits.benefits_for_position(employee.position_id)
        return [
            self.line_builder.benefit_line(b.benefit_type, b.amount)
            for b in sorted(benefits, key=lambda b: b.benefit_type)
            if b.amount > 0
        ]

    def _late_lines(
        self,
        employee: Employee,
        period: PayPeriod,
        hourly_rate: Decimal,
        rule_eligible: bool,
    ) -> list[PayLine]:
        attendance = self.sources.attendance.list_attendance(employee.employee_id, period.start_date, period.end_date)
        summary = self.time_engine.summarize(r for r in attendance if period.contains(r.work_date))
        penalty = self.resolver.late_penalty(summary.late_hours, hourly_rate, rule_eligible)
        if penalty <= 0:
            return []
        return [
            self.line_builder.deduction_line(
                LATE_PENALTY_CODE,
                penalty,
                quantity=summary.late_hours,
                rate=hourly_rate,
                explanation=f"Late {summary.late_hours}h over {summary.late_days} day(s)",
            )
        ]

    def _unpaid_leave_lines(self, employee: Employee, period: PayPeriod, hourly_rate: Decimal) -> list[PayLine]:
        days = unpaid_leave_days(
            self.sources.leave.list_leave_requests(employee.employee_id, period.start_date, period.end_date),
            period,
        )
        if not days:
            return []
        hours = Decimal(len(days)) * self.settings.standard_day_hours
        return [
            self.line_builder.deduction_line(
                UNPAID_LEAVE_CODE,
                hours * hourly_rate,
                quantity=hours,
                rate=hourly_rate,
                explanation=f"Unpaid leave {len(days)} day(s)",
            )
        ]

    def _load_period(self, pay_period_id: str) -> PayPeriod:
        period = self.sources.periods.get_period(pay_period_id)
        if period is None:
            raise NotFoundError("PayPeriod", pay_period_id)
        return period


def unpaid_leave_days(requests: Iterable[LeaveRequest], period: PayPeriod) -> set[date]:
    """Weekdays in the period covered by approved unpaid leave, deduplicated."""
    days: set[date] = set()
    for request in requests:
        if request.is_approved and not request.is_paid:
            days.update(request.weekdays_within(period))
    return days

