"""Payroll verification - independent recomputation of stored records.

Re-derives basic salary, deductions and net pay from the raw inputs and
compares them with what was stored for a period. Discrepancies are data,
not exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from payrecon.calculators.aggregator import approved_overtime_in, basic_salary_for, unpaid_leave_days
from payrecon.calculators.deduction_resolver import DeductionBracketResolver, DeductionResolution
from payrecon.calculators.eligibility import EligibilityClassifier
from payrecon.calculators.rate_resolver import RateResolver
from payrecon.calculators.time_accounting import TimeAccountingEngine
from payrecon.calculators.types import ZERO, Employee, PayPeriod, PayrollRecord
from payrecon.config import Settings, get_settings
from payrecon.errors import NotFoundError, PayrollError
from payrecon.permissions import Capability, Role, require_capability

if TYPE_CHECKING:
    from payrecon.stores.base import PayrollRecordStore, PayrollSources

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Mismatch:
    """One field that failed verification."""

    field: str
    expected: Decimal | None
    found: Decimal | None
    message: str


@dataclass
class RecordVerification:
    employee_id: str
    pay_period_id: str
    mismatches: list[Mismatch] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return not self.mismatches


@dataclass(frozen=True)
class ExpectedPay:
    """Values recomputed from raw inputs for one employee."""

    basic_salary: Decimal
    overtime_pay: Decimal
    benefits: Decimal
    deductions: Decimal
    unmatched: tuple[DeductionResolution, ...] = ()

    @property
    def gross_pay(self) -> Decimal:
        return self.basic_salary + self.overtime_pay + self.benefits

    @property
    def net_salary(self) -> Decimal:
        return self.gross_pay - self.deductions


@dataclass
class VerificationResult:
    """Result of verifying a period."""

    pay_period_id: str
    total_records: int = 0
    verified_records: int = 0
    discrepancy_records: int = 0
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    total_deductions: Decimal = ZERO
    compliance_score: Decimal = ZERO
    records: list[RecordVerification] = field(default_factory=list)
    discrepancies: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every record verified."""
        return self.discrepancy_records == 0


def compliance_score(verified: int, total: int) -> Decimal:
    """verified / total x 100, clamped to [0, 100]; 0 when there is nothing to score."""
    if total <= 0:
        return ZERO.quantize(Decimal("0.01"))
    score = Decimal(verified) / Decimal(total) * HUNDRED
    return min(HUNDRED, max(ZERO, score)).quantize(Decimal("0.01"))


class PayrollVerifier:
    """Verifies stored payroll records against independently recomputed values.

    Checks per record:
    - basic salary within a relative tolerance
    - deductions within an absolute tolerance, non-negative and no more
      than a configured share of gross pay
    - net salary within an absolute tolerance of the recomputed net
    - stored net equals stored gross income + benefits - deductions
    - every statutory deduction found a bracket for its income
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

    def verify_period(self, pay_period_id: str, actor_role: Role | None = None) -> VerificationResult:
        """Verify every stored record of a period.

        Args:
            pay_period_id: Period to verify
            actor_role: When given, must hold VERIFY_PAYROLL

        Returns:
            VerificationResult with per-record outcomes and aggregate totals

        Raises:
            NotFoundError: If the period does not exist
            PermissionDeniedError: If actor_role may not verify payroll
        """
        if actor_role is not None:
            require_capability(actor_role, Capability.VERIFY_PAYROLL)

        period = self.sources.periods.get_period(pay_period_id)
        if period is None:
            raise NotFoundError("PayPeriod", pay_period_id)
        self.resolver.clear_cache()

        result = VerificationResult(pay_period_id=pay_period_id)
        for record in sorted(self.records.list_records(pay_period_id), key=lambda r: r.employee_id):
            outcome = self.verify_record(record, period)
            result.records.append(outcome)
            result.total_records += 1
            result.total_gross += record.gross_pay
            result.total_net += record.net_salary
            result.total_deductions += record.total_deductions
            if outcome.verified:
                result.verified_records += 1
            else:
                result.discrepancy_records += 1
                for mismatch in outcome.mismatches:
                    result.discrepancies.append(f"Employee {record.employee_id}: {mismatch.message}")

        result.compliance_score = compliance_score(result.verified_records, result.total_records)
        if result.discrepancy_records:
            logger.warning(
                "Period %s: %d of %d records have discrepancies",
                pay_period_id, result.discrepancy_records, result.total_records,
            )
        logger.info("Period %s verified with compliance score %s", pay_period_id, result.compliance_score)
        return result

    def verify_record(self, record: PayrollRecord, period: PayPeriod) -> RecordVerification:
        """Verify one stored record; an unevaluable record is a discrepancy."""
        outcome = RecordVerification(employee_id=record.employee_id, pay_period_id=record.pay_period_id)
        s = self.settings

        employee = self.sources.directory.get_employee(record.employee_id)
        if employee is None:
            outcome.mismatches.append(
                Mismatch("record", None, None, f"employee {record.employee_id} not found in directory")
            )
            return outcome

        try:
            expected = self.expected_pay(employee, period)
        except PayrollError as e:
            logger.warning("Cannot recompute payroll for employee %s: %s", record.employee_id, e.message)
            outcome.mismatches.append(Mismatch("record", None, None, f"cannot recompute: {e.message}"))
            return outcome

        for resolution in expected.unmatched:
            outcome.mismatches.append(
                Mismatch(
                    "bracket_table",
                    None,
                    resolution.income,
                    f"no {resolution.kind.value} bracket contains income {resolution.income}",
                )
            )

        basic_tolerance = expected.basic_salary * s.salary_tolerance_pct / HUNDRED
        if abs(record.basic_salary - expected.basic_salary) > basic_tolerance:
            outcome.mismatches.append(
                Mismatch(
                    "basic_salary",
                    expected.basic_salary,
                    record.basic_salary,
                    f"basic salary {record.basic_salary} differs from expected {expected.basic_salary}",
                )
            )

        if abs(record.total_deductions - expected.deductions) > s.deduction_tolerance:
            outcome.mismatches.append(
                Mismatch(
                    "total_deductions",
                    expected.deductions,
                    record.total_deductions,
                    f"deductions {record.total_deductions} differ from expected {expected.deductions}",
                )
            )
        if record.total_deductions < 0:
            outcome.mismatches.append(
                Mismatch("total_deductions", None, record.total_deductions, "deductions are negative")
            )
        elif record.total_deductions > record.gross_pay * s.max_deduction_ratio:
            outcome.mismatches.append(
                Mismatch(
                    "total_deductions",
                    None,
                    record.total_deductions,
                    f"deductions {record.total_deductions} exceed {s.max_deduction_ratio} of gross pay {record.gross_pay}",
                )
            )

        if abs(record.net_salary - expected.net_salary) > s.net_tolerance:
            outcome.mismatches.append(
                Mismatch(
                    "net_salary",
                    expected.net_salary,
                    record.net_salary,
                    f"net salary {record.net_salary} differs from expected {expected.net_salary}",
                )
            )

        stated_net = record.gross_income + record.total_benefits - record.total_deductions
        if abs(record.net_salary - stated_net) > s.net_tolerance:
            outcome.mismatches.append(
                Mismatch(
                    "net_arithmetic",
                    stated_net,
                    record.net_salary,
                    f"net salary {record.net_salary} does not equal gross + benefits - deductions ({stated_net})",
                )
            )

        return outcome

    def expected_pay(self, employee: Employee, period: PayPeriod) -> ExpectedPay:
        """Recompute an employee's pay for a period from raw inputs."""
        s = self.settings
        rule_eligible = self.classifier.is_rule_eligible(employee)
        hourly_rate = self.rates.hourly_rate(employee)
        basic = basic_salary_for(employee, period, s)

        overtime = ZERO
        if rule_eligible:
            requests = list(self.sources.overtime.list_overtime(employee.employee_id, period.start_date, period.end_date))
            overtime = sum((self.rates.overtime_pay(r, hourly_rate) for r in approved_overtime_in(requests, period)), ZERO)

        benefits = ZERO
        if employee.position_id:
            benefits = sum(
                (s.round_money(b.amount) for b in self.sources.benefits.benefits_for_position(employee.position_id) if b.amount > 0),
                ZERO,
            )

        mandatory = self.resolver.resolve_mandatory(basic, basic + overtime, period.pay_period_id)

        attendance = self.sources.attendance.list_attendance(employee.employee_id, period.start_date, period.end_date)
        late_hours = sum(
            (self.time_engine.measure(r).late_hours for r in attendance if period.contains(r.work_date)),
            ZERO,
        )
        late = self.resolver.late_penalty(late_hours, hourly_rate, rule_eligible)

        leave_days = unpaid_leave_days(
            self.sources.leave.list_leave_requests(employee.employee_id, period.start_date, period.end_date),
            period,
        )
        unpaid = s.round_money(Decimal(len(leave_days)) * s.standard_day_hours * hourly_rate)

        return ExpectedPay(
            basic_salary=basic,
            overtime_pay=overtime,
            benefits=benefits,
            deductions=mandatory.total + late + unpaid,
            unmatched=tuple(mandatory.unmatched),
        )
