"""Collaborator interfaces.

The engine never talks to a database directly. It depends on these
protocols; ``stores.memory`` and ``stores.sql`` provide implementations.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Protocol, runtime_checkable

from payrecon.calculators.types import (
    AttendanceRecord,
    BenefitAssignment,
    DeductionKind,
    DeductionRule,
    Employee,
    LeaveRequest,
    OvertimeRequest,
    OvertimeStatus,
    PayPeriod,
    PayrollRecord,
)


@runtime_checkable
class EmployeeDirectory(Protocol):
    def get_employee(self, employee_id: str) -> Employee | None: ...

    def list_active_employees(self) -> Sequence[Employee]: ...


@runtime_checkable
class PayPeriodCatalog(Protocol):
    def get_period(self, pay_period_id: str) -> PayPeriod | None: ...


@runtime_checkable
class AttendanceStore(Protocol):
    def list_attendance(self, employee_id: str, start: date, end: date) -> Sequence[AttendanceRecord]: ...


@runtime_checkable
class LeaveStore(Protocol):
    def list_leave_requests(self, employee_id: str, start: date, end: date) -> Sequence[LeaveRequest]: ...

    def has_approved_leave_on(self, employee_id: str, day: date) -> bool: ...


@runtime_checkable
class OvertimeStore(Protocol):
    def get_request(self, request_id: str) -> OvertimeRequest | None: ...

    def add_request(self, request: OvertimeRequest) -> None: ...

    def list_overtime(self, employee_id: str, start: date, end: date) -> Sequence[OvertimeRequest]: ...

    def compare_and_set_status(
        self,
        request_id: str,
        expected: OvertimeStatus,
        updated: OvertimeRequest,
    ) -> bool:
        """Persist ``updated`` only if the stored status still equals ``expected``.

        Returns False when another writer changed the status first.
        """
        ...


@runtime_checkable
class BenefitCatalog(Protocol):
    def benefits_for_position(self, position_id: str) -> Sequence[BenefitAssignment]: ...


@runtime_checkable
class DeductionRuleCatalog(Protocol):
    def list_rules(self, kind: DeductionKind, pay_period_id: str | None = None) -> Sequence[DeductionRule]:
        """Rules of a kind scoped to the period (None returns master rules)."""
        ...


@runtime_checkable
class PayrollRecordStore(Protocol):
    def replace_period(self, pay_period_id: str, records: Sequence[PayrollRecord]) -> int:
        """Atomically delete the period's records and insert ``records``.

        Returns the number of records deleted.
        """
        ...

    def list_records(self, pay_period_id: str) -> Sequence[PayrollRecord]: ...


@dataclass
class PayrollSources:
    """Read-side collaborators needed to compute or verify a period."""

    directory: EmployeeDirectory
    periods: PayPeriodCatalog
    attendance: AttendanceStore
    leave: LeaveStore
    overtime: OvertimeStore
    benefits: BenefitCatalog
    rules: DeductionRuleCatalog
