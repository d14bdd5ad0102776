"""In-memory collaborator implementations.

Used by the test suite and for embedding the engine without a database.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date

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
from payrecon.errors import ValidationError
from payrecon.stores.base import PayrollSources


class InMemoryDirectory:
    def __init__(self, employees: Iterable[Employee] = ()):
        self._employees = {e.employee_id: e for e in employees}

    def add(self, employee: Employee) -> None:
        self._employees[employee.employee_id] = employee

    def get_employee(self, employee_id: str) -> Employee | None:
        return self._employees.get(employee_id)

    def list_active_employees(self) -> Sequence[Employee]:
        return [e for e in self._employees.values() if e.is_active]


class InMemoryPeriods:
    def __init__(self, periods: Iterable[PayPeriod] = ()):
        self._periods = {p.pay_period_id: p for p in periods}

    def add(self, period: PayPeriod) -> None:
        self._periods[period.pay_period_id] = period

    def get_period(self, pay_period_id: str) -> PayPeriod | None:
        return self._periods.get(pay_period_id)


class InMemoryAttendance:
    def __init__(self, records: Iterable[AttendanceRecord] = ()):
        self._records: dict[tuple[str, date], AttendanceRecord] = {}
        for record in records:
            self.put(record)

    def put(self, record: AttendanceRecord) -> None:
        """Insert or replace the record for that employee and day."""
        self._records[(record.employee_id, record.work_date)] = record

    def list_attendance(self, employee_id: str, start: date, end: date) -> Sequence[AttendanceRecord]:
        return [
            r for (emp, day), r in sorted(self._records.items())
            if emp == employee_id and start <= day <= end
        ]


class InMemoryLeave:
    def __init__(self, requests: Iterable[LeaveRequest] = ()):
        self._requests = {r.request_id: r for r in requests}

    def add(self, request: LeaveRequest) -> None:
        self._requests[request.request_id] = request

    def list_leave_requests(self, employee_id: str, start: date, end: date) -> Sequence[LeaveRequest]:
        return [
            r for r in self._requests.values()
            if r.employee_id == employee_id and r.start_date <= end and r.end_date >= start
        ]

    def has_approved_leave_on(self, employee_id: str, day: date) -> bool:
        return any(
            r.employee_id == employee_id and r.is_approved and r.covers(day)
            for r in self._requests.values()
        )


class InMemoryOvertime:
    """Overtime store whose status updates are lock-guarded compare-and-set."""

    def __init__(self, requests: Iterable[OvertimeRequest] = ()):
        self._requests = {r.request_id: r for r in requests}
        self._lock = threading.Lock()

    def get_request(self, request_id: str) -> OvertimeRequest | None:
        return self._requests.get(request_id)

    def add_request(self, request: OvertimeRequest) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise ValidationError(
                    f"Overtime request {request.request_id} already exists",
                    code="duplicate_request",
                )
            self._requests[request.request_id] = request

    def list_overtime(self, employee_id: str, start: date, end: date) -> Sequence[OvertimeRequest]:
        return [
            r for r in self._requests.values()
            if r.employee_id == employee_id and start <= r.work_date <= end
        ]

    def compare_and_set_status(
        self,
        request_id: str,
        expected: OvertimeStatus,
        updated: OvertimeRequest,
    ) -> bool:
        with self._lock:
            current = self._requests.get(request_id)
            if current is None or current.status != expected:
                return False
            self._requests[request_id] = updated
            return True


class InMemoryBenefits:
    def __init__(self, assignments: Iterable[BenefitAssignment] = ()):
        self._assignments = list(assignments)

    def add(self, assignment: BenefitAssignment) -> None:
        self._assignments.append(assignment)

    def benefits_for_position(self, position_id: str) -> Sequence[BenefitAssignment]:
        return [a for a in self._assignments if a.position_id == position_id]


class InMemoryRules:
    def __init__(self, rules: Iterable[DeductionRule] = ()):
        self._rules = list(rules)

    def add(self, rule: DeductionRule) -> None:
        self._rules.append(rule)

    def list_rules(self, kind: DeductionKind, pay_period_id: str | None = None) -> Sequence[DeductionRule]:
        return [r for r in self._rules if r.kind == kind and r.pay_period_id == pay_period_id]


class InMemoryPayrollRecords:
    """Record store whose period replacement is all-or-nothing."""

    def __init__(self) -> None:
        self._records: dict[str, list[PayrollRecord]] = {}
        self._lock = threading.Lock()

    def replace_period(self, pay_period_id: str, records: Sequence[PayrollRecord]) -> int:
        for record in records:
            if record.pay_period_id != pay_period_id:
                raise ValidationError(
                    f"Record for {record.employee_id} belongs to period {record.pay_period_id}, not {pay_period_id}",
                    code="period_mismatch",
                )
        with self._lock:
            deleted = len(self._records.get(pay_period_id, []))
            self._records[pay_period_id] = [replace(r, lines=list(r.lines)) for r in records]
            return deleted

    def list_records(self, pay_period_id: str) -> Sequence[PayrollRecord]:
        return list(self._records.get(pay_period_id, []))

    def put(self, record: PayrollRecord) -> None:
        """Insert or overwrite one employee's stored record."""
        with self._lock:
            stored = [r for r in self._records.get(record.pay_period_id, []) if r.employee_id != record.employee_id]
            stored.append(record)
            self._records[record.pay_period_id] = stored


def in_memory_sources(
    employees: Iterable[Employee] = (),
    periods: Iterable[PayPeriod] = (),
    attendance: Iterable[AttendanceRecord] = (),
    leave: Iterable[LeaveRequest] = (),
    overtime: Iterable[OvertimeRequest] = (),
    benefits: Iterable[BenefitAssignment] = (),
    rules: Iterable[DeductionRule] = (),
) -> PayrollSources:
    """Build a PayrollSources backed entirely by memory."""
    return PayrollSources(
        directory=InMemoryDirectory(employees),
        periods=InMemoryPeriods(periods),
        attendance=InMemoryAttendance(attendance),
        leave=InMemoryLeave(leave),
        overtime=InMemoryOvertime(overtime),
        benefits=InMemoryBenefits(benefits),
        rules=InMemoryRules(rules),
    )
