"""Tests for domain types and in-memory stores."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from payrecon.calculators.types import (
    DeductionKind,
    DeductionRule,
    Employee,
    EmployeeStatus,
    LeaveRequest,
    LeaveStatus,
    OvertimeRequest,
    PayPeriod,
    PayrollRecord,
    weekdays_between,
)
from payrecon.errors import ValidationError
from payrecon.stores.base import EmployeeDirectory, LeaveStore, OvertimeStore, PayrollRecordStore
from payrecon.stores.memory import InMemoryDirectory, InMemoryLeave, InMemoryOvertime, InMemoryPayrollRecords


class TestPayPeriod:
    def test_working_days(self):
        period = PayPeriod("P", date(2024, 6, 1), date(2024, 6, 15))
        assert period.working_days == 10
        assert period.total_days == 15

    def test_inverted(self):
        with pytest.raises(ValidationError) as exc_info:
            PayPeriod("P", date(2024, 6, 15), date(2024, 6, 1))
        assert exc_info.value.code == "inverted_period"

    def test_overlaps(self):
        a = PayPeriod("A", date(2024, 6, 1), date(2024, 6, 15))
        b = PayPeriod("B", date(2024, 6, 15), date(2024, 6, 30))
        c = PayPeriod("C", date(2024, 6, 16), date(2024, 6, 30))
        assert a.overlaps(b)
        assert not a.overlaps(c)

    def test_weekdays_between_empty(self):
        assert weekdays_between(date(2024, 6, 10), date(2024, 6, 9)) == []


class TestEmployee:
    def test_negative_salary(self):
        with pytest.raises(ValidationError):
            Employee("E1", "A", "B", Decimal("-1"))

    def test_full_name_and_status(self):
        employee = Employee("E1", "Maria", "Santos", Decimal("1"), status=EmployeeStatus.PROBATIONARY)
        assert employee.full_name == "Maria Santos"
        assert employee.is_active


class TestLeaveRequest:
    @pytest.mark.parametrize(
        "leave_type,paid,expected",
        [
            ("Vacation Leave", None, True),
            ("Unpaid Leave", None, False),
            ("LWOP", None, False),
            ("Sick Leave", False, False),
            ("Unpaid Leave", True, True),
        ],
    )
    def test_is_paid(self, leave_type, paid, expected):
        request = LeaveRequest("L", "E1", leave_type, date(2024, 6, 3), date(2024, 6, 3), paid=paid)
        assert request.is_paid is expected

    def test_weekdays_within_clipped(self):
        request = LeaveRequest("L", "E1", "Unpaid", date(2024, 5, 30), date(2024, 6, 4), LeaveStatus.APPROVED)
        period = PayPeriod("P", date(2024, 6, 1), date(2024, 6, 15))
        assert request.weekdays_within(period) == [date(2024, 6, 3), date(2024, 6, 4)]


class TestOvertimeRequest:
    def test_duration(self):
        request = OvertimeRequest("OT", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 18, 45))
        assert request.duration_minutes == 105
        assert request.raw_hours == Decimal("1.75")
        assert request.work_date == date(2024, 6, 5)


class TestDeductionRule:
    def test_contains_inclusive(self):
        rule = DeductionRule("R", DeductionKind.SSS, lower_bound=Decimal("100"), upper_bound=Decimal("200"))
        assert rule.contains(Decimal("100"))
        assert rule.contains(Decimal("200"))
        assert not rule.contains(Decimal("200.01"))
        assert rule.is_master


class TestInMemoryStores:
    def test_protocols(self):
        assert isinstance(InMemoryDirectory(), EmployeeDirectory)
        assert isinstance(InMemoryLeave(), LeaveStore)
        assert isinstance(InMemoryOvertime(), OvertimeStore)
        assert isinstance(InMemoryPayrollRecords(), PayrollRecordStore)

    def test_replace_period_rejects_foreign_record(self):
        store = InMemoryPayrollRecords()
        record = PayrollRecord("E1", "B", *(Decimal("0"),) * 6)

        with pytest.raises(ValidationError):
            store.replace_period("A", [record])
        assert store.list_records("A") == []

    def test_leave_lookup(self):
        leave = InMemoryLeave(
            [LeaveRequest("L", "E1", "Vacation", date(2024, 6, 3), date(2024, 6, 5), LeaveStatus.APPROVED)]
        )
        assert leave.has_approved_leave_on("E1", date(2024, 6, 4))
        assert not leave.has_approved_leave_on("E1", date(2024, 6, 6))
        assert len(leave.list_leave_requests("E1", date(2024, 6, 5), date(2024, 6, 20))) == 1
