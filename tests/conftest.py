"""Pytest fixtures for payroll reconciliation tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from payrecon.calculators.types import (
    AttendanceRecord,
    BenefitAssignment,
    DeductionKind,
    DeductionRule,
    Employee,
    LeaveRequest,
    LeaveStatus,
    OvertimeRequest,
    OvertimeStatus,
    PayPeriod,
)
from payrecon.config import Settings
from payrecon.database import make_session_factory
from payrecon.models import Base
from payrecon.stores.memory import InMemoryPayrollRecords, in_memory_sources

# Monday 2024-06-03 .. Friday 2024-06-14: ten working days
PERIOD_ID = "2024-06-A"
PERIOD_START = date(2024, 6, 3)
PERIOD_END = date(2024, 6, 14)

# Use in-memory SQLite shared across sessions for store tests
TEST_DATABASE_URL = "sqlite://"


def make_rules(pay_period_id: str | None = None) -> list[DeductionRule]:
    """Small master tables: flat SSS/Pag-IBIG, 2.75% PhilHealth, progressive tax."""
    suffix = pay_period_id or "master"

    def rule(n: int, kind: DeductionKind, **kwargs) -> DeductionRule:
        return DeductionRule(rule_id=f"{kind.value}-{suffix}-{n}", kind=kind, pay_period_id=pay_period_id, **kwargs)

    return [
        rule(1, DeductionKind.SSS, lower_bound=Decimal("0"), upper_bound=Decimal("19999.99"), amount=Decimal("800")),
        rule(2, DeductionKind.SSS, lower_bound=Decimal("20000"), upper_bound=None, amount=Decimal("900")),
        rule(1, DeductionKind.PAG_IBIG, lower_bound=Decimal("0"), upper_bound=None, amount=Decimal("100")),
        rule(1, DeductionKind.PHILHEALTH, lower_bound=Decimal("275"), upper_bound=Decimal("2200"), rate=Decimal("0.0275")),
        rule(1, DeductionKind.WITHHOLDING_TAX, lower_bound=Decimal("0"), upper_bound=Decimal("20833"),
             base_amount=Decimal("0"), rate=Decimal("0")),
        rule(2, DeductionKind.WITHHOLDING_TAX, lower_bound=Decimal("20833.01"), upper_bound=Decimal("33333"),
             base_amount=Decimal("0"), rate=Decimal("0.20")),
        rule(3, DeductionKind.WITHHOLDING_TAX, lower_bound=Decimal("33333.01"), upper_bound=Decimal("66667"),
             base_amount=Decimal("2500"), rate=Decimal("0.25")),
        rule(4, DeductionKind.WITHHOLDING_TAX, lower_bound=Decimal("66667.01"), upper_bound=None,
             base_amount=Decimal("10833"), rate=Decimal("0.30")),
    ]


def make_rules_with_gap() -> list[DeductionRule]:
    """Master tables whose third tax bracket starts at 40000, leaving 33333-40000 uncovered."""
    return [
        replace(r, lower_bound=Decimal("40000")) if r.rule_id == "WITHHOLDING_TAX-master-3" else r
        for r in make_rules()
    ]


def make_employees() -> list[Employee]:
    return [
        # Hourly rate 35200 / 176 = 200.00
        Employee(
            employee_id="E1",
            first_name="Maria",
            last_name="Santos",
            monthly_salary=Decimal("35200"),
            department="Rank-and-File",
            position_title="Production Associate",
            position_id="P1",
        ),
        # Hourly rate 44000 / 176 = 250.00
        Employee(
            employee_id="E2",
            first_name="Jose",
            last_name="Reyes",
            monthly_salary=Decimal("44000"),
            department="Finance",
            position_title="Accountant",
        ),
    ]


def make_sources(rules: list[DeductionRule] | None = None):
    return in_memory_sources(
        employees=make_employees(),
        periods=[PayPeriod(PERIOD_ID, PERIOD_START, PERIOD_END, name="June 1st half")],
        attendance=[
            AttendanceRecord("E1", date(2024, 6, 3), time(8, 15), time(17, 30)),
            AttendanceRecord("E1", date(2024, 6, 4), time(8, 0), time(17, 0)),
            AttendanceRecord("E2", date(2024, 6, 3), time(8, 30), time(17, 0)),
        ],
        leave=[
            LeaveRequest("L1", "E2", "Unpaid Leave", date(2024, 6, 10), date(2024, 6, 11), LeaveStatus.APPROVED),
            LeaveRequest("L2", "E1", "Vacation Leave", date(2024, 6, 12), date(2024, 6, 12), LeaveStatus.APPROVED),
        ],
        overtime=[
            OvertimeRequest(
                "OT1", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 0),
                status=OvertimeStatus.APPROVED,
            ),
            OvertimeRequest(
                "OT2", "E1", datetime(2024, 6, 6, 17, 0), datetime(2024, 6, 6, 20, 0),
                status=OvertimeStatus.PENDING,
            ),
            OvertimeRequest(
                "OT3", "E2", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 0),
                status=OvertimeStatus.APPROVED,
            ),
        ],
        benefits=[BenefitAssignment("P1", "RICE", Decimal("1500"))],
        rules=make_rules() if rules is None else rules,
    )


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the process environment."""
    return Settings()


@pytest.fixture
def sources():
    return make_sources()


@pytest.fixture
def record_store() -> InMemoryPayrollRecords:
    return InMemoryPayrollRecords()


@pytest.fixture
def engine():
    """Create test database engine with all tables."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)
