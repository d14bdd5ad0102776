"""Tests for settings, roles and error types."""

from datetime import date, time
from decimal import Decimal

import pytest

from payrecon.config import SalaryBasis, Settings, get_settings
from payrecon.errors import (
    ComputationError,
    ErrorKind,
    NotFoundError,
    Outcome,
    PermissionDeniedError,
    ValidationError,
)
from payrecon.permissions import Capability, Role, has_capability, require_capability


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.standard_start == time(8, 0)
        assert settings.grace_cutoff == time(8, 10)
        assert settings.working_days_per_month == 22
        assert settings.overtime_multiplier == Decimal("1.25")
        assert settings.salary_basis is SalaryBasis.MONTHLY

    def test_rounding_half_up(self):
        settings = Settings()
        assert settings.round_money(Decimal("0.125")) == Decimal("0.13")
        assert settings.round_money(Decimal("-0.125")) == Decimal("-0.13")
        assert settings.round_hours(Decimal("0.183333")) == Decimal("0.18")
        assert settings.round_rate(Decimal("142.04545")) == Decimal("142.05")

    def test_custom_scale(self):
        assert Settings(money_scale=0).round_money(Decimal("10.5")) == Decimal("11")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"grace_cutoff": time(7, 59)},
            {"standard_end": time(8, 0)},
            {"working_days_per_month": 0},
            {"standard_day_hours": Decimal("0")},
            {"overtime_auto_approve_hours": Decimal("5")},
            {"overtime_latest_end": time(16, 0)},
            {"money_scale": 9},
            {"net_tolerance": Decimal("-1")},
            {"max_deduction_ratio": Decimal("1.5")},
            {"leave_max_carry_over_days": Decimal("-1")},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            Settings(**overrides)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PAYRECON_WORKING_DAYS_PER_MONTH", "20")
        monkeypatch.setenv("PAYRECON_SALARY_BASIS", "semi_monthly")
        monkeypatch.setenv("PAYRECON_HOLIDAYS", "2024-06-12, 2024-12-25")
        monkeypatch.setenv("PAYRECON_ELIGIBLE_TITLE_KEYWORDS", "Staff")
        monkeypatch.setenv("PAYRECON_GRACE_CUTOFF", "08:15")

        settings = Settings.from_env()

        assert settings.working_days_per_month == 20
        assert settings.salary_basis is SalaryBasis.SEMI_MONTHLY
        assert settings.holidays == frozenset({date(2024, 6, 12), date(2024, 12, 25)})
        assert settings.eligible_title_keywords == ("staff",)
        assert settings.grace_cutoff == time(8, 15)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestPermissions:
    @pytest.mark.parametrize(
        "role,capability,allowed",
        [
            (Role.EMPLOYEE, Capability.SUBMIT_OVERTIME, True),
            (Role.EMPLOYEE, Capability.APPROVE_OVERTIME, False),
            (Role.SUPERVISOR, Capability.APPROVE_OVERTIME, True),
            (Role.SUPERVISOR, Capability.APPROVE_OVERTIME_ELEVATED, False),
            (Role.HR, Capability.APPROVE_OVERTIME_ELEVATED, True),
            (Role.HR, Capability.GENERATE_PAYROLL, True),
            (Role.HR, Capability.VERIFY_PAYROLL, False),
            (Role.ACCOUNTING, Capability.VERIFY_PAYROLL, True),
            (Role.ACCOUNTING, Capability.GENERATE_PAYROLL, False),
            (Role.ACCOUNTING, Capability.MANAGE_DEDUCTION_RULES, True),
            (Role.IT, Capability.VIEW_PAYROLL_DATA, False),
        ],
    )
    def test_matrix(self, role, capability, allowed):
        assert has_capability(role, capability) is allowed

    def test_string_roles(self):
        assert has_capability("HR", Capability.MANAGE_LEAVE)

    def test_require_capability(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_capability(Role.IT, Capability.GENERATE_PAYROLL)

        assert exc_info.value.kind is ErrorKind.PERMISSION
        assert exc_info.value.context == {"role": "IT", "capability": "GENERATE_PAYROLL"}


class TestErrors:
    def test_not_found_message(self):
        error = NotFoundError("Employee", "E9")
        assert error.message == "Employee 'E9' not found"
        assert error.kind is ErrorKind.NOT_FOUND

    def test_validation_code(self):
        error = ValidationError("bad", code="x", field="a")
        assert error.code == "x"
        assert error.context == {"field": "a"}
        assert error.kind is ErrorKind.VALIDATION

    def test_outcome(self):
        ok = Outcome.success(Decimal("1"))
        assert ok.ok
        assert ok.unwrap() == Decimal("1")

        failed = Outcome.failure(ComputationError("no hours", employee_id="E1"))
        assert not failed.ok
        assert failed.error_kind is ErrorKind.COMPUTATION
        with pytest.raises(ComputationError):
            failed.unwrap()

    def test_zero_is_a_success(self):
        """A computed zero is distinct from a failure."""
        assert Outcome.success(Decimal("0")).ok
