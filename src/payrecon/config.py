"""Configuration management for the payroll reconciliation engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from functools import lru_cache

from dotenv import load_dotenv

ENV_PREFIX = "PAYRECON_"


class SalaryBasis(str, Enum):
    """How a monthly salary is carried into a pay period."""

    MONTHLY = "monthly"
    SEMI_MONTHLY = "semi_monthly"
    PRORATED = "prorated"


@dataclass(frozen=True)
class Settings:
    """Engine settings.

    Every component takes a Settings instance explicitly; only
    ``from_env`` reads the process environment.
    """

    database_url: str = "sqlite:///payrecon.db"

    # Attendance
    standard_start: time = time(8, 0)
    standard_end: time = time(17, 0)
    grace_cutoff: time = time(8, 10)
    lunch_hours: Decimal = Decimal("1")
    standard_day_hours: Decimal = Decimal("8")
    working_days_per_month: int = 22
    salary_basis: SalaryBasis = SalaryBasis.MONTHLY
    timezone: str = "Asia/Manila"

    # Overtime
    overtime_daily_cap_hours: Decimal = Decimal("4")
    overtime_min_minutes: int = 30
    overtime_latest_end: time = time(23, 0)
    overtime_auto_approve_hours: Decimal = Decimal("2")
    overtime_higher_approval_hours: Decimal = Decimal("3")
    overtime_multiplier: Decimal = Decimal("1.25")
    holiday_multiplier: Decimal = Decimal("1.30")
    holidays: frozenset[date] = field(default_factory=frozenset)

    # Eligibility
    eligible_department: str = "rank-and-file"
    eligible_title_keywords: tuple[str, ...] = ("rank", "file")

    # Precision
    money_scale: int = 2
    hours_scale: int = 2
    rate_scale: int = 2

    # Verification
    salary_tolerance_pct: Decimal = Decimal("1")
    net_tolerance: Decimal = Decimal("5.00")
    deduction_tolerance: Decimal = Decimal("1.00")
    max_deduction_ratio: Decimal = Decimal("0.9")

    # Leave
    leave_max_carry_over_days: Decimal = Decimal("5")

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.grace_cutoff < self.standard_start:
            raise ValueError("grace_cutoff cannot be earlier than standard_start")
        if self.standard_end <= self.standard_start:
            raise ValueError("standard_end must be after standard_start")
        if self.working_days_per_month < 1:
            raise ValueError("working_days_per_month must be at least 1")
        if self.standard_day_hours <= 0:
            raise ValueError("standard_day_hours must be positive")
        if self.lunch_hours < 0:
            raise ValueError("lunch_hours cannot be negative")
        if self.overtime_daily_cap_hours <= 0:
            raise ValueError("overtime_daily_cap_hours must be positive")
        if self.overtime_auto_approve_hours > self.overtime_daily_cap_hours:
            raise ValueError("overtime_auto_approve_hours cannot exceed the daily cap")
        if self.overtime_latest_end <= self.standard_end:
            raise ValueError("overtime_latest_end must be after standard_end")
        for name in ("money_scale", "hours_scale", "rate_scale"):
            if not 0 <= getattr(self, name) <= 8:
                raise ValueError(f"{name} must be between 0 and 8")
        if self.salary_tolerance_pct < 0 or self.net_tolerance < 0 or self.deduction_tolerance < 0:
            raise ValueError("tolerances cannot be negative")
        if not 0 < self.max_deduction_ratio <= 1:
            raise ValueError("max_deduction_ratio must be in (0, 1]")
        if self.leave_max_carry_over_days < 0:
            raise ValueError("leave_max_carry_over_days cannot be negative")

    def round_money(self, amount: Decimal) -> Decimal:
        """Round a monetary amount to the configured scale."""
        return _quantize(amount, self.money_scale)

    def round_hours(self, hours: Decimal) -> Decimal:
        """Round an hour quantity to the configured scale."""
        return _quantize(hours, self.hours_scale)

    def round_rate(self, rate: Decimal) -> Decimal:
        """Round an intermediate rate to the configured scale."""
        return _quantize(rate, self.rate_scale)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=_env("DATABASE_URL", "sqlite:///payrecon.db"),
            standard_start=_env_time("STANDARD_START", "08:00"),
            standard_end=_env_time("STANDARD_END", "17:00"),
            grace_cutoff=_env_time("GRACE_CUTOFF", "08:10"),
            lunch_hours=Decimal(_env("LUNCH_HOURS", "1")),
            standard_day_hours=Decimal(_env("STANDARD_DAY_HOURS", "8")),
            working_days_per_month=int(_env("WORKING_DAYS_PER_MONTH", "22")),
            salary_basis=SalaryBasis(_env("SALARY_BASIS", SalaryBasis.MONTHLY.value)),
            timezone=_env("TIMEZONE", "Asia/Manila"),
            overtime_daily_cap_hours=Decimal(_env("OVERTIME_DAILY_CAP_HOURS", "4")),
            overtime_min_minutes=int(_env("OVERTIME_MIN_MINUTES", "30")),
            overtime_latest_end=_env_time("OVERTIME_LATEST_END", "23:00"),
            overtime_auto_approve_hours=Decimal(_env("OVERTIME_AUTO_APPROVE_HOURS", "2")),
            overtime_higher_approval_hours=Decimal(_env("OVERTIME_HIGHER_APPROVAL_HOURS", "3")),
            overtime_multiplier=Decimal(_env("OVERTIME_MULTIPLIER", "1.25")),
            holiday_multiplier=Decimal(_env("HOLIDAY_MULTIPLIER", "1.30")),
            holidays=frozenset(
                date.fromisoformat(d.strip())
                for d in _env("HOLIDAYS", "").split(",")
                if d.strip()
            ),
            eligible_department=_env("ELIGIBLE_DEPARTMENT", "rank-and-file"),
            eligible_title_keywords=tuple(
                k.strip().lower()
                for k in _env("ELIGIBLE_TITLE_KEYWORDS", "rank,file").split(",")
                if k.strip()
            ),
            money_scale=int(_env("MONEY_SCALE", "2")),
            hours_scale=int(_env("HOURS_SCALE", "2")),
            rate_scale=int(_env("RATE_SCALE", "2")),
            salary_tolerance_pct=Decimal(_env("SALARY_TOLERANCE_PCT", "1")),
            net_tolerance=Decimal(_env("NET_TOLERANCE", "5.00")),
            deduction_tolerance=Decimal(_env("DEDUCTION_TOLERANCE", "1.00")),
            max_deduction_ratio=Decimal(_env("MAX_DEDUCTION_RATIO", "0.9")),
            leave_max_carry_over_days=Decimal(_env("LEAVE_MAX_CARRY_OVER_DAYS", "5")),
        )


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_time(name: str, default: str) -> time:
    return time.fromisoformat(_env(name, default))


def _quantize(value: Decimal, scale: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
