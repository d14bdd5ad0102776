"""Hourly and overtime rate resolution."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from payrecon.calculators.types import ZERO, Employee, OvertimeRequest
from payrecon.config import Settings, get_settings
from payrecon.errors import ComputationError


class RateResolver:
    """Derives hourly and overtime rates from an employee's monthly salary.

    The hourly rate is recomputed from the current salary on every call:
    ``monthly_salary / (working_days_per_month * standard_day_hours)``.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def hourly_rate(self, employee: Employee) -> Decimal:
        """Resolve the hourly rate for an employee.

        Raises:
            ComputationError: If the configured month has no working hours
        """
        return self.hourly_rate_for_salary(employee.monthly_salary, employee_id=employee.employee_id)

    def hourly_rate_for_salary(self, monthly_salary: Decimal, employee_id: str | None = None) -> Decimal:
        hours = Decimal(self.settings.working_days_per_month) * self.settings.standard_day_hours
        if hours <= 0:
            raise ComputationError(
                "Cannot derive an hourly rate from zero working hours",
                employee_id=employee_id,
            )
        return self.settings.round_rate(monthly_salary / hours)

    def overtime_multiplier(self, work_date: date) -> Decimal:
        if work_date in self.settings.holidays:
            return self.settings.holiday_multiplier
        return self.settings.overtime_multiplier

    def overtime_hours(self, request: OvertimeRequest) -> Decimal:
        return self.settings.round_hours(max(ZERO, request.raw_hours))

    def overtime_pay(self, request: OvertimeRequest, hourly_rate: Decimal) -> Decimal:
        """Pay for one request: hours x hourly rate x multiplier."""
        hours = self.overtime_hours(request)
        return self.settings.round_money(hours * hourly_rate * self.overtime_multiplier(request.work_date))
