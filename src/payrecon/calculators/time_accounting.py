"""Attendance punch to hours conversion."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from payrecon.calculators.types import ZERO, AttendanceMetrics, AttendanceRecord
from payrecon.config import Settings, get_settings
from payrecon.errors import ValidationError

SECONDS_PER_HOUR = Decimal(3600)


@dataclass
class AttendanceSummary:
    """Totals for a set of attendance records."""

    days_present: int = 0
    incomplete_days: int = 0
    late_days: int = 0
    non_working_days: int = 0
    worked_hours: Decimal = ZERO
    late_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    undertime_hours: Decimal = ZERO


class TimeAccountingEngine:
    """Converts raw in/out punches into worked, late, overtime and undertime hours.

    Rules:
    - worked = max(0, (out - in) - lunch)
    - late = in - standard start, but only when in is strictly after the
      grace cutoff
    - overtime = max(0, worked - standard day)
    - undertime = standard end - out, when out precedes standard end
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def compute(
        self,
        work_date: date,
        time_in: time | None,
        time_out: time | None,
    ) -> AttendanceMetrics:
        """Compute metrics for one punch pair.

        Args:
            work_date: Day the punches belong to
            time_in: Clock-in time, or None if missing
            time_out: Clock-out time, or None if missing

        Returns:
            AttendanceMetrics; all zero with is_complete=False when a punch
            is missing.

        Raises:
            ValidationError: If time_out is before time_in
        """
        if time_in is None or time_out is None:
            return AttendanceMetrics(is_complete=False)

        if time_out < time_in:
            raise ValidationError(
                f"Time out {time_out} is before time in {time_in}",
                code="out_before_in",
                work_date=str(work_date),
            )

        s = self.settings
        elapsed = self._hours_between(work_date, time_in, time_out)
        worked = s.round_hours(max(ZERO, elapsed - s.lunch_hours))

        late = ZERO
        if time_in > s.grace_cutoff:
            late = s.round_hours(self._hours_between(work_date, s.standard_start, time_in))

        overtime = max(ZERO, worked - s.standard_day_hours)

        undertime = ZERO
        if time_out < s.standard_end:
            undertime = s.round_hours(self._hours_between(work_date, time_out, s.standard_end))

        return AttendanceMetrics(
            worked_hours=worked,
            late_hours=late,
            overtime_hours=overtime,
            undertime_hours=undertime,
            is_complete=True,
        )

    def measure(self, record: AttendanceRecord) -> AttendanceMetrics:
        """Compute metrics for a stored attendance record."""
        return self.compute(record.work_date, record.time_in, record.time_out)

    def summarize(self, records: Iterable[AttendanceRecord]) -> AttendanceSummary:
        """Aggregate metrics over a set of records."""
        summary = AttendanceSummary()
        for record in records:
            metrics = self.measure(record)
            if not self.is_working_day(record.work_date):
                summary.non_working_days += 1
            if not metrics.is_complete:
                summary.incomplete_days += 1
                continue
            summary.days_present += 1
            if metrics.is_late:
                summary.late_days += 1
            summary.worked_hours += metrics.worked_hours
            summary.late_hours += metrics.late_hours
            summary.overtime_hours += metrics.overtime_hours
            summary.undertime_hours += metrics.undertime_hours
        return summary

    @staticmethod
    def is_working_day(day: date) -> bool:
        """Mon-Fri are working days."""
        return day.weekday() < 5

    @staticmethod
    def _hours_between(day: date, start: time, end: time) -> Decimal:
        delta = datetime.combine(day, end) - datetime.combine(day, start)
        return Decimal(int(delta.total_seconds())) / SECONDS_PER_HOUR
