"""Overtime request lifecycle: validation, auto-approval, decisions and pay."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from payrecon.calculators.eligibility import EligibilityClassifier
from payrecon.calculators.rate_resolver import RateResolver
from payrecon.calculators.time_accounting import SECONDS_PER_HOUR
from payrecon.calculators.types import Employee, OvertimeRequest, OvertimeStatus
from payrecon.config import Settings, get_settings
from payrecon.errors import NotFoundError, ValidationError
from payrecon.permissions import Capability, Role, require_capability
from payrecon.services.state_machine import InvalidTransitionError, OvertimeStateMachine

if TYPE_CHECKING:
    from payrecon.stores.base import EmployeeDirectory, LeaveStore, OvertimeStore

logger = logging.getLogger(__name__)


class OvertimeRule(str, Enum):
    """Distinct codes for each overtime validation."""

    DIFFERENT_DAY = "different_day"
    END_NOT_AFTER_START = "end_not_after_start"
    STARTS_DURING_SHIFT = "starts_during_shift"
    EXCEEDS_DAILY_CAP = "exceeds_daily_cap"
    NOT_ELIGIBLE = "not_eligible"
    PAST_DATE = "past_date"
    LEAVE_CONFLICT = "leave_conflict"
    BELOW_MINIMUM = "below_minimum"
    ENDS_TOO_LATE = "ends_too_late"
    NOT_WORKING_DAY = "not_working_day"


@dataclass(frozen=True)
class RuleViolation:
    code: OvertimeRule
    message: str


@dataclass
class OvertimeSubmission:
    """Result of submitting an overtime request."""

    request: OvertimeRequest | None
    violations: list[RuleViolation] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.request is not None and not self.violations

    @property
    def auto_approved(self) -> bool:
        return self.accepted and self.request.auto_approved

    @property
    def codes(self) -> set[OvertimeRule]:
        return {v.code for v in self.violations}


class OvertimeValidator:
    """Validates and drives overtime requests through their lifecycle.

    Requests are same-day windows that start at or after the standard end
    of day. Short requests (up to the auto-approve threshold) from
    rule-eligible employees are approved on submission; long ones (above
    the higher-approval threshold) need an approver holding
    APPROVE_OVERTIME_ELEVATED. Approval and rejection are compare-and-set
    operations on the store, so two concurrent approvers cannot both win.
    """

    def __init__(
        self,
        directory: EmployeeDirectory,
        leave: LeaveStore,
        store: OvertimeStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.directory = directory
        self.leave = leave
        self.store = store
        self.settings = settings or get_settings()
        self.classifier = EligibilityClassifier(self.settings)
        self.rates = RateResolver(self.settings)
        self._clock = clock or (lambda: datetime.now(ZoneInfo(self.settings.timezone)))

    def local_now(self) -> datetime:
        """Current wall-clock time in the configured timezone, as a naive datetime."""
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(ZoneInfo(self.settings.timezone)).replace(tzinfo=None)
        return now

    def validate(self, employee: Employee, start: datetime, end: datetime) -> list[RuleViolation]:
        """Check a proposed overtime window against every rule.

        Returns list of violations (empty if valid).
        """
        s = self.settings
        violations: list[RuleViolation] = []

        if start.date() != end.date():
            violations.append(RuleViolation(OvertimeRule.DIFFERENT_DAY, "Overtime must start and end on the same day"))
        if end <= start:
            violations.append(RuleViolation(OvertimeRule.END_NOT_AFTER_START, "Overtime end must be after its start"))
        if start.time() < s.standard_end:
            violations.append(
                RuleViolation(
                    OvertimeRule.STARTS_DURING_SHIFT,
                    f"Overtime cannot start before {s.standard_end.strftime('%H:%M')}",
                )
            )

        if end > start:
            hours = s.round_hours(Decimal(int((end - start).total_seconds())) / SECONDS_PER_HOUR)
            if hours > s.overtime_daily_cap_hours:
                violations.append(
                    RuleViolation(
                        OvertimeRule.EXCEEDS_DAILY_CAP,
                        f"Overtime of {hours}h exceeds the daily cap of {s.overtime_daily_cap_hours}h",
                    )
                )
            if (end - start).total_seconds() < s.overtime_min_minutes * 60:
                violations.append(
                    RuleViolation(
                        OvertimeRule.BELOW_MINIMUM,
                        f"Overtime must be at least {s.overtime_min_minutes} minutes",
                    )
                )

        if start.date() == end.date() and end.time() > s.overtime_latest_end:
            violations.append(
                RuleViolation(
                    OvertimeRule.ENDS_TOO_LATE,
                    f"Overtime cannot end after {s.overtime_latest_end.strftime('%H:%M')}",
                )
            )
        if start.weekday() >= 5:
            violations.append(RuleViolation(OvertimeRule.NOT_WORKING_DAY, "Overtime is only allowed on weekdays"))

        if not self.classifier.is_rule_eligible(employee):
            violations.append(
                RuleViolation(OvertimeRule.NOT_ELIGIBLE, f"Employee {employee.employee_id} is not overtime-eligible")
            )
        if start.date() < self.local_now().date():
            violations.append(RuleViolation(OvertimeRule.PAST_DATE, "Overtime cannot be requested for a past date"))
        if self.leave.has_approved_leave_on(employee.employee_id, start.date()):
            violations.append(
                RuleViolation(OvertimeRule.LEAVE_CONFLICT, f"Approved leave already covers {start.date()}")
            )

        return violations

    def submit(
        self,
        request_id: str,
        employee_id: str,
        start: datetime,
        end: datetime,
        reason: str = "",
    ) -> OvertimeSubmission:
        """Validate and store a new request.

        Raises:
            NotFoundError: If the employee does not exist
        """
        employee = self._get_employee(employee_id)
        violations = self.validate(employee, start, end)
        if violations:
            logger.info(
                "Overtime request %s for %s refused: %s",
                request_id, employee_id, ", ".join(v.code.value for v in violations),
            )
            return OvertimeSubmission(request=None, violations=violations)

        s = self.settings
        now = self.local_now()
        request = OvertimeRequest(
            request_id=request_id,
            employee_id=employee_id,
            start=start,
            end=end,
            reason=reason,
            created_at=now,
        )
        hours = self.rates.overtime_hours(request)
        if hours <= s.overtime_auto_approve_hours:
            request = replace(request, status=OvertimeStatus.APPROVED, auto_approved=True, decided_at=now)
        elif hours > s.overtime_higher_approval_hours:
            request = replace(request, requires_higher_approval=True)

        self.store.add_request(request)
        return OvertimeSubmission(request=request)

    def approve(self, request_id: str, approver_role: Role, notes: str | None = None) -> OvertimeRequest:
        """Approve a pending request.

        Raises:
            PermissionDeniedError: If the role may not approve this request
            InvalidTransitionError: If the request is no longer pending
        """
        require_capability(approver_role, Capability.APPROVE_OVERTIME)
        request = self._get_request(request_id)
        if request.requires_higher_approval:
            require_capability(approver_role, Capability.APPROVE_OVERTIME_ELEVATED)
        return self._decide(request, OvertimeStatus.APPROVED, notes)

    def reject(self, request_id: str, approver_role: Role, reason: str) -> OvertimeRequest:
        """Reject a pending request; a reason is mandatory."""
        require_capability(approver_role, Capability.APPROVE_OVERTIME)
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required", code="reason_required", request_id=request_id)
        return self._decide(self._get_request(request_id), OvertimeStatus.REJECTED, reason.strip())

    def cancel(self, request_id: str) -> OvertimeRequest:
        """Cancel a pending request, or an approved one whose window has not started."""
        request = self._get_request(request_id)
        OvertimeStateMachine.validate_transition(request.status, OvertimeStatus.CANCELLED)
        if request.status == OvertimeStatus.APPROVED and request.start <= self.local_now():
            raise InvalidTransitionError(
                request.status.value,
                OvertimeStatus.CANCELLED.value,
                "overtime window has already started",
            )
        return self._compare_and_set(
            request,
            replace(request, status=OvertimeStatus.CANCELLED, decided_at=self.local_now()),
        )

    def calculate_pay(self, request: OvertimeRequest) -> Decimal:
        """Hours x the requester's current hourly rate x multiplier."""
        employee = self._get_employee(request.employee_id)
        return self.rates.overtime_pay(request, self.rates.hourly_rate(employee))

    def _decide(self, request: OvertimeRequest, to_status: OvertimeStatus, notes: str | None) -> OvertimeRequest:
        OvertimeStateMachine.validate_transition(request.status, to_status)
        if request.status != OvertimeStatus.PENDING:
            raise InvalidTransitionError(request.status.value, to_status.value, "only pending requests can be decided")
        updated = replace(request, status=to_status, reviewer_notes=notes, decided_at=self.local_now())
        return self._compare_and_set(request, updated)

    def _compare_and_set(self, current: OvertimeRequest, updated: OvertimeRequest) -> OvertimeRequest:
        if not self.store.compare_and_set_status(current.request_id, current.status, updated):
            latest = self.store.get_request(current.request_id)
            found = latest.status.value if latest else "missing"
            raise InvalidTransitionError(found, updated.status.value, "request was modified concurrently")
        logger.info("Overtime request %s: %s -> %s", current.request_id, current.status.value, updated.status.value)
        return updated

    def _get_request(self, request_id: str) -> OvertimeRequest:
        request = self.store.get_request(request_id)
        if request is None:
            raise NotFoundError("OvertimeRequest", request_id)
        return request

    def _get_employee(self, employee_id: str) -> Employee:
        employee = self.directory.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee
