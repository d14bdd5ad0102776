"""Tests for overtime request validation, approval and pay."""

import threading
from datetime import datetime
from decimal import Decimal

import pytest

from payrecon.calculators.types import OvertimeRequest, OvertimeStatus
from payrecon.errors import NotFoundError, PermissionDeniedError, ValidationError
from payrecon.permissions import Role
from payrecon.services.overtime_service import OvertimeRule, OvertimeValidator
from payrecon.services.state_machine import InvalidTransitionError
from payrecon.stores.memory import InMemoryOvertime

# Monday morning of the first week of the test period
NOW = datetime(2024, 6, 3, 9, 0)


def make_validator(sources, settings, now=NOW, store=None):
    return OvertimeValidator(
        sources.directory,
        sources.leave,
        store or sources.overtime,
        settings,
        clock=lambda: now,
    )


@pytest.fixture
def validator(sources, settings):
    return make_validator(sources, settings)


class StaleSnapshotStore(InMemoryOvertime):
    """Serves a previously captured copy of a request once, like a concurrent reader."""

    def __init__(self):
        super().__init__()
        self.snapshots: dict[str, OvertimeRequest] = {}

    def get_request(self, request_id):
        if request_id in self.snapshots:
            return self.snapshots.pop(request_id)
        return super().get_request(request_id)


class TestSubmit:
    """Submission outcomes by duration."""

    def test_short_request_auto_approved(self, validator):
        submission = validator.submit("N1", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 0), "Month end")

        assert submission.accepted
        assert submission.auto_approved
        assert submission.request.status == OvertimeStatus.APPROVED
        assert submission.request.decided_at == NOW
        assert validator.store.get_request("N1").status == OvertimeStatus.APPROVED

    def test_medium_request_pending(self, validator):
        submission = validator.submit("N2", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 30))

        assert submission.accepted
        assert not submission.auto_approved
        assert submission.request.status == OvertimeStatus.PENDING
        assert not submission.request.requires_higher_approval

    def test_long_request_needs_higher_approval(self, validator):
        submission = validator.submit("N3", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 20, 30))

        assert submission.request.status == OvertimeStatus.PENDING
        assert submission.request.requires_higher_approval

    def test_today_after_shift_allowed(self, validator):
        submission = validator.submit("N4", "E1", datetime(2024, 6, 3, 17, 0), datetime(2024, 6, 3, 18, 0))
        assert submission.accepted

    def test_refused_request_not_stored(self, validator):
        submission = validator.submit("N5", "E1", datetime(2024, 6, 5, 16, 0), datetime(2024, 6, 5, 18, 0))

        assert not submission.accepted
        assert submission.request is None
        assert validator.store.get_request("N5") is None

    def test_unknown_employee(self, validator):
        with pytest.raises(NotFoundError):
            validator.submit("N6", "E404", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 18, 0))

    def test_duplicate_id_rejected(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.submit("OT1", "E1", datetime(2024, 6, 7, 17, 0), datetime(2024, 6, 7, 18, 0))
        assert exc_info.value.code == "duplicate_request"


class TestValidationRules:
    """Each rule produces its own code."""

    @pytest.mark.parametrize(
        "employee_id,start,end,code",
        [
            ("E1", datetime(2024, 6, 5, 22, 0), datetime(2024, 6, 6, 1, 0), OvertimeRule.DIFFERENT_DAY),
            ("E1", datetime(2024, 6, 5, 19, 0), datetime(2024, 6, 5, 18, 0), OvertimeRule.END_NOT_AFTER_START),
            ("E1", datetime(2024, 6, 5, 16, 30), datetime(2024, 6, 5, 18, 0), OvertimeRule.STARTS_DURING_SHIFT),
            ("E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 21, 30), OvertimeRule.EXCEEDS_DAILY_CAP),
            ("E2", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 18, 0), OvertimeRule.NOT_ELIGIBLE),
            ("E1", datetime(2024, 5, 31, 17, 0), datetime(2024, 5, 31, 18, 0), OvertimeRule.PAST_DATE),
            ("E1", datetime(2024, 6, 12, 17, 0), datetime(2024, 6, 12, 18, 0), OvertimeRule.LEAVE_CONFLICT),
            ("E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 17, 20), OvertimeRule.BELOW_MINIMUM),
            ("E1", datetime(2024, 6, 5, 21, 0), datetime(2024, 6, 5, 23, 30), OvertimeRule.ENDS_TOO_LATE),
            ("E1", datetime(2024, 6, 8, 17, 0), datetime(2024, 6, 8, 18, 0), OvertimeRule.NOT_WORKING_DAY),
        ],
    )
    def test_rule(self, validator, employee_id, start, end, code):
        submission = validator.submit("X", employee_id, start, end)

        assert not submission.accepted
        assert code in submission.codes

    def test_exactly_at_cap_allowed(self, validator):
        submission = validator.submit("N7", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 21, 0))
        assert submission.accepted
        assert submission.request.requires_higher_approval

    def test_exactly_minimum_allowed(self, validator):
        submission = validator.submit("N8", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 17, 30))
        assert submission.auto_approved

    def test_multiple_violations_reported(self, validator):
        violations = validator.validate(
            validator.directory.get_employee("E2"),
            datetime(2024, 5, 31, 16, 0),
            datetime(2024, 5, 31, 17, 0),
        )
        codes = {v.code for v in violations}
        assert {OvertimeRule.NOT_ELIGIBLE, OvertimeRule.PAST_DATE, OvertimeRule.STARTS_DURING_SHIFT} <= codes


class TestDecisions:
    @pytest.fixture
    def pending_id(self, validator):
        validator.submit("P1", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 30))
        return "P1"

    @pytest.fixture
    def elevated_id(self, validator):
        validator.submit("P2", "E1", datetime(2024, 6, 6, 17, 0), datetime(2024, 6, 6, 20, 30))
        return "P2"

    def test_supervisor_approves(self, validator, pending_id):
        approved = validator.approve(pending_id, Role.SUPERVISOR, notes="ok")

        assert approved.status == OvertimeStatus.APPROVED
        assert approved.reviewer_notes == "ok"
        assert validator.store.get_request(pending_id).status == OvertimeStatus.APPROVED

    def test_employee_cannot_approve(self, validator, pending_id):
        with pytest.raises(PermissionDeniedError):
            validator.approve(pending_id, Role.EMPLOYEE)

    def test_elevated_request_needs_hr(self, validator, elevated_id):
        with pytest.raises(PermissionDeniedError):
            validator.approve(elevated_id, Role.SUPERVISOR)
        assert validator.store.get_request(elevated_id).status == OvertimeStatus.PENDING

        assert validator.approve(elevated_id, Role.HR).status == OvertimeStatus.APPROVED

    def test_cannot_approve_twice(self, validator, pending_id):
        validator.approve(pending_id, Role.SUPERVISOR)
        with pytest.raises(InvalidTransitionError):
            validator.approve(pending_id, Role.HR)

    def test_reject_requires_reason(self, validator, pending_id):
        with pytest.raises(ValidationError) as exc_info:
            validator.reject(pending_id, Role.SUPERVISOR, "  ")
        assert exc_info.value.code == "reason_required"

        rejected = validator.reject(pending_id, Role.SUPERVISOR, "Not budgeted")
        assert rejected.status == OvertimeStatus.REJECTED
        assert rejected.reviewer_notes == "Not budgeted"

    def test_rejected_is_terminal(self, validator, pending_id):
        validator.reject(pending_id, Role.SUPERVISOR, "No")
        with pytest.raises(InvalidTransitionError):
            validator.cancel(pending_id)

    def test_unknown_request(self, validator):
        with pytest.raises(NotFoundError):
            validator.approve("nope", Role.HR)


class TestCancel:
    def test_cancel_pending(self, validator):
        assert validator.cancel("OT2").status == OvertimeStatus.CANCELLED

    def test_cancel_approved_before_start(self, validator):
        assert validator.cancel("OT1").status == OvertimeStatus.CANCELLED

    def test_cancel_approved_after_start(self, sources, settings):
        validator = make_validator(sources, settings, now=datetime(2024, 6, 5, 18, 0))

        with pytest.raises(InvalidTransitionError) as exc_info:
            validator.cancel("OT1")
        assert "already started" in str(exc_info.value)
        assert sources.overtime.get_request("OT1").status == OvertimeStatus.APPROVED


class TestConcurrentDecisions:
    """Approval and rejection are compare-and-set on the stored status."""

    def test_stale_read_loses(self, sources, settings):
        store = StaleSnapshotStore()
        validator = make_validator(sources, settings, store=store)
        validator.submit("C1", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 30))
        snapshot = store.get_request("C1")

        validator.approve("C1", Role.SUPERVISOR)
        store.snapshots["C1"] = snapshot  # second reviewer still sees PENDING

        with pytest.raises(InvalidTransitionError) as exc_info:
            validator.reject("C1", Role.HR, "Too late")
        assert "concurrently" in str(exc_info.value)
        assert store.get_request("C1").status == OvertimeStatus.APPROVED

    def test_exactly_one_approver_wins(self, sources, settings):
        validator = make_validator(sources, settings)
        validator.submit("C2", "E1", datetime(2024, 6, 5, 17, 0), datetime(2024, 6, 5, 19, 30))

        barrier = threading.Barrier(4)
        results: list[str] = []
        lock = threading.Lock()

        def decide(role: Role) -> None:
            barrier.wait()
            try:
                validator.approve("C2", role)
                outcome = "won"
            except InvalidTransitionError:
                outcome = "lost"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=decide, args=(role,)) for role in (Role.SUPERVISOR, Role.HR) * 2]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("won") == 1
        assert results.count("lost") == 3


class TestOvertimePay:
    def test_calculate_pay(self, validator):
        request = validator.store.get_request("OT1")
        assert validator.calculate_pay(request) == Decimal("500.00")
