"""Overtime request state machine with transition validation."""

from __future__ import annotations

from payrecon.calculators.types import OvertimeStatus
from payrecon.errors import ValidationError


class InvalidTransitionError(ValidationError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, code="invalid_transition", from_status=from_status, to_status=to_status)


class OvertimeStateMachine:
    """State machine for overtime request status transitions.

    Allowed transitions:
    - pending → approved
    - pending → rejected
    - pending → cancelled
    - approved → cancelled (only before the overtime window starts)
    """

    # Define valid transitions: {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: dict[OvertimeStatus, list[OvertimeStatus]] = {
        OvertimeStatus.PENDING: [
            OvertimeStatus.APPROVED,
            OvertimeStatus.REJECTED,
            OvertimeStatus.CANCELLED,
        ],
        OvertimeStatus.APPROVED: [OvertimeStatus.CANCELLED],
        OvertimeStatus.REJECTED: [],  # Terminal state
        OvertimeStatus.CANCELLED: [],  # Terminal state
    }

    TERMINAL = {OvertimeStatus.REJECTED, OvertimeStatus.CANCELLED}

    @classmethod
    def can_transition(cls, from_status: OvertimeStatus, to_status: OvertimeStatus) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(OvertimeStatus(from_status), [])
        return OvertimeStatus(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: OvertimeStatus, to_status: OvertimeStatus) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(OvertimeStatus(from_status).value, OvertimeStatus(to_status).value)

    @classmethod
    def is_terminal(cls, status: OvertimeStatus) -> bool:
        return OvertimeStatus(status) in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: OvertimeStatus) -> list[OvertimeStatus]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(OvertimeStatus(current_status), [])
