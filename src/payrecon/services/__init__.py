"""Payroll services."""

from payrecon.services.leave_ledger import LeaveBalance, LeaveBalanceLedger
from payrecon.services.overtime_service import OvertimeValidator
from payrecon.services.state_machine import InvalidTransitionError, OvertimeStateMachine
from payrecon.services.verification import PayrollVerifier, VerificationResult

__all__ = [
    "LeaveBalance",
    "LeaveBalanceLedger",
    "OvertimeValidator",
    "InvalidTransitionError",
    "OvertimeStateMachine",
    "PayrollVerifier",
    "VerificationResult",
]
