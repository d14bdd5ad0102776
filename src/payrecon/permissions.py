"""Role to capability lookup."""

from __future__ import annotations

from enum import Enum

from payrecon.errors import PermissionDeniedError


class Role(str, Enum):
    """Organisational roles."""

    EMPLOYEE = "EMPLOYEE"
    SUPERVISOR = "SUPERVISOR"
    HR = "HR"
    ACCOUNTING = "ACCOUNTING"
    IT = "IT"


class Capability(str, Enum):
    """Actions gated by role."""

    SUBMIT_OVERTIME = "SUBMIT_OVERTIME"
    APPROVE_OVERTIME = "APPROVE_OVERTIME"
    APPROVE_OVERTIME_ELEVATED = "APPROVE_OVERTIME_ELEVATED"
    GENERATE_PAYROLL = "GENERATE_PAYROLL"
    VERIFY_PAYROLL = "VERIFY_PAYROLL"
    VIEW_PAYROLL_DATA = "VIEW_PAYROLL_DATA"
    MANAGE_DEDUCTION_RULES = "MANAGE_DEDUCTION_RULES"
    MANAGE_LEAVE = "MANAGE_LEAVE"


_EMPLOYEE = frozenset({Capability.SUBMIT_OVERTIME})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.EMPLOYEE: _EMPLOYEE,
    Role.SUPERVISOR: _EMPLOYEE | {Capability.APPROVE_OVERTIME},
    Role.HR: _EMPLOYEE
    | {
        Capability.APPROVE_OVERTIME,
        Capability.APPROVE_OVERTIME_ELEVATED,
        Capability.GENERATE_PAYROLL,
        Capability.VIEW_PAYROLL_DATA,
        Capability.MANAGE_LEAVE,
    },
    Role.ACCOUNTING: _EMPLOYEE
    | {
        Capability.VERIFY_PAYROLL,
        Capability.VIEW_PAYROLL_DATA,
        Capability.MANAGE_DEDUCTION_RULES,
    },
    Role.IT: _EMPLOYEE,
}


def has_capability(role: Role | str, capability: Capability) -> bool:
    """Check whether a role grants a capability."""
    return capability in ROLE_CAPABILITIES.get(Role(role), frozenset())


def require_capability(role: Role | str, capability: Capability) -> None:
    """Raise PermissionDeniedError unless the role grants the capability."""
    if not has_capability(role, capability):
        raise PermissionDeniedError(
            f"Role '{Role(role).value}' lacks capability '{capability.value}'",
            role=Role(role).value,
            capability=capability.value,
        )
