"""Error kinds and the explicit result type used across the engine.

Reconciliation discrepancies are data (see ``services.verification``);
everything here is for conditions that stop a computation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of engine failures."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    COMPUTATION = "computation"
    PERMISSION = "permission"


class PayrollError(Exception):
    """Base class for engine errors.

    Carries a kind plus free-form context so callers can report the
    failing entity without parsing the message.
    """

    kind: ErrorKind = ErrorKind.COMPUTATION

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class ValidationError(PayrollError):
    """Raised when an input violates a business or shape rule."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, code: str | None = None, **context: Any):
        self.code = code
        super().__init__(message, **context)


class NotFoundError(PayrollError):
    """Raised when a referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, key: Any, **context: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found", entity=entity, key=key, **context)


class ComputationError(PayrollError):
    """Raised when a value cannot be derived (e.g. zero working days)."""

    kind = ErrorKind.COMPUTATION


class PermissionDeniedError(PayrollError):
    """Raised when a role lacks a required capability."""

    kind = ErrorKind.PERMISSION


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Explicit success/failure result.

    Distinguishes "computed, possibly zero" from "could not compute".
    """

    value: T | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: PayrollError) -> Outcome[T]:
        return cls(error_kind=error.kind, message=error.message, context=dict(error.context))

    def unwrap(self) -> T:
        """Return the value, raising ComputationError on a failed outcome."""
        if not self.ok:
            raise ComputationError(self.message or "outcome has no value", **self.context)
        return self.value  # type: ignore[return-value]
