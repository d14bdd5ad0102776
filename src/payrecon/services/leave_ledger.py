"""Leave balances per employee, leave type and year."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from payrecon.calculators.types import ZERO
from payrecon.config import Settings, get_settings
from payrecon.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)
BalanceKey = tuple[str, str, int]


class ReconcileStrategy(str, Enum):
    """How two replicas of the same balance are combined."""

    LAST_WRITER_WINS = "last_writer_wins"
    CONSERVATIVE_MERGE = "conservative_merge"


@dataclass
class LeaveBalance:
    """Leave balance for one employee, leave type and year.

    ``remaining_days`` is always derived and never negative.
    """

    employee_id: str
    leave_type: str
    year: int
    total_days: Decimal = ZERO
    used_days: Decimal = ZERO
    carry_over_days: Decimal = ZERO
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        if self.total_days < 0 or self.used_days < 0 or self.carry_over_days < 0:
            raise ValidationError(
                "Leave balance figures cannot be negative",
                code="negative_balance",
                employee_id=self.employee_id,
                leave_type=self.leave_type,
            )

    @property
    def key(self) -> BalanceKey:
        return (self.employee_id, self.leave_type, self.year)

    @property
    def remaining_days(self) -> Decimal:
        return max(ZERO, self.total_days + self.carry_over_days - self.used_days)

    def can_take(self, days: Decimal) -> bool:
        return days > 0 and days <= self.remaining_days

    def deduct(self, days: Decimal, at: datetime | None = None) -> None:
        """Consume days from the balance.

        Raises:
            ValidationError: If days is not positive or exceeds the
                remaining balance; the balance is left unchanged.
        """
        if days <= 0:
            raise ValidationError(f"Leave days must be positive, got {days}", code="non_positive_days")
        if days > self.remaining_days:
            raise ValidationError(
                f"Insufficient {self.leave_type} balance: requested {days}, remaining {self.remaining_days}",
                code="insufficient_balance",
                employee_id=self.employee_id,
                requested=str(days),
                remaining=str(self.remaining_days),
            )
        self.used_days += days
        self.last_updated = at or datetime.now()

    def restore(self, days: Decimal, at: datetime | None = None) -> None:
        """Give back days, e.g. after a cancelled request."""
        if days <= 0:
            raise ValidationError(f"Leave days must be positive, got {days}", code="non_positive_days")
        self.used_days = max(ZERO, self.used_days - days)
        self.last_updated = at or datetime.now()

    def reset(self, at: datetime | None = None) -> None:
        self.used_days = ZERO
        self.last_updated = at or datetime.now()

    def resolve_conflict(self, other: LeaveBalance) -> bool:
        """Adopt the other replica's figures if it was updated later.

        Returns True when this balance changed. A replica without a
        timestamp never wins over one with a timestamp.

        Raises:
            ValidationError: If the replica belongs to a different key
        """
        self._check_same_key(other)
        if other.last_updated is None:
            return False
        if self.last_updated is not None and other.last_updated <= self.last_updated:
            return False
        self.adopt(other)
        return True

    def adopt(self, other: LeaveBalance) -> None:
        """Take over another balance's figures in place."""
        self._check_same_key(other)
        self.total_days = other.total_days
        self.used_days = other.used_days
        self.carry_over_days = other.carry_over_days
        self.last_updated = other.last_updated

    def merge_with(self, other: LeaveBalance) -> LeaveBalance:
        """Combine two replicas taking the maximum of each figure."""
        self._check_same_key(other)
        stamps = [t for t in (self.last_updated, other.last_updated) if t is not None]
        return replace(
            self,
            total_days=max(self.total_days, other.total_days),
            used_days=max(self.used_days, other.used_days),
            carry_over_days=max(self.carry_over_days, other.carry_over_days),
            last_updated=max(stamps) if stamps else None,
        )

    def create_next_year_balance(self, max_carry_over: Decimal, total_days: Decimal | None = None) -> LeaveBalance:
        """Open next year's balance carrying over up to ``max_carry_over`` days."""
        return LeaveBalance(
            employee_id=self.employee_id,
            leave_type=self.leave_type,
            year=self.year + 1,
            total_days=self.total_days if total_days is None else total_days,
            used_days=ZERO,
            carry_over_days=min(self.remaining_days, max(ZERO, max_carry_over)),
            last_updated=self.last_updated,
        )

    def utilization_rate(self) -> Decimal:
        """Percentage of available days already used."""
        available = self.total_days + self.carry_over_days
        if available <= 0:
            return ZERO
        return (self.used_days / available * 100).quantize(Decimal("0.01"))

    def _check_same_key(self, other: LeaveBalance) -> None:
        if other.key != self.key:
            raise ValidationError(
                f"Balance {other.key} is not a replica of {self.key}",
                code="key_mismatch",
            )

    def status_label(self) -> str:
        remaining = self.remaining_days
        if remaining <= 0:
            return "Exhausted"
        if remaining <= 2:
            return "Low"
        if remaining <= 5:
            return "Moderate"
        return "Good"


class LeaveBalanceLedger:
    """In-process ledger of leave balances.

    Mutations on the same (employee, leave type, year) key are serialised
    by a per-key lock, and the stored balance object for a key is never
    swapped out, so references returned earlier stay current. Replicas
    converge through ``reconcile``.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._balances: dict[BalanceKey, LeaveBalance] = {}
        self._locks: dict[BalanceKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: BalanceKey) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def _require(self, key: BalanceKey) -> LeaveBalance:
        balance = self._balances.get(key)
        if balance is None:
            raise NotFoundError("LeaveBalance", "/".join(str(part) for part in key))
        return balance

    def open_balance(
        self,
        employee_id: str,
        leave_type: str,
        year: int,
        total_days: Decimal,
        carry_over_days: Decimal = ZERO,
        replace_existing: bool = False,
    ) -> LeaveBalance:
        """Open a balance for a key.

        Raises:
            ValidationError: If the key already has a balance and
                replace_existing is False
        """
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            total_days=total_days,
            carry_over_days=carry_over_days,
            last_updated=datetime.now(),
        )
        with self._lock_for(balance.key):
            current = self._balances.get(balance.key)
            if current is None:
                self._balances[balance.key] = balance
                return balance
            if not replace_existing:
                raise ValidationError(
                    f"Leave balance {employee_id}/{leave_type}/{year} is already open",
                    code="balance_exists",
                    employee_id=employee_id,
                    leave_type=leave_type,
                    year=year,
                )
            logger.info("Leave balance %s replaced (used days %s discarded)", balance.key, current.used_days)
            current.adopt(balance)
            return current

    def get(self, employee_id: str, leave_type: str, year: int) -> LeaveBalance:
        return self._require((employee_id, leave_type, year))

    def balances_for(self, employee_id: str, year: int) -> list[LeaveBalance]:
        return [b for k, b in sorted(self._balances.items()) if k[0] == employee_id and k[2] == year]

    def deduct(self, employee_id: str, leave_type: str, year: int, days: Decimal) -> LeaveBalance:
        key = (employee_id, leave_type, year)
        with self._lock_for(key):
            balance = self._require(key)
            balance.deduct(days)
            return balance

    def restore(self, employee_id: str, leave_type: str, year: int, days: Decimal) -> LeaveBalance:
        key = (employee_id, leave_type, year)
        with self._lock_for(key):
            balance = self._require(key)
            balance.restore(days)
            return balance

    def reconcile(
        self,
        replica: LeaveBalance,
        strategy: ReconcileStrategy = ReconcileStrategy.LAST_WRITER_WINS,
    ) -> LeaveBalance:
        """Fold a replica of a balance into the ledger."""
        with self._lock_for(replica.key):
            current = self._balances.get(replica.key)
            if current is None:
                self._balances[replica.key] = replace(replica)
                return self._balances[replica.key]
            if strategy is ReconcileStrategy.CONSERVATIVE_MERGE:
                current.adopt(current.merge_with(replica))
            elif current.resolve_conflict(replica):
                logger.info("Leave balance %s replaced by newer replica", replica.key)
            return current

    def roll_over(self, year: int, max_carry_over: Decimal | None = None) -> list[LeaveBalance]:
        """Open year+1 balances for every balance of ``year``.

        ``max_carry_over`` defaults to ``Settings.leave_max_carry_over_days``.
        """
        if max_carry_over is None:
            max_carry_over = self.settings.leave_max_carry_over_days
        opened: list[LeaveBalance] = []
        for key, balance in sorted(self._balances.items()):
            if key[2] != year:
                continue
            with self._lock_for(key):
                next_balance = balance.create_next_year_balance(max_carry_over)
            with self._lock_for(next_balance.key):
                self._balances.setdefault(next_balance.key, next_balance)
                opened.append(self._balances[next_balance.key])
        return opened
