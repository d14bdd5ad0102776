"""Statutory deduction resolution from data-driven bracket tables."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from payrecon.calculators.types import TABLE_KINDS, ZERO, DeductionKind, DeductionRule
from payrecon.config import Settings, get_settings

if TYPE_CHECKING:
    from payrecon.stores.base import DeductionRuleCatalog

logger = logging.getLogger(__name__)

MONEY_STEP = Decimal("0.01")


class ResolutionStatus(str, Enum):
    """How a deduction amount was arrived at."""

    MATCHED = "matched"
    NO_MATCH = "no_match"  # table exists, income falls outside every bracket
    EMPTY_TABLE = "empty_table"  # no brackets configured for the kind
    NO_INCOME = "no_income"


@dataclass(frozen=True)
class DeductionResolution:
    """Result of resolving one deduction kind for one income."""

    kind: DeductionKind
    income: Decimal
    amount: Decimal
    status: ResolutionStatus
    rule: DeductionRule | None = None

    @property
    def matched(self) -> bool:
        return self.status is ResolutionStatus.MATCHED


@dataclass(frozen=True)
class MandatoryDeductions:
    """The four statutory deductions for one employee and period."""

    sss: DeductionResolution
    pag_ibig: DeductionResolution
    philhealth: DeductionResolution
    withholding_tax: DeductionResolution
    taxable_income: Decimal

    @property
    def contributions(self) -> Decimal:
        return self.sss.amount + self.pag_ibig.amount + self.philhealth.amount

    @property
    def total(self) -> Decimal:
        return self.contributions + self.withholding_tax.amount

    def resolutions(self) -> list[DeductionResolution]:
        return [self.sss, self.pag_ibig, self.philhealth, self.withholding_tax]

    @property
    def unmatched(self) -> list[DeductionResolution]:
        """Resolutions whose table exists but has no bracket for the income."""
        return [r for r in self.resolutions() if r.status is ResolutionStatus.NO_MATCH]


class DeductionBracketResolver:
    """Resolves statutory deductions from bracket tables.

    Tables are data (see ``schemas.BracketTablePayload``), grouped by kind:
    {
        "kind": "SSS" | "PAG_IBIG" | "PHILHEALTH" | "WITHHOLDING_TAX",
        "brackets": [
            {"lower": 0, "upper": 4249.99, "amount": 180},
            {"lower": 33333.01, "upper": 66667, "base": 2500, "rate": 0.25},
            ...
        ]
    }

    Lookup picks the period-scoped table for a kind when one exists,
    otherwise the master table, orders it by ascending lower bound and
    takes the first bracket that contains the income.
    """

    def __init__(self, catalog: DeductionRuleCatalog, settings: Settings | None = None):
        self.catalog = catalog
        self.settings = settings or get_settings()
        self._table_cache: dict[tuple[DeductionKind, str | None], list[DeductionRule]] = {}

    def clear_cache(self) -> None:
        """Forget cached tables (call before each generation or verification run)."""
        self._table_cache.clear()

    def brackets_for(self, kind: DeductionKind, pay_period_id: str | None = None) -> list[DeductionRule]:
        """Effective brackets for a kind, ordered for first-match lookup."""
        cache_key = (kind, pay_period_id)
        if cache_key in self._table_cache:
            return self._table_cache[cache_key]

        rules: list[DeductionRule] = []
        if pay_period_id is not None:
            rules = list(self.catalog.list_rules(kind, pay_period_id))
        if not rules:
            rules = list(self.catalog.list_rules(kind, None))

        ordered = sorted(rules, key=DeductionRule.sort_key)
        self._table_cache[cache_key] = ordered
        return ordered

    def resolve(
        self,
        kind: DeductionKind,
        income: Decimal,
        pay_period_id: str | None = None,
    ) -> DeductionResolution:
        """Resolve one deduction kind for an income.

        Args:
            kind: One of the table-backed deduction kinds
            income: Income the deduction is based on
            pay_period_id: Period whose overrides take precedence

        Returns:
            DeductionResolution; amount is zero unless status is MATCHED.
        """
        if kind not in TABLE_KINDS:
            raise ValueError(f"{kind.value} is not resolved from bracket tables")

        if income <= 0:
            return DeductionResolution(kind, income, ZERO, ResolutionStatus.NO_INCOME)

        brackets = self.brackets_for(kind, pay_period_id)
        if not brackets:
            logger.debug("No %s brackets configured (period=%s)", kind.value, pay_period_id)
            return DeductionResolution(kind, income, ZERO, ResolutionStatus.EMPTY_TABLE)

        if kind is DeductionKind.PHILHEALTH:
            rule = brackets[0]
            amount = self._percentage_with_bounds(income, rule)
            return DeductionResolution(kind, income, amount, ResolutionStatus.MATCHED, rule)

        previous: DeductionRule | None = None
        for rule in brackets:
            if rule.contains(income):
                if kind is DeductionKind.WITHHOLDING_TAX:
                    amount = self._progressive(income, rule, previous)
                else:
                    amount = self._stepped(income, rule)
                logger.debug("%s resolved to %s via rule %s", kind.value, amount, rule.rule_id)
                return DeductionResolution(kind, income, amount, ResolutionStatus.MATCHED, rule)
            previous = rule

        logger.warning(
            "No %s bracket contains income %s (period=%s); table has gaps or does not cover it",
            kind.value, income, pay_period_id,
        )
        return DeductionResolution(kind, income, ZERO, ResolutionStatus.NO_MATCH)

    def resolve_mandatory(
        self,
        contribution_base: Decimal,
        taxable_earnings: Decimal,
        pay_period_id: str | None = None,
    ) -> MandatoryDeductions:
        """Resolve the four statutory deductions in a fixed order.

        Order: SSS, PAG_IBIG (stepped), PHILHEALTH (percentage), then
        withholding tax on taxable earnings less the three contributions.
        """
        sss = self.resolve(DeductionKind.SSS, contribution_base, pay_period_id)
        pag_ibig = self.resolve(DeductionKind.PAG_IBIG, contribution_base, pay_period_id)
        philhealth = self.resolve(DeductionKind.PHILHEALTH, contribution_base, pay_period_id)

        contributions = sss.amount + pag_ibig.amount + philhealth.amount
        taxable = max(ZERO, taxable_earnings - contributions)
        tax = self.resolve(DeductionKind.WITHHOLDING_TAX, taxable, pay_period_id)

        return MandatoryDeductions(
            sss=sss,
            pag_ibig=pag_ibig,
            philhealth=philhealth,
            withholding_tax=tax,
            taxable_income=taxable,
        )

    def late_penalty(self, late_hours: Decimal, hourly_rate: Decimal, rule_eligible: bool) -> Decimal:
        """Late hours x hourly rate, for rule-eligible employees only."""
        if not rule_eligible or late_hours <= 0:
            return ZERO
        return self.settings.round_money(late_hours * hourly_rate)

    @staticmethod
    def validate_table(rules: Iterable[DeductionRule], step: Decimal = MONEY_STEP) -> list[str]:
        """Check a set of rules for inverted bounds, overlaps and gaps.

        Adjacent brackets must meet within ``step`` (one centavo by
        default); anything wider leaves incomes no bracket contains.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        groups: dict[tuple[DeductionKind, str | None], list[DeductionRule]] = {}

        for rule in rules:
            if rule.kind not in TABLE_KINDS:
                errors.append(f"Rule {rule.rule_id} has non-table kind {rule.kind.value}")
                continue
            if (
                rule.lower_bound is not None
                and rule.upper_bound is not None
                and rule.lower_bound > rule.upper_bound
            ):
                errors.append(
                    f"Rule {rule.rule_id} ({rule.kind.value}) has lower bound "
                    f"{rule.lower_bound} above upper bound {rule.upper_bound}"
                )
            if rule.rate is not None and rule.rate < 0:
                errors.append(f"Rule {rule.rule_id} ({rule.kind.value}) has negative rate")
            if rule.amount is not None and rule.amount < 0:
                errors.append(f"Rule {rule.rule_id} ({rule.kind.value}) has negative amount")
            groups.setdefault((rule.kind, rule.pay_period_id), []).append(rule)

        for (kind, _), group in groups.items():
            if kind is DeductionKind.PHILHEALTH:
                # Bounds are a floor/ceiling, not an income range
                continue
            ordered = sorted(group, key=DeductionRule.sort_key)
            for prev, nxt in zip(ordered, ordered[1:]):
                open_ended = prev.upper_bound is None or nxt.lower_bound is None
                if open_ended or nxt.lower_bound <= prev.upper_bound:
                    errors.append(
                        f"{kind.value} brackets {prev.rule_id} and {nxt.rule_id} overlap"
                    )
                elif nxt.lower_bound - prev.upper_bound > step:
                    errors.append(
                        f"{kind.value} brackets {prev.rule_id} and {nxt.rule_id} leave a gap "
                        f"between {prev.upper_bound} and {nxt.lower_bound}"
                    )

        return errors

    def _stepped(self, income: Decimal, rule: DeductionRule) -> Decimal:
        """Flat bracket amount; a rate-only bracket applies the rate to income."""
        if rule.amount is not None:
            return self.settings.round_money(rule.amount)
        if rule.rate is not None:
            return self.settings.round_money(income * rule.rate)
        return ZERO

    def _percentage_with_bounds(self, income: Decimal, rule: DeductionRule) -> Decimal:
        """income x rate clamped to the rule's floor and ceiling."""
        if rule.rate is None:
            return self.settings.round_money(rule.amount or ZERO)
        amount = income * rule.rate
        if rule.lower_bound is not None:
            amount = max(amount, rule.lower_bound)
        if rule.upper_bound is not None:
            amount = min(amount, rule.upper_bound)
        return self.settings.round_money(amount)

    def _progressive(self, income: Decimal, rule: DeductionRule, previous: DeductionRule | None = None) -> Decimal:
        """base + excess x rate, falling back to rate-only or flat.

        The excess is measured over the previous bracket's ceiling, so a
        table written as 20833 / 20833.01 taxes the excess over 20833.
        """
        threshold = rule.lower_bound
        if previous is not None and previous.upper_bound is not None:
            threshold = previous.upper_bound
        if rule.rate is not None and rule.base_amount is not None and threshold is not None:
            amount = rule.base_amount + (income - threshold) * rule.rate
        elif rule.rate is not None:
            amount = income * rule.rate
        elif rule.amount is not None:
            amount = rule.amount
        else:
            amount = ZERO
        return self.settings.round_money(max(ZERO, amount))
