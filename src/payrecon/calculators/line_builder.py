"""Pay line builder with deterministic fingerprints."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from decimal import Decimal

from payrecon.calculators.types import ZERO, LineType, PayLine
from payrecon.config import Settings, get_settings


class PayLineBuilder:
    """Builds pay lines for a payroll record.

    Sign conventions:
    - EARNING: positive
    - BENEFIT: positive
    - DEDUCTION (employee): negative
    - TAX (employee): negative

    Amounts are rounded to the configured money scale when a line is
    created; totals are sums of already rounded lines.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def round_money(self, amount: Decimal) -> Decimal:
        return self.settings.round_money(amount)

    @staticmethod
    def compute_line_hash(line: PayLine) -> str:
        """Deterministic hash of a line's defining fields."""
        json_str = json.dumps(line.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def compute_fingerprint(employee_id: str, pay_period_id: str, lines: Iterable[PayLine]) -> str:
        """Fingerprint of a record; identical inputs give identical fingerprints."""
        data = {
            "employee_id": employee_id,
            "pay_period_id": pay_period_id,
            "lines": [PayLineBuilder.compute_line_hash(line) for line in lines],
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def earning_line(
        self,
        code: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        explanation: str | None = None,
    ) -> PayLine:
        """Create an earning line (positive amount)."""
        return PayLine(
            line_type=LineType.EARNING,
            code=code,
            amount=self.round_money(abs(amount)),
            quantity=quantity,
            rate=rate,
            explanation=explanation,
        )

    def benefit_line(self, code: str, amount: Decimal) -> PayLine:
        """Create a benefit line (positive amount)."""
        return PayLine(
            line_type=LineType.BENEFIT,
            code=code,
            amount=self.round_money(abs(amount)),
            explanation=f"Benefit: {code}",
        )

    def deduction_line(
        self,
        code: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        rule_id: str | None = None,
        explanation: str | None = None,
    ) -> PayLine:
        """Create a deduction line (negative amount)."""
        return PayLine(
            line_type=LineType.DEDUCTION,
            code=code,
            amount=-self.round_money(abs(amount)),
            quantity=quantity,
            rate=rate,
            rule_id=rule_id,
            explanation=explanation,
        )

    def tax_line(self, code: str, amount: Decimal, rule_id: str | None = None) -> PayLine:
        """Create a withholding tax line (negative amount)."""
        return PayLine(
            line_type=LineType.TAX,
            code=code,
            amount=-self.round_money(abs(amount)),
            rule_id=rule_id,
            explanation="Withholding tax",
        )

    @staticmethod
    def calculate_gross_income(lines: Iterable[PayLine]) -> Decimal:
        """GROSS INCOME = sum(EARNING)."""
        return sum((line.amount for line in lines if line.line_type == LineType.EARNING), ZERO)

    @staticmethod
    def calculate_benefits(lines: Iterable[PayLine]) -> Decimal:
        return sum((line.amount for line in lines if line.line_type == LineType.BENEFIT), ZERO)

    @staticmethod
    def calculate_deductions(lines: Iterable[PayLine]) -> Decimal:
        """Positive total of DEDUCTION and TAX lines."""
        return -sum(
            (line.amount for line in lines if line.line_type in (LineType.DEDUCTION, LineType.TAX)),
            ZERO,
        )

    @staticmethod
    def calculate_net(lines: Iterable[PayLine]) -> Decimal:
        """NET = sum of all signed lines."""
        return sum((line.amount for line in lines), ZERO)

    @staticmethod
    def validate_line_signs(lines: list[PayLine]) -> list[str]:
        """Validate that all lines have correct signs.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []

        for i, line in enumerate(lines):
            if line.line_type in (LineType.EARNING, LineType.BENEFIT):
                if line.amount < 0:
                    errors.append(
                        f"Line {i} ({line.line_type.value}) has negative amount {line.amount}, expected positive"
                    )
            elif line.amount > 0:
                errors.append(
                    f"Line {i} ({line.line_type.value}) has positive amount {line.amount}, expected negative"
                )

        return errors

    @staticmethod
    def sum_by_type(lines: Iterable[PayLine]) -> dict[LineType, Decimal]:
        """Sum line amounts by type."""
        totals: dict[LineType, Decimal] = {lt: ZERO for lt in LineType}
        for line in lines:
            totals[line.line_type] += line.amount
        return totals
