"""Pydantic schemas for bracket tables and payroll reports."""

from __future__ import annotations

import json
from decimal import Decimal
from importlib import resources

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from payrecon.calculators.deduction_resolver import DeductionBracketResolver
from payrecon.calculators.types import TABLE_KINDS, DeductionKind, DeductionRule, LineType


# ============================================================================
# Bracket tables
# ============================================================================


class BracketPayload(BaseModel):
    """One bracket as it appears in a table file."""

    model_config = ConfigDict(extra="forbid")

    lower: Decimal | None = None
    upper: Decimal | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    rate: Decimal | None = Field(default=None, ge=0, le=1)
    base: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> BracketPayload:
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ValueError(f"lower bound {self.lower} is above upper bound {self.upper}")
        if self.amount is None and self.rate is None:
            raise ValueError("a bracket needs an amount or a rate")
        return self


class BracketTablePayload(BaseModel):
    """All brackets of one deduction kind, master or period-scoped."""

    kind: DeductionKind
    pay_period_id: str | None = None
    brackets: list[BracketPayload] = Field(default_factory=list)

    @field_validator("kind")
    @classmethod
    def check_kind(cls, value: DeductionKind) -> DeductionKind:
        if value not in TABLE_KINDS:
            raise ValueError(f"{value.value} cannot be configured as a bracket table")
        return value

    @model_validator(mode="after")
    def check_contiguous(self) -> BracketTablePayload:
        errors = DeductionBracketResolver.validate_table(self.to_rules())
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def to_rules(self) -> list[DeductionRule]:
        scope = self.pay_period_id or "master"
        return [
            DeductionRule(
                rule_id=f"{self.kind.value}-{scope}-{i:03d}",
                kind=self.kind,
                lower_bound=b.lower,
                upper_bound=b.upper,
                amount=b.amount,
                rate=b.rate,
                base_amount=b.base,
                pay_period_id=self.pay_period_id,
            )
            for i, b in enumerate(self.brackets, start=1)
        ]


class BracketTableSet(BaseModel):
    """A file of bracket tables."""

    tables: list[BracketTablePayload]

    def to_rules(self) -> list[DeductionRule]:
        return [rule for table in self.tables for rule in table.to_rules()]


def load_default_tables() -> BracketTableSet:
    """Load the bundled master bracket tables."""
    text = resources.files("payrecon.data").joinpath("default_brackets.json").read_text(encoding="utf-8")
    return BracketTableSet.model_validate(json.loads(text))


# ============================================================================
# Payroll reports
# ============================================================================


class PayLineSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_type: LineType
    code: str
    amount: Decimal
    quantity: Decimal | None = None
    rate: Decimal | None = None
    rule_id: str | None = None
    explanation: str | None = None


class PayrollRecordSchema(BaseModel):
    """Serialisable view of a PayrollRecord."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    pay_period_id: str
    basic_salary: Decimal
    overtime_pay: Decimal
    gross_income: Decimal
    total_benefits: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    fingerprint: str
    lines: list[PayLineSchema] = Field(default_factory=list)


class VerificationReportSchema(BaseModel):
    """Serialisable summary of a VerificationResult."""

    model_config = ConfigDict(from_attributes=True)

    pay_period_id: str
    total_records: int
    verified_records: int
    discrepancy_records: int
    total_gross: Decimal
    total_net: Decimal
    total_deductions: Decimal
    compliance_score: Decimal = Field(ge=0, le=100)
    discrepancies: list[str] = Field(default_factory=list)
