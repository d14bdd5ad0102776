"""Payroll calculation engine."""

from payrecon.calculators.aggregator import GenerationSummary, PayrollAggregator
from payrecon.calculators.deduction_resolver import DeductionBracketResolver, ResolutionStatus
from payrecon.calculators.eligibility import EligibilityClassifier
from payrecon.calculators.line_builder import PayLineBuilder
from payrecon.calculators.rate_resolver import RateResolver
from payrecon.calculators.time_accounting import TimeAccountingEngine

__all__ = [
    "PayrollAggregator",
    "GenerationSummary",
    "DeductionBracketResolver",
    "ResolutionStatus",
    "EligibilityClassifier",
    "PayLineBuilder",
    "RateResolver",
    "TimeAccountingEngine",
]
