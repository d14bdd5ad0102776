"""Pay-rule class derivation."""

from __future__ import annotations

from payrecon.calculators.types import Employee, PayRuleClass
from payrecon.config import Settings, get_settings


class EligibilityClassifier:
    """Classifies employees as rank-and-file or not.

    An employee is rank-and-file when the department equals the designated
    department (case-insensitive) or the position title contains every
    designated keyword. The result is recomputed on every call so a
    department or title change takes effect immediately.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def classify(self, department: str | None, title: str | None) -> PayRuleClass:
        dept = (department or "").strip().lower()
        if dept and dept == self.settings.eligible_department.strip().lower():
            return PayRuleClass.RANK_AND_FILE

        title_lower = (title or "").lower()
        keywords = self.settings.eligible_title_keywords
        if keywords and all(k.lower() in title_lower for k in keywords):
            return PayRuleClass.RANK_AND_FILE

        return PayRuleClass.NON_RANK_AND_FILE

    def is_rule_eligible(self, employee: Employee) -> bool:
        """Whether late penalties and overtime apply to the employee."""
        return self.classify(employee.department, employee.position_title) is PayRuleClass.RANK_AND_FILE
