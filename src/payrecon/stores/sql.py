"""SQLAlchemy-backed stores for records, overtime requests and deduction tables."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, selectinload, sessionmaker

from payrecon.calculators.types import (
    DeductionKind,
    DeductionRule,
    LineType,
    OvertimeRequest,
    OvertimeStatus,
    PayLine,
    PayrollRecord,
)
from payrecon.database import session_scope
from payrecon.errors import ValidationError
from payrecon.models import DeductionRuleRow, OvertimeRequestRow, PayrollLineRow, PayrollRecordRow

logger = logging.getLogger(__name__)


class SqlPayrollRecordStore:
    """Payroll records persisted with delete-then-insert per period.

    ``replace_period`` runs in a single transaction, so a failure while
    inserting leaves the previous records for the period intact.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def replace_period(self, pay_period_id: str, records: Sequence[PayrollRecord]) -> int:
        with session_scope(self.session_factory) as session:
            existing = session.scalars(
                select(PayrollRecordRow).where(PayrollRecordRow.pay_period_id == pay_period_id)
            ).all()
            deleted = len(existing)
            for row in existing:
                session.delete(row)
            session.flush()

            for record in records:
                if record.pay_period_id != pay_period_id:
                    raise ValidationError(
                        f"Record for {record.employee_id} belongs to period {record.pay_period_id}, not {pay_period_id}",
                        code="period_mismatch",
                    )
                session.add(self._to_row(record))

        logger.info("Replaced %d payroll records for period %s with %d", deleted, pay_period_id, len(records))
        return deleted

    def list_records(self, pay_period_id: str) -> Sequence[PayrollRecord]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(PayrollRecordRow)
                .where(PayrollRecordRow.pay_period_id == pay_period_id)
                .options(selectinload(PayrollRecordRow.lines))
                .order_by(PayrollRecordRow.employee_id)
            ).all()
            return [self._from_row(row) for row in rows]

    @staticmethod
    def _to_row(record: PayrollRecord) -> PayrollRecordRow:
        return PayrollRecordRow(
            employee_id=record.employee_id,
            pay_period_id=record.pay_period_id,
            basic_salary=record.basic_salary,
            overtime_pay=record.overtime_pay,
            gross_income=record.gross_income,
            total_benefits=record.total_benefits,
            total_deductions=record.total_deductions,
            net_salary=record.net_salary,
            fingerprint=record.fingerprint,
            lines=[
                PayrollLineRow(
                    line_no=i,
                    line_type=line.line_type.value,
                    code=line.code,
                    amount=line.amount,
                    quantity=line.quantity,
                    rate=line.rate,
                    rule_id=line.rule_id,
                    explanation=line.explanation,
                )
                for i, line in enumerate(record.lines)
            ],
        )

    @staticmethod
    def _from_row(row: PayrollRecordRow) -> PayrollRecord:
        return PayrollRecord(
            employee_id=row.employee_id,
            pay_period_id=row.pay_period_id,
            basic_salary=row.basic_salary,
            overtime_pay=row.overtime_pay,
            gross_income=row.gross_income,
            total_benefits=row.total_benefits,
            total_deductions=row.total_deductions,
            net_salary=row.net_salary,
            fingerprint=row.fingerprint,
            lines=[
                PayLine(
                    line_type=LineType(line.line_type),
                    code=line.code,
                    amount=line.amount,
                    quantity=line.quantity,
                    rate=line.rate,
                    rule_id=line.rule_id,
                    explanation=line.explanation,
                )
                for line in row.lines
            ],
        )


class SqlOvertimeStore:
    """Overtime requests with compare-and-set status updates."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def get_request(self, request_id: str) -> OvertimeRequest | None:
        with session_scope(self.session_factory) as session:
            row = session.get(OvertimeRequestRow, request_id)
            return self._from_row(row) if row else None

    def add_request(self, request: OvertimeRequest) -> None:
        with session_scope(self.session_factory) as session:
            if session.get(OvertimeRequestRow, request.request_id) is not None:
                raise ValidationError(
                    f"Overtime request {request.request_id} already exists",
                    code="duplicate_request",
                )
            session.add(
                OvertimeRequestRow(
                    request_id=request.request_id,
                    employee_id=request.employee_id,
                    **self._mutable_columns(request),
                )
            )

    def list_overtime(self, employee_id: str, start: date, end: date) -> Sequence[OvertimeRequest]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(OvertimeRequestRow)
                .where(
                    OvertimeRequestRow.employee_id == employee_id,
                    OvertimeRequestRow.start_at >= datetime.combine(start, time.min),
                    OvertimeRequestRow.start_at <= datetime.combine(end, time.max),
                )
                .order_by(OvertimeRequestRow.start_at, OvertimeRequestRow.request_id)
            ).all()
            return [self._from_row(row) for row in rows]

    def compare_and_set_status(
        self,
        request_id: str,
        expected: OvertimeStatus,
        updated: OvertimeRequest,
    ) -> bool:
        """UPDATE ... WHERE status = expected; True if exactly one row changed."""
        with session_scope(self.session_factory) as session:
            result = session.execute(
                update(OvertimeRequestRow)
                .where(
                    OvertimeRequestRow.request_id == request_id,
                    OvertimeRequestRow.status == OvertimeStatus(expected).value,
                )
                .values(**self._mutable_columns(updated))
            )
            return result.rowcount == 1

    @staticmethod
    def _mutable_columns(request: OvertimeRequest) -> dict:
        return {
            "start_at": request.start,
            "end_at": request.end,
            "reason": request.reason,
            "status": request.status.value,
            "requires_higher_approval": request.requires_higher_approval,
            "auto_approved": request.auto_approved,
            "reviewer_notes": request.reviewer_notes,
            "requested_at": request.created_at,
            "decided_at": request.decided_at,
        }

    @staticmethod
    def _from_row(row: OvertimeRequestRow) -> OvertimeRequest:
        return OvertimeRequest(
            request_id=row.request_id,
            employee_id=row.employee_id,
            start=row.start_at,
            end=row.end_at,
            reason=row.reason,
            status=OvertimeStatus(row.status),
            requires_higher_approval=row.requires_higher_approval,
            auto_approved=row.auto_approved,
            reviewer_notes=row.reviewer_notes,
            created_at=row.requested_at,
            decided_at=row.decided_at,
        )


class SqlDeductionRuleCatalog:
    """Bracket tables stored one row per bracket."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def list_rules(self, kind: DeductionKind, pay_period_id: str | None = None) -> Sequence[DeductionRule]:
        with session_scope(self.session_factory) as session:
            stmt = select(DeductionRuleRow).where(DeductionRuleRow.kind == kind.value)
            if pay_period_id is None:
                stmt = stmt.where(DeductionRuleRow.pay_period_id.is_(None))
            else:
                stmt = stmt.where(DeductionRuleRow.pay_period_id == pay_period_id)
            rows = session.scalars(stmt.order_by(DeductionRuleRow.lower_bound, DeductionRuleRow.rule_id)).all()
            return [self._from_row(row) for row in rows]

    def replace_table(
        self,
        kind: DeductionKind,
        rules: Iterable[DeductionRule],
        pay_period_id: str | None = None,
    ) -> int:
        """Swap one kind's table (master or period-scoped) in a single transaction.

        Returns the number of brackets written.
        """
        rules = list(rules)
        for rule in rules:
            if rule.kind is not kind or rule.pay_period_id != pay_period_id:
                raise ValidationError(
                    f"Rule {rule.rule_id} does not belong to the {kind.value} table being replaced",
                    code="table_mismatch",
                )
        with session_scope(self.session_factory) as session:
            stmt = delete(DeductionRuleRow).where(DeductionRuleRow.kind == kind.value)
            if pay_period_id is None:
                stmt = stmt.where(DeductionRuleRow.pay_period_id.is_(None))
            else:
                stmt = stmt.where(DeductionRuleRow.pay_period_id == pay_period_id)
            session.execute(stmt)
            session.add_all(self._to_row(rule) for rule in rules)
        return len(rules)

    @staticmethod
    def _to_row(rule: DeductionRule) -> DeductionRuleRow:
        return DeductionRuleRow(
            rule_id=rule.rule_id,
            kind=rule.kind.value,
            lower_bound=rule.lower_bound,
            upper_bound=rule.upper_bound,
            amount=rule.amount,
            rate=rule.rate,
            base_amount=rule.base_amount,
            pay_period_id=rule.pay_period_id,
        )

    @staticmethod
    def _from_row(row: DeductionRuleRow) -> DeductionRule:
        return DeductionRule(
            rule_id=row.rule_id,
            kind=DeductionKind(row.kind),
            lower_bound=row.lower_bound,
            upper_bound=row.upper_bound,
            amount=row.amount,
            rate=row.rate,
            base_amount=row.base_amount,
            pay_period_id=row.pay_period_id,
        )
