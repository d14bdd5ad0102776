"""Payroll record, overtime request and deduction rule models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payrecon.models.base import Base, TimestampMixin


# ===== Payroll Records =====


class PayrollRecordRow(Base, TimestampMixin):
    """Generated payroll record for one employee and period."""

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[str] = mapped_column(String, nullable=False)
    pay_period_id: Mapped[str] = mapped_column(String, nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    overtime_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    gross_income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_benefits: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("pay_period_id", "employee_id", name="payroll_record_period_employee_unique"),
        Index("ix_payroll_record_period", "pay_period_id"),
    )

    lines: Mapped[list[PayrollLineRow]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="PayrollLineRow.line_no",
    )


class PayrollLineRow(Base):
    """A signed line on a payroll record."""

    __tablename__ = "payroll_line"

    payroll_line_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_record_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_record.payroll_record_id", ondelete="CASCADE"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    line_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4))
    rule_id: Mapped[str | None] = mapped_column(String)
    explanation: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint(
            "line_type IN ('EARNING', 'BENEFIT', 'DEDUCTION', 'TAX')",
            name="payroll_line_type_check",
        ),
    )

    record: Mapped[PayrollRecordRow] = relationship(back_populates="lines")


# ===== Overtime =====


class OvertimeRequestRow(Base, TimestampMixin):
    """Overtime request with its lifecycle status."""

    __tablename__ = "overtime_request"

    request_id: Mapped[str] = mapped_column(String, primary_key=True)
    employee_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    requires_higher_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reviewer_notes: Mapped[str | None] = mapped_column(Text)
    requested_at: Mapped[datetime | None] = mapped_column(DateTime)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="overtime_request_status_check",
        ),
        CheckConstraint("end_at > start_at", name="overtime_request_window_check"),
    )


# ===== Deduction Tables =====


class DeductionRuleRow(Base, TimestampMixin):
    """One bracket of a deduction table; pay_period_id NULL marks a master rule."""

    __tablename__ = "deduction_rule"

    rule_id: Mapped[str] = mapped_column(String, primary_key=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    lower_bound: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    upper_bound: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 6))
    base_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    pay_period_id: Mapped[str | None] = mapped_column(String)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('SSS', 'PAG_IBIG', 'PHILHEALTH', 'WITHHOLDING_TAX')",
            name="deduction_rule_kind_check",
        ),
        Index("ix_deduction_rule_kind_period", "kind", "pay_period_id"),
    )
