from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def _uuid() -> str:
    return str(uuid4())


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    uncleared = "uncleared"
    cleared = "cleared"
    reconciled = "reconciled"


# Fixed presentation/aggregation order; never alphabetical.
STATUS_ORDER: tuple[TransactionStatus, ...] = (
    TransactionStatus.uncleared,
    TransactionStatus.cleared,
    TransactionStatus.reconciled,
)


class BudgetStatus(str, Enum):
    draft = "draft"
    active = "active"
    closed = "closed"


class SeasonStatus(str, Enum):
    active = "active"
    archived = "archived"


class EnrollmentStatus(str, Enum):
    enrolled = "enrolled"
    withdrawn = "withdrawn"


class PaymentStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"
    overpaid = "overpaid"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    fiscal_year_start_month: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    seasons_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    accounts: Mapped[list["Account"]] = relationship(
        "Account", back_populates="organization"
    )

    __table_args__ = (
        CheckConstraint(
            "fiscal_year_start_month BETWEEN 1 AND 12",
            name="ck_org_fiscal_month_range",
        ),
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    opening_balance_cents: Mapped[Optional[int]] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="accounts"
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="account"
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(ForeignKey("categories.id"))
    category_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), nullable=False, default=TransactionStatus.uncleared
    )
    check_number: Mapped[Optional[str]] = mapped_column(String(20))
    vendor: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    cleared_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")
    line_items: Mapped[list["TransactionLineItem"]] = relationship(
        "TransactionLineItem",
        back_populates="transaction",
        order_by="TransactionLineItem.position",
    )

    __table_args__ = (
        Index("ix_transactions_account_date", "account_id", "transaction_date"),
        Index("ix_transactions_status_cleared", "status", "cleared_at"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class TransactionLineItem(Base):
    __tablename__ = "transaction_line_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    transaction_id: Mapped[str] = mapped_column(
        ForeignKey("transactions.id"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="line_items"
    )
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_line_items_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(
        SAEnum(BudgetStatus), nullable=False, default=BudgetStatus.draft
    )

    line_items: Mapped[list["BudgetLineItem"]] = relationship(
        "BudgetLineItem", back_populates="budget", order_by="BudgetLineItem.position"
    )


class BudgetLineItem(Base):
    __tablename__ = "budget_line_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    budget_id: Mapped[str] = mapped_column(ForeignKey("budgets.id"), nullable=False)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    budget: Mapped["Budget"] = relationship("Budget", back_populates="line_items")
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_budget_line_amount_positive"),
    )


class Student(Base, TimestampMixin):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guardian_name: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    guardian_email: Mapped[Optional[str]] = mapped_column(String(200))
    guardian_phone: Mapped[Optional[str]] = mapped_column(String(40))


class Season(Base, TimestampMixin):
    __tablename__ = "seasons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organization_id: Mapped[str] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    fee_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[SeasonStatus] = mapped_column(
        SAEnum(SeasonStatus), nullable=False, default=SeasonStatus.active
    )

    organization: Mapped["Organization"] = relationship("Organization")
    enrollments: Mapped[list["SeasonEnrollment"]] = relationship(
        "SeasonEnrollment",
        back_populates="season",
        order_by="SeasonEnrollment.enrolled_at",
    )


class SeasonEnrollment(Base):
    __tablename__ = "season_enrollments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    season_id: Mapped[str] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(ForeignKey("students.id"), nullable=False)
    fee_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[EnrollmentStatus] = mapped_column(
        SAEnum(EnrollmentStatus), nullable=False, default=EnrollmentStatus.enrolled
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    season: Mapped["Season"] = relationship("Season", back_populates="enrollments")
    student: Mapped["Student"] = relationship("Student")
    payments: Mapped[list["SeasonPayment"]] = relationship(
        "SeasonPayment",
        back_populates="enrollment",
        order_by="SeasonPayment.payment_date",
    )


class SeasonPayment(Base, TimestampMixin):
    __tablename__ = "season_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    enrollment_id: Mapped[str] = mapped_column(
        ForeignKey("season_enrollments.id"), nullable=False
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(40))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    enrollment: Mapped["SeasonEnrollment"] = relationship(
        "SeasonEnrollment", back_populates="payments"
    )
