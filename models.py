from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
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


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class PaymentMethod(str, Enum):
    cash = "cash"
    card = "card"
    upi = "upi"
    bank_transfer = "bank_transfer"


class RecurringInterval(str, Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class ReportFrequency(str, Enum):
    monthly = "monthly"


class ReportStatus(str, Enum):
    sent = "SENT"
    pending = "PENDING"
    failed = "FAILED"
    no_activity = "NO_ACTIVITY"


REPORT_STATUS_ENUM = SAEnum(
    ReportStatus,
    name="reportstatus",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="user"
    )
    report_setting: Mapped[Optional["ReportSetting"]] = relationship(
        "ReportSetting", back_populates="user", uselist=False
    )
    reports: Mapped[list["Report"]] = relationship("Report", back_populates="user")


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(500))
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus), default=TransactionStatus.completed, nullable=False
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(PaymentMethod), default=PaymentMethod.cash, nullable=False
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_interval: Mapped[Optional[RecurringInterval]] = mapped_column(
        SAEnum(RecurringInterval)
    )
    next_recurrence_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped["User"] = relationship("User", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        Index(
            "ix_transactions_recurring_due", "is_recurring", "next_recurrence_date"
        ),
        CheckConstraint(
            "NOT is_recurring OR (recurring_interval IS NOT NULL"
            " AND recurring_interval != 'none'"
            " AND next_recurrence_date IS NOT NULL)",
            name="ck_transactions_recurring_schedule",
        ),
    )


class ReportSetting(Base, TimestampMixin):
    __tablename__ = "report_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, unique=True
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    frequency: Mapped[ReportFrequency] = mapped_column(
        SAEnum(ReportFrequency), default=ReportFrequency.monthly, nullable=False
    )
    next_report_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_sent_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped[Optional["User"]] = relationship(
        "User", back_populates="report_setting"
    )

    __table_args__ = (
        Index("ix_report_settings_due", "is_enabled", "next_report_date"),
    )


class Report(Base, TimestampMixin):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    period: Mapped[str] = mapped_column(String(100), nullable=False)
    sent_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[ReportStatus] = mapped_column(
        REPORT_STATUS_ENUM, default=ReportStatus.pending, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="reports")

    __table_args__ = (Index("ix_reports_user_created", "user_id", "created_at"),)
