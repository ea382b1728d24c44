from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from currency import to_major_units, to_minor_units
from insights import CategoryTotal, InsightGenerator, ReportTotals
from models import (
    RecurringInterval,
    Report,
    ReportFrequency,
    ReportSetting,
    Transaction,
    TransactionType,
    User,
)
from periods import period_label
from recurrence import next_occurrence, next_report_date, utc_now
from schemas import (
    CategorySpend,
    Pagination,
    ReportOut,
    ReportPage,
    ReportRecordOut,
    ReportSettingIn,
    ReportSummary,
    TransactionIn,
    UserIn,
)


TOP_CATEGORY_LIMIT = 5


def _round_half_up(value: float, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def savings_rate(income_cents: int, expenses_cents: int) -> float:
    if income_cents <= 0:
        return 0.0
    return _round_half_up((income_cents - expenses_cents) / income_cents * 100, 2)


def _percent_of(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(_round_half_up(part / total * 100, 0))


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise ValueError("User not found")
        return user

    def create(self, data: UserIn, now: Optional[datetime] = None) -> User:
        now = now or utc_now()
        email = data.email.strip().lower()
        existing = self.session.scalar(select(User.id).where(User.email == email))
        if existing:
            raise ValueError("User already exists")

        user = User(name=data.name.strip(), email=email, created_at=now, updated_at=now)
        self.session.add(user)
        self.session.flush()
        self.session.add(
            ReportSetting(
                user_id=user.id,
                frequency=ReportFrequency.monthly,
                is_enabled=True,
                next_report_date=next_report_date(now, now=now),
                last_sent_date=None,
            )
        )
        self.session.commit()
        self.session.refresh(user)
        return user


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn, now: Optional[datetime] = None) -> Transaction:
        now = now or utc_now()
        next_date = None
        interval = data.recurring_interval
        if data.is_recurring:
            if interval in (None, RecurringInterval.none):
                raise ValueError("Recurring transactions need an interval")
            next_date = next_occurrence(data.date, interval)
            if next_date < now:
                next_date = next_occurrence(now, interval)
        else:
            interval = None

        txn = Transaction(
            user_id=self.user_id,
            title=data.title,
            type=data.type,
            amount_cents=to_minor_units(data.amount),
            category=data.category,
            description=data.description,
            receipt_url=data.receipt_url,
            date=data.date,
            status=data.status,
            payment_method=data.payment_method,
            is_recurring=data.is_recurring,
            recurring_interval=interval,
            next_recurrence_date=next_date,
            last_processed_at=None,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn


class ReportSettingService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self) -> Optional[ReportSetting]:
        return self.session.scalar(
            select(ReportSetting).where(ReportSetting.user_id == self.user_id)
        )

    def update(self, data: ReportSettingIn, now: Optional[datetime] = None) -> ReportSetting:
        now = now or utc_now()
        setting = self.get()
        if not setting:
            setting = ReportSetting(
                user_id=self.user_id,
                frequency=ReportFrequency.monthly,
                is_enabled=data.is_enabled,
                next_report_date=next_report_date(now, now=now),
                last_sent_date=None,
            )
            self.session.add(setting)

        if data.is_enabled:
            current = setting.next_report_date
            if current is None or current <= now:
                setting.next_report_date = next_report_date(
                    setting.last_sent_date or now, now=now
                )
        else:
            setting.next_report_date = None
        setting.is_enabled = data.is_enabled

        self.session.commit()
        self.session.refresh(setting)
        return setting


class ReportService:
    def __init__(
        self,
        session: Session,
        user_id: int,
        insights: Optional[InsightGenerator] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.insights = insights

    def summarize(self, start: datetime, end: datetime) -> ReportTotals:
        in_range = (
            Transaction.user_id == self.user_id,
            Transaction.date.between(start, end),
        )
        totals_by_type = dict(
            self.session.execute(
                select(
                    Transaction.type,
                    func.coalesce(func.sum(func.abs(Transaction.amount_cents)), 0),
                )
                .where(*in_range)
                .group_by(Transaction.type)
            ).all()
        )
        income = int(totals_by_type.get(TransactionType.income, 0) or 0)
        expenses = int(totals_by_type.get(TransactionType.expense, 0) or 0)

        category_total = func.sum(func.abs(Transaction.amount_cents)).label("total")
        rows = self.session.execute(
            select(Transaction.category, category_total)
            .where(*in_range, Transaction.type == TransactionType.expense)
            .group_by(Transaction.category)
            .order_by(category_total.desc(), Transaction.category)
            .limit(TOP_CATEGORY_LIMIT)
        ).all()
        categories = [
            CategoryTotal(
                name=row.category,
                amount_cents=int(row.total),
                percent=_percent_of(int(row.total), expenses),
            )
            for row in rows
        ]

        return ReportTotals(
            period_label=period_label(start, end),
            income_cents=income,
            expenses_cents=expenses,
            balance_cents=income - expenses,
            savings_rate=savings_rate(income, expenses),
            categories=categories,
        )

    def generate(self, start: datetime, end: datetime) -> ReportOut:
        totals = self.summarize(start, end)
        insights = self.insights.generate(totals) if self.insights else []
        return ReportOut(
            period=totals.period_label,
            summary=ReportSummary(
                income=to_major_units(totals.income_cents),
                expenses=to_major_units(totals.expenses_cents),
                balance=to_major_units(totals.balance_cents),
                savings_rate=_round_half_up(totals.savings_rate, 1),
                top_categories=[
                    CategorySpend(
                        name=cat.name,
                        amount=to_major_units(cat.amount_cents),
                        percent=cat.percent,
                    )
                    for cat in totals.categories
                ],
            ),
            insights=insights,
        )

    def list(self, page_number: int = 1, page_size: int = 20) -> ReportPage:
        page_number = max(1, page_number)
        page_size = max(1, page_size)
        skip = (page_number - 1) * page_size

        total_count = int(
            self.session.scalar(
                select(func.count(Report.id)).where(Report.user_id == self.user_id)
            )
            or 0
        )
        reports = self.session.scalars(
            select(Report)
            .where(Report.user_id == self.user_id)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .offset(skip)
            .limit(page_size)
        ).all()

        return ReportPage(
            reports=[ReportRecordOut.model_validate(report) for report in reports],
            pagination=Pagination(
                page_size=page_size,
                page_number=page_number,
                total_count=total_count,
                total_pages=math.ceil(total_count / page_size),
                skip=skip,
            ),
        )
