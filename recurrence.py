import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from database import stream_in_pages, transaction_scope
from errors import ScheduleConflict
from models import RecurringInterval, Transaction
from schemas import JobResult


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(base: datetime, months: int) -> datetime:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def _normalize_interval(
    value: Union[RecurringInterval, str, None],
) -> Optional[RecurringInterval]:
    if value is None:
        return None
    if isinstance(value, RecurringInterval):
        return value
    try:
        return RecurringInterval(str(value).strip().lower())
    except ValueError:
        return None


def next_occurrence(
    reference: datetime, interval: Union[RecurringInterval, str, None]
) -> datetime:
    """Midnight of ``reference`` moved forward by one ``interval``.

    ``none`` and unknown intervals leave the truncated date as it is.
    """
    base = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    unit = _normalize_interval(interval)
    if unit == RecurringInterval.daily:
        return base + timedelta(days=1)
    if unit == RecurringInterval.weekly:
        return base + timedelta(weeks=1)
    if unit == RecurringInterval.monthly:
        return _add_months(base, 1)
    if unit == RecurringInterval.yearly:
        return _add_months(base, 12)
    return base


def next_report_date(
    last_sent: Optional[datetime] = None, now: Optional[datetime] = None
) -> datetime:
    """First instant of the UTC month after ``min(last_sent or now, now)``."""
    now = as_naive_utc(now) if now else utc_now()
    reference = as_naive_utc(last_sent) if last_sent else now
    if reference > now:
        reference = now
    if reference.month == 12:
        return datetime(reference.year + 1, 1, 1)
    return datetime(reference.year, reference.month + 1, 1)


class RecurringEngine:
    def __init__(
        self, session_factory: sessionmaker[Session], settings: Settings
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings

    def due_statement(self, now: datetime):
        return select(Transaction).where(
            Transaction.is_recurring.is_(True),
            Transaction.next_recurrence_date <= now,
        )

    def post_due_transactions(self, now: Optional[datetime] = None) -> JobResult:
        now = as_naive_utc(now) if now else utc_now()
        processed = 0
        failed = 0
        skipped = 0
        logger.info(f"recurring_run: start now={now.isoformat()}")
        try:
            due_rows = stream_in_pages(
                self.session_factory,
                self.due_statement(now),
                Transaction.id,
                page_size=self.settings.batch_page_size,
            )
            for due in due_rows:
                try:
                    self._post_occurrence(due, now)
                except ScheduleConflict:
                    skipped += 1
                    logger.info(f"recurring_run: transaction={due.id} already advanced")
                except Exception:
                    failed += 1
                    logger.exception(f"recurring_run: transaction={due.id} failed")
                else:
                    processed += 1
        except Exception as exc:
            logger.exception("recurring_run: aborted")
            return JobResult(
                success=False,
                processed_count=processed,
                failed_count=failed,
                skipped_count=skipped,
                error=str(exc),
            )

        logger.info(
            f"recurring_run: processed={processed} failed={failed} skipped={skipped}"
        )
        return JobResult(
            success=True,
            processed_count=processed,
            failed_count=failed,
            skipped_count=skipped,
        )

    def _post_occurrence(self, due: Transaction, now: datetime) -> None:
        occurrence_date = due.next_recurrence_date
        next_date = next_occurrence(occurrence_date, due.recurring_interval)
        if next_date <= occurrence_date:
            raise ValueError(
                f"interval {due.recurring_interval!r} does not advance the schedule"
            )

        with transaction_scope(
            self.session_factory,
            max_commit_secs=self.settings.recurring_commit_timeout_secs,
        ) as session:
            session.add(
                Transaction(
                    user_id=due.user_id,
                    title=f"Recurring - {due.title}",
                    type=due.type,
                    amount_cents=due.amount_cents,
                    category=due.category,
                    description=due.description,
                    receipt_url=due.receipt_url,
                    date=occurrence_date,
                    status=due.status,
                    payment_method=due.payment_method,
                    is_recurring=False,
                    recurring_interval=None,
                    next_recurrence_date=None,
                    last_processed_at=None,
                )
            )
            result = session.execute(
                update(Transaction)
                .where(
                    Transaction.id == due.id,
                    Transaction.is_recurring.is_(True),
                    Transaction.next_recurrence_date == occurrence_date,
                )
                .values(next_recurrence_date=next_date, last_processed_at=now)
            )
            if result.rowcount != 1:
                raise ScheduleConflict(f"transaction {due.id} changed since it was read")
