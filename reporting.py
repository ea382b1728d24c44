import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session, joinedload, sessionmaker

from config import Settings
from database import stream_in_pages, transaction_scope
from errors import ScheduleConflict
from insights import InsightGenerator
from mailer import ReportMailer
from models import Report, ReportSetting, ReportStatus
from periods import Period, previous_month
from recurrence import as_naive_utc, next_report_date, utc_now
from schemas import JobResult, ReportOut
from services import ReportService


logger = logging.getLogger(__name__)


class ReportEngine:
    """Sends the previous month's report to every owner whose schedule is due."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: Settings,
        insights: InsightGenerator,
        mailer: ReportMailer,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings
        self.insights = insights
        self.mailer = mailer

    def due_statement(self, now: datetime):
        return (
            select(ReportSetting)
            .options(joinedload(ReportSetting.user))
            .where(
                ReportSetting.is_enabled.is_(True),
                ReportSetting.next_report_date <= now,
            )
        )

    def send_due_reports(self, now: Optional[datetime] = None) -> JobResult:
        now = as_naive_utc(now) if now else utc_now()
        period = previous_month(now)
        processed = 0
        failed = 0
        skipped = 0
        logger.info(f"report_run: start now={now.isoformat()} period={period.label!r}")
        try:
            due_settings = stream_in_pages(
                self.session_factory,
                self.due_statement(now),
                ReportSetting.id,
                page_size=self.settings.batch_page_size,
            )
            for setting in due_settings:
                if setting.user is None:
                    skipped += 1
                    logger.warning(
                        f"report_run: setting={setting.id} user={setting.user_id} not found"
                    )
                    continue
                try:
                    self._process_setting(setting, period, now)
                except ScheduleConflict:
                    skipped += 1
                    logger.info(f"report_run: setting={setting.id} already advanced")
                except Exception:
                    failed += 1
                    logger.exception(f"report_run: setting={setting.id} failed")
                else:
                    processed += 1
        except Exception as exc:
            logger.exception("report_run: aborted")
            return JobResult(
                success=False,
                processed_count=processed,
                failed_count=failed,
                skipped_count=skipped,
                error=str(exc),
            )

        logger.info(f"report_run: processed={processed} failed={failed} skipped={skipped}")
        return JobResult(
            success=True,
            processed_count=processed,
            failed_count=failed,
            skipped_count=skipped,
        )

    def _generate(self, user_id: int, period: Period) -> Optional[ReportOut]:
        try:
            with self.session_factory() as session:
                return ReportService(session, user_id, self.insights).generate(
                    period.start, period.end
                )
        except Exception:
            logger.exception(f"report_run: user={user_id} report generation failed")
            return None

    def _send(self, setting: ReportSetting, report: ReportOut) -> bool:
        user = setting.user
        try:
            self.mailer.send_report(
                email=user.email,
                username=user.name,
                report=report,
                frequency=setting.frequency.value,
            )
        except Exception:
            logger.warning(
                f"report_run: user={user.id} email failed", exc_info=True
            )
            return False
        return True

    def _process_setting(self, setting: ReportSetting, period: Period, now: datetime) -> None:
        report = self._generate(setting.user_id, period)
        email_sent = report is not None and self._send(setting, report)
        status = ReportStatus.sent if email_sent else ReportStatus.failed

        values = {"next_report_date": next_report_date(now, now=now)}
        if email_sent:
            values["last_sent_date"] = now

        with transaction_scope(
            self.session_factory,
            max_commit_secs=self.settings.report_commit_timeout_secs,
        ) as session:
            session.execute(
                insert(Report),
                [
                    {
                        "user_id": setting.user_id,
                        "period": report.period if report else period.label,
                        "sent_date": now,
                        "status": status,
                        "created_at": now,
                        "updated_at": now,
                    }
                ],
            )
            result = session.execute(
                update(ReportSetting)
                .where(
                    ReportSetting.id == setting.id,
                    ReportSetting.is_enabled.is_(True),
                    ReportSetting.next_report_date == setting.next_report_date,
                )
                .values(**values)
            )
            if result.rowcount != 1:
                raise ScheduleConflict(f"report setting {setting.id} changed since it was read")

        logger.info(
            f"report_run: user={setting.user_id} status={status.value} "
            f"next_report_date={values['next_report_date'].isoformat()}"
        )
