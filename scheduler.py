import argparse
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import Settings, configure_logging, get_settings
from database import build_engine, build_session_factory
from insights import InsightGenerator
from mailer import ReportMailer, ResendMailer
from recurrence import RecurringEngine
from reporting import ReportEngine
from schemas import JobResult
from text_generation import build_text_generators


logger = logging.getLogger(__name__)


def build_engines(settings: Settings) -> tuple[RecurringEngine, ReportEngine]:
    session_factory = build_session_factory(build_engine(settings))
    insights = InsightGenerator(settings, build_text_generators(settings))
    mailer = ReportMailer(settings, ResendMailer(settings))
    return (
        RecurringEngine(session_factory, settings),
        ReportEngine(session_factory, settings, insights, mailer),
    )


class SchedulerManager:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)
        self._engines: Optional[tuple[RecurringEngine, ReportEngine]] = None

    @property
    def engines(self) -> tuple[RecurringEngine, ReportEngine]:
        if self._engines is None:
            self._engines = build_engines(self.settings)
        return self._engines

    def run_recurring(self, source: str = "manual") -> JobResult:
        logger.info(f"scheduler_run: job=recurring source={source}")
        result = self.engines[0].post_due_transactions()
        logger.info(
            f"scheduler_run: job=recurring source={source} "
            f"processed={result.processed_count} failed={result.failed_count}"
        )
        return result

    def run_reports(self, source: str = "manual") -> JobResult:
        logger.info(f"scheduler_run: job=reports source={source}")
        result = self.engines[1].send_due_reports()
        logger.info(
            f"scheduler_run: job=reports source={source} "
            f"processed={result.processed_count} failed={result.failed_count}"
        )
        return result

    def start(self) -> None:
        self.run_recurring("startup")

        self.scheduler.add_job(
            self.run_recurring,
            CronTrigger(hour=0, minute=5),
            args=["daily_00:05"],
            id="recurring_daily",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self.scheduler.add_job(
            self.run_recurring,
            IntervalTrigger(hours=1),
            args=["hourly_safety_net"],
            id="recurring_hourly_safety",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self.scheduler.add_job(
            self.run_reports,
            CronTrigger(day=1, hour=2, minute=30),
            args=["monthly_1st_02:30"],
            id="reports_monthly",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=6 * 3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily recurring, hourly safety net and monthly reports")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one Finora batch job now.")
    parser.add_argument("job", choices=["recurring", "reports"])
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    manager = SchedulerManager(settings)
    if args.job == "recurring":
        result = manager.run_recurring("cli")
    else:
        result = manager.run_reports("cli")
    print(result.model_dump_json())
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
