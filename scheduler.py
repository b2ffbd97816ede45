import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from database import session_scope
from services import refresh_spending_for_all_users


logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(
        self, session_factory: Optional[sessionmaker[Session]] = None
    ) -> None:
        self.settings = get_settings()
        self.session_factory = session_factory
        self.scheduler = BackgroundScheduler(timezone=self.settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"budget_refresh: source={source}")
        with session_scope(self.session_factory) as session:
            count = refresh_spending_for_all_users(session)
        logger.info(f"budget_refresh: source={source} budgets_refreshed={count}")

    def start(self) -> None:
        self._run_job("startup")

        self.scheduler.add_job(
            self._run_job,
            CronTrigger(hour=0, minute=5),
            args=["daily_00:05"],
            id="budget_refresh_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        hours = self.settings.refresh_interval_hours
        self.scheduler.add_job(
            self._run_job,
            IntervalTrigger(hours=hours),
            args=[f"every_{hours}h"],
            id="budget_refresh_interval",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(f"Scheduler started with daily 00:05 and {hours}h budget refresh")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
