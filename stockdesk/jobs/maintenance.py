"""
Maintenance Scheduler - Periodic cleanup of auth bookkeeping and stock drift checks
"""
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from stockdesk.core.config import settings
from stockdesk.core.database import SessionLocal
from stockdesk.services import AuthService, StockService

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional["MaintenanceScheduler"] = None


class MaintenanceScheduler:
    """
    Runs housekeeping jobs in a background thread
    """

    def __init__(self, interval_minutes: Optional[int] = None):
        self.scheduler = BackgroundScheduler()
        self.interval_minutes = interval_minutes or settings.MAINTENANCE_INTERVAL_MINUTES
        self.is_running = False

    def start(self):
        """Start the scheduler"""
        if self.is_running:
            return
        self.scheduler.add_job(
            func=self.purge_auth_records,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="purge_auth_records",
            name="Purge expired sessions and login records",
            replace_existing=True
        )
        self.scheduler.add_job(
            func=self.check_stock_integrity,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="check_stock_integrity",
            name="Report stock ledger drift",
            replace_existing=True
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"Maintenance scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Maintenance scheduler stopped")

    @staticmethod
    def purge_auth_records() -> dict:
        db = SessionLocal()
        try:
            counts = AuthService.purge_expired(db)
            if any(counts.values()):
                logger.info(f"Purged auth records: {counts}")
            return counts
        except Exception as e:
            logger.error(f"Auth purge failed: {e}")
            db.rollback()
            return {}
        finally:
            db.close()

    @staticmethod
    def check_stock_integrity() -> int:
        """Log drifted products; fixing them is left to an explicit reconcile"""
        db = SessionLocal()
        try:
            drifted = StockService.stock_integrity_report(db)
            for row in drifted:
                logger.warning(
                    f"Stock drift on {row['code']}: cached {row['stock_quantity']}, "
                    f"ledger {row['ledger_quantity']}"
                )
            return len(drifted)
        finally:
            db.close()


def start_scheduler() -> MaintenanceScheduler:
    """Start the global scheduler"""
    global _scheduler
    if _scheduler is None:
        _scheduler = MaintenanceScheduler()
    _scheduler.start()
    return _scheduler


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
