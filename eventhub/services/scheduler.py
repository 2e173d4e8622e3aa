from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from datetime import datetime
from typing import Optional
import logging

from eventhub.config import get_settings
from eventhub.database import SessionLocal, atomic
from eventhub.models.user import User
from eventhub.services.email import EmailService
from eventhub.services.loyalty import LoyaltyService
from eventhub.services.settlement import SettlementService

settings = get_settings()
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

jobstores = {
    'default': SQLAlchemyJobStore(url=settings.database_url)
}

EXPIRY_JOB_ID = "expire_overdue_transactions"
RECONCILE_JOB_ID = "reconcile_point_balances"


def init_scheduler():
    """Initialize the scheduler with job stores and the recurring jobs."""
    scheduler.configure(jobstores=jobstores)
    scheduler.add_job(
        expire_overdue_transactions,
        'interval',
        seconds=settings.expiry_sweep_interval_seconds,
        id=EXPIRY_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1
    )
    scheduler.add_job(
        reconcile_point_balances,
        'cron',
        hour=3,
        id=RECONCILE_JOB_ID,
        replace_existing=True,
        coalesce=True
    )
    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler shutdown")


async def expire_overdue_transactions(now: Optional[datetime] = None) -> int:
    """Expire unpaid transactions past their deadline, then notify the buyers."""
    db = SessionLocal()
    try:
        outcomes = SettlementService.expire_overdue(db, now)
    except Exception as e:
        logger.error(f"Error sweeping overdue transactions: {e}")
        return 0
    finally:
        db.close()

    for outcome in outcomes:
        await EmailService.notify_settlement(outcome.notice)
    return len(outcomes)


def reconcile_point_balances(now: Optional[datetime] = None) -> int:
    """Recompute every user's point balance from the ledger. Returns how many drifted."""
    db = SessionLocal()
    drifted = 0
    try:
        user_ids = [row.id for row in db.query(User.id).all()]
        db.rollback()
        for user_id in user_ids:
            with atomic(db):
                if LoyaltyService.reconcile(db, user_id, now):
                    drifted += 1
    except Exception as e:
        logger.error(f"Error reconciling point balances: {e}")
    finally:
        db.close()

    logger.info(f"Point reconciliation finished, {drifted} balances corrected")
    return drifted
