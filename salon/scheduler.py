import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from salon import database
from salon.config import Settings, get_settings
from salon.plans import get_plan_catalog
from salon.services.appointment_service import AppointmentService
from salon.services.backup_service import BackupService
from salon.services.plan_service import PlanValidator

scheduler = AsyncIOScheduler(timezone="UTC")

logger = logging.getLogger(__name__)


async def auto_complete_appointments():
    settings = get_settings()
    async with database.AsyncSessionLocal() as db:
        result = await AppointmentService(db, settings.auto_complete_after_hours).process_pending_completions()
    logger.info(f"[Scheduler] Auto-completion finished: {result['completed_count']} completed")


async def reconcile_expired_plans():
    async with database.AsyncSessionLocal() as db:
        repaired = await PlanValidator(db).reconcile_expired()
    logger.info(f"[Scheduler] Plan reconciliation finished: {repaired} tenant(s) reset")


async def cleanup_expired_backups():
    async with database.AsyncSessionLocal() as db:
        deleted = await BackupService(db, get_settings(), get_plan_catalog()).cleanup_expired()
    logger.info(f"[Scheduler] Backup cleanup finished: {deleted} removed")


def register_jobs(settings: Settings) -> None:
    scheduler.add_job(
        auto_complete_appointments,
        trigger=IntervalTrigger(minutes=settings.auto_complete_interval_minutes),
        id="auto_complete_appointments",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        reconcile_expired_plans,
        trigger=IntervalTrigger(minutes=settings.plan_reconcile_interval_minutes),
        id="reconcile_expired_plans",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        cleanup_expired_backups,
        trigger=CronTrigger(hour=3, minute=0),
        id="cleanup_expired_backups",
        replace_existing=True,
    )
    logger.info(f"[Scheduler] {len(scheduler.get_jobs())} jobs registered")
