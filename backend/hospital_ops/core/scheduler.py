import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from hospital_ops.config import Settings
from hospital_ops.notifications.service import NotificationService

logger = logging.getLogger(__name__)


async def _sweep_old_notifications(
    notification_service: NotificationService, days_to_keep: int
) -> None:
    """Job: drop expired and out-of-window notifications."""
    try:
        removed = await notification_service.clear_old_notifications(days_to_keep)
        if removed > 0:
            logger.info("Retention sweep removed %d notifications", removed)
    except Exception:
        logger.exception("Error sweeping old notifications")


async def _send_email_digest(notification_service: NotificationService) -> None:
    """Job: send the unread digest when the digest setting allows it."""
    try:
        count = await notification_service.send_email_digest()
        if count > 0:
            logger.info("Email digest sent with %d notifications", count)
    except Exception:
        logger.exception("Error sending email digest")


def setup_scheduler(
    notification_service: NotificationService, settings: Settings
) -> AsyncIOScheduler:
    """Register all periodic jobs and start the scheduler."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _sweep_old_notifications,
        CronTrigger(hour=3, minute=0),
        args=[notification_service, settings.notification_retention_days],
        id="sweep_old_notifications",
        replace_existing=True,
    )

    scheduler.add_job(
        _send_email_digest,
        CronTrigger(hour=settings.email_digest_hour, minute=0),
        args=[notification_service],
        id="send_email_digest",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(scheduler.get_jobs()))
    return scheduler


def shutdown_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
