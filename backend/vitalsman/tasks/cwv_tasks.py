"""
CWV Tasks

Alert notification fan-out and raw sample retention.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from celery import shared_task
from sqlalchemy import select

from vitalsman.config import settings
from vitalsman.database import get_task_session_maker
from vitalsman.models.cwv import CwvAlert
from vitalsman.services.cwv_service import CwvService
from vitalsman.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

__all__ = ["send_cwv_alert_notifications", "purge_old_cwv_samples"]


def run_async(coro):
    """Helper to run async code in sync context."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_cwv_alert_notifications(self, alert_ids: list[str]):
    """Send email/webhook notifications for newly created alerts."""
    return run_async(_send_cwv_alert_notifications(alert_ids))


async def _send_cwv_alert_notifications(alert_ids: list[str]) -> dict:
    notifier = NotificationService()
    session_maker = get_task_session_maker()

    async with session_maker() as session:
        result = await session.execute(
            select(CwvAlert).where(CwvAlert.id.in_([UUID(a) for a in alert_ids]))
        )
        alerts = list(result.scalars().all())

    sent = []
    for alert in alerts:
        outcomes = await notifier.send_alert(alert)
        sent.append({"alert_id": str(alert.id), "results": outcomes})

    logger.info(f"[ALERTS] Notified {len(alerts)} CWV alerts")
    return {"alerts": len(alerts), "results": sent}


@shared_task(bind=True)
def purge_old_cwv_samples(self, retention_days: int | None = None):
    """Delete raw samples older than the retention window."""
    return run_async(_purge_old_cwv_samples(retention_days or settings.CWV_RETENTION_DAYS))


async def _purge_old_cwv_samples(retention_days: int) -> dict:
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    session_maker = get_task_session_maker()

    async with session_maker() as session:
        deleted = await CwvService(session).purge_samples_before(cutoff)
        await session.commit()

    logger.info(f"[CWV] Purged {deleted} samples captured before {cutoff.isoformat()}")
    return {"deleted": deleted, "cutoff": cutoff.isoformat()}
