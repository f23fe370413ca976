"""
CWV alert service: threshold-violation alerts with a per page/metric cooldown.
"""
import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vitalsman.config import settings
from vitalsman.models.cwv import CwvAlert, CwvSample, Rating
from vitalsman.services.cwv_diagnosis import diagnose

logger = logging.getLogger(__name__)


class CwvAlertService:
    """Service for CWV alert operations."""

    def __init__(self, db: AsyncSession, cooldown_minutes: int | None = None):
        self.db = db
        self.cooldown = timedelta(
            minutes=cooldown_minutes
            if cooldown_minutes is not None
            else settings.CWV_ALERT_COOLDOWN_MINUTES
        )
        # (page_id, metric) pairs alerted in this unit of work, not yet flushed
        self._pending: set[tuple[int, str]] = set()

    async def check_sample(self, sample: CwvSample) -> CwvAlert | None:
        """Create an alert for a poor sample unless one was raised recently."""
        if sample.rating != Rating.POOR.value:
            return None

        key = (sample.page_id, sample.metric_name)
        if key in self._pending:
            return None

        now = datetime.now(timezone.utc)
        if await self._alerted_since(sample.page_id, sample.metric_name, now - self.cooldown):
            return None

        alert = CwvAlert(
            page_id=sample.page_id,
            metric_name=sample.metric_name,
            value=sample.value,
            rating=sample.rating,
            device_type=sample.device_type,
            url=sample.url,
            diagnosis=diagnose(sample.metric_name),
            resolved=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(alert)
        self._pending.add(key)

        logger.warning(
            f"[ALERTS] CWV threshold violated: {sample.metric_name}={sample.value} "
            f"on page {sample.page_id} ({sample.device_type})"
        )
        return alert

    async def _alerted_since(self, page_id: int, metric_name: str, since: datetime) -> bool:
        result = await self.db.execute(
            select(func.count(CwvAlert.id)).where(
                CwvAlert.page_id == page_id,
                CwvAlert.metric_name == metric_name,
                CwvAlert.created_at >= since,
            )
        )
        return (result.scalar() or 0) > 0

    async def list_alerts(
        self,
        page_id: int | None = None,
        resolved: bool | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[CwvAlert], int]:
        """List alerts, newest first."""
        query = select(CwvAlert)
        count_query = select(func.count(CwvAlert.id))

        if page_id is not None:
            query = query.where(CwvAlert.page_id == page_id)
            count_query = count_query.where(CwvAlert.page_id == page_id)
        if resolved is not None:
            query = query.where(CwvAlert.resolved == resolved)
            count_query = count_query.where(CwvAlert.resolved == resolved)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(CwvAlert.created_at.desc())
        query = query.offset((page - 1) * per_page).limit(per_page)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def get_alert(self, alert_id: UUID) -> CwvAlert | None:
        result = await self.db.execute(select(CwvAlert).where(CwvAlert.id == alert_id))
        return result.scalar_one_or_none()

    async def resolve_alert(self, alert_id: UUID) -> CwvAlert | None:
        """Mark an alert resolved. Returns None if it does not exist."""
        alert = await self.get_alert(alert_id)
        if alert is None:
            return None

        if not alert.resolved:
            alert.resolved = True
            alert.resolved_at = datetime.now(timezone.utc)
            await self.db.flush()
            await self.db.refresh(alert)
        return alert
