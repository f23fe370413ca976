"""
CWV ingestion service.

Persists collector batches, keeps per-page aggregates current at write time
and serves the aggregated status view.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import delete, select, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vitalsman.config import settings
from vitalsman.models.cwv import CwvAggregate, CwvAlert, CwvSample, Rating
from vitalsman.schemas.cwv import MetricAggregateResponse, MetricSampleIn, MetricsBatch, PageCwvStatus
from vitalsman.services.cwv_alert_service import CwvAlertService
from vitalsman.services.cwv_ratings import get_rating, percentile

logger = logging.getLogger(__name__)

RATING_COUNTERS = {
    Rating.GOOD.value: "good_count",
    Rating.NEEDS_IMPROVEMENT.value: "needs_improvement_count",
    Rating.POOR.value: "poor_count",
}

AGGREGATE_KEY_COLUMNS = ("page_id", "metric_name", "device_type")

AggregateKey = tuple[int, str, str]


@dataclass
class BatchResult:
    """Outcome of processing one batch."""
    processed: int
    alerts: list[CwvAlert] = field(default_factory=list)


class CwvService:
    """Service for Core Web Vitals ingestion and status."""

    def __init__(
        self,
        db: AsyncSession,
        window: int | None = None,
        pct: int | None = None,
    ):
        self.db = db
        self.window = window or settings.CWV_AGGREGATE_WINDOW
        self.pct = pct or settings.CWV_PERCENTILE
        self.alerts = CwvAlertService(db)

    async def process_batch(self, batch: MetricsBatch) -> BatchResult:
        """
        Store every sample of a batch and fold it into the page aggregates.

        Runs inside the caller's transaction; nothing is committed here, so a
        failure part-way leaves the whole batch to be rolled back.
        """
        result = BatchResult(processed=0)

        samples = [self._build_sample(metric, batch) for metric in batch.metrics]
        aggregates = await self._lock_aggregates(
            {self._aggregate_key(sample): sample.site_id for sample in samples}
        )

        for sample in samples:
            self.db.add(sample)
            self._apply_sample(aggregates[self._aggregate_key(sample)], sample)

            alert = await self.alerts.check_sample(sample)
            if alert is not None:
                result.alerts.append(alert)

            result.processed += 1

        await self.db.flush()

        logger.info(
            f"[CWV] Stored {result.processed} samples across {len(aggregates)} aggregates "
            f"({len(result.alerts)} alerts)"
        )
        return result

    def _build_sample(self, metric: MetricSampleIn, batch: MetricsBatch) -> CwvSample:
        meta = batch.meta
        connection = metric.connection_type
        return CwvSample(
            site_id=metric.site_id,
            page_id=metric.page_id,
            metric_name=metric.name.value,
            value=metric.value,
            rating=metric.rating.value,
            delta=metric.delta,
            metric_id=metric.id,
            device_type=metric.device_type.value,
            connection=None if connection == "unknown" else connection.model_dump(by_alias=True),
            navigation_type=metric.navigation_type,
            url=metric.url,
            user_agent=meta.user_agent[:512] if meta.user_agent else None,
            viewport=meta.viewport.model_dump() if meta.viewport else {},
            screen=meta.screen.model_dump() if meta.screen else {},
            captured_at=self._captured_at(metric.timestamp),
        )

    @staticmethod
    def _captured_at(timestamp_ms: float | None) -> datetime:
        if timestamp_ms is None:
            return datetime.now(timezone.utc)
        try:
            return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"[CWV] Unusable client timestamp {timestamp_ms}, using server time")
            return datetime.now(timezone.utc)

    @staticmethod
    def _aggregate_key(sample: CwvSample) -> AggregateKey:
        return (sample.page_id, sample.metric_name, sample.device_type)

    async def _lock_aggregates(
        self,
        site_ids: dict[AggregateKey, int],
    ) -> dict[AggregateKey, CwvAggregate]:
        """
        Row-lock the aggregates a batch touches, creating missing ones.

        Rows are locked in key order so concurrent batches cannot deadlock.
        A row created by a concurrent batch between the select and the insert
        turns the insert into a no-op and is picked up by the second select.
        """
        keys = sorted(site_ids)
        aggregates = await self._select_aggregates(keys)

        missing = [key for key in keys if key not in aggregates]
        if missing:
            stmt = self._insert_aggregates().values([
                {
                    "id": uuid.uuid4(),
                    "site_id": site_ids[key],
                    "page_id": key[0],
                    "metric_name": key[1],
                    "device_type": key[2],
                    "sample_count": 0,
                    "good_count": 0,
                    "needs_improvement_count": 0,
                    "poor_count": 0,
                    "recent_values": [],
                }
                for key in missing
            ])
            await self.db.execute(
                stmt.on_conflict_do_nothing(index_elements=list(AGGREGATE_KEY_COLUMNS))
            )
            aggregates.update(await self._select_aggregates(missing))

        return aggregates

    async def _select_aggregates(
        self,
        keys: list[AggregateKey],
    ) -> dict[AggregateKey, CwvAggregate]:
        result = await self.db.execute(
            select(CwvAggregate)
            .where(
                tuple_(
                    CwvAggregate.page_id,
                    CwvAggregate.metric_name,
                    CwvAggregate.device_type,
                ).in_(keys)
            )
            .order_by(CwvAggregate.page_id, CwvAggregate.metric_name, CwvAggregate.device_type)
            .with_for_update()
        )
        return {
            (row.page_id, row.metric_name, row.device_type): row
            for row in result.scalars().all()
        }

    def _insert_aggregates(self):
        # ON CONFLICT is dialect specific; SQLite backs local runs and tests
        if self.db.get_bind().dialect.name == "sqlite":
            return sqlite_insert(CwvAggregate)
        return pg_insert(CwvAggregate)

    def _apply_sample(self, aggregate: CwvAggregate, sample: CwvSample) -> None:
        """Fold one sample into an aggregate row."""
        # Reassign rather than mutate so the JSON column is marked dirty
        window = list(aggregate.recent_values or [])
        window.append(sample.value)
        window = window[-self.window:]
        aggregate.recent_values = window

        aggregate.p75 = percentile(window, self.pct)
        aggregate.p75_rating = get_rating(sample.metric_name, aggregate.p75)

        aggregate.sample_count = (aggregate.sample_count or 0) + 1
        counter = RATING_COUNTERS.get(sample.rating)
        if counter:
            setattr(aggregate, counter, (getattr(aggregate, counter) or 0) + 1)

        aggregate.latest_value = sample.value
        aggregate.latest_rating = sample.rating
        aggregate.last_sample_at = sample.captured_at

    async def get_page_status(self, page_id: int) -> PageCwvStatus:
        """Aggregated CWV status for a page. Empty metrics when nothing was recorded."""
        result = await self.db.execute(
            select(CwvAggregate)
            .where(CwvAggregate.page_id == page_id)
            .order_by(CwvAggregate.metric_name, CwvAggregate.device_type)
        )
        rows = list(result.scalars().all())

        metrics: dict[str, dict[str, MetricAggregateResponse]] = {}
        for row in rows:
            metrics.setdefault(row.metric_name, {})[row.device_type] = (
                MetricAggregateResponse.model_validate(row)
            )

        updated_at = max(
            (row.last_sample_at for row in rows if row.last_sample_at is not None),
            default=None,
        )
        return PageCwvStatus(page_id=page_id, metrics=metrics, updated_at=updated_at)

    async def purge_samples_before(self, cutoff: datetime) -> int:
        """Delete raw samples captured before cutoff. Aggregates are kept."""
        result = await self.db.execute(
            delete(CwvSample).where(CwvSample.captured_at < cutoff)
        )
        return result.rowcount or 0
