"""
Unit tests for CWV ingestion, aggregation and alerting.

Tests:
- Sample persistence
- Write-time aggregates (p75, rating counts, rolling window)
- Alert creation, in-batch dedupe and cooldown
- Status view and retention purge
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vitalsman.models.cwv import CwvAggregate, CwvAlert, CwvSample
from vitalsman.schemas.cwv import MetricsBatch
from vitalsman.services.cwv_alert_service import CwvAlertService
from vitalsman.services.cwv_service import CwvService


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


async def _aggregate(db, page_id=101, metric="LCP", device="mobile") -> CwvAggregate:
    result = await db.execute(
        select(CwvAggregate).where(
            CwvAggregate.page_id == page_id,
            CwvAggregate.metric_name == metric,
            CwvAggregate.device_type == device,
        )
    )
    return result.scalar_one()


class TestProcessBatch:
    """Test storing samples."""

    @pytest.mark.asyncio
    async def test_stores_every_sample(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(name="LCP", value=1850.5),
            make_metric(name="CLS", value=0.05),
            make_metric(name="TTFB", value=420, deviceType="desktop"),
        ))

        result = await CwvService(db_session).process_batch(batch)

        assert result.processed == 3
        assert result.alerts == []
        assert await _count(db_session, CwvSample) == 3

    @pytest.mark.asyncio
    async def test_sample_fields(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(make_metric(value=123.456, id="v4-xyz")))

        await CwvService(db_session).process_batch(batch)

        sample = (await db_session.execute(select(CwvSample))).scalar_one()
        assert sample.value == 123.46
        assert sample.metric_id == "v4-xyz"
        assert sample.page_id == 101
        assert sample.site_id == 1
        assert sample.connection["effectiveType"] == "4g"
        assert sample.navigation_type == "navigate"
        assert sample.user_agent.startswith("Mozilla/5.0")
        assert sample.viewport == {"width": 390, "height": 844}
        assert sample.captured_at.year == 2026

    @pytest.mark.asyncio
    async def test_unknown_connection_stored_as_null(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(make_metric(connectionType="unknown")))

        await CwvService(db_session).process_batch(batch)

        sample = (await db_session.execute(select(CwvSample))).scalar_one()
        assert sample.connection is None

    def test_captured_at_falls_back_to_server_time(self):
        before = datetime.now(timezone.utc)

        assert CwvService._captured_at(None) >= before
        assert CwvService._captured_at(1e20) >= before


class TestAggregates:
    """Test write-time aggregation."""

    @pytest.mark.asyncio
    async def test_p75_and_counts(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(value=1000, rating="good"),
            make_metric(value=2000, rating="good"),
            make_metric(value=3000, rating="needs-improvement"),
            make_metric(value=5000, rating="poor"),
        ))

        await CwvService(db_session).process_batch(batch)

        aggregate = await _aggregate(db_session)
        assert aggregate.sample_count == 4
        assert aggregate.good_count == 2
        assert aggregate.needs_improvement_count == 1
        assert aggregate.poor_count == 1
        assert aggregate.p75 == 3000
        assert aggregate.p75_rating == "needs-improvement"
        assert aggregate.latest_value == 5000
        assert aggregate.latest_rating == "poor"

    @pytest.mark.asyncio
    async def test_aggregates_across_batches(self, db_session, make_batch, make_metric):
        service = CwvService(db_session)

        await service.process_batch(MetricsBatch.model_validate(make_batch(make_metric(value=1000))))
        await service.process_batch(MetricsBatch.model_validate(make_batch(make_metric(value=2000))))

        assert await _count(db_session, CwvAggregate) == 1
        aggregate = await _aggregate(db_session)
        assert aggregate.sample_count == 2
        assert aggregate.recent_values == [1000, 2000]

    @pytest.mark.asyncio
    async def test_device_types_are_separate(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(value=1000, deviceType="mobile"),
            make_metric(value=4500, rating="poor", deviceType="desktop"),
        ))

        await CwvService(db_session).process_batch(batch)

        mobile = await _aggregate(db_session, device="mobile")
        desktop = await _aggregate(db_session, device="desktop")
        assert mobile.p75 == 1000
        assert mobile.p75_rating == "good"
        assert desktop.p75 == 4500
        assert desktop.p75_rating == "poor"

    @pytest.mark.asyncio
    async def test_window_keeps_most_recent_values(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            *[make_metric(value=v) for v in (9000, 8000, 100, 200, 300)]
        ))

        await CwvService(db_session, window=3).process_batch(batch)

        aggregate = await _aggregate(db_session)
        assert aggregate.recent_values == [100, 200, 300]
        assert aggregate.p75 == 300
        assert aggregate.sample_count == 5


class TestConcurrentSessions:
    """Test batches for the same aggregate arriving through separate sessions."""

    @pytest.fixture
    def sessions(self, test_engine):
        return async_sessionmaker(
            test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

    @pytest.mark.asyncio
    async def test_sessions_accumulate_into_one_row(self, sessions, make_batch, make_metric):
        for value in (1000, 2000, 3000):
            async with sessions() as session:
                batch = MetricsBatch.model_validate(make_batch(make_metric(value=value)))
                await CwvService(session).process_batch(batch)
                await session.commit()

        async with sessions() as session:
            assert await _count(session, CwvAggregate) == 1
            aggregate = await _aggregate(session)
            assert aggregate.sample_count == 3
            assert aggregate.recent_values == [1000, 2000, 3000]

    @pytest.mark.asyncio
    async def test_row_created_by_concurrent_batch_is_reused(
        self, sessions, make_batch, make_metric
    ):
        async with sessions() as first:
            batch = MetricsBatch.model_validate(make_batch(make_metric(value=1000)))
            await CwvService(first).process_batch(batch)
            await first.commit()

        async with sessions() as second:
            service = CwvService(second)
            select_aggregates = service._select_aggregates
            calls = []

            async def not_yet_visible(keys):
                # The first lookup runs before the other batch committed its row
                calls.append(keys)
                if len(calls) == 1:
                    return {}
                return await select_aggregates(keys)

            service._select_aggregates = not_yet_visible
            batch = MetricsBatch.model_validate(make_batch(make_metric(value=2000)))
            result = await service.process_batch(batch)
            await second.commit()

        assert result.processed == 1
        assert len(calls) == 2
        async with sessions() as session:
            assert await _count(session, CwvAggregate) == 1
            aggregate = await _aggregate(session)
            assert aggregate.sample_count == 2
            assert aggregate.recent_values == [1000, 2000]


class TestAlerts:
    """Test threshold-violation alerts."""

    @pytest.mark.asyncio
    async def test_no_alert_for_good_samples(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(value=3000, rating="needs-improvement"),
        ))

        result = await CwvService(db_session).process_batch(batch)

        assert result.alerts == []
        assert await _count(db_session, CwvAlert) == 0

    @pytest.mark.asyncio
    async def test_poor_sample_raises_alert(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(name="TTFB", value=2400, rating="poor"),
        ))

        result = await CwvService(db_session).process_batch(batch)

        assert len(result.alerts) == 1
        alert = result.alerts[0]
        assert alert.metric_name == "TTFB"
        assert alert.value == 2400
        assert alert.resolved is False
        assert alert.diagnosis["priority"] == "critical"

    @pytest.mark.asyncio
    async def test_one_alert_per_page_metric_in_batch(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(value=5000, rating="poor"),
            make_metric(value=6000, rating="poor", deviceType="desktop"),
            make_metric(name="INP", value=700, rating="poor"),
        ))

        result = await CwvService(db_session).process_batch(batch)

        assert sorted(a.metric_name for a in result.alerts) == ["INP", "LCP"]
        assert await _count(db_session, CwvAlert) == 2

    @pytest.mark.asyncio
    async def test_cooldown_suppresses_repeat_alerts(self, db_session, make_batch, make_metric):
        def poor():
            return MetricsBatch.model_validate(make_batch(make_metric(value=5000, rating="poor")))

        first = await CwvService(db_session).process_batch(poor())
        second = await CwvService(db_session).process_batch(poor())

        assert len(first.alerts) == 1
        assert second.alerts == []

        # Age the alert past the cooldown
        first.alerts[0].created_at = datetime.now(timezone.utc) - timedelta(hours=2)
        await db_session.flush()

        third = await CwvService(db_session).process_batch(poor())
        assert len(third.alerts) == 1
        assert await _count(db_session, CwvAlert) == 2

    @pytest.mark.asyncio
    async def test_resolve_alert(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(make_metric(value=5000, rating="poor")))
        result = await CwvService(db_session).process_batch(batch)

        service = CwvAlertService(db_session)
        alert = await service.resolve_alert(result.alerts[0].id)

        assert alert.resolved is True
        assert alert.resolved_at is not None

        alerts, total = await service.list_alerts(resolved=False)
        assert alerts == []
        assert total == 0

    @pytest.mark.asyncio
    async def test_list_alerts_filters_by_page(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(value=5000, rating="poor", pageId=1),
            make_metric(value=5000, rating="poor", pageId=2),
        ))
        await CwvService(db_session).process_batch(batch)

        alerts, total = await CwvAlertService(db_session).list_alerts(page_id=2)

        assert total == 1
        assert alerts[0].page_id == 2


class TestStatus:
    """Test the aggregated status view."""

    @pytest.mark.asyncio
    async def test_unknown_page_is_empty(self, db_session):
        status = await CwvService(db_session).get_page_status(999)

        assert status.page_id == 999
        assert status.metrics == {}
        assert status.updated_at is None

    @pytest.mark.asyncio
    async def test_status_groups_by_metric_and_device(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(name="LCP", value=1200, deviceType="mobile"),
            make_metric(name="LCP", value=1400, deviceType="desktop"),
            make_metric(name="CLS", value=0.02, deviceType="mobile"),
        ))
        service = CwvService(db_session)
        await service.process_batch(batch)

        status = await service.get_page_status(101)

        assert set(status.metrics) == {"LCP", "CLS"}
        assert set(status.metrics["LCP"]) == {"mobile", "desktop"}
        lcp = status.metrics["LCP"]["desktop"]
        assert lcp.p75 == 1400
        assert lcp.rating == "good"
        assert lcp.sample_count == 1
        assert status.updated_at is not None


class TestPurge:
    """Test retention purge."""

    @pytest.mark.asyncio
    async def test_purges_only_old_samples(self, db_session, make_batch, make_metric):
        batch = MetricsBatch.model_validate(make_batch(
            make_metric(timestamp=1_600_000_000_000),  # 2020
            make_metric(timestamp=1_790_000_000_000),  # 2026
        ))
        await CwvService(db_session).process_batch(batch)

        deleted = await CwvService(db_session).purge_samples_before(
            datetime(2025, 1, 1, tzinfo=timezone.utc)
        )

        assert deleted == 1
        assert await _count(db_session, CwvSample) == 1
        assert await _count(db_session, CwvAggregate) == 1
