"""
Core Web Vitals models.

Raw field samples reported by the collector, per-page aggregates maintained
at write time, and threshold-violation alerts.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from vitalsman.models.base import Base, BaseModel


class MetricName(str, PyEnum):
    """Tracked vitals."""
    LCP = "LCP"
    INP = "INP"
    CLS = "CLS"
    FCP = "FCP"
    TTFB = "TTFB"


class Rating(str, PyEnum):
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs-improvement"
    POOR = "poor"


class DeviceType(str, PyEnum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


class CwvSample(Base, BaseModel):
    """A single metric observation as reported by a visitor's browser."""

    __tablename__ = "cwv_samples"
    __table_args__ = (
        Index("ix_cwv_samples_page_metric_captured", "page_id", "metric_name", "captured_at"),
    )

    site_id = Column(BigInteger, nullable=False, default=1)
    page_id = Column(BigInteger, nullable=False, index=True)

    metric_name = Column(String(10), nullable=False)
    value = Column(Float, nullable=False)
    rating = Column(String(20), nullable=False)
    delta = Column(Float, nullable=True)
    metric_id = Column(String(100), nullable=True)  # client-side metric instance id

    device_type = Column(String(10), nullable=False)
    connection = Column(JSONB, nullable=True)  # null when the browser reports "unknown"
    navigation_type = Column(String(20), nullable=False, default="unknown")
    url = Column(String(2048), nullable=False)

    # Batch envelope
    user_agent = Column(String(512), nullable=True)
    viewport = Column(JSONB, default=dict)
    screen = Column(JSONB, default=dict)

    captured_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<CwvSample page={self.page_id} {self.metric_name}={self.value}>"


class CwvAggregate(Base, BaseModel):
    """
    Rolling aggregate for one page, metric and device bucket.

    Updated on every accepted sample so status reads never touch raw samples.
    """

    __tablename__ = "cwv_aggregates"
    __table_args__ = (
        UniqueConstraint("page_id", "metric_name", "device_type", name="uq_cwv_aggregate_key"),
    )

    site_id = Column(BigInteger, nullable=False, default=1)
    page_id = Column(BigInteger, nullable=False, index=True)
    metric_name = Column(String(10), nullable=False)
    device_type = Column(String(10), nullable=False)

    sample_count = Column(Integer, nullable=False, default=0)
    good_count = Column(Integer, nullable=False, default=0)
    needs_improvement_count = Column(Integer, nullable=False, default=0)
    poor_count = Column(Integer, nullable=False, default=0)

    # Most recent values, oldest first, bounded by CWV_AGGREGATE_WINDOW
    recent_values = Column(JSONB, nullable=False, default=list)

    p75 = Column(Float, nullable=True)
    p75_rating = Column(String(20), nullable=True)
    latest_value = Column(Float, nullable=True)
    latest_rating = Column(String(20), nullable=True)
    last_sample_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<CwvAggregate page={self.page_id} {self.metric_name}/{self.device_type} "
            f"p75={self.p75}>"
        )


class CwvAlert(Base, BaseModel):
    """Threshold violation raised by a poor-rated sample."""

    __tablename__ = "cwv_alerts"
    __table_args__ = (
        Index("ix_cwv_alerts_page_resolved", "page_id", "resolved"),
        Index("ix_cwv_alerts_page_metric_created", "page_id", "metric_name", "created_at"),
    )

    page_id = Column(BigInteger, nullable=False)
    metric_name = Column(String(10), nullable=False)
    value = Column(Float, nullable=False)
    rating = Column(String(20), nullable=False)
    device_type = Column(String(10), nullable=False)
    url = Column(String(2048), nullable=True)

    diagnosis = Column(JSONB, default=dict)

    resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<CwvAlert page={self.page_id} {self.metric_name} resolved={self.resolved}>"
