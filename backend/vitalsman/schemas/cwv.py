"""
Core Web Vitals schemas: the collector's wire format and status views.

Wire fields are camelCase, matching what the browser collector posts.
"""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator

from vitalsman.models.cwv import DeviceType, MetricName, Rating
from vitalsman.schemas.common import BaseSchema, IDSchema, TimestampSchema


class ConnectionInfo(BaseSchema):
    """Network Information API snapshot."""

    effective_type: str | None = Field(default=None, alias="effectiveType")
    downlink: float | None = None
    rtt: float | None = None
    save_data: bool | None = Field(default=None, alias="saveData")


class Dimensions(BaseSchema):
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class MetricSampleIn(BaseSchema):
    """One metric observation as sent by the collector."""

    name: MetricName
    value: float = Field(ge=0, allow_inf_nan=False)
    rating: Rating
    delta: float | None = Field(default=None, allow_inf_nan=False)
    id: str | None = Field(default=None, max_length=100)
    page_id: int = Field(alias="pageId", ge=0)
    site_id: int = Field(default=1, alias="siteId", ge=0)
    device_type: DeviceType = Field(alias="deviceType")
    connection_type: ConnectionInfo | Literal["unknown"] = Field(
        default="unknown", alias="connectionType"
    )
    timestamp: float | None = None  # client clock, ms since epoch
    url: str = Field(max_length=2048)
    navigation_type: str = Field(default="unknown", alias="navigationType", max_length=20)

    @field_validator("value")
    @classmethod
    def round_value(cls, v: float) -> float:
        return round(v, 2)

    @field_validator("site_id", mode="before")
    @classmethod
    def default_site(cls, v):
        return 1 if v is None else v


class BatchMeta(BaseSchema):
    """Envelope describing the browser that produced the batch."""

    user_agent: str | None = Field(default=None, alias="userAgent")
    viewport: Dimensions | None = None
    screen: Dimensions | None = None


class MetricsBatch(BaseSchema):
    """A batch of samples plus client metadata."""

    metrics: list[MetricSampleIn]
    meta: BatchMeta = Field(default_factory=BatchMeta)


class IngestResponse(BaseSchema):
    success: bool = True
    processed: int


class IngestError(BaseSchema):
    success: bool = False
    message: str


class MetricAggregateResponse(BaseSchema):
    """Aggregated view of one metric on one device bucket."""

    p75: float | None
    rating: str | None = Field(validation_alias="p75_rating")
    latest_value: float | None
    latest_rating: str | None
    sample_count: int
    good_count: int
    needs_improvement_count: int
    poor_count: int
    last_sample_at: datetime | None


class PageCwvStatus(BaseSchema):
    """Per-page status: metric name -> device type -> aggregate."""

    page_id: int
    metrics: dict[str, dict[str, MetricAggregateResponse]] = Field(default_factory=dict)
    updated_at: datetime | None = None


class CwvAlertResponse(IDSchema, TimestampSchema):
    page_id: int
    metric_name: str
    value: float
    rating: str
    device_type: str
    url: str | None
    diagnosis: dict
    resolved: bool
    resolved_at: datetime | None
