"""
Pydantic schemas for the Vitalsman API.
"""
from vitalsman.schemas.common import (
    BaseSchema,
    IDSchema,
    PaginatedResponse,
    TimestampSchema,
)
from vitalsman.schemas.cwv import (
    BatchMeta,
    ConnectionInfo,
    CwvAlertResponse,
    Dimensions,
    IngestError,
    IngestResponse,
    MetricAggregateResponse,
    MetricSampleIn,
    MetricsBatch,
    PageCwvStatus,
)

__all__ = [
    "BaseSchema",
    "IDSchema",
    "PaginatedResponse",
    "TimestampSchema",
    "BatchMeta",
    "ConnectionInfo",
    "CwvAlertResponse",
    "Dimensions",
    "IngestError",
    "IngestResponse",
    "MetricAggregateResponse",
    "MetricSampleIn",
    "MetricsBatch",
    "PageCwvStatus",
]
