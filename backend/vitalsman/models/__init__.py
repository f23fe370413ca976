"""
SQLAlchemy models for Vitalsman.
"""
from vitalsman.models.base import Base, BaseModel
from vitalsman.models.cwv import (
    CwvAggregate,
    CwvAlert,
    CwvSample,
    DeviceType,
    MetricName,
    Rating,
)

__all__ = [
    "Base",
    "BaseModel",
    "CwvAggregate",
    "CwvAlert",
    "CwvSample",
    "DeviceType",
    "MetricName",
    "Rating",
]
