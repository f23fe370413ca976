"""
Browser-side Core Web Vitals collector.
"""
from vitalsman.collector.host import (
    Metric,
    PageLifecycle,
    StaticPageEnvironment,
    get_device_type,
)
from vitalsman.collector.monitor import WebVitalsMonitor, configure, init_monitor
from vitalsman.collector.options import CollectorOptions, HostConfig
from vitalsman.collector.transport import KeepaliveTransport

__all__ = [
    "CollectorOptions",
    "HostConfig",
    "KeepaliveTransport",
    "Metric",
    "PageLifecycle",
    "StaticPageEnvironment",
    "WebVitalsMonitor",
    "configure",
    "get_device_type",
    "init_monitor",
]
