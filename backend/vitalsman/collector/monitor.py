"""
Real-time Core Web Vitals collector.

Observes vitals in a page context, batches them and flushes the batch on a
timer, when it fills up, or when the page is hidden, unloaded or frozen.
Delivery is best effort: failures are logged and dropped, never retried and
never raised into host code.
"""
import asyncio
import json
import logging
import math
import threading
from collections.abc import Mapping
from typing import Any
from urllib.parse import urljoin

from vitalsman.collector.host import (
    FREEZE,
    PAGE_HIDE,
    VISIBILITY_CHANGE,
    BeaconSender,
    LifecycleEvents,
    MetricsSource,
    PageEnvironment,
    get_device_type,
)
from vitalsman.collector.options import CollectorOptions, HostConfig
from vitalsman.collector.transport import KeepaliveTransport

logger = logging.getLogger(__name__)

SUBSCRIPTIONS = ("on_lcp", "on_inp", "on_cls", "on_fcp", "on_ttfb")


def _field(metric: Any, key: str) -> Any:
    if isinstance(metric, Mapping):
        return metric.get(key)
    return getattr(metric, key, None)


class WebVitalsMonitor:
    """Batches metric reports for one page and ships them to the ingest endpoint."""

    def __init__(
        self,
        options: CollectorOptions,
        environment: PageEnvironment,
        lifecycle: LifecycleEvents | None = None,
        beacon: BeaconSender | None = None,
        transport: KeepaliveTransport | None = None,
    ):
        self.options = options
        self.environment = environment
        self.lifecycle = lifecycle
        self.beacon = beacon
        self.transport = transport
        self.active = False

        self._batch: list[dict] = []
        self._lock = threading.Lock()
        self._timer: asyncio.Task | None = None
        self._deliveries: set[asyncio.Task] = set()
        self._listeners: list[tuple[str, Any]] = []

    @property
    def pending(self) -> int:
        """Number of samples waiting for the next flush."""
        with self._lock:
            return len(self._batch)

    def start(self, source: MetricsSource | None) -> bool:
        """Subscribe to the metrics source and arm the flush triggers."""
        if source is None:
            logger.warning("[COLLECTOR] Web Vitals source not available, monitoring disabled")
            return False

        for name in SUBSCRIPTIONS:
            getattr(source, name)(self.on_metric, report_all_changes=True)

        self._setup_event_listeners()
        self._start_flush_timer()
        self.active = True
        return True

    def on_metric(self, metric: Any) -> None:
        """Queue a metric report; flush immediately once the batch is full."""
        try:
            sample = self._normalize(metric)
        except (TypeError, ValueError) as e:
            logger.warning(f"[COLLECTOR] Ignoring malformed metric: {e}")
            return

        with self._lock:
            self._batch.append(sample)
            full = len(self._batch) >= self.options.batch_size

        if full:
            self.flush()

    def flush(self) -> None:
        """Send everything queued so far as one batch. No-op when empty."""
        batch = self._take_batch()
        if not batch:
            return

        try:
            payload = self._build_payload(batch)
        except (TypeError, ValueError) as e:
            logger.error(f"[COLLECTOR] Could not encode batch, dropped {len(batch)} metrics: {e}")
            return

        self._deliver(payload, len(batch))

    def _take_batch(self) -> list[dict]:
        # Claim and reset in one step so concurrent triggers never share samples
        with self._lock:
            batch, self._batch = self._batch, []
        return batch

    def _normalize(self, metric: Any) -> dict:
        width, _ = self.environment.viewport()
        value = float(_field(metric, "value"))
        if not math.isfinite(value):
            raise ValueError(f"non-finite value {value}")
        delta = _field(metric, "delta")
        if delta is not None:
            delta = float(delta)
            if not math.isfinite(delta):
                raise ValueError(f"non-finite delta {delta}")
        return {
            "name": _field(metric, "name"),
            "value": round(value, 2),
            "rating": _field(metric, "rating"),
            "delta": delta,
            "id": _field(metric, "id"),
            "pageId": self.options.page_id,
            "siteId": self.options.site_id,
            "deviceType": get_device_type(width),
            "connectionType": self._connection_type(),
            "timestamp": int(self.environment.now_ms()),
            "url": self.environment.url(),
            "navigationType": self.environment.navigation_type() or "unknown",
        }

    def _connection_type(self) -> dict | str:
        connection = self.environment.connection()
        if not connection:
            return "unknown"
        return {
            "effectiveType": connection.get("effectiveType"),
            "downlink": connection.get("downlink"),
            "rtt": connection.get("rtt"),
            "saveData": connection.get("saveData"),
        }

    def _build_payload(self, batch: list[dict]) -> str:
        viewport_w, viewport_h = self.environment.viewport()
        screen_w, screen_h = self.environment.screen()
        return json.dumps({
            "metrics": batch,
            "meta": {
                "userAgent": self.environment.user_agent(),
                "viewport": {"width": viewport_w, "height": viewport_h},
                "screen": {"width": screen_w, "height": screen_h},
            },
        })

    def _endpoint_url(self) -> str:
        return urljoin(self.environment.url(), self.options.endpoint)

    def _deliver(self, payload: str, count: int) -> None:
        url = self._endpoint_url()

        if self.beacon is not None:
            try:
                if self.beacon.send_beacon(url, payload):
                    return
                logger.debug("[COLLECTOR] Beacon refused payload, falling back to keepalive")
            except Exception as e:
                logger.warning(f"[COLLECTOR] Beacon failed, falling back to keepalive: {e}")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"[COLLECTOR] No running event loop, dropped {count} metrics")
            return

        if self.transport is None:
            self.transport = KeepaliveTransport()

        task = loop.create_task(self._send(url, payload, count))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _send(self, url: str, payload: str, count: int) -> None:
        try:
            await self.transport.post(url, payload)
        except Exception as e:
            logger.error(f"[COLLECTOR] Failed to send {count} metrics: {e}")

    def _setup_event_listeners(self) -> None:
        if self.lifecycle is None:
            return

        def on_visibility_change():
            if self.lifecycle.visibility_state == "hidden":
                self.flush()

        for event, listener in (
            (VISIBILITY_CHANGE, on_visibility_change),
            (PAGE_HIDE, self.flush),
            (FREEZE, self.flush),
        ):
            self.lifecycle.add_listener(event, listener)
            self._listeners.append((event, listener))

    def _start_flush_timer(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[COLLECTOR] No running event loop, periodic flush disabled")
            return
        self._timer = loop.create_task(self._flush_loop())

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self.options.flush_interval)
            if not self.pending:
                continue
            try:
                self.flush()
            except Exception as e:
                logger.error(f"[COLLECTOR] Periodic flush failed: {e}")

    def stop(self) -> None:
        """Disarm the timer and lifecycle listeners. Queued samples stay queued."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self.lifecycle is not None:
            for event, listener in self._listeners:
                self.lifecycle.remove_listener(event, listener)
        self._listeners.clear()
        self.active = False

    async def drain(self) -> None:
        """Wait for in-flight keepalive deliveries."""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        """Final flush, then release the timer, listeners and transport."""
        self.flush()
        self.stop()
        await self.drain()
        if self.transport is not None:
            await self.transport.aclose()


def configure(
    options: CollectorOptions | Mapping,
    source: MetricsSource | None,
    environment: PageEnvironment,
    lifecycle: LifecycleEvents | None = None,
    beacon: BeaconSender | None = None,
    transport: KeepaliveTransport | None = None,
) -> WebVitalsMonitor | None:
    """
    Build and start a monitor.

    Returns None, after logging a warning, when no metrics source is available.
    """
    if not isinstance(options, CollectorOptions):
        options = CollectorOptions.model_validate(options)

    monitor = WebVitalsMonitor(
        options,
        environment,
        lifecycle=lifecycle,
        beacon=beacon,
        transport=transport,
    )
    if not monitor.start(source):
        return None
    return monitor


def init_monitor(
    host_config: HostConfig | Mapping | None,
    source: MetricsSource | None,
    environment: PageEnvironment,
    lifecycle: LifecycleEvents | None = None,
    beacon: BeaconSender | None = None,
    transport: KeepaliveTransport | None = None,
) -> WebVitalsMonitor | None:
    """Start monitoring only when the host has CWV monitoring switched on."""
    if host_config is None:
        return None
    if not isinstance(host_config, HostConfig):
        host_config = HostConfig.model_validate(host_config)
    if not host_config.cwv_monitoring:
        return None

    return configure(
        host_config.collector_options(),
        source,
        environment,
        lifecycle=lifecycle,
        beacon=beacon,
        transport=transport,
    )
