"""
Interfaces the host page provides to the collector, plus simple
implementations for headless hosts and tests.
"""
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

MetricCallback = Callable[[Any], None]
Listener = Callable[[], None]

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024

# Lifecycle events that force a flush
VISIBILITY_CHANGE = "visibilitychange"
PAGE_HIDE = "pagehide"
FREEZE = "freeze"


def get_device_type(viewport_width: int) -> str:
    """Bucket a viewport width: below 768 is mobile, below 1024 tablet."""
    if viewport_width < MOBILE_MAX_WIDTH:
        return "mobile"
    if viewport_width < TABLET_MAX_WIDTH:
        return "tablet"
    return "desktop"


@dataclass
class Metric:
    """A report from the metrics source."""
    name: str
    value: float
    rating: str
    delta: float
    id: str


class MetricsSource(Protocol):
    """Web Vitals observation capability."""

    def on_lcp(self, callback: MetricCallback, report_all_changes: bool = False) -> None: ...
    def on_inp(self, callback: MetricCallback, report_all_changes: bool = False) -> None: ...
    def on_cls(self, callback: MetricCallback, report_all_changes: bool = False) -> None: ...
    def on_fcp(self, callback: MetricCallback, report_all_changes: bool = False) -> None: ...
    def on_ttfb(self, callback: MetricCallback, report_all_changes: bool = False) -> None: ...


class PageEnvironment(Protocol):
    """Read-only view of the page the collector runs in."""

    def url(self) -> str: ...
    def user_agent(self) -> str: ...
    def viewport(self) -> tuple[int, int]: ...
    def screen(self) -> tuple[int, int]: ...
    def connection(self) -> dict | None: ...
    def navigation_type(self) -> str | None: ...
    def now_ms(self) -> float: ...


class LifecycleEvents(Protocol):
    """Page lifecycle event subscription."""

    visibility_state: str

    def add_listener(self, event: str, listener: Listener) -> None: ...
    def remove_listener(self, event: str, listener: Listener) -> None: ...


class BeaconSender(Protocol):
    """Transmission primitive that survives page teardown."""

    def send_beacon(self, url: str, data: str) -> bool: ...


@dataclass
class StaticPageEnvironment:
    """PageEnvironment backed by fixed values."""

    page_url: str
    agent: str = "vitalsman-collector"
    viewport_size: tuple[int, int] = (1280, 800)
    screen_size: tuple[int, int] = (1920, 1080)
    network: dict | None = None
    navigation: str | None = "navigate"
    clock: Callable[[], float] = field(default=lambda: time.time() * 1000)

    def url(self) -> str:
        return self.page_url

    def user_agent(self) -> str:
        return self.agent

    def viewport(self) -> tuple[int, int]:
        return self.viewport_size

    def screen(self) -> tuple[int, int]:
        return self.screen_size

    def connection(self) -> dict | None:
        return self.network

    def navigation_type(self) -> str | None:
        return self.navigation

    def now_ms(self) -> float:
        return self.clock()


class PageLifecycle:
    """In-process lifecycle bus a host drives as its page changes state."""

    def __init__(self):
        self.visibility_state = "visible"
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def add_listener(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def dispatch(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            listener()

    def set_visibility(self, state: str) -> None:
        self.visibility_state = state
        self.dispatch(VISIBILITY_CHANGE)

    def page_hide(self) -> None:
        self.dispatch(PAGE_HIDE)

    def freeze(self) -> None:
        self.dispatch(FREEZE)

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])
