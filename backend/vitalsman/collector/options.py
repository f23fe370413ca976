"""
Collector configuration models.

Both models accept the camelCase keys a host page injects as well as
snake_case field names.
"""
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ENDPOINT = "/api/v1/cwv"


class CollectorOptions(BaseModel):
    """Options for a single page's monitor."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = DEFAULT_ENDPOINT
    page_id: int | None = Field(default=None, alias="pageId")
    site_id: int | None = Field(default=None, alias="siteId")
    batch_size: int = Field(default=10, alias="batchSize", ge=1)
    flush_interval_ms: int = Field(default=5000, alias="flushIntervalMs", gt=0)

    @property
    def flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.flush_interval_ms / 1000


class HostConfig(BaseModel):
    """Configuration object the host CMS renders into the page."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = DEFAULT_ENDPOINT
    page_id: int | None = Field(default=None, alias="pageId")
    site_id: int | None = Field(default=None, alias="siteId")
    cwv_monitoring: bool = Field(default=False, alias="cwvMonitoring")

    def collector_options(self) -> CollectorOptions:
        return CollectorOptions(
            endpoint=self.endpoint,
            page_id=self.page_id,
            site_id=self.site_id,
        )
