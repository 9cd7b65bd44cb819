from __future__ import annotations

from typing import Any

from pydantic import Field

from src.models.webhooks import CamelModel


class AnalyticsEventIn(CamelModel):
    event_name: str | None = None
    device_id: str | None = None
    timestamp: str | None = None
    metadata: dict[str, Any] | None = None


class AnalyticsAck(CamelModel):
    status: str = "success"
    received: str
    device_id: str


class AppWalletConfig(CamelModel):
    is_active: bool = False
    provider: str | None = None
    provider_config: dict[str, Any] = Field(default_factory=dict)
    business_name: str | None = None


class AppWalletConfigSummary(CamelModel):
    is_active: bool
    provider: str | None = None
    business_name: str | None = None


class GlobalStats(CamelModel):
    total_events: int = 0
    unique_devices: list[str] = Field(default_factory=list)
    event_counts: dict[str, int] = Field(default_factory=dict)
    last_updated: str | None = None


class AnalyticsStatsView(CamelModel):
    total_events: int
    unique_devices_count: int
    event_counts: dict[str, int]
    last_updated: str | None = None


class AnalyticsOverview(CamelModel):
    config: AppWalletConfigSummary | None = None
    stats: AnalyticsStatsView
    recent_events: list[dict[str, Any]] = Field(default_factory=list)
