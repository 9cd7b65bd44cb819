"""AppWallet analytics ingestion and optional forwarding.

Anonymous device events are folded into rolling aggregates in the key-value
store, then, when a forwarding config is active, re-emitted as
`appwallet.<eventName>` events through the same provider registry used for
PassSlot webhooks.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from src.domain.errors import PayloadValidationError
from src.domain.ring_buffer import push_newest_first, redact_identifier, remember_unique
from src.models.analytics import (
    AnalyticsEventIn,
    AnalyticsOverview,
    AnalyticsStatsView,
    AppWalletConfig,
    AppWalletConfigSummary,
    GlobalStats,
)
from src.observability import incr_metric, log_event
from src.providers.base import ProviderResult
from src.providers.registry import ProviderRegistry
from src.store import KeyValueStore


CONFIG_KEY = "appwallet:config"
STATS_KEY = "appwallet:stats"
RECENT_KEY = "appwallet:recent"
FORWARD_LOG_KEY = "appwallet:logs"

DEVICE_HISTORY_LIMIT = 50
UNIQUE_DEVICE_LIMIT = 1000
RECENT_EVENTS_LIMIT = 100
FORWARD_LOG_LIMIT = 50
OVERVIEW_RECENT_LIMIT = 20

DEFAULT_BUSINESS_NAME = "AppWallet Analytics"


def device_key(device_id: str) -> str:
    return f"appwallet:device:{device_id}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_analytics_event(raw_body: bytes) -> AnalyticsEventIn:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
        event = AnalyticsEventIn.model_validate(payload)
    except (UnicodeDecodeError, ValueError, ValidationError) as exc:
        raise PayloadValidationError("Invalid JSON") from exc
    if not event.event_name or not event.device_id:
        raise PayloadValidationError("eventName and deviceId are required")
    return event


class AnalyticsIngestor:
    def __init__(self, store: KeyValueStore, registry: ProviderRegistry):
        self.store = store
        self.registry = registry

    async def process(self, event: AnalyticsEventIn, received_at: str, *, request_id: str | None = None) -> None:
        """Save aggregates, then forward. A failed save does not block forwarding."""
        try:
            await self.save(event, received_at)
        except Exception as exc:
            incr_metric("analytics.events.save_failed", event_name=event.event_name)
            log_event(
                "analytics_save_failed",
                level=logging.ERROR,
                request_id=request_id,
                event_name=event.event_name,
                device_id=redact_identifier(event.device_id),
                error=str(exc),
            )
        await self.forward(event, received_at, request_id=request_id)

    async def save(self, event: AnalyticsEventIn, received_at: str) -> None:
        timestamp = event.timestamp or received_at
        metadata = event.metadata or {}

        history = await self.store.get_json(device_key(event.device_id), [])
        history = push_newest_first(
            history if isinstance(history, list) else [],
            {
                "eventName": event.event_name,
                "timestamp": timestamp,
                "metadata": metadata,
                "receivedAt": received_at,
            },
            DEVICE_HISTORY_LIMIT,
        )
        await self.store.put_json(device_key(event.device_id), history)

        stats = await self.stats()
        stats.total_events += 1
        stats.event_counts[event.event_name] = stats.event_counts.get(event.event_name, 0) + 1
        stats.unique_devices = remember_unique(stats.unique_devices, event.device_id, UNIQUE_DEVICE_LIMIT)
        stats.last_updated = received_at
        await self.store.put_json(STATS_KEY, stats.model_dump(by_alias=True))

        recent = push_newest_first(
            await self.recent_events(),
            {
                "eventName": event.event_name,
                "deviceId": redact_identifier(event.device_id),
                "timestamp": timestamp,
                "receivedAt": received_at,
            },
            RECENT_EVENTS_LIMIT,
        )
        await self.store.put_json(RECENT_KEY, recent)
        incr_metric("analytics.events.saved", event_name=event.event_name)

    async def forward(
        self,
        event: AnalyticsEventIn,
        received_at: str,
        *,
        request_id: str | None = None,
    ) -> ProviderResult | None:
        config = await self.get_config()
        if config is None or not config.is_active or not config.provider:
            return None

        provider = self.registry.get(config.provider)
        if provider is None:
            result = ProviderResult(success=False, message=f'Provider "{config.provider}" not supported')
        else:
            forwarded = {
                "type": f"appwallet.{event.event_name}",
                "data": {
                    "eventName": event.event_name,
                    "deviceId": event.device_id,
                    "timestamp": event.timestamp or received_at,
                    "metadata": event.metadata or {},
                },
            }
            metadata = {
                "webhookId": "appwallet",
                "businessName": config.business_name or DEFAULT_BUSINESS_NAME,
                "receivedAt": received_at,
            }
            try:
                result = await provider.execute(forwarded, config.provider_config, metadata)
            except Exception as exc:
                result = ProviderResult(success=False, message=str(exc) or exc.__class__.__name__)

        incr_metric(
            "analytics.events.forwarded",
            provider=config.provider,
            status="ok" if result.success else "error",
        )
        log_event(
            "analytics_forwarded",
            level=logging.INFO if result.success else logging.WARNING,
            request_id=request_id,
            event_name=event.event_name,
            provider=config.provider,
            success=result.success,
            message=result.message,
        )
        await self.record_forward(event.event_name, config.provider, result)
        return result

    async def record_forward(self, event_name: str, provider: str, result: ProviderResult) -> None:
        logs = push_newest_first(
            await self.forward_logs(),
            {
                "time": _now_iso(),
                "event": event_name,
                "provider": provider,
                "status": "ok" if result.success else "error",
                "message": result.message,
            },
            FORWARD_LOG_LIMIT,
        )
        await self.store.put_json(FORWARD_LOG_KEY, logs)

    # --- reads ---

    async def get_config(self) -> AppWalletConfig | None:
        data = await self.store.get_json(CONFIG_KEY)
        if not isinstance(data, dict):
            return None
        return AppWalletConfig.model_validate(data)

    async def put_config(self, config: AppWalletConfig) -> None:
        await self.store.put_json(CONFIG_KEY, config.model_dump(by_alias=True))

    async def stats(self) -> GlobalStats:
        data = await self.store.get_json(STATS_KEY)
        if not isinstance(data, dict):
            return GlobalStats()
        return GlobalStats.model_validate(data)

    async def recent_events(self) -> list[dict[str, Any]]:
        recent = await self.store.get_json(RECENT_KEY, [])
        return recent if isinstance(recent, list) else []

    async def forward_logs(self) -> list[dict[str, Any]]:
        logs = await self.store.get_json(FORWARD_LOG_KEY, [])
        return logs if isinstance(logs, list) else []

    async def device_history(self, device_id: str) -> list[dict[str, Any]] | None:
        history = await self.store.get_json(device_key(device_id))
        return history if isinstance(history, list) else None

    async def overview(self) -> AnalyticsOverview:
        stats = await self.stats()
        config = await self.get_config()
        return AnalyticsOverview(
            config=(
                AppWalletConfigSummary(
                    is_active=config.is_active,
                    provider=config.provider,
                    business_name=config.business_name,
                )
                if config
                else None
            ),
            stats=AnalyticsStatsView(
                total_events=stats.total_events,
                unique_devices_count=len(stats.unique_devices),
                event_counts=stats.event_counts,
                last_updated=stats.last_updated,
            ),
            recent_events=(await self.recent_events())[:OVERVIEW_RECENT_LIMIT],
        )

    async def reset(self) -> None:
        await self.store.delete(STATS_KEY)
        await self.store.delete(RECENT_KEY)
