"""Key-value storage for webhook configs, event logs and AppWallet analytics.

Every record is a JSON document under a string key. The layout is shared with
the admin surface:

    webhook:{id}            webhook config
    webhooks:index          list of webhook ids
    logs:{id}               recent event log for one webhook (newest first)
    appwallet:config        analytics forwarding config
    appwallet:stats         global analytics counters
    appwallet:recent        recent analytics events (device id redacted)
    appwallet:logs          analytics forward outcomes
    appwallet:device:{id}   per-device analytics history

There is no compare-and-swap; concurrent read-modify-write on the same key is
last-writer-wins.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol

from src.domain.ring_buffer import push_newest_first


WEBHOOK_LOG_LIMIT = 10
WEBHOOKS_INDEX_KEY = "webhooks:index"


def webhook_key(webhook_id: str) -> str:
    return f"webhook:{webhook_id}"


def logs_key(webhook_id: str) -> str:
    return f"logs:{webhook_id}"


class KeyValueBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class SupabaseKeyValueBackend:
    """Stores values as text rows in a `key`/`value` Supabase table."""

    def __init__(self, client: Any, table_name: str = "kv_store"):
        self._client = client
        self._table_name = table_name

    def get(self, key: str) -> str | None:
        result = self._client.table(self._table_name).select("value").eq("key", key).execute()
        if not result.data:
            return None
        return result.data[0].get("value")

    def put(self, key: str, value: str) -> None:
        self._client.table(self._table_name).upsert(
            {
                "key": key,
                "value": value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        ).execute()

    def delete(self, key: str) -> None:
        self._client.table(self._table_name).delete().eq("key", key).execute()


class InMemoryKeyValueBackend:
    """Process-local backend for development and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._lock = Lock()
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        with self._lock:
            return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self.data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self.data.pop(key, None)


class KeyValueStore:
    """Async facade over a blocking backend; every backend call runs in a worker thread."""

    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    async def get_json(self, key: str, default: Any = None) -> Any:
        raw = await asyncio.to_thread(self.backend.get, key)
        if raw is None:
            return default
        return json.loads(raw)

    async def put_json(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self.backend.put, key, json.dumps(value))

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self.backend.delete, key)

    # --- webhook configs ---

    async def get_webhook(self, webhook_id: str) -> dict[str, Any] | None:
        data = await self.get_json(webhook_key(webhook_id))
        return data if isinstance(data, dict) else None

    async def put_webhook(self, webhook_id: str, data: dict[str, Any]) -> None:
        await self.put_json(webhook_key(webhook_id), data)

    async def list_webhook_ids(self) -> list[str]:
        index = await self.get_json(WEBHOOKS_INDEX_KEY, [])
        return [str(item) for item in index] if isinstance(index, list) else []

    async def add_webhook(self, webhook_id: str, data: dict[str, Any]) -> None:
        await self.put_webhook(webhook_id, data)
        index = await self.list_webhook_ids()
        if webhook_id not in index:
            index.append(webhook_id)
        await self.put_json(WEBHOOKS_INDEX_KEY, index)

    async def delete_webhook(self, webhook_id: str) -> None:
        await self.delete(webhook_key(webhook_id))
        index = [item for item in await self.list_webhook_ids() if item != webhook_id]
        await self.put_json(WEBHOOKS_INDEX_KEY, index)
        await self.delete(logs_key(webhook_id))

    async def update_last_event(self, webhook_id: str, *, event_type: str, status: str, at: str) -> None:
        current = await self.get_webhook(webhook_id)
        if current is None:
            return
        current["lastEventAt"] = at
        current["lastEventType"] = event_type
        current["lastEventStatus"] = status
        await self.put_webhook(webhook_id, current)

    # --- event logs ---

    async def get_event_logs(self, webhook_id: str) -> list[dict[str, Any]]:
        logs = await self.get_json(logs_key(webhook_id), [])
        return logs if isinstance(logs, list) else []

    async def append_event_log(self, webhook_id: str, entry: dict[str, Any]) -> list[dict[str, Any]]:
        logs = push_newest_first(await self.get_event_logs(webhook_id), entry, WEBHOOK_LOG_LIMIT)
        await self.put_json(logs_key(webhook_id), logs)
        return logs
