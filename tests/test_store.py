import asyncio
import json
import time

from src.store import (
    WEBHOOK_LOG_LIMIT,
    WEBHOOKS_INDEX_KEY,
    InMemoryKeyValueBackend,
    KeyValueStore,
    SupabaseKeyValueBackend,
    logs_key,
    webhook_key,
)


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, table_name: str, db: "FakeSupabase"):
        self.table_name = table_name
        self.db = db
        self.operation = "select"
        self.upsert_payload = None
        self.filters = []

    def select(self, _fields: str):
        self.operation = "select"
        return self

    def upsert(self, payload: dict):
        self.operation = "upsert"
        self.upsert_payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, key: str, value):
        self.filters.append((key, value))
        return self

    def _matches(self, row: dict) -> bool:
        return all(row.get(key) == value for key, value in self.filters)

    def execute(self):
        table = self.db.tables.setdefault(self.table_name, [])
        if self.operation == "upsert":
            for row in table:
                if row["key"] == self.upsert_payload["key"]:
                    row.update(self.upsert_payload)
                    return FakeResponse([dict(row)])
            table.append(dict(self.upsert_payload))
            return FakeResponse([dict(self.upsert_payload)])

        if self.operation == "delete":
            removed = [row for row in table if self._matches(row)]
            self.db.tables[self.table_name] = [row for row in table if not self._matches(row)]
            return FakeResponse(removed)

        rows = [dict(row) for row in table if self._matches(row)]
        return FakeResponse(rows)


class FakeSupabase:
    def __init__(self, tables: dict):
        self.tables = tables

    def table(self, table_name: str):
        return FakeQuery(table_name, self)


def test_supabase_backend_roundtrips_json_values():
    fake_db = FakeSupabase({"kv_store": []})
    store = KeyValueStore(SupabaseKeyValueBackend(fake_db, "kv_store"))

    asyncio.run(store.put_json("webhook:abc", {"businessName": "Cafe"}))
    asyncio.run(store.put_json("webhook:abc", {"businessName": "Cafe 2"}))

    assert len(fake_db.tables["kv_store"]) == 1
    assert json.loads(fake_db.tables["kv_store"][0]["value"]) == {"businessName": "Cafe 2"}
    assert fake_db.tables["kv_store"][0]["updated_at"]
    assert asyncio.run(store.get_json("webhook:abc")) == {"businessName": "Cafe 2"}
    assert asyncio.run(store.get_json("missing", [])) == []

    asyncio.run(store.delete("webhook:abc"))
    assert asyncio.run(store.get_json("webhook:abc")) is None


def test_add_and_delete_webhook_maintains_index_and_logs():
    backend = InMemoryKeyValueBackend()
    store = KeyValueStore(backend)

    async def _scenario():
        await store.add_webhook("w1", {"businessName": "One"})
        await store.add_webhook("w2", {"businessName": "Two"})
        await store.add_webhook("w1", {"businessName": "One again"})
        assert await store.list_webhook_ids() == ["w1", "w2"]

        await store.append_event_log("w1", {"status": "ok"})
        await store.delete_webhook("w1")
        assert await store.list_webhook_ids() == ["w2"]

    asyncio.run(_scenario())
    assert webhook_key("w1") not in backend.data
    assert logs_key("w1") not in backend.data
    assert json.loads(backend.data[WEBHOOKS_INDEX_KEY]) == ["w2"]


def test_update_last_event_overwrites_and_keeps_other_keys():
    store = KeyValueStore(InMemoryKeyValueBackend())

    async def _scenario():
        await store.put_webhook("w1", {"businessName": "One", "customKey": "kept", "lastEventType": "old"})
        await store.update_last_event("w1", event_type="pass.created", status="ok", at="2024-01-01T00:00:00+00:00")
        return await store.get_webhook("w1")

    data = asyncio.run(_scenario())
    assert data["customKey"] == "kept"
    assert data["lastEventType"] == "pass.created"
    assert data["lastEventStatus"] == "ok"
    assert data["lastEventAt"] == "2024-01-01T00:00:00+00:00"


def test_update_last_event_ignores_missing_webhook():
    backend = InMemoryKeyValueBackend()
    store = KeyValueStore(backend)
    asyncio.run(store.update_last_event("ghost", event_type="x", status="ok", at="now"))
    assert backend.data == {}


def test_event_log_is_newest_first_and_capped():
    store = KeyValueStore(InMemoryKeyValueBackend())

    async def _scenario():
        for i in range(WEBHOOK_LOG_LIMIT + 5):
            await store.append_event_log("w1", {"n": i})
        return await store.get_event_logs("w1")

    logs = asyncio.run(_scenario())
    assert len(logs) == WEBHOOK_LOG_LIMIT
    assert logs[0] == {"n": WEBHOOK_LOG_LIMIT + 4}
    assert logs[-1] == {"n": 5}


def test_non_dict_webhook_value_reads_as_missing():
    store = KeyValueStore(InMemoryKeyValueBackend({webhook_key("w1"): json.dumps(["not", "a", "config"])}))
    assert asyncio.run(store.get_webhook("w1")) is None


class SlowBackend(InMemoryKeyValueBackend):
    def get(self, key: str) -> str | None:
        time.sleep(0.3)
        return super().get(key)


def test_slow_backend_read_does_not_stall_event_loop():
    store = KeyValueStore(SlowBackend())

    async def _scenario():
        ticks = 0
        stop = asyncio.Event()

        async def _ticker():
            nonlocal ticks
            while not stop.is_set():
                await asyncio.sleep(0.01)
                ticks += 1

        ticker = asyncio.create_task(_ticker())
        result = await store.get_webhook("missing")
        stop.set()
        await ticker
        return result, ticks

    result, ticks = asyncio.run(_scenario())
    assert result is None
    assert ticks > 5
