from __future__ import annotations

import logging

from supabase import create_client

from src.config import settings
from src.observability import log_event
from src.store import InMemoryKeyValueBackend, KeyValueStore, SupabaseKeyValueBackend


def _create_store() -> KeyValueStore:
    if settings.supabase_url and settings.supabase_service_role_key:
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return KeyValueStore(SupabaseKeyValueBackend(client, settings.kv_table_name))
    log_event(
        "kv_store_in_memory",
        level=logging.WARNING,
        reason="SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY not configured",
    )
    return KeyValueStore(InMemoryKeyValueBackend())


kv_store = _create_store()
