#!/usr/bin/env python3
"""Create the key-value table backing webhook configs, event logs and analytics."""

import os
import psycopg2
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
KV_TABLE_NAME = os.getenv("KV_TABLE_NAME", "kv_store")

SQL = f"""
CREATE TABLE IF NOT EXISTS {KV_TABLE_NAME} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_{KV_TABLE_NAME}_updated_at ON {KV_TABLE_NAME}(updated_at);
"""


def main():
    if not DATABASE_URL:
        print("Error: DATABASE_URL not set")
        return

    print("Connecting to database...")
    conn = psycopg2.connect(DATABASE_URL)
    conn.autocommit = True
    cur = conn.cursor()

    print(f"Creating {KV_TABLE_NAME}...")
    cur.execute(SQL)

    cur.execute(
        "SELECT column_name, data_type FROM information_schema.columns "
        "WHERE table_schema = 'public' AND table_name = %s ORDER BY ordinal_position",
        (KV_TABLE_NAME,),
    )
    for column_name, data_type in cur.fetchall():
        print(f"  - {column_name}: {data_type}")

    cur.close()
    conn.close()
    print("Done.")


if __name__ == "__main__":
    main()
