"""Database connection helpers and schema."""

from __future__ import annotations

import logging
from typing import Any

import psycopg
import psycopg.rows

from authlink.config import settings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS two_factor_credentials (
    account_id          TEXT PRIMARY KEY,
    secret_enc          BYTEA,
    status              TEXT NOT NULL,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
    confirmed_at        TIMESTAMPTZ,
    last_accepted_step  BIGINT,
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS system_events (
    id          BIGSERIAL PRIMARY KEY,
    timestamp   TIMESTAMPTZ NOT NULL DEFAULT now(),
    category    TEXT NOT NULL,
    severity    TEXT NOT NULL,
    event_type  TEXT NOT NULL,
    account_id  TEXT,
    message     TEXT NOT NULL,
    context     JSONB NOT NULL DEFAULT '{}'::jsonb
);

CREATE INDEX IF NOT EXISTS system_events_account_idx ON system_events (account_id, timestamp DESC);
"""


def sync_conn(**kwargs: Any) -> psycopg.Connection[dict[str, Any]]:
    """Open a synchronous connection using project settings."""
    return psycopg.connect(settings.database_url, row_factory=psycopg.rows.dict_row, **kwargs)


def sync_execute(query: str, params: tuple[Any, ...] | None = None) -> list[dict[str, Any]]:
    """Execute query synchronously — opens and closes connection per call."""
    with sync_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()
            if cur.description is None:
                return []
            return cur.fetchall()


def sync_execute_one(query: str, params: tuple[Any, ...] | None = None) -> dict[str, Any] | None:
    """Execute query synchronously and return one row."""
    with sync_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()
            if cur.description is None:
                return None
            return cur.fetchone()


def create_schema() -> None:
    """Create the credential and event tables if missing."""
    with sync_conn() as conn:
        conn.execute(SCHEMA)
        conn.commit()
    logger.info("Schema ready")
