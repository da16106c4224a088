"""Structured audit events for enrollment and login.

The two-factor manager and login coordinator call an event sink with the
signature of ``emit()``. Events never carry secrets or submitted codes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from authlink.db import sync_execute

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def __call__(
        self,
        category: str,
        severity: str,
        event_type: str,
        message: str,
        *,
        account_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> int | None: ...


def emit(
    category: str,
    severity: str,
    event_type: str,
    message: str,
    *,
    account_id: str | None = None,
    context: dict[str, Any] | None = None,
) -> int | None:
    """Insert a structured event into system_events.

    Returns the event ID if successful, None on failure.
    """
    try:
        rows = sync_execute(
            """INSERT INTO system_events
               (category, severity, event_type, message, account_id, context)
               VALUES (%s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                category,
                severity,
                event_type,
                message,
                account_id,
                json.dumps(context or {}),
            ),
        )
        event_id = rows[0]["id"] if rows else None
        logger.info("[event] %s/%s: %s", category, event_type, message)
        return event_id
    except Exception:
        logger.warning("Failed to emit event: %s/%s: %s", category, event_type, message, exc_info=True)
        return None


def log_only(
    category: str,
    severity: str,
    event_type: str,
    message: str,
    *,
    account_id: str | None = None,
    context: dict[str, Any] | None = None,
) -> int | None:
    """Event sink that only logs; used when no database is configured."""
    level = logging.WARNING if severity in ("warning", "error") else logging.INFO
    logger.log(level, "[event] %s/%s: %s", category, event_type, message)
    return None

