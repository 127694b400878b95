#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


def get_triggers(conn, schema: str, table: str) -> List[Dict[str, Any]]:
    """One row per (trigger, event); callers group them back into triggers."""
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT trigger_name,
                   action_timing,
                   event_manipulation,
                   action_orientation,
                   action_statement,
                   action_condition,
                   action_order
            FROM information_schema.triggers
            WHERE event_object_schema = %s AND event_object_table = %s
            ORDER BY trigger_name, event_manipulation
            """,
            (schema, table),
        )
        return list(cur.fetchall() or [])
