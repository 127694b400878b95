#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


def get_policies(conn, schema: str, table: str) -> List[Dict[str, Any]]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT policyname AS policy,
                   cmd,
                   roles::text[] AS roles,
                   permissive,
                   qual AS using,
                   with_check
            FROM pg_policies
            WHERE schemaname = %s AND tablename = %s
            ORDER BY policyname
            """,
            (schema, table),
        )
        return list(cur.fetchall() or [])
