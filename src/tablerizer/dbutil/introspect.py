#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


def schema_exists(conn, schema: str) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT 1 FROM pg_namespace WHERE nspname = %s
            """,
            (schema,),
        )
        return cur.fetchone() is not None


def list_tables(conn, schema: str) -> List[str]:
    """Ordinary and partitioned tables; individual partitions are skipped."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT c.relname
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = %s AND c.relkind IN ('r', 'p') AND NOT c.relispartition
            ORDER BY c.relname
            """,
            (schema,),
        )
        rows = cur.fetchall() or []
    return [str(r[0]) for r in rows]


def get_table_info(conn, schema: str, table: str) -> Dict[str, Any]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT c.oid, r.rolname AS owner, c.relrowsecurity, c.relforcerowsecurity
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            JOIN pg_roles r ON r.oid = c.relowner
            WHERE n.nspname = %s AND c.relname = %s AND c.relkind IN ('r', 'p')
            """,
            (schema, table),
        )
        row = cur.fetchone()
    if row is None:
        raise LookupError(f'Table {schema}.{table} not found')
    return row


def get_table_comment(conn, schema: str, table: str) -> str | None:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT obj_description(c.oid, 'pg_class')
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = %s AND c.relname = %s
            """,
            (schema, table),
        )
        row = cur.fetchone()
    return str(row[0]) if row and row[0] else None


def get_columns(conn, schema: str, table: str) -> List[Dict[str, Any]]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT
              isc.column_name,
              isc.data_type,
              isc.is_nullable,
              isc.column_default,
              isc.character_maximum_length,
              isc.numeric_precision,
              isc.numeric_scale,
              col_description(c.oid, a.attnum) AS comment
            FROM information_schema.columns isc
            JOIN pg_namespace n ON n.nspname = isc.table_schema
            JOIN pg_class c ON c.relnamespace = n.oid AND c.relname = isc.table_name
            JOIN pg_attribute a ON a.attrelid = c.oid AND a.attname = isc.column_name
            WHERE isc.table_schema = %s AND isc.table_name = %s
            ORDER BY isc.ordinal_position
            """,
            (schema, table),
        )
        return list(cur.fetchall() or [])
