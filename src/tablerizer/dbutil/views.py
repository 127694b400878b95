#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


def list_views(conn, schema: str) -> List[Dict[str, Any]]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT v.schemaname AS schema_name,
                   v.viewname AS view_name,
                   v.definition,
                   v.viewowner AS owner,
                   obj_description(c.oid, 'pg_class') AS comment,
                   (iv.is_updatable = 'YES') AS is_updatable,
                   c.reloptions::text[] AS reloptions,
                   iv.check_option
            FROM pg_views v
            JOIN pg_namespace n ON n.nspname = v.schemaname
            JOIN pg_class c ON c.relnamespace = n.oid AND c.relname = v.viewname
            LEFT JOIN information_schema.views iv
              ON iv.table_schema = v.schemaname AND iv.table_name = v.viewname
            WHERE v.schemaname = %s
              AND NOT EXISTS (
                SELECT 1 FROM pg_depend d
                WHERE d.classid = 'pg_class'::regclass AND d.objid = c.oid AND d.deptype = 'e'
              )
            ORDER BY v.viewname
            """,
            (schema,),
        )
        return list(cur.fetchall() or [])


def list_materialized_views(conn, schema: str) -> List[Dict[str, Any]]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT m.schemaname AS schema_name,
                   m.matviewname AS matview_name,
                   m.definition,
                   m.matviewowner AS owner,
                   obj_description(c.oid, 'pg_class') AS comment,
                   m.ispopulated AS is_populated
            FROM pg_matviews m
            JOIN pg_namespace n ON n.nspname = m.schemaname
            JOIN pg_class c ON c.relnamespace = n.oid AND c.relname = m.matviewname
            WHERE m.schemaname = %s
            ORDER BY m.matviewname
            """,
            (schema,),
        )
        return list(cur.fetchall() or [])


def get_indexes(conn, schema: str, relation: str) -> List[Dict[str, Any]]:
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT indexname AS index_name, indexdef AS index_definition
            FROM pg_indexes
            WHERE schemaname = %s AND tablename = %s
            ORDER BY indexname
            """,
            (schema, relation),
        )
        return list(cur.fetchall() or [])
