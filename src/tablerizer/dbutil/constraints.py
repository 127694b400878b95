#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


_CONSTRAINT_TYPES = {
    'p': 'PRIMARY KEY',
    'f': 'FOREIGN KEY',
    'u': 'UNIQUE',
    'c': 'CHECK',
}


def get_constraints(conn, schema: str, table: str) -> List[Dict[str, Any]]:
    """PRIMARY KEY, FOREIGN KEY, UNIQUE and CHECK constraints of one table.

    Read from pg_constraint so a multi-column constraint is a single row with
    ordered column lists, and FK targets keep their schema.
    """
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT con.conname AS constraint_name,
                   con.contype::text AS contype,
                   ARRAY(
                     SELECT a.attname::text
                     FROM unnest(con.conkey) WITH ORDINALITY k(attnum, ord)
                     JOIN pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
                     ORDER BY k.ord
                   ) AS columns,
                   fns.nspname AS foreign_schema,
                   fc.relname AS foreign_table,
                   ARRAY(
                     SELECT a.attname::text
                     FROM unnest(con.confkey) WITH ORDINALITY k(attnum, ord)
                     JOIN pg_attribute a ON a.attrelid = con.confrelid AND a.attnum = k.attnum
                     ORDER BY k.ord
                   ) AS foreign_columns,
                   CASE WHEN con.contype = 'c' THEN pg_get_expr(con.conbin, con.conrelid) END AS check_clause
            FROM pg_constraint con
            JOIN pg_class c ON c.oid = con.conrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            LEFT JOIN pg_class fc ON fc.oid = con.confrelid
            LEFT JOIN pg_namespace fns ON fns.oid = fc.relnamespace
            WHERE n.nspname = %s AND c.relname = %s AND con.contype IN ('p', 'f', 'u', 'c')
            ORDER BY con.contype, con.conname
            """,
            (schema, table),
        )
        rows = cur.fetchall() or []
    out: List[Dict[str, Any]] = []
    for r in rows:
        r['constraint_type'] = _CONSTRAINT_TYPES[r.pop('contype')]
        r['columns'] = list(r.get('columns') or [])
        r['foreign_columns'] = list(r.get('foreign_columns') or [])
        out.append(r)
    return out
