#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List

from psycopg.rows import dict_row


def list_functions(conn, schema: str) -> List[Dict[str, Any]]:
    """Functions and procedures defined in ``schema``.

    Aggregates and window functions are left out (pg_get_functiondef rejects
    aggregates), as are members of extensions, which the extension recreates.
    """
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            SELECT n.nspname AS schema_name,
                   p.proname AS function_name,
                   pg_get_functiondef(p.oid) AS function_definition,
                   pg_get_function_identity_arguments(p.oid) AS function_arguments,
                   pg_get_function_result(p.oid) AS return_type,
                   CASE p.prokind WHEN 'p' THEN 'PROCEDURE' ELSE 'FUNCTION' END AS function_type,
                   l.lanname AS language,
                   p.prosecdef AS is_security_definer,
                   obj_description(p.oid, 'pg_proc') AS comment
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            JOIN pg_language l ON l.oid = p.prolang
            WHERE n.nspname = %s
              AND p.prokind IN ('f', 'p')
              AND NOT EXISTS (
                SELECT 1 FROM pg_depend d
                WHERE d.classid = 'pg_proc'::regclass AND d.objid = p.oid AND d.deptype = 'e'
              )
            ORDER BY p.proname, pg_get_function_identity_arguments(p.oid)
            """,
            (schema,),
        )
        return list(cur.fetchall() or [])
