#!/usr/bin/env python3
from __future__ import annotations

from typing import Any, Dict, List, Sequence

from psycopg.rows import dict_row


def _role_filter(column: str, roles: Sequence[str] | None, params: list) -> str:
    if roles is None:
        return ""
    params.append(list(roles))
    return f"AND {column} = ANY(%s)"


def get_table_grants(conn, schema: str, table: str, roles: Sequence[str] | None = None) -> List[Dict[str, Any]]:
    params: list = [schema, table]
    role_sql = _role_filter('grantee', roles, params)
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            f"""
            SELECT grantor, grantee, privilege_type AS privilege, (is_grantable = 'YES') AS is_grantable
            FROM information_schema.table_privileges
            WHERE table_schema = %s AND table_name = %s {role_sql}
            ORDER BY grantee, privilege_type
            """,
            params,
        )
        return list(cur.fetchall() or [])


def get_column_grants(conn, schema: str, table: str, roles: Sequence[str] | None = None) -> List[Dict[str, Any]]:
    params: list = [schema, table]
    role_sql = _role_filter('cp.grantee', roles, params)
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            f"""
            SELECT cp.column_name, cp.grantor, cp.grantee, cp.privilege_type AS privilege,
                   (cp.is_grantable = 'YES') AS is_grantable
            FROM information_schema.column_privileges cp
            JOIN information_schema.columns col
              ON col.table_schema = cp.table_schema
             AND col.table_name = cp.table_name
             AND col.column_name = cp.column_name
            WHERE cp.table_schema = %s AND cp.table_name = %s {role_sql}
            ORDER BY cp.grantee, cp.privilege_type, col.ordinal_position
            """,
            params,
        )
        return list(cur.fetchall() or [])


def get_relation_grants(conn, schema: str, relation: str, roles: Sequence[str] | None = None) -> List[Dict[str, Any]]:
    """Grants read straight from pg_class.relacl.

    information_schema only covers tables and views; materialized views need
    the ACL itself. A NULL relacl (never granted) yields no rows.
    """
    params: list = [schema, relation]
    role_sql = _role_filter("COALESCE(ge.rolname, 'PUBLIC')", roles, params)
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            f"""
            SELECT gr.rolname AS grantor,
                   COALESCE(ge.rolname, 'PUBLIC') AS grantee,
                   acl.privilege_type AS privilege,
                   acl.is_grantable
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            CROSS JOIN LATERAL aclexplode(c.relacl) acl
            LEFT JOIN pg_roles gr ON gr.oid = acl.grantor
            LEFT JOIN pg_roles ge ON ge.oid = acl.grantee
            WHERE n.nspname = %s AND c.relname = %s {role_sql}
            ORDER BY 2, 3
            """,
            params,
        )
        return list(cur.fetchall() or [])


def get_default_privileges(conn, schema: str, roles: Sequence[str] | None = None) -> List[Dict[str, Any]]:
    params: list = [schema]
    role_sql = _role_filter("COALESCE(ge.rolname, 'PUBLIC')", roles, params)
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            f"""
            SELECT owner.rolname AS owner,
                   gr.rolname AS grantor,
                   COALESCE(ge.rolname, 'PUBLIC') AS grantee,
                   acl.privilege_type AS privilege,
                   acl.is_grantable
            FROM pg_default_acl d
            JOIN pg_roles owner ON owner.oid = d.defaclrole
            JOIN pg_namespace n ON n.oid = d.defaclnamespace
            CROSS JOIN LATERAL aclexplode(d.defaclacl) acl
            LEFT JOIN pg_roles gr ON gr.oid = acl.grantor
            LEFT JOIN pg_roles ge ON ge.oid = acl.grantee
            WHERE d.defaclobjtype = 'r' AND n.nspname = %s {role_sql}
            ORDER BY 1, 3, 4
            """,
            params,
        )
        return list(cur.fetchall() or [])
