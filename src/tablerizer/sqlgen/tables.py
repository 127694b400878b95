#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Sequence
import re

from .quoting import apply_role_mappings, join_idents, qualify, quote_ident, quote_role
from .sections import (
    PRIVILEGE_ORDER,
    block_safe,
    dedupe_grants,
    distinct_grantees,
    grant_statements,
    header_lines,
    revoke_statements,
)


_SYSTEM_CHECK_NAME = re.compile(r"^\d+_\d+_\d+_.+")


def generate_grants_sql(schema: str, table: str, grants: Sequence[Mapping[str, Any]]) -> List[str]:
    return grant_statements(qualify(schema, table), grants)


def generate_column_grants_sql(
    schema: str,
    table: str,
    column_grants: Sequence[Mapping[str, Any]],
    table_grants: Sequence[Mapping[str, Any]] = (),
) -> List[str]:
    """One GRANT per (grantee, privilege, grantable) listing its columns.

    information_schema.column_privileges also lists every column of a table
    where the privilege was granted table-wide; those are skipped since the
    table-level GRANT already recreates them. A column grant carrying the
    grant option is kept when the table grant does not.
    """
    implied: Dict[tuple, bool] = {}
    for g in table_grants:
        key = (str(g['grantee']), str(g['privilege']).upper())
        implied[key] = implied.get(key, False) or bool(g.get('is_grantable'))
    groups: Dict[tuple, List[str]] = {}
    for g in column_grants:
        grantee = str(g['grantee'])
        privilege = str(g['privilege']).upper()
        grantable = bool(g.get('is_grantable'))
        if (grantee, privilege) in implied and (implied[(grantee, privilege)] or not grantable):
            continue
        key = (grantee, privilege, grantable)
        cols = groups.setdefault(key, [])
        if g['column_name'] not in cols:
            cols.append(str(g['column_name']))

    def _order(key: tuple) -> tuple:
        grantee, privilege, grantable = key
        rank = PRIVILEGE_ORDER.index(privilege) if privilege in PRIVILEGE_ORDER else len(PRIVILEGE_ORDER)
        return grantee, rank, privilege, grantable

    target = qualify(schema, table)
    out: List[str] = []
    for key in sorted(groups, key=_order):
        grantee, privilege, grantable = key
        sql = f"GRANT {privilege} ({join_idents(groups[key])}) ON TABLE {target} TO {quote_role(grantee)}"
        if grantable:
            sql += " WITH GRANT OPTION"
        out.append(sql + ";")
    return out


def _sorted_policies(policies: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    return sorted(policies, key=lambda p: str(p['policy']))


def generate_policies_sql(
    schema: str,
    table: str,
    rls_enabled: bool,
    rls_force: bool,
    policies: Sequence[Mapping[str, Any]],
) -> List[str]:
    target = qualify(schema, table)
    out: List[str] = []
    if rls_enabled:
        out.append(f"ALTER TABLE {target} ENABLE ROW LEVEL SECURITY;")
    if rls_force:
        out.append(f"ALTER TABLE {target} FORCE ROW LEVEL SECURITY;")

    for p in _sorted_policies(policies):
        sql = f"CREATE POLICY {quote_ident(str(p['policy']))} ON {target}"
        if str(p.get('permissive') or '').upper() == 'RESTRICTIVE':
            sql += " AS RESTRICTIVE"
        sql += f" FOR {p.get('cmd') or 'ALL'}"
        roles = list(p.get('roles') or [])
        if roles:
            sql += " TO " + ", ".join(quote_role(str(r)) for r in roles)
        if p.get('using'):
            sql += f" USING ({p['using']})"
        if p.get('with_check'):
            sql += f" WITH CHECK ({p['with_check']})"
        out.append(sql + ";")
    return out


def group_triggers(triggers: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Merge per-event trigger rows into one entry per trigger definition.

    information_schema.triggers reports a row per event; rows sharing name,
    timing, orientation, statement and condition are the same trigger.
    """
    groups: Dict[tuple, Dict[str, Any]] = {}
    for t in triggers:
        key = (
            str(t['trigger_name']),
            str(t['action_timing']),
            str(t['action_orientation']),
            str(t['action_statement']),
            t.get('action_condition') or '',
        )
        group = groups.get(key)
        if group is None:
            groups[key] = {
                'trigger_name': key[0],
                'action_timing': key[1],
                'action_orientation': key[2],
                'action_statement': key[3],
                'action_condition': t.get('action_condition') or None,
                'events': [str(t['event_manipulation'])],
            }
        elif t['event_manipulation'] not in group['events']:
            group['events'].append(str(t['event_manipulation']))
    for g in groups.values():
        g['events'].sort()
    return sorted(groups.values(), key=lambda g: (g['trigger_name'], g['action_timing']))


def generate_triggers_sql(schema: str, table: str, triggers: Sequence[Mapping[str, Any]]) -> List[str]:
    target = qualify(schema, table)
    out: List[str] = []
    for g in group_triggers(triggers):
        sql = f"CREATE TRIGGER {quote_ident(g['trigger_name'])}"
        sql += f" {g['action_timing']} {' OR '.join(g['events'])}"
        sql += f" ON {target}"
        sql += f" FOR EACH {g['action_orientation']}"
        if g['action_condition']:
            sql += f" WHEN ({g['action_condition']})"
        sql += f" {g['action_statement']};"
        out.append(sql)
    return out


def _column_type(col: Mapping[str, Any]) -> str:
    text = str(col['data_type'])
    if col.get('character_maximum_length'):
        text += f"({col['character_maximum_length']})"
    elif text == 'numeric' and col.get('numeric_precision'):
        if col.get('numeric_scale') is not None:
            text += f"({col['numeric_precision']},{col['numeric_scale']})"
        else:
            text += f"({col['numeric_precision']})"
    return text


def _cols(names: Sequence[str] | None) -> str:
    return ", ".join(names or [])


def generate_schema_documentation(
    schema: str,
    table: str,
    columns: Sequence[Mapping[str, Any]] | None = None,
    constraints: Sequence[Mapping[str, Any]] | None = None,
    table_comment: str | None = None,
) -> List[str]:
    docs = [f"  TABLE SCHEMA DOCUMENTATION: {schema}.{table}", "  " + "=" * 60]

    if table_comment:
        docs.append(f"  Table Comment: {table_comment}")
        docs.append("")

    if columns:
        docs.append("  COLUMNS:")
        docs.append("  --------")
        for col in columns:
            line = f"  • {col['column_name']}: {_column_type(col)}"
            if col.get('is_nullable') == 'NO':
                line += " NOT NULL"
            if col.get('column_default'):
                line += f" DEFAULT {col['column_default']}"
            if col.get('comment'):
                line += f" -- {col['comment']}"
            docs.append(line)
        docs.append("")

    by_type: Dict[str, List[Mapping[str, Any]]] = {}
    for con in constraints or []:
        by_type.setdefault(str(con['constraint_type']), []).append(con)

    if by_type.get('PRIMARY KEY'):
        docs.append("  PRIMARY KEY:")
        for pk in by_type['PRIMARY KEY']:
            docs.append(f"  • {pk['constraint_name']}: {_cols(pk.get('columns'))}")
        docs.append("")

    if by_type.get('FOREIGN KEY'):
        docs.append("  FOREIGN KEYS:")
        for fk in by_type['FOREIGN KEY']:
            ref = f"{fk['foreign_schema']}.{fk['foreign_table']}"
            docs.append(
                f"  • {fk['constraint_name']}: {_cols(fk.get('columns'))} → {ref}.{_cols(fk.get('foreign_columns'))}"
            )
        docs.append("")

    if by_type.get('UNIQUE'):
        docs.append("  UNIQUE CONSTRAINTS:")
        for uk in by_type['UNIQUE']:
            docs.append(f"  • {uk['constraint_name']}: {_cols(uk.get('columns'))}")
        docs.append("")

    checks = [c for c in by_type.get('CHECK', []) if not _SYSTEM_CHECK_NAME.match(str(c['constraint_name']))]
    if checks:
        docs.append("  CHECK CONSTRAINTS:")
        for cc in checks:
            docs.append(f"  • {cc['constraint_name']}: {cc.get('check_clause')}")
        docs.append("")

    return ["", "/*", *(block_safe(line) for line in docs), "*/", ""]


def generate_table_sql(
    schema: str,
    table_data: Mapping[str, Any],
    role_mappings: Mapping[str, str] | None = None,
    include_date: bool = False,
    *,
    now: datetime | None = None,
) -> str:
    table = str(table_data['table'])
    target = qualify(schema, table)
    rls = table_data.get('rls') or {}
    policies = list(rls.get('policies') or [])
    rbac = table_data.get('rbac') or {}
    table_grants = list(rbac.get('table_grants') or [])
    column_grants = list(rbac.get('column_grants') or [])
    triggers = list(table_data.get('triggers') or [])

    sections = header_lines(f"Table: {schema}.{table}", include_date=include_date, now=now)
    sections.append("")

    sections.append("-- 🧹 Cleanup Section (for idempotency)")
    sections.append("-- =======================================")
    sections.append("")

    if policies:
        for p in _sorted_policies(policies):
            sections.append(f"DROP POLICY IF EXISTS {quote_ident(str(p['policy']))} ON {target};")
        sections.append("")

    if triggers:
        for name in sorted({str(t['trigger_name']) for t in triggers}):
            sections.append(f"DROP TRIGGER IF EXISTS {quote_ident(name)} ON {target};")
        sections.append("")

    if table_grants or column_grants:
        sections.append("-- Revoke existing grants")
        sections.extend(revoke_statements(target, distinct_grantees(table_grants, column_grants)))
        sections.append("")

    if rls.get('force'):
        sections.append(f"ALTER TABLE {target} NO FORCE ROW LEVEL SECURITY;")
    if rls.get('enabled'):
        sections.append(f"ALTER TABLE {target} DISABLE ROW LEVEL SECURITY;")
    if rls.get('force') or rls.get('enabled'):
        sections.append("")

    sections.append("-- ⚡ Recreation Section")
    sections.append("-- ====================")
    sections.append("")

    if table_grants:
        sections.append("-- Table-level grants")
        sections.extend(generate_grants_sql(schema, table, table_grants))
        sections.append("")

    column_sql = generate_column_grants_sql(schema, table, column_grants, dedupe_grants(table_grants))
    if column_sql:
        sections.append("-- Column-level grants")
        sections.extend(column_sql)
        sections.append("")

    if rls.get('enabled') or rls.get('force') or policies:
        sections.append("-- Row Level Security policies")
        sections.extend(generate_policies_sql(schema, table, bool(rls.get('enabled')), bool(rls.get('force')), policies))
        sections.append("")

    if triggers:
        sections.append("-- Triggers")
        sections.extend(generate_triggers_sql(schema, table, triggers))
        sections.append("")

    sections.extend(generate_schema_documentation(
        schema,
        table,
        table_data.get('columns'),
        table_data.get('constraints'),
        table_data.get('comment'),
    ))

    return apply_role_mappings("\n".join(sections), role_mappings)
