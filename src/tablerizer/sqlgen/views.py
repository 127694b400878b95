#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Sequence

from .quoting import apply_role_mappings, qualify, quote_literal
from .sections import (
    block_safe,
    comment_lines,
    dedupe_grants,
    distinct_grantees,
    grant_statements,
    header_lines,
    revoke_statements,
)


def _banner(title: str) -> List[str]:
    return [f"-- {title}", "-- " + "=" * (len(title) + 1), ""]


def _cleanup(target: str, grants: Sequence[Mapping[str, Any]]) -> List[str]:
    lines = _banner("🧹 Cleanup Section (for permission idempotency)")
    if grants:
        lines.extend(revoke_statements(target, distinct_grantees(grants)))
        lines.append("")
    return lines


def _grants(target: str, grants: Sequence[Mapping[str, Any]], title: str) -> List[str]:
    if not grants:
        return []
    return [f"-- {title}", *grant_statements(target, grants), ""]


def view_options(view: Mapping[str, Any]) -> List[str]:
    # CREATE OR REPLACE VIEW resets reloptions, so they are restated;
    # check_option is written as a trailing clause instead
    opts = view.get('reloptions') or []
    return [str(o) for o in opts if not str(o).startswith('check_option=')]


def generate_view_sql(
    view: Mapping[str, Any],
    grants: Sequence[Mapping[str, Any]],
    role_mappings: Mapping[str, str] | None = None,
    include_date: bool = False,
    *,
    now: datetime | None = None,
) -> str:
    schema = str(view['schema_name'])
    name = str(view['view_name'])
    target = qualify(schema, name)

    lines = header_lines(f"View: {schema}.{name}", include_date=include_date, now=now)
    lines.append(f"-- Owner: {view.get('owner')}")
    lines.append(f"-- Updatable: {'Yes' if view.get('is_updatable') else 'No'}")
    if view.get('comment'):
        lines.extend(comment_lines("Comment", view['comment']))
    lines.append("")

    lines.extend(_cleanup(target, grants))

    lines.extend(_banner("⚡ Recreation Section"))
    options = view_options(view)
    with_clause = f" WITH ({', '.join(options)})" if options else ""
    definition = str(view['definition']).strip().rstrip(';').rstrip()
    check = str(view.get('check_option') or 'NONE').upper()
    if check in ('LOCAL', 'CASCADED'):
        definition += f"\n  WITH {check} CHECK OPTION"
    lines.append(f"CREATE OR REPLACE VIEW {target}{with_clause} AS")
    lines.append(definition + ';')
    if view.get('comment'):
        lines.append(f"COMMENT ON VIEW {target} IS {quote_literal(str(view['comment']))};")
    lines.append("")

    lines.extend(_grants(target, grants, "View grants"))
    return apply_role_mappings("\n".join(lines), role_mappings)


def generate_materialized_view_sql(
    matview: Mapping[str, Any],
    grants: Sequence[Mapping[str, Any]],
    indexes: Sequence[Mapping[str, Any]],
    role_mappings: Mapping[str, str] | None = None,
    include_date: bool = False,
    *,
    now: datetime | None = None,
) -> str:
    """Documentation and permissions for a materialized view.

    The defining query is not emitted: a materialized view holds data, so
    recreating it belongs to a regular migration, not to a permissions file.
    """
    schema = str(matview['schema_name'])
    name = str(matview['matview_name'])
    target = qualify(schema, name)
    populated = bool(matview.get('is_populated'))

    lines = header_lines(f"Materialized View: {schema}.{name}", include_date=include_date, now=now)
    lines.append(f"-- Owner: {matview.get('owner')}")
    lines.append(f"-- Populated: {'Yes' if populated else 'No'}")
    if matview.get('comment'):
        lines.extend(comment_lines("Comment", matview['comment']))
    lines.append("")

    lines.append("/*")
    lines.append(f"  MATERIALIZED VIEW DOCUMENTATION: {schema}.{name}")
    lines.append("  " + "=" * 65)
    lines.append("")
    if matview.get('comment'):
        lines.append(f"  Description: {block_safe(matview['comment'])}")
        lines.append("")
    lines.append(f"  Owner: {block_safe(matview.get('owner'))}")
    lines.append(f"  Status: {'Populated' if populated else 'Not Populated'}")
    lines.append("")

    if indexes:
        lines.append("  INDEXES:")
        lines.append("  --------")
        for idx in indexes:
            lines.append(f"  • {block_safe(idx['index_name'])}")
            lines.append(f"    {block_safe(idx['index_definition'])}")
        lines.append("")

    if grants:
        lines.append("  PERMISSIONS:")
        lines.append("  ------------")
        for g in dedupe_grants(grants):
            suffix = " (GRANTABLE)" if g['is_grantable'] else ""
            lines.append(f"  • {g['privilege']} → {block_safe(g['grantee'])}{suffix}")
        lines.append("")

    lines.append("  NOTE: This materialized view definition is not exported")
    lines.append("        as it's considered stateful. Only metadata and")
    lines.append("        permissions are documented here.")
    lines.append("*/")
    lines.append("")

    lines.extend(_cleanup(target, grants))
    lines.extend(_banner("⚡ Recreation Section (Permissions Only)"))
    lines.extend(_grants(target, grants, "Materialized view grants"))
    return apply_role_mappings("\n".join(lines), role_mappings)
