#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .quoting import quote_role


RULE = "-- ========================================"
GENERATED_BY = "-- Generated by Tablerizer 🎲"

PRIVILEGE_ORDER = ('SELECT', 'INSERT', 'UPDATE', 'DELETE', 'TRUNCATE', 'REFERENCES', 'TRIGGER')


def header_lines(title: str, *, include_date: bool = False, now: datetime | None = None) -> List[str]:
    lines = [RULE, f"-- {title}", GENERATED_BY]
    if include_date:
        ts = (now or datetime.now(timezone.utc)).isoformat()
        lines.append(f"-- Date: {ts}")
    lines.append(RULE)
    return lines


def comment_lines(label: str, text: Any) -> List[str]:
    """``-- label: text`` with every continuation line also behind ``--``."""
    parts = str(text).splitlines() or ['']
    return [f"-- {label}: {parts[0]}"] + [f"-- {p}" for p in parts[1:]]


def block_safe(text: Any) -> str:
    # Block comments nest in PostgreSQL; catalog text must not open or close one
    return str(text).replace('/*', '/ *').replace('*/', '* /')


def _privilege_rank(privilege: str) -> int:
    try:
        return PRIVILEGE_ORDER.index(privilege.upper())
    except ValueError:
        return len(PRIVILEGE_ORDER)


def dedupe_grants(grants: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse duplicate (grantee, privilege, grantable) rows.

    The same privilege can be reported once per grantor; only one GRANT is
    needed to recreate it. Output is sorted by grantee then privilege order.
    """
    seen: Dict[tuple, Dict[str, Any]] = {}
    for g in grants:
        key = (str(g['grantee']), str(g['privilege']).upper(), bool(g.get('is_grantable')))
        if key not in seen:
            seen[key] = {'grantee': key[0], 'privilege': key[1], 'is_grantable': key[2]}
    return sorted(
        seen.values(),
        key=lambda g: (g['grantee'], _privilege_rank(g['privilege']), g['privilege'], g['is_grantable']),
    )


def distinct_grantees(*grant_lists: Sequence[Mapping[str, Any]]) -> List[str]:
    names = {str(g['grantee']) for grants in grant_lists for g in grants}
    return sorted(names)


def revoke_statements(target: str, grantees: Iterable[str]) -> List[str]:
    return [f"REVOKE ALL ON TABLE {target} FROM {quote_role(g)};" for g in grantees]


def grant_statements(target: str, grants: Iterable[Mapping[str, Any]]) -> List[str]:
    out: List[str] = []
    for g in dedupe_grants(grants):
        sql = f"GRANT {g['privilege']} ON TABLE {target} TO {quote_role(g['grantee'])}"
        if g['is_grantable']:
            sql += " WITH GRANT OPTION"
        out.append(sql + ";")
    return out
