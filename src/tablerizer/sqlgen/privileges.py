#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Sequence

from .quoting import apply_role_mappings, quote_ident, quote_role
from .sections import header_lines


def generate_default_privileges_sql(
    schema: str,
    privileges: Sequence[Mapping[str, Any]],
    role_mappings: Mapping[str, str] | None = None,
    include_date: bool = False,
    *,
    now: datetime | None = None,
) -> str:
    """ALTER DEFAULT PRIVILEGES statements for tables created in ``schema``.

    Rows come from pg_default_acl: owner (the role whose future tables are
    affected), grantee, privilege, is_grantable.
    """
    lines = header_lines(f"Default table privileges: {schema}", include_date=include_date, now=now)
    lines.append("")

    seen: Dict[tuple, Mapping[str, Any]] = {}
    for p in privileges:
        key = (str(p['owner']), str(p['grantee']), str(p['privilege']), bool(p.get('is_grantable')))
        seen.setdefault(key, p)

    for owner, grantee, privilege, grantable in sorted(seen):
        note = " (with grant option)" if grantable else ""
        lines.append(f"-- Default ACL: {owner} grants {privilege} to {grantee}{note}")
        sql = (
            f"ALTER DEFAULT PRIVILEGES FOR ROLE {quote_role(owner)} IN SCHEMA {quote_ident(schema)}"
            f" GRANT {privilege} ON TABLES TO {quote_role(grantee)}"
        )
        if grantable:
            sql += " WITH GRANT OPTION"
        lines.append(sql + ";")
    lines.append("")
    return apply_role_mappings("\n".join(lines), role_mappings)
