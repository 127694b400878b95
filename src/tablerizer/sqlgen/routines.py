#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from .quoting import apply_role_mappings, qualify, quote_literal, quote_role
from .sections import comment_lines, header_lines


def routine_keyword(func: Mapping[str, Any]) -> str:
    return 'PROCEDURE' if str(func.get('function_type')).upper() == 'PROCEDURE' else 'FUNCTION'


def routine_signature(func: Mapping[str, Any]) -> str:
    name = qualify(str(func['schema_name']), str(func['function_name']))
    return f"{name}({func.get('function_arguments') or ''})"


def _terminated(definition: str) -> str:
    body = definition.rstrip()
    return body if body.endswith(';') else body + ';'


def generate_function_sql(
    func: Mapping[str, Any],
    roles: Sequence[str] | None = None,
    role_mappings: Mapping[str, str] | None = None,
    include_date: bool = False,
    *,
    now: datetime | None = None,
) -> str:
    keyword = routine_keyword(func)
    signature = routine_signature(func)

    lines = header_lines(
        f"Function: {func['schema_name']}.{func['function_name']}",
        include_date=include_date,
        now=now,
    )
    lines.append(f"-- Type: {func.get('function_type')}")
    lines.append(f"-- Language: {func.get('language')}")
    if func.get('comment'):
        lines.extend(comment_lines("Comment", func['comment']))
    if roles:
        lines.append(f"-- Grants for roles: {', '.join(roles)}")
    lines.append("")

    # pg_get_functiondef already emits CREATE OR REPLACE, without the terminator
    lines.append(_terminated(str(func['function_definition'])))

    if func.get('comment'):
        lines.append("")
        lines.append(f"COMMENT ON {keyword} {signature} IS {quote_literal(str(func['comment']))};")

    if roles:
        lines.append("")
        lines.append("-- Grant execution permissions")
        for role in roles:
            lines.append(f"GRANT EXECUTE ON {keyword} {signature} TO {quote_role(role)};")

    lines.append("")
    return apply_role_mappings("\n".join(lines), role_mappings)
