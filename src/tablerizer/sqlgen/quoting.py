#!/usr/bin/env python3
from __future__ import annotations

from typing import Iterable, Mapping
import re


_PLAIN_IDENT = re.compile(r"^[a-z_][a-z0-9_$]*$")

# Reserved words plus the type/function-name keywords that are not valid as a bare name
_RESERVED = frozenset("""
    all analyse analyze and any array as asc asymmetric authorization binary both case cast check
    collate collation column concurrently constraint create cross current_catalog current_date
    current_role current_schema current_time current_timestamp current_user default deferrable desc
    distinct do else end except false fetch for foreign freeze from full grant group having ilike in
    initially inner intersect into is isnull join lateral leading left like limit localtime
    localtimestamp natural not notnull null offset on only or order outer overlaps placing primary
    references returning right select session_user similar some symmetric system_user table
    tablesample then to trailing true union unique user using variadic verbose when where window with
""".split())


def quote_ident(name: str) -> str:
    if _PLAIN_IDENT.match(name) and name not in _RESERVED:
        return name
    return '"' + name.replace('"', '""') + '"'


def quote_role(name: str) -> str:
    # PUBLIC is a keyword in grant position, never a quoted role name
    if name.upper() == 'PUBLIC':
        return 'PUBLIC'
    return quote_ident(name)


def qualify(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def join_idents(names: Iterable[str]) -> str:
    return ", ".join(quote_ident(n) for n in names)


def apply_role_mappings(content: str, role_mappings: Mapping[str, str] | None) -> str:
    """Replace actual role names with placeholders (e.g. ``:DATABASE_VISITOR``).

    Only standalone tokens are replaced: the name, optionally double-quoted,
    not glued to identifier characters or to a '.' (so schema and table names
    that happen to equal a role stay put). A leading ':' also blocks the match
    so an emitted placeholder is never mapped twice.
    """
    if not role_mappings:
        return content
    out = content
    # Longest names first so "app_user" is not clobbered by "app"
    for actual in sorted(role_mappings, key=len, reverse=True):
        placeholder = role_mappings[actual]
        name = re.escape(actual)
        pattern = re.compile(rf'(?<![\w$:".])(?:"{name}"|{name}(?![\w$"]))(?![\w$.])')
        out = pattern.sub(lambda _m: placeholder, out)
    return out
