#!/usr/bin/env python3
from __future__ import annotations

from .quoting import apply_role_mappings, qualify, quote_ident, quote_literal, quote_role
from .tables import (
    generate_column_grants_sql,
    generate_grants_sql,
    generate_policies_sql,
    generate_schema_documentation,
    generate_table_sql,
    generate_triggers_sql,
    group_triggers,
)
from .routines import generate_function_sql
from .views import generate_materialized_view_sql, generate_view_sql
from .privileges import generate_default_privileges_sql

__all__ = [
    # quoting
    'apply_role_mappings', 'qualify', 'quote_ident', 'quote_literal', 'quote_role',
    # tables
    'generate_column_grants_sql', 'generate_grants_sql', 'generate_policies_sql',
    'generate_schema_documentation', 'generate_table_sql', 'generate_triggers_sql', 'group_triggers',
    # routines
    'generate_function_sql',
    # views
    'generate_materialized_view_sql', 'generate_view_sql',
    # privileges
    'generate_default_privileges_sql',
]
