#!/usr/bin/env python3
from __future__ import annotations

# Re-export public API to allow imports like `from tablerizer.dbutil import ...`.

from .introspect import (
    schema_exists,
    list_tables,
    get_table_info,
    get_table_comment,
    get_columns,
)

from .grants import (
    get_table_grants,
    get_column_grants,
    get_relation_grants,
    get_default_privileges,
)

from .policies import (
    get_policies,
)

from .triggers import (
    get_triggers,
)

from .constraints import (
    get_constraints,
)

from .functions import (
    list_functions,
)

from .views import (
    list_views,
    list_materialized_views,
    get_indexes,
)

__all__ = [
    # introspect
    'schema_exists', 'list_tables', 'get_table_info', 'get_table_comment', 'get_columns',
    # grants
    'get_table_grants', 'get_column_grants', 'get_relation_grants', 'get_default_privileges',
    # policies
    'get_policies',
    # triggers
    'get_triggers',
    # constraints
    'get_constraints',
    # functions
    'list_functions',
    # views
    'list_views', 'list_materialized_views', 'get_indexes',
]
