#!/usr/bin/env python3
from __future__ import annotations

"""Export orchestration.

Per schema, lists the objects in scope, renders one SQL file per object and
writes it under <out>/<schema>/<kind>/. All catalog access goes through
tablerizer.dbutil, all text through tablerizer.sqlgen.

Inputs
- conn: psycopg connection
- opts: resolved options dict (see tablerizer.config.default_config)
- progress: optional callable receiving {schema, name, kind, progress, total}

Outputs
- export() returns a YAML-ready dict describing every written file.
"""

import logging
import os
import shutil
from typing import Any, Callable, Dict, List, Mapping

import psycopg

from .config import normalize_scope, validate_config
from .dbutil import (
    get_column_grants,
    get_columns,
    get_constraints,
    get_default_privileges,
    get_indexes,
    get_policies,
    get_relation_grants,
    get_table_comment,
    get_table_grants,
    get_table_info,
    get_triggers,
    list_functions,
    list_materialized_views,
    list_tables,
    list_views,
)
from .sqlgen import (
    generate_default_privileges_sql,
    generate_function_sql,
    generate_materialized_view_sql,
    generate_table_sql,
    generate_view_sql,
)


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]

KIND_DIRS = {
    'tables': 'tables',
    'functions': 'functions',
    'views': 'views',
    'materialized-views': 'materialized_views',
}
FILE_TYPES = {
    'tables': 'table',
    'functions': 'function',
    'views': 'view',
    'materialized-views': 'materialized-view',
}
DEFAULT_PRIVILEGES_FILE = '_default_privileges.sql'


def connect(url: str):
    return psycopg.connect(url, connect_timeout=5)


def _roles(opts: Mapping[str, Any]) -> List[str] | None:
    roles = opts.get('roles')
    return list(roles) if roles else None


def _file_name(name: str) -> str:
    return name.replace(os.sep, '_').replace('/', '_')


def _write(path: str, content: str) -> int:
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    return len(content)


def collect_table_data(conn, schema: str, table: str, roles: List[str] | None = None) -> Dict[str, Any]:
    info = get_table_info(conn, schema, table)
    return {
        'table': table,
        'owner': info['owner'],
        'rls': {
            'enabled': bool(info['relrowsecurity']),
            'force': bool(info['relforcerowsecurity']),
            'policies': get_policies(conn, schema, table),
        },
        'rbac': {
            'table_grants': get_table_grants(conn, schema, table, roles),
            'column_grants': get_column_grants(conn, schema, table, roles),
        },
        'triggers': get_triggers(conn, schema, table),
        'columns': get_columns(conn, schema, table),
        'constraints': get_constraints(conn, schema, table),
        'comment': get_table_comment(conn, schema, table),
    }


def render_table(conn, opts: Mapping[str, Any], schema: str, table: str) -> str:
    data = collect_table_data(conn, schema, table, _roles(opts))
    return generate_table_sql(schema, data, opts.get('role_mappings'), bool(opts.get('include_date')))


def render_function(opts: Mapping[str, Any], func: Mapping[str, Any]) -> str:
    return generate_function_sql(func, _roles(opts), opts.get('role_mappings'), bool(opts.get('include_date')))


def render_view(conn, opts: Mapping[str, Any], view: Mapping[str, Any]) -> str:
    grants = get_table_grants(conn, view['schema_name'], view['view_name'], _roles(opts))
    return generate_view_sql(view, grants, opts.get('role_mappings'), bool(opts.get('include_date')))


def render_materialized_view(conn, opts: Mapping[str, Any], matview: Mapping[str, Any]) -> str:
    schema, name = matview['schema_name'], matview['matview_name']
    grants = get_relation_grants(conn, schema, name, _roles(opts))
    indexes = get_indexes(conn, schema, name)
    return generate_materialized_view_sql(
        matview, grants, indexes, opts.get('role_mappings'), bool(opts.get('include_date'))
    )


def clean_schema_output(base_dir: str, schema: str) -> None:
    """Remove previously generated files for one schema, leaving anything else alone."""
    schema_dir = os.path.join(base_dir, schema)
    for sub in KIND_DIRS.values():
        path = os.path.join(schema_dir, sub)
        if os.path.isdir(path):
            shutil.rmtree(path)
    dp = os.path.join(schema_dir, DEFAULT_PRIVILEGES_FILE)
    if os.path.isfile(dp):
        os.remove(dp)


def _function_paths(schema_dir: str, funcs: List[Mapping[str, Any]]) -> List[str]:
    # Overloads share a name: the first keeps <name>.sql, the rest get _1, _2, ...
    used: set[str] = set()
    paths: List[str] = []
    for func in funcs:
        base = _file_name(str(func['function_name']))
        path = os.path.join(schema_dir, KIND_DIRS['functions'], f"{base}.sql")
        counter = 1
        while path in used:
            path = os.path.join(schema_dir, KIND_DIRS['functions'], f"{base}_{counter}.sql")
            counter += 1
        used.add(path)
        paths.append(path)
    return paths


def export(conn, opts: Mapping[str, Any], progress: ProgressCallback | None = None) -> Dict[str, Any]:
    validate_config(opts, require_database_url=False)
    scope = normalize_scope(opts.get('scope'))
    base_dir = str(opts.get('out') or './tables')
    roles = _roles(opts)
    mappings = opts.get('role_mappings')
    include_date = bool(opts.get('include_date'))

    files: List[Dict[str, Any]] = []
    counts = {kind: 0 for kind in KIND_DIRS}
    os.makedirs(base_dir, exist_ok=True)

    def _record(schema: str, name: str, kind: str, path: str, size: int) -> None:
        files.append({'schema': schema, 'name': name, 'type': FILE_TYPES[kind], 'path': path, 'size': size})
        counts[kind] += 1

    for schema in opts['schemas']:
        schema_dir = os.path.join(base_dir, schema)
        if opts.get('clean', True):
            clean_schema_output(base_dir, schema)
        os.makedirs(schema_dir, exist_ok=True)

        work: List[tuple] = []
        if 'tables' in scope:
            work.extend(('tables', t) for t in list_tables(conn, schema))
        if 'functions' in scope:
            funcs = list_functions(conn, schema)
            work.extend(('functions', (f, p)) for f, p in zip(funcs, _function_paths(schema_dir, funcs)))
        if 'views' in scope:
            work.extend(('views', v) for v in list_views(conn, schema))
        if 'materialized-views' in scope:
            work.extend(('materialized-views', m) for m in list_materialized_views(conn, schema))

        total = len(work)
        logger.info("Exporting schema %s: %d objects (scope=%s)", schema, total, ','.join(scope))
        for i, (kind, item) in enumerate(work, start=1):
            if kind == 'tables':
                name = item
                path = os.path.join(schema_dir, KIND_DIRS[kind], f"{_file_name(name)}.sql")
                content = render_table(conn, opts, schema, name)
            elif kind == 'functions':
                func, path = item
                name = str(func['function_name'])
                content = render_function(opts, func)
            elif kind == 'views':
                name = str(item['view_name'])
                path = os.path.join(schema_dir, KIND_DIRS[kind], f"{_file_name(name)}.sql")
                content = render_view(conn, opts, item)
            else:
                name = str(item['matview_name'])
                path = os.path.join(schema_dir, KIND_DIRS[kind], f"{_file_name(name)}.sql")
                content = render_materialized_view(conn, opts, item)

            if progress is not None:
                progress({'schema': schema, 'name': name, 'kind': FILE_TYPES[kind], 'progress': i, 'total': total})
            _record(schema, name, kind, path, _write(path, content))
            logger.debug("Wrote %s", path)

        if 'tables' in scope:
            privileges = get_default_privileges(conn, schema, roles)
            if privileges:
                path = os.path.join(schema_dir, DEFAULT_PRIVILEGES_FILE)
                content = generate_default_privileges_sql(schema, privileges, mappings, include_date)
                size = _write(path, content)
                files.append({'schema': schema, 'name': DEFAULT_PRIVILEGES_FILE, 'type': 'default-privileges', 'path': path, 'size': size})

    result = {
        'schemas': list(opts['schemas']),
        'total_files': len(files),
        'table_files': counts['tables'],
        'function_files': counts['functions'],
        'view_files': counts['views'],
        'materialized_view_files': counts['materialized-views'],
        'output_path': os.path.abspath(base_dir),
        'files': files,
    }
    logger.info("Export finished: %d files in %s", result['total_files'], result['output_path'])
    return result


def export_tables(conn, opts: Mapping[str, Any], progress: ProgressCallback | None = None) -> Dict[str, Any]:
    return export(conn, {**opts, 'scope': 'tables'}, progress)


def export_functions(conn, opts: Mapping[str, Any], progress: ProgressCallback | None = None) -> Dict[str, Any]:
    return export(conn, {**opts, 'scope': 'functions'}, progress)


def export_table(conn, opts: Mapping[str, Any], schema: str, table: str, output_path: str | None = None) -> str:
    content = render_table(conn, opts, schema, table)
    if output_path:
        _write(output_path, content)
    return content


def export_function(conn, opts: Mapping[str, Any], schema: str, function_name: str, output_path: str | None = None) -> str:
    matches = [f for f in list_functions(conn, schema) if f['function_name'] == function_name]
    if not matches:
        raise LookupError(f'Function {schema}.{function_name} not found')
    content = render_function(opts, matches[0])
    if output_path:
        _write(output_path, content)
    return content


def run_export(opts: Mapping[str, Any], progress: ProgressCallback | None = None) -> Dict[str, Any]:
    validate_config(opts)
    with connect(str(opts['database_url'])) as conn:
        return export(conn, opts, progress)
