#!/usr/bin/env python3
from __future__ import annotations

"""Export command helpers.

Inputs
- opts: resolved and validated options dict (see tablerizer.config)
- conn: psycopg connection (opened by the caller)

Outputs
- Dict with result, counts and written files, suitable for YAML emission by CLI.

Failure policy
- Raise on database errors and missing schemas. No suppression.
"""

import logging
from typing import Any, Dict, List, Mapping

from ..dbutil import schema_exists
from ..exporter import export


logger = logging.getLogger(__name__)


def _log_progress(event: Dict[str, Any]) -> None:
    logger.info(
        "[%s] %d/%d %s %s",
        event['schema'], event['progress'], event['total'], event['kind'], event['name'],
    )


def run_export_cmd(conn, opts: Mapping[str, Any]) -> dict:
    missing: List[str] = [s for s in opts['schemas'] if not schema_exists(conn, s)]
    if missing:
        raise LookupError(f"Schema(s) not found: {', '.join(missing)}")
    res = export(conn, opts, progress=_log_progress)
    return {
        "result": "exported",
        "schemas": res['schemas'],
        "output_path": res['output_path'],
        "counts": {
            "total": res['total_files'],
            "tables": res['table_files'],
            "functions": res['function_files'],
            "views": res['view_files'],
            "materialized_views": res['materialized_view_files'],
        },
        "files": [f"{f['schema']}/{f['type']}: {f['path']}" for f in res['files']],
    }
