#!/usr/bin/env python3
from __future__ import annotations

# Library entry points: `from tablerizer import run_export, resolve_config`.

__version__ = "1.1.0"

from .config import (
    ConfigError,
    default_config,
    load_config,
    merge_configs,
    resolve_config,
    validate_config,
)
from .exporter import (
    connect,
    export,
    export_function,
    export_functions,
    export_table,
    export_tables,
    run_export,
)

__all__ = [
    '__version__',
    # config
    'ConfigError', 'default_config', 'load_config', 'merge_configs', 'resolve_config', 'validate_config',
    # exporter
    'connect', 'export', 'export_function', 'export_functions', 'export_table', 'export_tables', 'run_export',
]
