#!/usr/bin/env python3
from __future__ import annotations

"""Configuration loading and resolution.

Sources, highest precedence first:
- CLI arguments
- environment variables (SCHEMAS, OUTPUT_DIR, ROLES, DATABASE_URL)
- config file (.tablerizerrc, auto-detected or passed with --config)
- defaults

The config file is parsed with yaml.safe_load, so both the JSON
.tablerizerrc format and YAML work. Strings inside it may reference the
environment as $VAR, ${VAR} or ${VAR:default}.
"""

import os
import re
from typing import Any, Dict, List, Mapping, Sequence
import yaml


CONFIG_FILE_NAMES = (
    '.tablerizerrc',
    '.tablerizerrc.json',
    '.tablerizerrc.yml',
    '.tablerizerrc.yaml',
)

SCOPES = ('tables', 'functions', 'views', 'materialized-views')
ALL_SCOPE = 'all'

_ENV_REF = re.compile(r"\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)")


_TRUE = ('true', 'yes', 'on', '1')
_FALSE = ('false', 'no', 'off', '0', '')


class ConfigError(ValueError):
    pass


def default_config() -> Dict[str, Any]:
    return {
        'schemas': [],
        'out': './tables',
        'roles': None,
        'database_url': None,
        'role_mappings': {},
        'scope': ALL_SCOPE,
        'include_date': False,
        'clean': True,
    }


def find_config_file(cwd: str | None = None) -> str | None:
    base = cwd or os.getcwd()
    for name in CONFIG_FILE_NAMES:
        path = os.path.join(base, name)
        if os.path.isfile(path):
            return path
    return None


def expand_env_vars(value: str, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ

    def _sub(m: re.Match) -> str:
        braced, simple = m.group(1), m.group(2)
        if braced is not None and ':' in braced:
            name, default = braced.split(':', 1)
            return env.get(name) or default
        name = braced if braced is not None else simple
        val = env.get(name)
        return val if val else m.group(0)

    return _ENV_REF.sub(_sub, value)


def _expand_tree(obj: Any, environ: Mapping[str, str] | None) -> Any:
    if isinstance(obj, str):
        return expand_env_vars(obj, environ)
    if isinstance(obj, list):
        return [_expand_tree(v, environ) for v in obj]
    if isinstance(obj, dict):
        return {k: _expand_tree(v, environ) for k, v in obj.items()}
    return obj


def load_config(path: str, environ: Mapping[str, str] | None = None) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f'Failed to load config file {path}: {e}') from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f'Failed to load config file {path}: top level must be a mapping')
    return _expand_tree(data, environ)


def split_list(value: str | Sequence[str] | None) -> List[str]:
    if value is None:
        return []
    items = value.split(',') if isinstance(value, str) else list(value)
    return [str(x).strip() for x in items if str(x).strip()]


def as_bool(value: Any, key: str) -> bool:
    # Expanded ${VAR:false} references arrive as strings
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f'{key} must be a boolean, got {value!r}')


def _optional_list(value: Any) -> List[str] | None:
    if value is None:
        return None
    return split_list(value)


def normalize_scope(scope: str | Sequence[str] | None) -> List[str]:
    """Expand a scope value into the ordered list of object kinds to export."""
    requested = split_list(scope) if scope else [ALL_SCOPE]
    if not requested:
        requested = [ALL_SCOPE]
    unknown = [s for s in requested if s != ALL_SCOPE and s not in SCOPES]
    if unknown:
        raise ConfigError(
            f"Invalid scope {', '.join(unknown)}. Must be one of: {', '.join(SCOPES + (ALL_SCOPE,))}"
        )
    if ALL_SCOPE in requested:
        return list(SCOPES)
    return [s for s in SCOPES if s in requested]


def _from_file(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if data.get('schemas'):
        out['schemas'] = split_list(data['schemas'])
    if data.get('out'):
        out['out'] = str(data['out'])
    if data.get('roles') is not None:
        out['roles'] = _optional_list(data['roles'])
    if data.get('database_url'):
        out['database_url'] = str(data['database_url'])
    mappings = data.get('role_mappings')
    if mappings is not None:
        if not isinstance(mappings, dict):
            raise ConfigError('role_mappings must be a mapping of actual role -> placeholder')
        out['role_mappings'] = {str(k): str(v) for k, v in mappings.items()}
    if data.get('scope'):
        out['scope'] = data['scope']
    for key in ('include_date', 'clean'):
        if data.get(key) is not None:
            out[key] = as_bool(data[key], key)
    return out


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if environ.get('SCHEMAS'):
        out['schemas'] = split_list(environ['SCHEMAS'])
    if environ.get('OUTPUT_DIR'):
        out['out'] = environ['OUTPUT_DIR']
    if environ.get('ROLES'):
        out['roles'] = split_list(environ['ROLES'])
    if environ.get('DATABASE_URL'):
        out['database_url'] = environ['DATABASE_URL']
    return out


def _from_cli(cli_args: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if cli_args.get('schemas'):
        out['schemas'] = split_list(cli_args['schemas'])
    if cli_args.get('out'):
        out['out'] = str(cli_args['out'])
    if cli_args.get('roles') is not None:
        out['roles'] = _optional_list(cli_args['roles'])
    if cli_args.get('database_url'):
        out['database_url'] = str(cli_args['database_url'])
    if cli_args.get('role_mappings'):
        out['role_mappings'] = dict(cli_args['role_mappings'])
    if cli_args.get('scope'):
        out['scope'] = cli_args['scope']
    for key in ('include_date', 'clean'):
        if cli_args.get(key) is not None:
            out[key] = as_bool(cli_args[key], key)
    return out


def _overlay(base: Dict[str, Any], layer: Mapping[str, Any]) -> Dict[str, Any]:
    for key, val in layer.items():
        if key == 'role_mappings':
            merged = dict(base.get('role_mappings') or {})
            merged.update(val)
            base['role_mappings'] = merged
        else:
            base[key] = val
    return base


def resolve_config(
    cli_args: Mapping[str, Any] | None = None,
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    resolved = default_config()

    path = config_path or find_config_file()
    if path:
        _overlay(resolved, _from_file(load_config(path, env)))
    _overlay(resolved, _from_env(env))
    _overlay(resolved, _from_cli(cli_args or {}))
    resolved['config_path'] = path
    return resolved


def validate_config(opts: Mapping[str, Any], *, require_database_url: bool = True) -> None:
    schemas = opts.get('schemas') or []
    if not schemas:
        raise ConfigError('At least one schema must be specified')
    for schema in schemas:
        if not schema or not str(schema).strip():
            raise ConfigError('Schema names cannot be empty')
    if require_database_url and not opts.get('database_url'):
        raise ConfigError('Database URL must be provided')
    normalize_scope(opts.get('scope'))


def merge_configs(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Library-side merge: values set in override win, role_mappings are combined."""
    merged = default_config()
    for layer in (base, override):
        for key, val in layer.items():
            if key == 'role_mappings':
                merged['role_mappings'] = {**merged['role_mappings'], **(val or {})}
            elif key in ('include_date', 'clean'):
                if val is not None:
                    merged[key] = as_bool(val, key)
            elif val:
                merged[key] = val
    return merged
