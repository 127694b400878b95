#!/usr/bin/env python3
import argparse
import os
import re
import sys
import time
from typing import Dict, List

import psycopg
import yaml

from . import __version__
from .env import load_dotenv
from .config import ConfigError, SCOPES, ALL_SCOPE, resolve_config, validate_config
from .exporter import connect
from .commands.export_cmd import run_export_cmd
from .logsetup import setup_logging, install_psycopg_query_logging


def _fmt_duration(seconds: float) -> str:
    total = int(seconds)
    mins, secs = divmod(total, 60)
    hours, mins = divmod(mins, 60)
    return f"{hours}h{mins}m{secs}s" if hours else f"{mins}m{secs}s"


def _emit(request: dict, run: dict, start_ts: float) -> None:
    """Print a uniform YAML envelope with request/run/runtime (runtime last)."""
    env = {}
    env["request"] = request
    env["run"] = run
    env["runtime"] = _fmt_duration(time.time() - start_ts)
    print(yaml.safe_dump(env, sort_keys=False, default_flow_style=False, allow_unicode=True))


def _redact(url: str | None) -> str | None:
    if not url:
        return url
    return re.sub(r'://([^:/@]+):[^@]*@', r'://\1:***@', url)


def _parse_role_mappings(pairs: List[str] | None) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for pair in pairs or []:
        actual, sep, placeholder = pair.partition('=')
        if not sep or not actual.strip() or not placeholder.strip():
            raise ConfigError(f"Invalid --role-mapping '{pair}' (expected ACTUAL=PLACEHOLDER)")
        out[actual.strip()] = placeholder.strip()
    return out


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    scopes = ', '.join(SCOPES + (ALL_SCOPE,))
    p = argparse.ArgumentParser(
        prog='tablerizer',
        description='Export PostgreSQL grants, RLS policies, triggers and docs as idempotent SQL files',
    )
    p.add_argument('--env', default=os.path.join(os.getcwd(), '.env'), help='Path to .env file (default: ./.env)')
    p.add_argument('--config', help='Path to config file. If not provided, uses env TABLERIZER_CONFIG or auto-detects ./.tablerizerrc')
    p.add_argument('--schemas', '--schema', dest='schemas', help='Comma-separated schemas to export')
    p.add_argument('--out', help='Output directory (default: ./tables)')
    p.add_argument('--roles', '--role', dest='roles', help='Comma-separated roles to include in grants (default: all)')
    p.add_argument('--database-url', help='PostgreSQL connection URL (default: env DATABASE_URL)')
    p.add_argument('--scope', help=f'Comma-separated object kinds to export: {scopes} (default: all)')
    p.add_argument('--role-mapping', action='append', metavar='ACTUAL=PLACEHOLDER', help='Replace a role name in output with a placeholder (repeatable)')
    p.add_argument('--include-date', action=argparse.BooleanOptionalAction, default=None, help='Add a generation date line to file headers')
    p.add_argument('--clean', action=argparse.BooleanOptionalAction, default=None, help='Remove previously generated files for each schema first (default: on)')
    p.add_argument('--check-connection', action='store_true', help='Try connecting to the database and exit')
    p.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return p.parse_args(argv)


def check_connection(start_ts: float, *, env_path: str, url: str | None) -> int:
    request = {
        "action": "check_connection",
        "args": sys.argv[1:],
        "env_file": env_path,
        "database_url": _redact(url),
    }
    if not url:
        msg = 'DATABASE_URL is not set (load it via .env or environment)'
        print(msg, file=sys.stderr)
        _emit(request, {"result": "error", "error": msg}, start_ts)
        return 2
    try:
        conn = connect(url)
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
                _ = cur.fetchone()
        finally:
            conn.close()
        _emit(request, {"result": "ok"}, start_ts)
        return 0
    except psycopg.Error as e:
        print(f'Connection failed: {e}', file=sys.stderr)
        _emit(request, {"result": "error", "error": str(e)}, start_ts)
        return 1


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    start_ts = time.time()

    # Load .env silently; commands produce their own output
    _loaded, _env_path = load_dotenv(args.env)

    logger = setup_logging()
    install_psycopg_query_logging(logger)

    if args.check_connection:
        return check_connection(start_ts, env_path=args.env, url=args.database_url or os.environ.get('DATABASE_URL'))

    cfg_path = args.config or os.environ.get('TABLERIZER_CONFIG')
    request = {
        "action": "export",
        "args": sys.argv[1:] if argv is None else list(argv),
        "env_file": args.env,
        "config": cfg_path,
    }
    try:
        cli_args = {
            'schemas': args.schemas,
            'out': args.out,
            'roles': args.roles,
            'database_url': args.database_url,
            'scope': args.scope,
            'role_mappings': _parse_role_mappings(args.role_mapping),
            'include_date': args.include_date,
            'clean': args.clean,
        }
        opts = resolve_config(cli_args, config_path=cfg_path)
        validate_config(opts)
    except ConfigError as e:
        msg = str(e)
        print(msg, file=sys.stderr)
        _emit(request, {"result": "error", "error": msg}, start_ts)
        return 2

    request.update({
        "config": opts.get('config_path'),
        "database_url": _redact(opts['database_url']),
        "schemas": list(opts['schemas']),
        "scope": opts['scope'],
        "out": opts['out'],
    })
    logger.info("Export requested: schemas=%s scope=%s out=%s", opts['schemas'], opts['scope'], opts['out'])
    try:
        with connect(str(opts['database_url'])) as conn:
            run = run_export_cmd(conn, opts)
    except (psycopg.Error, LookupError, OSError) as e:
        logger.exception("Export failed")
        print(f'Export failed: {e}', file=sys.stderr)
        _emit(request, {"result": "error", "error": str(e)}, start_ts)
        return 1
    _emit(request, run, start_ts)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
