#!/usr/bin/env python3
from __future__ import annotations

import os
from typing import MutableMapping, Tuple


def _parse_line(raw: str) -> Tuple[str, str] | None:
    line = raw.strip()
    if not line or line.startswith('#'):
        return None
    if line.startswith('export '):
        line = line[len('export '):].lstrip()
    if '=' not in line:
        return None
    key, val = line.split('=', 1)
    key = key.strip()
    val = val.strip()
    if val[:1] in ('"', "'") and val.endswith(val[0]) and len(val) > 1:
        val = val[1:-1]
    elif ' #' in val:
        val = val.split(' #', 1)[0].rstrip()
    if not key:
        return None
    return key, val


def load_dotenv(path: str, environ: MutableMapping[str, str] | None = None) -> Tuple[int, str]:
    """Load KEY=VALUE lines from a .env file. Returns (count, path).

    Variables already present in the environment win over the file.
    """
    env = os.environ if environ is None else environ
    count = 0
    try:
        with open(path, 'r') as f:
            for raw in f:
                parsed = _parse_line(raw)
                if parsed is None:
                    continue
                key, val = parsed
                if key in env:
                    continue
                env[key] = val
                count += 1
    except FileNotFoundError:
        return 0, path
    return count, path
