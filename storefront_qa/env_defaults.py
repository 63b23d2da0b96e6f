"""Read configuration defaults from `.env.defaults` and `.env`.

The process environment always wins; these files only fill in keys that are
not exported. `.env.defaults` is the version-controlled catalog, `.env` is a
local, untracked override layer.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping

REPO_ROOT = Path(__file__).resolve().parents[1]


def parse_env_file(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
            value = value[1:-1]
        values[key.strip()] = value
    return values


@lru_cache(maxsize=1)
def _load_env_defaults() -> Dict[str, str]:
    merged: Dict[str, str] = {}
    for name in (".env.defaults", ".env"):
        path = REPO_ROOT / name
        if path.exists():
            merged.update(parse_env_file(path))
    return merged


def get_env_default(key: str) -> str | None:
    return _load_env_defaults().get(key)


def merged_environment(environ: Mapping[str, str]) -> Dict[str, str]:
    """Overlay `environ` on top of the file defaults."""
    merged = dict(_load_env_defaults())
    merged.update(environ)
    return merged
