"""
Filesystem helpers for the artifact store.
"""

import json
from pathlib import Path
from typing import Any

FILE_SCHEME = "file://"


def ensure_storage(root: Path) -> Path:
    """Create the storage root if needed and return it resolved."""
    root = Path(root).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def create_unique_dir(parent: Path, name: str) -> Path:
    """
    Create a new directory under ``parent`` that did not exist before.

    If ``name`` is taken, ``name_1``, ``name_2``, ... are tried. Existing
    directories are never reused.
    """
    parent.mkdir(parents=True, exist_ok=True)
    candidate = parent / name
    suffix = 0
    while True:
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            suffix += 1
            candidate = parent / f"{name}_{suffix}"


def write_text_rel(base: Path, rel_path: str, data: str) -> Path:
    """Write ``data`` to ``base/rel_path``, creating parent folders."""
    full = base / rel_path
    full.parent.mkdir(parents=True, exist_ok=True)
    full.write_text(data, encoding="utf-8")
    return full


def dump_json(obj: Any) -> str:
    return json.dumps(obj, indent=2)


def to_artifacts_uri(folder: Path) -> str:
    return f"{FILE_SCHEME}{Path(folder).resolve()}"


def from_artifacts_uri(uri: str) -> Path:
    if uri.startswith(FILE_SCHEME):
        uri = uri[len(FILE_SCHEME):]
    return Path(uri)
