"""
Hashing utilities for audit trail and MRV package checksums.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Mapping

from agromrv.core.exceptions import StorageError

CHUNK_SIZE = 64 * 1024


def hash_payload(payload: Dict[str, Any]) -> str:
    """
    Generate SHA-256 hash of a payload for audit trail.

    Args:
        payload: Dictionary to hash

    Returns:
        Hexadecimal SHA-256 hash string
    """
    # Sort keys for consistent hashing
    payload_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(payload_str.encode()).hexdigest()


def sha256_of_string(value: str) -> str:
    """SHA-256 hex digest of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def sha256_of_file(path: Path) -> str:
    """
    SHA-256 hex digest of a file's raw bytes.

    Raises:
        StorageError: if the file cannot be read
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        raise StorageError(
            f"Failed to hash file {path}: {e}",
            context={"path": str(path)}
        ) from e
    return digest.hexdigest()


def top_level_hash(file_hashes: Mapping[str, str]) -> str:
    """
    Aggregate package hash.

    File keys are sorted lexicographically, their digests joined with "|"
    and the joined string hashed again. Export and verification must both
    go through here.
    """
    concat = "|".join(file_hashes[key] for key in sorted(file_hashes))
    return sha256_of_string(concat)
