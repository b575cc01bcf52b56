"""
MRV package verification.

Recomputes the top-level hash from the files currently on disk and compares
it with the checksum stored when the package was exported. Detection only:
a mismatch is reported, never repaired.

The set of hashed files is fixed by the package layout, not by whatever
``checksums.json`` lists. A rewritten checksums file can therefore never
steer verification away from an edited artifact.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.constants import CHECKSUMS_FILE
from agromrv.core.exceptions import NotFoundError, PackageFilesNotFoundError, StorageError
from agromrv.handlers.mrv_export import ARTIFACT_FILES
from agromrv.models.package import MRVPackage, PackageVerification
from agromrv.utils.hashing import sha256_of_file, top_level_hash
from agromrv.utils.storage import from_artifacts_uri

logger = logging.getLogger(__name__)


def read_checksums(folder: Path) -> Dict[str, str]:
    """
    Load the file → hash map of a package folder.

    Raises:
        PackageFilesNotFoundError: folder or checksums.json missing
        StorageError: checksums.json unreadable or not a file → hash map
    """
    if not folder.is_dir():
        raise PackageFilesNotFoundError(
            "Package files not found",
            context={"folder": str(folder)}
        )

    checksum_path = folder / CHECKSUMS_FILE
    if not checksum_path.is_file():
        raise PackageFilesNotFoundError(
            "Checksums file not found",
            context={"folder": str(folder)}
        )

    try:
        with open(checksum_path, encoding="utf-8") as fh:
            checksums = json.load(fh)
    except (OSError, ValueError) as e:
        raise StorageError(
            f"Checksums file is unreadable: {e}",
            context={"folder": str(folder)}
        ) from e

    files = checksums.get("files") if isinstance(checksums, dict) else None
    if not isinstance(files, dict):
        raise StorageError(
            "Checksums file has no 'files' mapping",
            context={"folder": str(folder)}
        )
    return {str(key): str(value) for key, value in files.items()}


def recompute_file_hashes(folder: Path) -> Dict[str, str]:
    """
    Hash every package artifact as it is on disk now.

    Raises:
        PackageFilesNotFoundError: an artifact is missing
    """
    recomputed = {}
    for rel_path in sorted(ARTIFACT_FILES):
        path = folder / rel_path
        if not path.is_file():
            raise PackageFilesNotFoundError(
                f"Package file {rel_path} not found",
                context={"folder": str(folder), "file": rel_path}
            )
        recomputed[rel_path] = sha256_of_file(path)
    return recomputed


def find_mismatches(stored: Dict[str, str], recomputed: Dict[str, str]) -> List[str]:
    """
    Keys whose stored hash disagrees with the file on disk.

    Artifacts absent from ``stored`` and keys that are not package artifacts
    (renamed, absolute or ``..`` paths) are both reported.
    """
    mismatched = {key for key, digest in recomputed.items() if stored.get(key) != digest}
    mismatched.update(key for key in stored if key not in recomputed)
    return sorted(mismatched)


async def verify_package(
    session: AsyncSession,
    package_id: int,
    folder: Optional[Path] = None
) -> PackageVerification:
    """
    Verify the integrity of an exported package.

    Args:
        session: Database session
        package_id: Package ID
        folder: Override the folder recorded in the package's artifacts URI

    Returns:
        PackageVerification; ``matches`` is False on any tampering

    Raises:
        NotFoundError: unknown package
        PackageFilesNotFoundError: artifacts no longer on storage
    """
    package = await session.get(MRVPackage, package_id)
    if not package:
        raise NotFoundError(f"Package {package_id} not found", context={"package_id": package_id})

    folder = folder or from_artifacts_uri(package.artifacts_uri)
    stored = read_checksums(folder)
    recomputed = recompute_file_hashes(folder)
    recomputed_checksum = top_level_hash(recomputed)

    mismatched = find_mismatches(stored, recomputed)
    matches = recomputed_checksum == package.checksum and not mismatched

    if matches:
        logger.info("Package %s verified", package.id)
    else:
        logger.warning(
            "Package %s checksum mismatch: stored %s, recomputed %s, files %s",
            package.id, package.checksum, recomputed_checksum, mismatched
        )

    return PackageVerification(
        pkg_id=package.id,
        stored_checksum=package.checksum,
        recomputed_checksum=recomputed_checksum,
        matches=matches,
        mismatched_files=mismatched,
        ledger_tx_id=package.ledger_tx_id,
    )
