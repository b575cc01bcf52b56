"""
MRV package export.

Builds a write-once package folder under ``<storage>/packages``:

    mrv_pkg_<plotId>_<YYYYMMDDTHHMMSSZ>/
        inputs/trees.json
        outputs/estimates.json
        manifest.json
        reports/summary.md
        checksums.json

``checksums.json`` maps each of the four artifact paths (relative to the
package folder) to its SHA-256. The package checksum is the top-level hash
over those digests (see ``utils.hashing.top_level_hash``). The database row
is only written after every file and checksum succeeded.
"""

import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agromrv.core.config import Settings, get_settings
from agromrv.core.constants import (
    CARBON_FRACTION,
    DEFAULT_WOOD_DENSITY,
    KG_PER_TONNE,
    MRV_SCHEMA_VERSION,
    MRV_METHOD_NAME,
    MRV_UNCERTAINTY_APPROACH,
    MRV_UNCERTAINTY_VALUE,
    MRV_PROVENANCE_APP,
    PACKAGES_DIR,
    PACKAGE_PREFIX,
    INPUTS_FILE,
    OUTPUTS_FILE,
    MANIFEST_FILE,
    SUMMARY_FILE,
    CHECKSUMS_FILE,
)
from agromrv.core.exceptions import NotFoundError, StorageError
from agromrv.models.audit import AuditAction, AuditLog
from agromrv.models.estimate import CarbonEstimate
from agromrv.models.package import MRVPackage
from agromrv.models.plot import Plot
from agromrv.models.species import Species
from agromrv.models.tree import Tree
from agromrv.utils.hashing import hash_payload, sha256_of_file, top_level_hash
from agromrv.utils.storage import (
    create_unique_dir,
    dump_json,
    ensure_storage,
    to_artifacts_uri,
    write_text_rel,
)
from agromrv.utils.time import compact_timestamp, isoformat_z, utc_now

logger = logging.getLogger(__name__)

ARTIFACT_FILES = (INPUTS_FILE, OUTPUTS_FILE, MANIFEST_FILE, SUMMARY_FILE)

TreeRow = Tuple[Tree, Optional[CarbonEstimate], Optional[Species]]


@dataclass
class ExportedPackage:
    """Result of a successful export."""
    package: MRVPackage
    folder: Path
    file_hashes: Dict[str, str]

    @property
    def top_hash(self) -> str:
        return self.package.checksum


async def load_plot_trees(session: AsyncSession, plot_id: int) -> List[TreeRow]:
    """Trees of a plot joined with their stored estimate and species, in id order."""
    statement = (
        select(Tree, CarbonEstimate, Species)
        .outerjoin(CarbonEstimate, CarbonEstimate.tree_id == Tree.id)
        .outerjoin(Species, Species.species_code == Tree.species_code)
        .where(Tree.plot_id == plot_id)
        .order_by(Tree.id)
    )
    result = await session.execute(statement)
    return [tuple(row) for row in result.all()]


def compute_totals(rows: List[TreeRow]) -> Dict[str, Any]:
    """Plot totals from stored estimate fields; trees without an estimate add zero."""
    agb_kg = sum(estimate.biomass_kg for _, estimate, _ in rows if estimate)
    carbon_kg = sum(estimate.carbon_kg for _, estimate, _ in rows if estimate)
    return {
        "totalTrees": len(rows),
        "plotAGBTons": agb_kg / KG_PER_TONNE,
        "plotCarbonTons": carbon_kg / KG_PER_TONNE,
    }


def build_inputs(plot: Plot, rows: List[TreeRow]) -> Dict[str, Any]:
    return {
        "plot": {
            "id": plot.id,
            "name": plot.name,
            "agroEcozone": plot.agro_ecozone,
            "boundaryGeojson": plot.boundary_geojson,
        },
        "trees": [
            {
                "id": tree.id,
                "speciesCode": tree.species_code,
                "speciesName": species.common_name if species else None,
                "heightM": tree.height_m,
                "dbhCm": tree.dbh_cm,
                "crownAreaM2": tree.crown_area_m2,
                "health": tree.health,
            }
            for tree, _, species in rows
        ],
    }


def build_outputs(rows: List[TreeRow], totals: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "perTree": [
            {
                "id": tree.id,
                "agbKg": estimate.biomass_kg if estimate else None,
                "carbonKg": estimate.carbon_kg if estimate else None,
                "uncPct": estimate.uncertainty_pct if estimate else None,
                "method": estimate.method if estimate else None,
                "modelVer": estimate.model_version if estimate else None,
            }
            for tree, estimate, _ in rows
        ],
        "totals": totals,
    }


def build_manifest(plot: Plot, generated_at: datetime, settings: Settings) -> Dict[str, Any]:
    return {
        "schemaVersion": MRV_SCHEMA_VERSION,
        "generatedAt": isoformat_z(generated_at),
        "plotId": plot.id,
        "method": {
            "name": MRV_METHOD_NAME,
            "modelVersion": settings.model_version,
            "codeCommit": settings.code_commit,
            "parameters": {
                "carbonFraction": CARBON_FRACTION,
                "defaultWoodDensity": DEFAULT_WOOD_DENSITY,
            },
        },
        "uncertainty": {
            "approach": MRV_UNCERTAINTY_APPROACH,
            "valuePct": MRV_UNCERTAINTY_VALUE,
        },
        "provenance": {
            "app": MRV_PROVENANCE_APP,
            "env": settings.environment,
        },
    }


def build_summary(plot: Plot, totals: Dict[str, Any], generated_at: datetime) -> str:
    return (
        "# MRV Summary\n"
        f"- Plot: {plot.name} ({plot.id})\n"
        f"- Trees: {totals['totalTrees']}\n"
        f"- AGB: {totals['plotAGBTons']:.3f} t\n"
        f"- Carbon: {totals['plotCarbonTons']:.3f} t C\n"
        f"- Generated: {isoformat_z(generated_at)}\n"
    )


def write_package_files(folder: Path, documents: Dict[str, str]) -> Dict[str, str]:
    """
    Write the artifacts, hash them and write ``checksums.json``.

    Returns:
        Mapping of relative artifact path to SHA-256 hex digest
    """
    for rel_path in ARTIFACT_FILES:
        write_text_rel(folder, rel_path, documents[rel_path])

    file_hashes = {rel_path: sha256_of_file(folder / rel_path) for rel_path in ARTIFACT_FILES}
    write_text_rel(folder, CHECKSUMS_FILE, dump_json({"files": file_hashes}))
    return file_hashes


async def export_package(
    session: AsyncSession,
    plot_id: int,
    storage_root: Optional[Path] = None,
    settings: Optional[Settings] = None
) -> ExportedPackage:
    """
    Export a plot's trees and stored estimates as an MRV package.

    Args:
        session: Database session
        plot_id: Plot ID
        storage_root: Artifact store root (defaults to settings)
        settings: Application settings (manifest provenance)

    Returns:
        ExportedPackage with the persisted MRVPackage row

    Raises:
        NotFoundError: unknown plot
        StorageError: writing or hashing artifacts failed; nothing is persisted
    """
    settings = settings or get_settings()
    storage_root = storage_root if storage_root is not None else settings.storage_root

    plot = await session.get(Plot, plot_id)
    if not plot:
        raise NotFoundError(f"Plot {plot_id} not found", context={"plot_id": plot_id})

    rows = await load_plot_trees(session, plot_id)
    totals = compute_totals(rows)
    generated_at = utc_now()

    documents = {
        INPUTS_FILE: dump_json(build_inputs(plot, rows)),
        OUTPUTS_FILE: dump_json(build_outputs(rows, totals)),
        MANIFEST_FILE: dump_json(build_manifest(plot, generated_at, settings)),
        SUMMARY_FILE: build_summary(plot, totals, generated_at),
    }

    folder_name = f"{PACKAGE_PREFIX}_{plot.id}_{compact_timestamp(generated_at)}"
    folder: Optional[Path] = None
    try:
        root = ensure_storage(storage_root)
        folder = create_unique_dir(root / PACKAGES_DIR, folder_name)
        file_hashes = write_package_files(folder, documents)
    except (OSError, StorageError) as e:
        logger.exception("MRV export failed for plot %s", plot_id)
        if folder is not None:
            shutil.rmtree(folder, ignore_errors=True)
        if isinstance(e, StorageError):
            raise
        raise StorageError(
            f"Failed to write MRV package for plot {plot_id}: {e}",
            context={"plot_id": plot_id, "folder": str(folder) if folder else None}
        ) from e

    top_hash = top_level_hash(file_hashes)

    package = MRVPackage(
        plot_id=plot_id,
        schema_version=MRV_SCHEMA_VERSION,
        artifacts_uri=to_artifacts_uri(folder),
        checksum=top_hash,
    )
    try:
        session.add(package)
        await session.commit()
        await session.refresh(package)
    except Exception:
        # no row means no package: the folder must not outlive the failed insert
        logger.exception("Recording MRV package failed for plot %s; removing %s", plot_id, folder)
        await session.rollback()
        shutil.rmtree(folder, ignore_errors=True)
        raise

    audit = AuditLog(
        payload_hash=hash_payload({"package_id": package.id, "checksum": top_hash, "files": file_hashes}),
        action=AuditAction.PACKAGE_EXPORTED.value,
        entity_type="mrv_package",
        entity_id=package.id,
        extra_data=json.dumps({"plot_id": plot_id, "folder": folder.name})
    )
    session.add(audit)
    await session.commit()

    logger.info("Exported MRV package %s for plot %s to %s", package.id, plot_id, folder)
    return ExportedPackage(package=package, folder=folder, file_hashes=file_hashes)
