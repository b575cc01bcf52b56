"""
Registry exports: flat plot and tree rows as JSON or as a zipped CSV bundle.

Rows are read from stored trees and estimates; nothing is re-estimated here.
Plot location is the centroid of the boundary polygon, shared by every tree
row since trees carry no coordinates of their own.
"""

import csv
import io
import logging
import zipfile
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.constants import (
    EXPORT_PLOT_CSV,
    EXPORT_README,
    EXPORT_README_FILE,
    EXPORT_SCHEMA_VERSION,
    EXPORT_TREES_CSV,
)
from agromrv.core.exceptions import NotFoundError
from agromrv.handlers.mrv_export import TreeRow, compute_totals, load_plot_trees
from agromrv.models.export import ExportPlotRow, ExportTreeRow, ExportValidation, RegistryExport
from agromrv.models.plot import Plot
from agromrv.utils.time import isoformat_z, utc_now

logger = logging.getLogger(__name__)


def boundary_centroid(geometry: Optional[Dict[str, Any]]) -> Tuple[Optional[float], Optional[float]]:
    """
    (lat, lon) of a GeoJSON Point or the vertex mean of a Polygon's outer ring.

    Other geometries, and boundaries without coordinates, give (None, None).
    """
    if not geometry:
        return None, None

    coordinates = geometry.get("coordinates") or []
    if geometry.get("type") == "Point" and len(coordinates) >= 2:
        return float(coordinates[1]), float(coordinates[0])
    if geometry.get("type") != "Polygon" or not coordinates:
        return None, None

    ring = list(coordinates[0])
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    if not ring:
        return None, None

    lat = sum(point[1] for point in ring) / len(ring)
    lon = sum(point[0] for point in ring) / len(ring)
    return lat, lon


async def _load(session: AsyncSession, plot_id: int) -> Tuple[Plot, List[TreeRow]]:
    plot = await session.get(Plot, plot_id)
    if not plot:
        raise NotFoundError(f"Plot {plot_id} not found", context={"plot_id": plot_id})
    return plot, await load_plot_trees(session, plot_id)


def tree_rows(plot: Plot, rows: List[TreeRow]) -> List[ExportTreeRow]:
    lat, lon = boundary_centroid(plot.boundary_geojson)
    result = []
    for tree, estimate, species in rows:
        result.append(ExportTreeRow(
            project_id=str(plot.id),
            plot_id=str(plot.id),
            tree_id=str(tree.id),
            farmer_id=plot.farmer_id,
            species_code=tree.species_code,
            species_name=species.common_name if species else None,
            lat=lat,
            lon=lon,
            height_m=tree.height_m,
            dbh_cm=tree.dbh_cm,
            crown_area_m2=tree.crown_area_m2,
            agb_kg=estimate.biomass_kg if estimate else None,
            carbon_kg=estimate.carbon_kg if estimate else None,
            uncertainty_pct=estimate.uncertainty_pct / 100 if estimate else None,
            method=estimate.method if estimate else None,
            model_ver=estimate.model_version if estimate else None,
            measured_at=isoformat_z(tree.created_at) if tree.created_at else None,
        ))
    return result


def plot_row(plot: Plot, rows: List[TreeRow]) -> ExportPlotRow:
    totals = compute_totals(rows)
    lat, lon = boundary_centroid(plot.boundary_geojson)
    return ExportPlotRow(
        project_id=str(plot.id),
        plot_id=str(plot.id),
        plot_name=plot.name or str(plot.id),
        agro_ecozone=plot.agro_ecozone,
        area_ha=plot.area_hectares,
        centroid_lat=lat,
        centroid_lon=lon,
        trees=totals["totalTrees"],
        plot_agb_tons=totals["plotAGBTons"],
        plot_carbon_tons=totals["plotCarbonTons"],
        generated_at=isoformat_z(utc_now()),
    )


def check_rows(trees: List[ExportTreeRow]) -> ExportValidation:
    """Mandatory registry fields: a size measurement and a species per tree."""
    issues = []
    for tree in trees:
        if not tree.height_m and not tree.dbh_cm:
            issues.append(f"Tree {tree.tree_id}: heightM or dbhCm required")
        if not tree.species_code:
            issues.append(f"Tree {tree.tree_id}: species required")
    if not trees:
        issues.append("No trees in plot")
    return ExportValidation(ok=not issues, issues=issues, counts={"trees": len(trees)})


def rows_to_csv(rows: List[BaseModel], model: Type[BaseModel]) -> str:
    """CSV with camelCase headers; missing values are empty cells."""
    columns = [field.alias or name for name, field in model.model_fields.items()]
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row.model_dump(by_alias=True))
    return buffer.getvalue()


async def validate_export(session: AsyncSession, plot_id: int) -> ExportValidation:
    """
    Check that a plot is ready for a registry export.

    Raises:
        NotFoundError: unknown plot
    """
    plot, rows = await _load(session, plot_id)
    validation = check_rows(tree_rows(plot, rows))
    if not validation.ok:
        logger.warning("Plot %s not ready for export: %d issues", plot_id, len(validation.issues))
    return validation


async def build_registry_export(session: AsyncSession, plot_id: int) -> RegistryExport:
    """
    JSON registry export: the plot row, its tree rows and the schema version.

    Raises:
        NotFoundError: unknown plot
    """
    plot, rows = await _load(session, plot_id)
    return RegistryExport(
        plot=plot_row(plot, rows),
        trees=tree_rows(plot, rows),
        schema_version=EXPORT_SCHEMA_VERSION,
    )


async def build_csv_bundle(session: AsyncSession, plot_id: int) -> bytes:
    """
    Zip archive with ``plot_summary.csv``, ``tree_level.csv`` and a README
    data dictionary.

    Raises:
        NotFoundError: unknown plot
    """
    export = await build_registry_export(session, plot_id)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(EXPORT_PLOT_CSV, rows_to_csv([export.plot], ExportPlotRow))
        archive.writestr(EXPORT_TREES_CSV, rows_to_csv(export.trees, ExportTreeRow))
        archive.writestr(EXPORT_README_FILE, EXPORT_README)

    logger.info("Built CSV export for plot %s with %d trees", plot_id, len(export.trees))
    return buffer.getvalue()
