"""
Registry export rows - flat, registry-ready views of a plot and its trees.
"""

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from typing import Optional, List, Dict


class ExportTreeRow(BaseModel):
    """One row per tree. ``uncertainty_pct`` is a fraction: 0.2 means 20%."""
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = PydanticField(alias="projectId")
    plot_id: str = PydanticField(alias="plotId")
    tree_id: str = PydanticField(alias="treeId")
    farmer_id: Optional[str] = PydanticField(default=None, alias="farmerId")
    species_code: Optional[str] = PydanticField(default=None, alias="speciesCode")
    species_name: Optional[str] = PydanticField(default=None, alias="speciesName")
    lat: Optional[float] = None
    lon: Optional[float] = None
    height_m: Optional[float] = PydanticField(default=None, alias="heightM")
    dbh_cm: Optional[float] = PydanticField(default=None, alias="dbhCm")
    crown_area_m2: Optional[float] = PydanticField(default=None, alias="crownAreaM2")
    agb_kg: Optional[float] = PydanticField(default=None, alias="agbKg")
    carbon_kg: Optional[float] = PydanticField(default=None, alias="carbonKg")
    uncertainty_pct: Optional[float] = PydanticField(default=None, alias="uncertaintyPct")
    method: Optional[str] = None
    model_ver: Optional[str] = PydanticField(default=None, alias="modelVer")
    measured_at: Optional[str] = PydanticField(default=None, alias="measuredAt")


class ExportPlotRow(BaseModel):
    """Plot summary row; totals in tonnes."""
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = PydanticField(alias="projectId")
    plot_id: str = PydanticField(alias="plotId")
    plot_name: str = PydanticField(alias="plotName")
    agro_ecozone: Optional[str] = PydanticField(default=None, alias="agroEcozone")
    area_ha: Optional[float] = PydanticField(default=None, alias="areaHa")
    centroid_lat: Optional[float] = PydanticField(default=None, alias="centroidLat")
    centroid_lon: Optional[float] = PydanticField(default=None, alias="centroidLon")
    trees: int
    plot_agb_tons: float = PydanticField(alias="plotAGBTons")
    plot_carbon_tons: float = PydanticField(alias="plotCarbonTons")
    generated_at: str = PydanticField(alias="generatedAt")


class ExportValidation(BaseModel):
    """Readiness check for a registry export."""
    ok: bool
    issues: List[str] = PydanticField(default_factory=list)
    counts: Dict[str, int] = PydanticField(default_factory=dict)


class RegistryExport(BaseModel):
    """JSON registry export document."""
    model_config = ConfigDict(populate_by_name=True)

    plot: ExportPlotRow
    trees: List[ExportTreeRow]
    schema_version: str = PydanticField(alias="schemaVersion")
