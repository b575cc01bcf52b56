"""
Biomass estimation schemas - measurements in, estimates out.
"""

from sqlmodel import SQLModel, Field
from typing import Optional, List
from enum import Enum

from agromrv.core.constants import DEFAULT_METHOD_UNCERTAINTY_PCT
from agromrv.models.species import SpeciesRead


class EstimationMethod(str, Enum):
    """Estimator fallback ladder, in priority order."""
    ALLOMETRIC_SPECIES = "allometric_species"
    ALLOMETRIC_GENERIC = "allometric_generic"
    CROWN_ESTIMATED = "allometric_crown_estimated"
    HEIGHT_ONLY = "height_only_estimation"
    CROWN_AREA = "crown_area_estimation"

    @property
    def base_uncertainty_pct(self) -> float:
        return METHOD_BASE_UNCERTAINTY.get(self, DEFAULT_METHOD_UNCERTAINTY_PCT)

    def label(self, species_code: Optional[str] = None) -> str:
        """Method label as stored on estimates, species-qualified where applicable."""
        if self is EstimationMethod.ALLOMETRIC_SPECIES and species_code:
            return f"{self.value}_{species_code}"
        return self.value


METHOD_BASE_UNCERTAINTY = {
    EstimationMethod.ALLOMETRIC_SPECIES: 15.0,
    EstimationMethod.ALLOMETRIC_GENERIC: 20.0,
    EstimationMethod.CROWN_ESTIMATED: 25.0,
    EstimationMethod.HEIGHT_ONLY: 35.0,
    EstimationMethod.CROWN_AREA: 40.0,
}


class TreeMeasurements(SQLModel):
    """Raw inputs for one tree. Any subset may be present."""
    height_m: Optional[float] = Field(default=None, description="Tree height in meters")
    dbh_cm: Optional[float] = Field(default=None, description="Diameter at breast height in cm")
    canopy_area_m2: Optional[float] = Field(default=None, description="Canopy cover area in m²")
    species_code: Optional[str] = Field(default=None, description="Species reference code")


class BiomassEstimate(SQLModel):
    """Result of a single estimation. Recomputing with the same inputs gives the same value."""
    biomass_kg: float
    carbon_kg: float
    co2_equivalent_kg: float
    uncertainty_pct: float
    confidence_pct: float
    method: str
    species: Optional[SpeciesRead] = None


class TreeEstimateResult(SQLModel):
    """Estimate for one tree of a plot."""
    tree_id: int
    estimate: BiomassEstimate


class PlotTotals(SQLModel):
    """Plot-level sums over the trees that produced an estimate."""
    total_trees: int
    total_biomass_kg: float
    total_biomass_tons: float
    total_carbon_kg: float
    total_carbon_tons: float
    total_co2_equivalent_kg: float
    average_uncertainty_pct: float


class PlotEstimation(SQLModel):
    """Plot aggregator output."""
    plot_id: int
    trees: List[TreeEstimateResult] = Field(default_factory=list)
    skipped_tree_ids: List[int] = Field(default_factory=list)
    totals: PlotTotals
