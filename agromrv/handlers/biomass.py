"""
Biomass estimation handler.

Estimates above-ground biomass of a single tree from whatever field
measurements are available, then derives carbon and CO2-equivalent.

Method ladder (first applicable wins, no further fallback):

1. Full allometric:  AGB = a × (ρ × DBH_m² × H)^b          needs DBH and height
2. Crown-estimated:  DBH ≈ 2·√(crown_area/π) × 80 cm, then (1)  needs height and crown area
3. Height only:      AGB = H^2.5 × ρ × 2.5                  needs height
4. Crown area only:  AGB = crown_area × ρ × 15              needs crown area

Methods 2-4 use placeholder factors kept for compatibility with existing
estimates; they are not published allometry.
"""

import json
import logging
import math
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agromrv.core.constants import (
    CARBON_FRACTION,
    CO2_MOLECULAR_RATIO,
    DEFAULT_WOOD_DENSITY,
    DEFAULT_ALLOMETRIC_A,
    DEFAULT_ALLOMETRIC_B,
    DEFAULT_SPECIES_UNCERTAINTY_PCT,
    MIN_BIOMASS_KG,
    CROWN_TO_DBH_RATIO,
    HEIGHT_ONLY_EXPONENT,
    HEIGHT_ONLY_FACTOR,
    CROWN_AREA_FACTOR,
    GENERIC_ALLOMETRIC_CONFIDENCE,
    CROWN_ESTIMATED_CONFIDENCE,
    HEIGHT_ONLY_CONFIDENCE,
    CROWN_AREA_CONFIDENCE,
)
from agromrv.core.exceptions import InsufficientMeasurementsError, NotFoundError
from agromrv.models.audit import AuditAction, AuditLog
from agromrv.models.biomass import BiomassEstimate, EstimationMethod, TreeMeasurements
from agromrv.models.estimate import CarbonEstimate
from agromrv.models.species import Species, SpeciesRead
from agromrv.models.tree import Tree
from agromrv.utils.hashing import hash_payload
from agromrv.utils.time import utc_now

logger = logging.getLogger(__name__)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def allometric_biomass(dbh_cm: float, height_m: float, wood_density: float, a: float, b: float) -> float:
    """AGB = a × (ρ × DBH_m² × H)^b with DBH converted from cm to m."""
    dbh_m = dbh_cm / 100.0
    return a * math.pow(wood_density * dbh_m ** 2 * height_m, b)


def crown_to_dbh_cm(crown_area_m2: float) -> float:
    """Estimate DBH (cm) from crown area via crown diameter."""
    crown_diameter_m = 2.0 * math.sqrt(crown_area_m2 / math.pi)
    return crown_diameter_m * CROWN_TO_DBH_RATIO


def select_method(measurements: TreeMeasurements, species_known: bool) -> EstimationMethod:
    """
    Pick the first applicable method of the ladder.

    Raises:
        InsufficientMeasurementsError: no height, DBH or canopy area usable
    """
    height = measurements.height_m
    dbh = measurements.dbh_cm
    canopy = measurements.canopy_area_m2

    if _positive(dbh) and _positive(height):
        if species_known:
            return EstimationMethod.ALLOMETRIC_SPECIES
        return EstimationMethod.ALLOMETRIC_GENERIC
    if _positive(height) and _positive(canopy):
        return EstimationMethod.CROWN_ESTIMATED
    if _positive(height):
        return EstimationMethod.HEIGHT_ONLY
    if _positive(canopy):
        return EstimationMethod.CROWN_AREA

    raise InsufficientMeasurementsError(context=measurements.model_dump())


def estimate_biomass(
    measurements: TreeMeasurements,
    species: Optional[Species] = None
) -> BiomassEstimate:
    """
    Estimate biomass, carbon and CO2e for one tree.

    Pure function: ``species`` is the already-resolved reference row (or
    None), so identical inputs always yield identical output.

    Args:
        measurements: Raw tree measurements
        species: Species reference data, if the code resolved

    Returns:
        BiomassEstimate rounded to 2 dp (kg) and 1 dp (uncertainty)

    Raises:
        InsufficientMeasurementsError: if no method is applicable
    """
    wood_density = (species.wood_density if species else None) or DEFAULT_WOOD_DENSITY
    allometric_a = (species.allometric_a if species else None) or DEFAULT_ALLOMETRIC_A
    allometric_b = (species.allometric_b if species else None) or DEFAULT_ALLOMETRIC_B
    species_uncertainty = (species.uncertainty_pct if species else None) or DEFAULT_SPECIES_UNCERTAINTY_PCT

    method = select_method(measurements, species_known=species is not None)

    if method in (EstimationMethod.ALLOMETRIC_SPECIES, EstimationMethod.ALLOMETRIC_GENERIC):
        biomass_kg = allometric_biomass(
            measurements.dbh_cm, measurements.height_m, wood_density, allometric_a, allometric_b
        )
        if species is not None:
            confidence = 100.0 - species_uncertainty
        else:
            confidence = GENERIC_ALLOMETRIC_CONFIDENCE
    elif method is EstimationMethod.CROWN_ESTIMATED:
        estimated_dbh_cm = crown_to_dbh_cm(measurements.canopy_area_m2)
        biomass_kg = allometric_biomass(
            estimated_dbh_cm, measurements.height_m, wood_density, allometric_a, allometric_b
        )
        confidence = CROWN_ESTIMATED_CONFIDENCE
    elif method is EstimationMethod.HEIGHT_ONLY:
        biomass_kg = math.pow(measurements.height_m, HEIGHT_ONLY_EXPONENT) * wood_density * HEIGHT_ONLY_FACTOR
        confidence = HEIGHT_ONLY_CONFIDENCE
    else:
        biomass_kg = measurements.canopy_area_m2 * wood_density * CROWN_AREA_FACTOR
        confidence = CROWN_AREA_CONFIDENCE

    biomass_kg = max(biomass_kg, MIN_BIOMASS_KG)
    carbon_kg = biomass_kg * CARBON_FRACTION
    co2_equivalent_kg = carbon_kg * CO2_MOLECULAR_RATIO

    base_uncertainty = method.base_uncertainty_pct
    if species is not None:
        uncertainty = math.sqrt(base_uncertainty ** 2 + species_uncertainty ** 2)
    else:
        uncertainty = base_uncertainty

    return BiomassEstimate(
        biomass_kg=round(biomass_kg, 2),
        carbon_kg=round(carbon_kg, 2),
        co2_equivalent_kg=round(co2_equivalent_kg, 2),
        uncertainty_pct=round(uncertainty, 1),
        confidence_pct=confidence,
        method=method.label(species.species_code if species else None),
        species=SpeciesRead.model_validate(species) if species else None,
    )


async def get_species(session: AsyncSession, species_code: str) -> Optional[Species]:
    """Look up a species by code (case-insensitive). Absence is not an error."""
    return await session.get(Species, species_code.strip().upper())


async def list_species(session: AsyncSession) -> List[Species]:
    """All species ordered by common name."""
    result = await session.execute(select(Species).order_by(Species.common_name))
    return list(result.scalars().all())


async def estimate(session: AsyncSession, measurements: TreeMeasurements) -> BiomassEstimate:
    """Resolve the species reference, then run the estimator."""
    species = None
    if measurements.species_code:
        species = await get_species(session, measurements.species_code)
        if species is None:
            logger.debug("Species %s not found, using generic parameters", measurements.species_code)
    return estimate_biomass(measurements, species)


def measurements_for(tree: Tree) -> TreeMeasurements:
    return TreeMeasurements(
        height_m=tree.height_m,
        dbh_cm=tree.dbh_cm,
        canopy_area_m2=tree.crown_area_m2,
        species_code=tree.species_code,
    )


async def save_estimate(
    session: AsyncSession,
    tree_id: int,
    estimate: BiomassEstimate,
    model_version: Optional[str] = None
) -> CarbonEstimate:
    """
    Store an estimate for a tree, replacing any previous one.

    Upsert keyed on tree id: concurrent writers for the same tree resolve
    last-write-wins at the unique constraint.
    """
    existing = await session.execute(
        select(CarbonEstimate).where(CarbonEstimate.tree_id == tree_id)
    )
    stored = existing.scalars().first()

    if stored:
        stored.biomass_kg = estimate.biomass_kg
        stored.carbon_kg = estimate.carbon_kg
        stored.co2_equivalent_kg = estimate.co2_equivalent_kg
        stored.uncertainty_pct = estimate.uncertainty_pct
        stored.confidence_pct = estimate.confidence_pct
        stored.method = estimate.method
        stored.model_version = model_version
        stored.created_at = utc_now()
    else:
        stored = CarbonEstimate(
            tree_id=tree_id,
            biomass_kg=estimate.biomass_kg,
            carbon_kg=estimate.carbon_kg,
            co2_equivalent_kg=estimate.co2_equivalent_kg,
            uncertainty_pct=estimate.uncertainty_pct,
            confidence_pct=estimate.confidence_pct,
            method=estimate.method,
            model_version=model_version,
        )
        session.add(stored)

    await session.commit()
    await session.refresh(stored)

    payload = estimate.model_dump(exclude={"species"})
    audit = AuditLog(
        payload_hash=hash_payload({"tree_id": tree_id, **payload}),
        action=AuditAction.ESTIMATE_STORED.value,
        entity_type="carbon_estimate",
        entity_id=stored.id,
        extra_data=json.dumps({"tree_id": tree_id, "method": estimate.method})
    )
    session.add(audit)
    await session.commit()

    return stored


async def estimate_tree(
    session: AsyncSession,
    tree_id: int,
    model_version: Optional[str] = None
) -> CarbonEstimate:
    """
    Estimate a stored tree and persist the result.

    Raises:
        NotFoundError: unknown tree
        InsufficientMeasurementsError: tree has no usable measurements
    """
    tree = await session.get(Tree, tree_id)
    if not tree:
        raise NotFoundError(f"Tree {tree_id} not found", context={"tree_id": tree_id})

    result = await estimate(session, measurements_for(tree))
    return await save_estimate(session, tree_id, result, model_version=model_version)
