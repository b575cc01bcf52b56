"""
Plot and tree handlers, including plot-level biomass aggregation.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from agromrv.core.constants import KG_PER_TONNE
from agromrv.core.exceptions import InsufficientMeasurementsError, NotFoundError
from agromrv.handlers.biomass import (
    estimate_biomass,
    get_species,
    measurements_for,
    save_estimate,
)
from agromrv.models.biomass import PlotEstimation, PlotTotals, TreeEstimateResult
from agromrv.models.plot import Plot, PlotCreate
from agromrv.models.species import Species
from agromrv.models.tree import Tree, TreeCreate, TreeUpdate
from agromrv.utils.time import utc_now

logger = logging.getLogger(__name__)


async def create_plot(session: AsyncSession, plot_data: PlotCreate) -> Plot:
    """Register a new plot."""
    plot = Plot(**plot_data.model_dump())
    session.add(plot)
    await session.commit()
    await session.refresh(plot)
    return plot


async def get_plot(session: AsyncSession, plot_id: int) -> Optional[Plot]:
    """Get plot by ID."""
    return await session.get(Plot, plot_id)


async def get_plots(session: AsyncSession) -> List[Plot]:
    """Get all plots."""
    result = await session.execute(select(Plot).order_by(Plot.id))
    return list(result.scalars().all())


async def require_plot(session: AsyncSession, plot_id: int) -> Plot:
    plot = await session.get(Plot, plot_id)
    if not plot:
        raise NotFoundError(f"Plot {plot_id} not found", context={"plot_id": plot_id})
    return plot


async def add_tree(session: AsyncSession, plot_id: int, tree_data: TreeCreate) -> Tree:
    """Record a tree measurement on a plot."""
    await require_plot(session, plot_id)

    data = tree_data.model_dump()
    if data.get("species_code"):
        data["species_code"] = data["species_code"].strip().upper()

    tree = Tree(plot_id=plot_id, **data)
    session.add(tree)
    await session.commit()
    await session.refresh(tree)
    return tree


async def get_plot_trees(session: AsyncSession, plot_id: int) -> List[Tree]:
    """Trees of a plot in id order."""
    result = await session.execute(
        select(Tree).where(Tree.plot_id == plot_id).order_by(Tree.id)
    )
    return list(result.scalars().all())


async def update_tree(session: AsyncSession, plot_id: int, tree_id: int, tree_data: TreeUpdate) -> Tree:
    """Correct a tree's measurements. Exported packages keep their own copy."""
    tree = await session.get(Tree, tree_id)
    if not tree or tree.plot_id != plot_id:
        raise NotFoundError(f"Tree {tree_id} not found", context={"tree_id": tree_id})

    changes = tree_data.model_dump(exclude_unset=True)
    if changes.get("species_code"):
        changes["species_code"] = changes["species_code"].strip().upper()
    for field, value in changes.items():
        setattr(tree, field, value)
    tree.updated_at = utc_now()

    await session.commit()
    await session.refresh(tree)
    return tree


async def estimate_plot(
    session: AsyncSession,
    plot_id: int,
    store_results: bool = False,
    model_version: Optional[str] = None
) -> PlotEstimation:
    """
    Run the estimator over every tree of a plot and sum the results.

    Trees are processed one at a time. A tree without usable measurements is
    logged and left out of the totals; it does not abort its siblings.

    Args:
        session: Database session
        plot_id: Plot ID
        store_results: Upsert every successful per-tree estimate
        model_version: Version tag stored with upserted estimates

    Returns:
        PlotEstimation with per-tree results and totals

    Raises:
        NotFoundError: unknown plot
    """
    await require_plot(session, plot_id)
    trees = await get_plot_trees(session, plot_id)

    species_cache: Dict[str, Optional[Species]] = {}
    results: List[TreeEstimateResult] = []
    skipped: List[int] = []

    total_biomass = 0.0
    total_carbon = 0.0
    total_co2 = 0.0
    total_uncertainty = 0.0

    for tree in trees:
        measurements = measurements_for(tree)

        species = None
        if measurements.species_code:
            code = measurements.species_code.strip().upper()
            if code not in species_cache:
                species_cache[code] = await get_species(session, code)
            species = species_cache[code]

        try:
            estimate = estimate_biomass(measurements, species)
        except InsufficientMeasurementsError as e:
            logger.warning("Skipping tree %s on plot %s: %s", tree.id, plot_id, e)
            skipped.append(tree.id)
            continue

        results.append(TreeEstimateResult(tree_id=tree.id, estimate=estimate))
        total_biomass += estimate.biomass_kg
        total_carbon += estimate.carbon_kg
        total_co2 += estimate.co2_equivalent_kg
        total_uncertainty += estimate.uncertainty_pct

    estimated_trees = len(results)
    average_uncertainty = total_uncertainty / estimated_trees if estimated_trees > 0 else 0.0

    totals = PlotTotals(
        total_trees=estimated_trees,
        total_biomass_kg=round(total_biomass, 2),
        total_biomass_tons=round(total_biomass / KG_PER_TONNE, 3),
        total_carbon_kg=round(total_carbon, 2),
        total_carbon_tons=round(total_carbon / KG_PER_TONNE, 3),
        total_co2_equivalent_kg=round(total_co2, 2),
        average_uncertainty_pct=round(average_uncertainty, 1),
    )

    if store_results:
        for result in results:
            await save_estimate(session, result.tree_id, result.estimate, model_version=model_version)

    logger.info(
        "Estimated plot %s: %d trees, %d skipped, %.2f kg biomass",
        plot_id, estimated_trees, len(skipped), totals.total_biomass_kg
    )

    return PlotEstimation(plot_id=plot_id, trees=results, skipped_tree_ids=skipped, totals=totals)
