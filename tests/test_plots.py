"""
Tests for plot and tree handlers and plot-level aggregation.
"""

import math

import pytest
from sqlmodel import select

from agromrv.core.exceptions import NotFoundError
from agromrv.handlers.plots import (
    add_tree,
    create_plot,
    estimate_plot,
    get_plot,
    get_plot_trees,
    get_plots,
    update_tree,
)
from agromrv.models.estimate import CarbonEstimate
from agromrv.models.plot import PlotCreate
from agromrv.models.tree import TreeCreate, TreeUpdate


class TestPlotHandlers:
    """Plot and tree CRUD."""

    @pytest.mark.asyncio
    async def test_create_and_get_plot(self, session):
        plot = await create_plot(session, PlotCreate(name="South Field", area_hectares=1.0))

        assert plot.id is not None
        fetched = await get_plot(session, plot.id)
        assert fetched.name == "South Field"
        assert [p.id for p in await get_plots(session)] == [plot.id]

    @pytest.mark.asyncio
    async def test_get_missing_plot(self, session):
        assert await get_plot(session, 42) is None

    @pytest.mark.asyncio
    async def test_add_tree_normalizes_species_code(self, session, plot):
        tree = await add_tree(session, plot.id, TreeCreate(species_code=" tecgr ", height_m=10.0))

        assert tree.plot_id == plot.id
        assert tree.species_code == "TECGR"

    @pytest.mark.asyncio
    async def test_add_tree_to_unknown_plot(self, session):
        with pytest.raises(NotFoundError):
            await add_tree(session, 42, TreeCreate(height_m=10.0))

    @pytest.mark.asyncio
    async def test_trees_listed_in_id_order(self, session, plot_trees):
        trees = await get_plot_trees(session, plot_trees[0].plot_id)
        assert [t.id for t in trees] == sorted(t.id for t in plot_trees)

    @pytest.mark.asyncio
    async def test_update_tree_only_touches_given_fields(self, session, plot_trees):
        tree = plot_trees[1]

        updated = await update_tree(session, tree.plot_id, tree.id, TreeUpdate(dbh_cm=12.0))

        assert updated.dbh_cm == 12.0
        assert updated.height_m == 4.0
        assert updated.health == "fair"

    @pytest.mark.asyncio
    async def test_update_tree_on_wrong_plot(self, session, plot_trees):
        tree = plot_trees[0]
        with pytest.raises(NotFoundError):
            await update_tree(session, tree.plot_id + 1, tree.id, TreeUpdate(height_m=5.0))


class TestEstimatePlot:
    """Plot aggregation over per-tree estimates."""

    @pytest.mark.asyncio
    async def test_skips_trees_without_measurements(self, session, plot, plot_trees):
        estimation = await estimate_plot(session, plot.id)

        assert [r.tree_id for r in estimation.trees] == [plot_trees[0].id, plot_trees[1].id]
        assert estimation.skipped_tree_ids == [plot_trees[2].id]
        assert estimation.totals.total_trees == 2

    @pytest.mark.asyncio
    async def test_totals(self, session, plot, plot_trees):
        estimation = await estimate_plot(session, plot.id)

        teak_biomass = round(max(0.0673 * math.pow(0.55 * 1.0 ** 2 * 30.0, 0.976), 0.1), 2)
        expected_biomass = teak_biomass + 48.0
        teak_uncertainty = round(math.sqrt(15 ** 2 + 12 ** 2), 1)

        totals = estimation.totals
        assert totals.total_biomass_kg == pytest.approx(round(expected_biomass, 2))
        assert totals.total_biomass_tons == pytest.approx(round(expected_biomass / 1000, 3))
        assert totals.average_uncertainty_pct == pytest.approx(round((teak_uncertainty + 35.0) / 2, 1))

    @pytest.mark.asyncio
    async def test_totals_equal_sum_of_parts(self, session, plot, plot_trees):
        estimation = await estimate_plot(session, plot.id)

        assert estimation.totals.total_carbon_kg == pytest.approx(
            sum(r.estimate.carbon_kg for r in estimation.trees), abs=0.01
        )
        assert estimation.totals.total_co2_equivalent_kg == pytest.approx(
            sum(r.estimate.co2_equivalent_kg for r in estimation.trees), abs=0.01
        )

    @pytest.mark.asyncio
    async def test_empty_plot(self, session, plot):
        estimation = await estimate_plot(session, plot.id)

        assert estimation.trees == []
        assert estimation.totals.total_trees == 0
        assert estimation.totals.total_biomass_kg == 0.0
        assert estimation.totals.average_uncertainty_pct == 0.0

    @pytest.mark.asyncio
    async def test_unknown_plot(self, session):
        with pytest.raises(NotFoundError):
            await estimate_plot(session, 42)

    @pytest.mark.asyncio
    async def test_read_only_by_default(self, session, plot, plot_trees):
        await estimate_plot(session, plot.id)

        result = await session.execute(select(CarbonEstimate))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_store_results(self, session, plot, plot_trees):
        await estimate_plot(session, plot.id, store_results=True, model_version="v0.1")
        await estimate_plot(session, plot.id, store_results=True, model_version="v0.2")

        result = await session.execute(select(CarbonEstimate).order_by(CarbonEstimate.tree_id))
        stored = list(result.scalars().all())

        assert [e.tree_id for e in stored] == [plot_trees[0].id, plot_trees[1].id]
        assert {e.model_version for e in stored} == {"v0.2"}
