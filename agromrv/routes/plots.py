"""
Plot and tree endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from agromrv.core.config import Settings, get_settings
from agromrv.core.database import get_session
from agromrv.core.exceptions import AgroMRVError
from agromrv.models.biomass import PlotEstimation
from agromrv.models.plot import PlotCreate, PlotRead
from agromrv.models.tree import TreeCreate, TreeRead, TreeUpdate
from agromrv.handlers.plots import (
    add_tree,
    create_plot,
    estimate_plot,
    get_plot,
    get_plot_trees,
    get_plots,
    update_tree,
)
from agromrv.routes.deps import http_error

router = APIRouter(prefix="/plots", tags=["plots"])


@router.post("/", response_model=PlotRead, status_code=status.HTTP_201_CREATED)
async def create_plot_endpoint(
    plot: PlotCreate,
    session: AsyncSession = Depends(get_session)
):
    """Register a new plot."""
    return await create_plot(session, plot)


@router.get("/", response_model=List[PlotRead])
async def list_plots_endpoint(
    session: AsyncSession = Depends(get_session)
):
    """List all plots."""
    return await get_plots(session)


@router.get("/{plot_id}", response_model=PlotRead)
async def get_plot_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Get plot by ID."""
    plot = await get_plot(session, plot_id)
    if not plot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plot {plot_id} not found"
        )
    return plot


@router.post("/{plot_id}/trees", response_model=TreeRead, status_code=status.HTTP_201_CREATED)
async def add_tree_endpoint(
    plot_id: int,
    tree: TreeCreate,
    session: AsyncSession = Depends(get_session)
):
    """Record a tree measurement on a plot."""
    try:
        return await add_tree(session, plot_id, tree)
    except AgroMRVError as e:
        raise http_error(e)


@router.get("/{plot_id}/trees", response_model=List[TreeRead])
async def list_trees_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session)
):
    """List the trees of a plot."""
    return await get_plot_trees(session, plot_id)


@router.patch("/{plot_id}/trees/{tree_id}", response_model=TreeRead)
async def update_tree_endpoint(
    plot_id: int,
    tree_id: int,
    tree: TreeUpdate,
    session: AsyncSession = Depends(get_session)
):
    """Correct a tree's measurements."""
    try:
        return await update_tree(session, plot_id, tree_id, tree)
    except AgroMRVError as e:
        raise http_error(e)


@router.post("/{plot_id}/estimate", response_model=PlotEstimation)
async def estimate_plot_endpoint(
    plot_id: int,
    store_results: bool = True,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings)
):
    """
    Run biomass estimation for every tree on a plot.

    Trees without usable measurements are skipped and listed in
    ``skipped_tree_ids``; the rest are summed into plot totals.
    """
    try:
        return await estimate_plot(
            session,
            plot_id,
            store_results=store_results,
            model_version=settings.model_version
        )
    except AgroMRVError as e:
        raise http_error(e)
