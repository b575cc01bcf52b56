"""
Single-tree biomass estimation and species reference endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from agromrv.core.config import Settings, get_settings
from agromrv.core.database import get_session
from agromrv.core.exceptions import AgroMRVError
from agromrv.models.biomass import BiomassEstimate, TreeMeasurements
from agromrv.models.estimate import CarbonEstimateRead
from agromrv.models.species import SpeciesRead
from agromrv.handlers.biomass import estimate, estimate_tree, get_species, list_species
from agromrv.routes.deps import http_error

router = APIRouter(prefix="/estimate", tags=["estimation"])


@router.post("/", response_model=BiomassEstimate)
async def estimate_endpoint(
    measurements: TreeMeasurements,
    session: AsyncSession = Depends(get_session)
):
    """
    Estimate biomass for one tree from raw measurements. Nothing is stored.

    At least one of height, DBH or canopy area must be positive.
    """
    try:
        return await estimate(session, measurements)
    except AgroMRVError as e:
        raise http_error(e)


@router.post("/trees/{tree_id}", response_model=CarbonEstimateRead)
async def estimate_tree_endpoint(
    tree_id: int,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings)
):
    """Estimate a stored tree and replace its stored estimate."""
    try:
        return await estimate_tree(session, tree_id, model_version=settings.model_version)
    except AgroMRVError as e:
        raise http_error(e)


@router.get("/species", response_model=List[SpeciesRead])
async def list_species_endpoint(
    session: AsyncSession = Depends(get_session)
):
    """List species reference data."""
    return await list_species(session)


@router.get("/species/{code}", response_model=SpeciesRead)
async def get_species_endpoint(
    code: str,
    session: AsyncSession = Depends(get_session)
):
    """Get species reference data by code."""
    species = await get_species(session, code)
    if not species:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Species {code} not found"
        )
    return species
