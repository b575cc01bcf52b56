"""
Carbon credit endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from agromrv.core.database import get_session
from agromrv.core.exceptions import AgroMRVError, InputError
from agromrv.models.credit import (
    CarbonCreditResult,
    CreditCalculationRequest,
    PlotCreditRequest,
    PricingDefaults,
    UserCreditSummary,
)
from agromrv.models.market import CreditCalculationRead, MarketPriceCreate, MarketPriceRead
from agromrv.handlers.credits import (
    calculate_credits_with_pricing,
    calculate_plot_credits,
    get_credit_history,
    get_user_credit_summary,
    record_market_price,
)
from agromrv.routes.deps import get_pricing_defaults, http_error

router = APIRouter(prefix="/credits", tags=["credits"])


@router.post("/calculate", response_model=CarbonCreditResult)
async def calculate_credits_endpoint(
    request: CreditCalculationRequest,
    session: AsyncSession = Depends(get_session),
    defaults: PricingDefaults = Depends(get_pricing_defaults)
):
    """
    Convert a biomass figure into credits and value it at the latest market price.
    """
    try:
        if not request.biomass_kg or request.biomass_kg <= 0:
            raise InputError("Valid biomass value (kg) is required")
        return await calculate_credits_with_pricing(session, request.biomass_kg, defaults)
    except AgroMRVError as e:
        raise http_error(e)


@router.post("/plots/{plot_id}", response_model=CreditCalculationRead, status_code=status.HTTP_201_CREATED)
async def calculate_plot_credits_endpoint(
    plot_id: int,
    request: PlotCreditRequest,
    session: AsyncSession = Depends(get_session),
    defaults: PricingDefaults = Depends(get_pricing_defaults)
):
    """Estimate a plot, price its biomass and store the calculation for a user."""
    try:
        return await calculate_plot_credits(session, plot_id, request.user_id, defaults)
    except AgroMRVError as e:
        raise http_error(e)


@router.get("/history", response_model=List[CreditCalculationRead])
async def credit_history_endpoint(
    user_id: str,
    limit: int = 10,
    session: AsyncSession = Depends(get_session)
):
    """A user's stored calculations, newest first."""
    return await get_credit_history(session, user_id, limit)


@router.get("/summary", response_model=UserCreditSummary)
async def credit_summary_endpoint(
    user_id: str,
    session: AsyncSession = Depends(get_session)
):
    """Total credits and value for a user."""
    return await get_user_credit_summary(session, user_id)


@router.post("/market-prices", response_model=MarketPriceRead, status_code=status.HTTP_201_CREATED)
async def record_market_price_endpoint(
    price: MarketPriceCreate,
    session: AsyncSession = Depends(get_session)
):
    """Record a new market price. The latest price is used for new calculations."""
    return await record_market_price(
        session,
        price.price_usd,
        price.price_inr,
        market_name=price.market_name,
        source=price.source
    )
