"""
Carbon credit calculation and pricing handler.

1 credit = 1 metric tonne CO2e, so credits generated equals CO2e in tonnes.
"""

import json
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from agromrv.core.constants import (
    CARBON_FRACTION,
    CO2_MOLECULAR_RATIO,
    KG_PER_TONNE,
    TONNES_PER_CREDIT,
    CREDIT_METHODOLOGY,
    DEFAULT_MARKET_NAME,
    DEFAULT_MARKET_SOURCE,
)
from agromrv.core.exceptions import InputError
from agromrv.handlers.plots import estimate_plot
from agromrv.models.audit import AuditAction, AuditLog
from agromrv.models.credit import (
    CarbonCreditResult,
    CreditBreakdown,
    PricingDefaults,
    UserCreditSummary,
)
from agromrv.models.market import CreditCalculation, MarketPrice
from agromrv.utils.hashing import hash_payload
from agromrv.utils.time import utc_now

logger = logging.getLogger(__name__)


def calculate_credits(biomass_kg: float) -> CreditBreakdown:
    """
    Convert biomass into carbon stock, CO2e and credits.

    Formula:
        carbon = biomass × 0.47
        co2e   = carbon × 3.67
        credits = co2e (t) / 1 t per credit

    Args:
        biomass_kg: Dry above-ground biomass in kg, >= 0

    Returns:
        CreditBreakdown, kg rounded to 2 dp and tonnes/credits to 3 dp

    Raises:
        InputError: missing or negative biomass
    """
    if biomass_kg is None or biomass_kg < 0:
        raise InputError(
            "A non-negative biomass value (kg) is required",
            context={"biomass_kg": biomass_kg}
        )

    carbon_stock_kg = biomass_kg * CARBON_FRACTION
    carbon_stock_tons = carbon_stock_kg / KG_PER_TONNE

    co2_equivalent_kg = carbon_stock_kg * CO2_MOLECULAR_RATIO
    co2_equivalent_tons = co2_equivalent_kg / KG_PER_TONNE

    credits_generated = co2_equivalent_tons / TONNES_PER_CREDIT

    return CreditBreakdown(
        carbon_stock_kg=round(carbon_stock_kg, 2),
        carbon_stock_tons=round(carbon_stock_tons, 3),
        co2_equivalent_kg=round(co2_equivalent_kg, 2),
        co2_equivalent_tons=round(co2_equivalent_tons, 3),
        credits_generated=round(credits_generated, 3),
    )


async def get_latest_market_price(session: AsyncSession) -> Optional[MarketPrice]:
    """Most recent market price row by date."""
    result = await session.execute(
        select(MarketPrice).order_by(MarketPrice.price_date.desc(), MarketPrice.id.desc()).limit(1)
    )
    return result.scalars().first()


async def calculate_credits_with_pricing(
    session: AsyncSession,
    biomass_kg: float,
    defaults: Optional[PricingDefaults] = None
) -> CarbonCreditResult:
    """
    Credits plus monetary value at the latest market price.

    Falls back to ``defaults`` when no price has been recorded. Read-only.
    """
    defaults = defaults or PricingDefaults()
    credits = calculate_credits(biomass_kg)

    market_price = await get_latest_market_price(session)
    if market_price:
        price_usd = market_price.price_usd
        price_inr = market_price.price_inr
    else:
        logger.info("No market price recorded, using defaults USD %.2f / INR %.2f",
                    defaults.price_usd, defaults.price_inr)
        price_usd = defaults.price_usd
        price_inr = defaults.price_inr

    return CarbonCreditResult(
        **credits.model_dump(),
        biomass_kg=biomass_kg,
        market_price_usd=price_usd,
        market_price_inr=price_inr,
        estimated_value_usd=round(credits.credits_generated * price_usd, 2),
        estimated_value_inr=round(credits.credits_generated * price_inr, 2),
        calculation_date=utc_now(),
        methodology=CREDIT_METHODOLOGY,
    )


async def store_credit_calculation(
    session: AsyncSession,
    user_id: str,
    plot_id: int,
    result: CarbonCreditResult
) -> CreditCalculation:
    """Persist a calculation snapshot for a user and plot."""
    calculation = CreditCalculation(user_id=user_id, plot_id=plot_id, **result.model_dump())
    session.add(calculation)
    await session.commit()
    await session.refresh(calculation)

    audit = AuditLog(
        payload_hash=hash_payload({"user_id": user_id, "plot_id": plot_id, **result.model_dump()}),
        action=AuditAction.CREDIT_CALCULATION_STORED.value,
        entity_type="carbon_credit_calculation",
        entity_id=calculation.id,
        extra_data=json.dumps({"plot_id": plot_id, "credits": result.credits_generated})
    )
    session.add(audit)
    await session.commit()

    return calculation


async def calculate_plot_credits(
    session: AsyncSession,
    plot_id: int,
    user_id: str,
    defaults: Optional[PricingDefaults] = None
) -> CreditCalculation:
    """
    Aggregate a plot, price its biomass and store the snapshot.

    Raises:
        NotFoundError: unknown plot
        InputError: no tree on the plot produced an estimate
    """
    estimation = await estimate_plot(session, plot_id)
    total_biomass = estimation.totals.total_biomass_kg

    if not total_biomass or total_biomass <= 0:
        raise InputError(
            "No biomass data available for this plot. Please run biomass estimation first.",
            context={"plot_id": plot_id}
        )

    result = await calculate_credits_with_pricing(session, total_biomass, defaults)
    return await store_credit_calculation(session, user_id, plot_id, result)


async def record_market_price(
    session: AsyncSession,
    price_usd: float,
    price_inr: float,
    market_name: str = DEFAULT_MARKET_NAME,
    source: str = DEFAULT_MARKET_SOURCE
) -> MarketPrice:
    """Record a new market price dated now."""
    price = MarketPrice(
        price_usd=price_usd,
        price_inr=price_inr,
        market_name=market_name,
        source=source,
    )
    session.add(price)
    await session.commit()
    await session.refresh(price)

    audit = AuditLog(
        payload_hash=hash_payload({"price_usd": price_usd, "price_inr": price_inr,
                                   "market_name": market_name, "source": source}),
        action=AuditAction.MARKET_PRICE_RECORDED.value,
        entity_type="carbon_market_price",
        entity_id=price.id
    )
    session.add(audit)
    await session.commit()

    logger.info("Updated market prices: USD %.2f, INR %.2f", price_usd, price_inr)
    return price


async def get_credit_history(
    session: AsyncSession,
    user_id: str,
    limit: int = 10
) -> List[CreditCalculation]:
    """A user's calculations, newest first."""
    statement = select(CreditCalculation).where(
        CreditCalculation.user_id == user_id
    ).order_by(CreditCalculation.calculation_date.desc(), CreditCalculation.id.desc()).limit(limit)

    result = await session.execute(statement)
    return list(result.scalars().all())


async def get_user_credit_summary(session: AsyncSession, user_id: str) -> UserCreditSummary:
    """Total credits and value across a user's calculations."""
    statement = select(
        func.coalesce(func.sum(CreditCalculation.credits_generated), 0.0),
        func.coalesce(func.sum(CreditCalculation.estimated_value_usd), 0.0),
        func.coalesce(func.sum(CreditCalculation.estimated_value_inr), 0.0),
        func.count(CreditCalculation.id),
    ).where(CreditCalculation.user_id == user_id)

    result = await session.execute(statement)
    total_credits, total_usd, total_inr, count = result.one()

    return UserCreditSummary(
        total_credits=round(float(total_credits), 3),
        total_value_usd=round(float(total_usd), 2),
        total_value_inr=round(float(total_inr), 2),
        calculation_count=int(count),
    )
