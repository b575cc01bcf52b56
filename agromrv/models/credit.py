"""
Carbon credit schemas - conversion results and pricing.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class PricingDefaults(SQLModel):
    """Per-credit prices used when no market price has been recorded."""
    price_usd: float = 8.50
    price_inr: float = 700.0


class CreditBreakdown(SQLModel):
    """Pure biomass → credits conversion."""
    carbon_stock_kg: float
    carbon_stock_tons: float
    co2_equivalent_kg: float
    co2_equivalent_tons: float
    credits_generated: float


class CarbonCreditResult(CreditBreakdown):
    """Credits with the market price captured at calculation time."""
    biomass_kg: float
    market_price_usd: float
    market_price_inr: float
    estimated_value_usd: float
    estimated_value_inr: float
    calculation_date: datetime
    methodology: str


class CreditCalculationRequest(SQLModel):
    """Request body for a manual credit calculation."""
    biomass_kg: Optional[float] = Field(default=None, description="Biomass in kg, must be positive")


class PlotCreditRequest(SQLModel):
    """Request body for pricing a plot on behalf of a user."""
    user_id: str


class UserCreditSummary(SQLModel):
    """Totals over a user's stored calculations."""
    total_credits: float
    total_value_usd: float
    total_value_inr: float
    calculation_count: int
