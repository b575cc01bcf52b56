"""
Market price and carbon credit calculation models.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from agromrv.utils.time import utc_now


class MarketPriceBase(SQLModel):
    """Base market price schema."""
    price_usd: float = Field(..., description="Price per credit in USD", gt=0)
    price_inr: float = Field(..., description="Price per credit in INR", gt=0)
    market_name: str = Field(default="Voluntary Carbon Market")
    source: str = Field(default="Market Average")


class MarketPrice(MarketPriceBase, table=True):
    """Carbon market price table - latest row by date wins."""
    __tablename__ = "carbon_market_prices"

    id: Optional[int] = Field(default=None, primary_key=True)
    price_date: datetime = Field(default_factory=utc_now, index=True)


class MarketPriceCreate(MarketPriceBase):
    """Schema for recording a market price."""
    pass


class MarketPriceRead(MarketPriceBase):
    """Schema for reading a market price."""
    id: int
    price_date: datetime


class CreditCalculationBase(SQLModel):
    """Base carbon credit calculation snapshot."""
    biomass_kg: float = Field(..., ge=0)
    carbon_stock_kg: float
    carbon_stock_tons: float
    co2_equivalent_kg: float
    co2_equivalent_tons: float
    credits_generated: float
    market_price_usd: float
    market_price_inr: float
    estimated_value_usd: float
    estimated_value_inr: float
    methodology: str
    calculation_date: datetime


class CreditCalculation(CreditCalculationBase, table=True):
    """Stored carbon credit calculation - immutable snapshot per user and plot."""
    __tablename__ = "carbon_credit_calculations"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(..., index=True)
    plot_id: int = Field(..., foreign_key="plots.id")


class CreditCalculationRead(CreditCalculationBase):
    """Schema for reading a stored calculation."""
    id: int
    user_id: str
    plot_id: int
