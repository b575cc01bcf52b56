"""
Carbon estimate model - the stored biomass estimate of a single tree.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from agromrv.utils.time import utc_now


class CarbonEstimateBase(SQLModel):
    """Base carbon estimate schema."""
    biomass_kg: float = Field(..., description="Above-ground biomass in kg", ge=0)
    carbon_kg: float = Field(..., description="Carbon sequestered in kg", ge=0)
    co2_equivalent_kg: float = Field(..., description="CO2-equivalent in kg", ge=0)
    uncertainty_pct: float = Field(..., description="Combined uncertainty in percent", ge=0)
    confidence_pct: float = Field(..., description="Method confidence in percent")
    method: str = Field(..., description="Estimation method label")
    model_version: Optional[str] = Field(default=None, description="Estimator model version")


class CarbonEstimate(CarbonEstimateBase, table=True):
    """Carbon estimate table - one row per tree, replaced on re-estimation."""
    __tablename__ = "carbon_estimates"

    id: Optional[int] = Field(default=None, primary_key=True)
    tree_id: int = Field(..., foreign_key="trees.id", unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now)


class CarbonEstimateRead(CarbonEstimateBase):
    """Schema for reading a stored estimate."""
    id: int
    tree_id: int
    created_at: datetime
