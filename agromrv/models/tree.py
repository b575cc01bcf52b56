"""
Tree model - one tree's raw field measurements.
"""

from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from agromrv.utils.time import utc_now

if TYPE_CHECKING:
    from agromrv.models.plot import Plot


class TreeBase(SQLModel):
    """Base tree measurement schema. Every measurement is optional."""
    species_code: Optional[str] = Field(default=None, description="Species reference code")
    height_m: Optional[float] = Field(default=None, description="Tree height in meters", ge=0)
    dbh_cm: Optional[float] = Field(default=None, description="Diameter at breast height in cm", ge=0)
    crown_area_m2: Optional[float] = Field(default=None, description="Canopy cover area in m²", ge=0)
    health: Optional[str] = Field(default=None, description="Field health assessment")


class Tree(TreeBase, table=True):
    """Tree database table."""
    __tablename__ = "trees"

    id: Optional[int] = Field(default=None, primary_key=True)
    plot_id: int = Field(..., foreign_key="plots.id", index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    plot: "Plot" = Relationship(back_populates="trees")


class TreeCreate(TreeBase):
    """Schema for recording a tree measurement."""
    pass


class TreeUpdate(SQLModel):
    """Schema for correcting a tree measurement."""
    species_code: Optional[str] = None
    height_m: Optional[float] = Field(default=None, ge=0)
    dbh_cm: Optional[float] = Field(default=None, ge=0)
    crown_area_m2: Optional[float] = Field(default=None, ge=0)
    health: Optional[str] = None


class TreeRead(TreeBase):
    """Schema for reading a tree."""
    id: int
    plot_id: int
    created_at: datetime
    updated_at: datetime
