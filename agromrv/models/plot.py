"""
Plot model - a farmer's land parcel holding measured trees.
"""

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import JSON
from typing import Optional, List, Dict, Any, TYPE_CHECKING
from datetime import datetime

from agromrv.utils.time import utc_now

if TYPE_CHECKING:
    from agromrv.models.tree import Tree


class PlotBase(SQLModel):
    """Base plot schema."""
    name: str = Field(..., description="Plot display name")
    farmer_id: Optional[str] = Field(default=None, description="Owning farmer / user reference")
    agro_ecozone: Optional[str] = Field(default=None, description="Agro-ecological zone label")
    boundary_geojson: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_type=JSON,
        description="Plot boundary as a GeoJSON geometry"
    )
    area_hectares: Optional[float] = Field(default=None, ge=0)


class Plot(PlotBase, table=True):
    """Plot database table."""
    __tablename__ = "plots"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Relationships
    trees: List["Tree"] = Relationship(back_populates="plot")


class PlotCreate(PlotBase):
    """Schema for creating a plot."""
    pass


class PlotRead(PlotBase):
    """Schema for reading a plot."""
    id: int
    created_at: datetime
    updated_at: datetime
