"""
Species reference model - wood density and allometric coefficients.
"""

from sqlmodel import SQLModel, Field
from typing import Optional


class SpeciesBase(SQLModel):
    """Base species reference schema."""
    common_name: str = Field(..., description="Common name")
    scientific_name: Optional[str] = Field(default=None, description="Scientific name")
    wood_density: float = Field(..., description="Wood density (kg/m³ in the allometric unit system)", gt=0)
    allometric_a: float = Field(..., description="Allometric coefficient a")
    allometric_b: float = Field(..., description="Allometric exponent b")
    uncertainty_pct: float = Field(..., description="Equation uncertainty in percent", ge=0)
    equation_source: Optional[str] = Field(default=None, description="Citation for the coefficients")


class Species(SpeciesBase, table=True):
    """Species reference table. Read-only reference data."""
    __tablename__ = "tree_species"

    species_code: str = Field(..., primary_key=True, description="Upper-case species code")


class SpeciesCreate(SpeciesBase):
    """Schema for loading a species row."""
    species_code: str


class SpeciesRead(SpeciesBase):
    """Schema for reading a species row."""
    species_code: str
