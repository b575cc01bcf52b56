"""
MRV package model - an exported, hash-verifiable artifact bundle.
"""

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime

from agromrv.utils.time import utc_now


class MRVPackageBase(SQLModel):
    """Base MRV package schema."""
    plot_id: int = Field(..., foreign_key="plots.id", index=True)
    schema_version: str = Field(default="1.0")
    artifacts_uri: str = Field(..., description="file:// location of the package folder")
    checksum: str = Field(..., description="Top-level SHA-256 over the per-file hashes")
    ledger_tx_id: Optional[str] = Field(default=None, description="Ledger anchor transaction id")


class MRVPackage(MRVPackageBase, table=True):
    """MRV package table."""
    __tablename__ = "mrv_packages"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)


class MRVPackageRead(MRVPackageBase):
    """Schema for reading a package record."""
    id: int
    created_at: datetime


class PackageExport(BaseModel):
    """Export response."""
    model_config = ConfigDict(populate_by_name=True)

    pkg_id: int = PydanticField(alias="pkgId")
    hash: str
    artifacts_uri: str = PydanticField(alias="artifactsUri")
    ledger_tx_id: Optional[str] = PydanticField(default=None, alias="ledgerTxId")


class PackageVerification(BaseModel):
    """Verification response. ``matches`` is the integrity verdict."""
    model_config = ConfigDict(populate_by_name=True)

    pkg_id: int = PydanticField(alias="pkgId")
    stored_checksum: str = PydanticField(alias="storedChecksum")
    recomputed_checksum: str = PydanticField(alias="recomputedChecksum")
    matches: bool
    mismatched_files: List[str] = PydanticField(default_factory=list, alias="mismatchedFiles")
    ledger_tx_id: Optional[str] = PydanticField(default=None, alias="ledgerTxId")


class AnchorReceipt(BaseModel):
    """Opaque provenance marker returned by a ledger anchor."""
    model_config = ConfigDict(populate_by_name=True)

    tx_id: str = PydanticField(alias="txId")
