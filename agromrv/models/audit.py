"""
Audit log model - append-only trail of pipeline mutations.

Every stored estimate, credit snapshot, market price, exported package and
ledger anchor appends one row carrying the SHA-256 of its canonical payload.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from agromrv.utils.time import utc_now


class AuditAction(str, Enum):
    """Pipeline steps that leave an audit row."""
    ESTIMATE_STORED = "estimate_stored"
    CREDIT_CALCULATION_STORED = "credit_calculation_stored"
    MARKET_PRICE_RECORDED = "market_price_recorded"
    PACKAGE_EXPORTED = "package_exported"
    PACKAGE_ANCHORED = "package_anchored"


class AuditLogBase(SQLModel):
    """Base audit log schema."""
    payload_hash: str = Field(..., description="SHA-256 of the canonical JSON payload")
    action: str = Field(..., index=True, description="AuditAction value")
    entity_type: str = Field(..., description="Table of the audited row (e.g. 'mrv_package')")
    entity_id: Optional[int] = Field(default=None, index=True, description="ID of the audited row")
    extra_data: Optional[str] = Field(
        default=None,
        description="JSON string of lookup hints (plot id, folder, tx id)"
    )


class AuditLog(AuditLogBase, table=True):
    """Audit log database table. Rows are never updated or deleted."""
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
