"""
Shared FastAPI dependencies.
"""

from fastapi import Depends, HTTPException

from agromrv.core.config import Settings, get_settings
from agromrv.core.exceptions import AgroMRVError
from agromrv.handlers.ledger import LedgerAnchor, get_ledger_anchor
from agromrv.models.credit import PricingDefaults


def get_ledger(settings: Settings = Depends(get_settings)) -> LedgerAnchor:
    """Ledger anchor selected by LEDGER_MODE."""
    return get_ledger_anchor(settings)


def get_pricing_defaults(settings: Settings = Depends(get_settings)) -> PricingDefaults:
    """Fallback market price injected into credit pricing."""
    return PricingDefaults(price_usd=settings.default_price_usd, price_inr=settings.default_price_inr)


def http_error(error: AgroMRVError) -> HTTPException:
    """Map a pipeline error to its HTTP status with a stable code and message."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
