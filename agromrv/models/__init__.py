# SQLModel database models

from agromrv.models.plot import Plot
from agromrv.models.tree import Tree
from agromrv.models.species import Species
from agromrv.models.estimate import CarbonEstimate
from agromrv.models.market import MarketPrice, CreditCalculation
from agromrv.models.package import MRVPackage
from agromrv.models.audit import AuditLog

__all__ = [
    "Plot",
    "Tree",
    "Species",
    "CarbonEstimate",
    "MarketPrice",
    "CreditCalculation",
    "MRVPackage",
    "AuditLog",
]
