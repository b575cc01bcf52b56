"""
Error hierarchy for the estimation and MRV pipeline.

Every error carries a stable ``error_code`` and a ``context`` dict so the
HTTP layer can turn it into a ``{code, message}`` response without leaking
stack traces.

    AgroMRVError
    ├── InputError
    │   └── InsufficientMeasurementsError
    ├── NotFoundError
    │   └── PackageFilesNotFoundError
    ├── StorageError
    └── LedgerError
"""

from typing import Any, Dict, Optional


class AgroMRVError(Exception):
    """Base error for the pipeline."""

    error_code = "MRV_ERROR"
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.error_code, "message": self.message}


class InputError(AgroMRVError):
    """Client-correctable input problem."""

    error_code = "MRV_INPUT"
    status_code = 400


class InsufficientMeasurementsError(InputError):
    """No usable height, DBH or canopy area on a tree."""

    error_code = "MRV_INSUFFICIENT_MEASUREMENTS"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__("Insufficient measurements for biomass estimation", context)


class NotFoundError(AgroMRVError):
    """Referenced plot, tree, species or package does not exist."""

    error_code = "MRV_NOT_FOUND"
    status_code = 404


class PackageFilesNotFoundError(NotFoundError):
    """Package record exists but its artifacts are gone from storage."""

    error_code = "MRV_PACKAGE_FILES_NOT_FOUND"


class StorageError(AgroMRVError):
    """Artifact write or hash failure."""

    error_code = "MRV_STORAGE"


class LedgerError(AgroMRVError):
    """Ledger anchor submission failed."""

    error_code = "MRV_LEDGER"
    status_code = 502
