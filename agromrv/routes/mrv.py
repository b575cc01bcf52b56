"""
MRV package endpoints: export, verify, anchor.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.config import Settings, get_settings
from agromrv.core.database import get_session
from agromrv.core.exceptions import AgroMRVError, LedgerError
from agromrv.models.package import MRVPackage, MRVPackageRead, PackageExport, PackageVerification
from agromrv.handlers.ledger import LedgerAnchor, anchor_package
from agromrv.handlers.mrv_export import export_package
from agromrv.handlers.verification import verify_package
from agromrv.routes.deps import get_ledger, http_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mrv"])


@router.post("/plots/{plot_id}/mrv/export", response_model=PackageExport)
async def export_package_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    ledger: LedgerAnchor = Depends(get_ledger)
):
    """
    Export a plot as an MRV package and anchor its hash.

    If anchoring fails the package is still returned, with ``ledgerTxId``
    null; it can be anchored later via ``POST /mrv/{pkg_id}/anchor``.
    """
    try:
        exported = await export_package(session, plot_id, settings=settings)
    except AgroMRVError as e:
        raise http_error(e)

    package = exported.package
    try:
        package = await anchor_package(session, package.id, ledger)
    except LedgerError as e:
        logger.error("Package %s exported but not anchored: %s", package.id, e)

    return PackageExport(
        pkg_id=package.id,
        hash=package.checksum,
        artifacts_uri=package.artifacts_uri,
        ledger_tx_id=package.ledger_tx_id,
    )


@router.get("/mrv/{pkg_id}", response_model=MRVPackageRead)
async def get_package_endpoint(
    pkg_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Get a package record."""
    package = await session.get(MRVPackage, pkg_id)
    if not package:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Package {pkg_id} not found"
        )
    return package


@router.get("/mrv/{pkg_id}/verify", response_model=PackageVerification)
async def verify_package_endpoint(
    pkg_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    Recompute the package hash from the files on disk.

    ``matches`` is false when any artifact changed since export. Missing
    artifacts are a 404.
    """
    try:
        return await verify_package(session, pkg_id)
    except AgroMRVError as e:
        raise http_error(e)


@router.post("/mrv/{pkg_id}/anchor", response_model=MRVPackageRead)
async def anchor_package_endpoint(
    pkg_id: int,
    force: bool = False,
    session: AsyncSession = Depends(get_session),
    ledger: LedgerAnchor = Depends(get_ledger)
):
    """Anchor a package that has no ledger transaction yet."""
    try:
        return await anchor_package(session, pkg_id, ledger, force=force)
    except AgroMRVError as e:
        raise http_error(e)
