"""
Registry export endpoints: readiness check, CSV bundle and JSON document.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.database import get_session
from agromrv.core.exceptions import AgroMRVError
from agromrv.models.export import ExportValidation, RegistryExport
from agromrv.handlers.exports import build_csv_bundle, build_registry_export, validate_export
from agromrv.routes.deps import http_error

router = APIRouter(prefix="/exports", tags=["exports"])


@router.get("/plots/{plot_id}/validate", response_model=ExportValidation)
async def validate_export_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session)
):
    """List what is missing before a plot can be exported to a registry."""
    try:
        return await validate_export(session, plot_id)
    except AgroMRVError as e:
        raise http_error(e)


@router.get("/plots/{plot_id}/csv.zip")
async def csv_export_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Download the plot and tree rows as CSV files in a zip archive."""
    try:
        content = await build_csv_bundle(session, plot_id)
    except AgroMRVError as e:
        raise http_error(e)

    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="plot_{plot_id}_export.zip"'}
    )


@router.get("/plots/{plot_id}.json", response_model=RegistryExport)
async def json_export_endpoint(
    plot_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Plot and tree rows as a single JSON document."""
    try:
        return await build_registry_export(session, plot_id)
    except AgroMRVError as e:
        raise http_error(e)
