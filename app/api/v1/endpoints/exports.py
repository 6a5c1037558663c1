"""
Export Endpoints

POST /projects/{project_id}/exports returns the rendered file as a download.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.api.deps import get_current_user
from app.models import Profile
from app.schemas.export import ExportRequest
from app.services.export_service import ExportService, ExportError, ExportProjectNotFoundError

router = APIRouter(tags=["Exports"])


@router.post(
    "/{project_id}/exports",
    responses={
        200: {"description": "Export file"},
        400: {"description": "Unknown export field"},
        404: {"description": "Project not found"},
    }
)
async def export_project(
    project_id: UUID,
    request: ExportRequest,
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Export the project's articles as csv, json, bibtex, endnote or PRISMA flow data.

    The record count is returned in the `X-Export-Count` header.
    """
    service = ExportService(db)
    try:
        result = await service.export_project(project_id, current_user.id, request)
    except ExportProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Export-Count": str(result.record_count),
        }
    )
