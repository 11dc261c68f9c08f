"""CSV import API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dependencies import get_current_user, get_db
from app.models.import_session import ImportStatus
from app.models.user import User
from app.schemas.csv_import import (
    AnalyzeRequest,
    Classification,
    ImportHistoryResponse,
    ImportOptions,
    ImportSessionDetail,
    ImportSummary,
    MappingRequest,
    PreviewRequest,
    PreviewResponse,
    UploadResponse,
    ValidationResult,
)
from app.services.csv_import.service import csv_import_service


router = APIRouter()


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_csv(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload a CSV file and create a pending import session.

    The file must have a .csv extension or a CSV content type, be UTF-8 and
    stay under IMPORT_MAX_FILE_SIZE_BYTES. Malformed files create no session.
    """
    content = await file.read()
    import_session = await csv_import_service.upload(
        db,
        current_user,
        file_name=file.filename,
        content=content,
        content_type=file.content_type,
    )

    return UploadResponse(
        import_id=import_session.id,
        file_name=import_session.file_name,
        file_size=import_session.file_size_bytes,
        total_rows=import_session.total_rows,
        detected_columns=import_session.detected_columns,
        preview_rows=import_session.preview_rows[: settings.IMPORT_UPLOAD_PREVIEW_ROWS],
    )


@router.post("/{import_id}/analyze", response_model=Classification)
async def analyze_import(
    import_id: UUID,
    request: Optional[AnalyzeRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Classify the uploaded file and propose a column mapping.

    Pass ``data_type`` to re-analyze as a specific type while the session is
    still being analyzed.
    """
    return await csv_import_service.analyze(
        db, current_user, import_id, data_type=request.data_type if request else None
    )


@router.put("/{import_id}/mapping", response_model=ImportSessionDetail)
async def confirm_mapping(
    import_id: UUID,
    request: MappingRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Confirm a column mapping; a complete mapping makes the import ready."""
    import_session = await csv_import_service.confirm_mapping(
        db, current_user, import_id, request.column_mappings
    )
    return csv_import_service.to_detail(import_session)


@router.post("/{import_id}/preview", response_model=PreviewResponse)
async def preview_import(
    import_id: UUID,
    request: Optional[PreviewRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Show the preview rows under a candidate mapping without saving it."""
    return await csv_import_service.preview(
        db, current_user, import_id, request.column_mappings if request else None
    )


@router.post("/{import_id}/validate", response_model=ValidationResult)
async def validate_import(
    import_id: UUID,
    request: Optional[PreviewRequest] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Validate every row under the effective (or a candidate) mapping."""
    return await csv_import_service.validate(
        db, current_user, import_id, request.column_mappings if request else None
    )


@router.post("/{import_id}/execute", response_model=ImportSummary)
async def execute_import(
    import_id: UUID,
    options: Optional[ImportOptions] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Import every row of a ready session.

    Rows that fail are reported individually; the rest are imported.
    """
    return await csv_import_service.execute(db, current_user, import_id, options)


@router.get("/", response_model=ImportHistoryResponse)
async def list_imports(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[ImportStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's imports, newest first."""
    return await csv_import_service.history(
        db, current_user, page=page, limit=limit, status=status_filter
    )


@router.get("/{import_id}", response_model=ImportSessionDetail)
async def get_import(
    import_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get one import with its full error list."""
    import_session = await csv_import_service.get(db, current_user, import_id)
    return csv_import_service.to_detail(import_session)


@router.delete("/{import_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_import(
    import_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete an import session. Entities it created stay in place."""
    await csv_import_service.delete(db, current_user, import_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
