"""
Checklist Server - Uploads API
Envio de arquivos de evidência para o storage e URLs assinadas
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Checklist
from app.schemas import PresignRequest
from app.core.config import settings
from app.core.rate_limit import limiter
from app.core.storage import (
    StorageError,
    build_s3_key,
    is_s3_key,
    is_allowed_content_type,
    upload_file as upload_to_storage,
    get_presigned_url,
    get_presigned_upload_url,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Uploads"])


def _storage_failure(message: str, error: StorageError) -> HTTPException:
    logger.error(f"{message}: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message
    )


async def _get_upload_checklist(
    db: AsyncSession,
    checklist_id: str,
    workspace_id: str,
    subworkspace_id: Optional[str]
) -> Checklist:
    """O checklist precisa existir e pertencer ao workspace informado"""
    checklist = await db.get(Checklist, checklist_id)
    if not checklist or checklist.workspace_id not in (workspace_id, subworkspace_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checklist not found"
        )
    return checklist


def _file_too_large() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="File too large. Maximum size is 10 MB."
    )


@router.post("")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    workspace_id: str = Form(..., alias="workspaceId"),
    checklist_id: str = Form(..., alias="checklistId"),
    item_id: str = Form(..., alias="itemId"),
    subworkspace_id: Optional[str] = Form(None, alias="subworkspaceId"),
    field_id: Optional[str] = Form(None, alias="fieldId"),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload de evidência (até 10 MB, tipos de imagem e documentos).
    O checklist precisa existir e pertencer ao workspace informado.
    """
    await _get_upload_checklist(db, checklist_id, workspace_id, subworkspace_id)

    if not is_allowed_content_type(file.content_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: {file.content_type}"
        )

    if file.size is not None and file.size > settings.UPLOAD_MAX_SIZE:
        raise _file_too_large()

    # Lê no máximo um byte além do limite
    body = await file.read(settings.UPLOAD_MAX_SIZE + 1)
    if len(body) > settings.UPLOAD_MAX_SIZE:
        raise _file_too_large()

    key = build_s3_key(
        workspace_id=workspace_id,
        checklist_id=checklist_id,
        item_id=item_id,
        filename=file.filename,
        subworkspace_id=subworkspace_id,
        field_id=field_id,
    )

    try:
        await upload_to_storage(key, body, file.content_type)
    except StorageError as e:
        raise _storage_failure("Upload failed", e)

    return {
        "key": key,
        "filename": file.filename,
        "size": len(body),
        "contentType": file.content_type,
    }


@router.get("/presigned-url")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def presigned_url(
    request: Request,
    key: Optional[str] = Query(None)
):
    """URL assinada de leitura (1 hora)"""
    if not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing key parameter"
        )
    if not is_s3_key(key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid S3 key"
        )

    try:
        return {"url": get_presigned_url(key)}
    except StorageError as e:
        raise _storage_failure("Failed to generate URL", e)


@router.post("/presigned-upload-url")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def presigned_upload_url(
    request: Request,
    data: PresignRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    URL assinada de envio direto ao storage (15 minutos). A chave é montada
    aqui, dentro da pasta do checklist validado.
    """
    await _get_upload_checklist(db, data.checklist_id, data.workspace_id, data.subworkspace_id)

    if not is_allowed_content_type(data.content_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: {data.content_type}"
        )

    key = build_s3_key(
        workspace_id=data.workspace_id,
        checklist_id=data.checklist_id,
        item_id=data.item_id,
        filename=data.filename,
        subworkspace_id=data.subworkspace_id,
        field_id=data.field_id,
    )

    try:
        return {"url": get_presigned_upload_url(key, data.content_type), "key": key}
    except StorageError as e:
        raise _storage_failure("Failed to generate upload URL", e)
