"""
Checklist Server - Public checklist API
Acesso do produtor pelo link público (/c/{token}), sem login
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import Checklist, ItemType, GLOBAL_FIELD_ID
from app.schemas import SubmitRequest
from app.core.config import settings
from app.core.rate_limit import limiter
from app.services.map_sync import sync_property_map
from app.services.response_service import InvalidResponseError, load_responses
from app.services.template_service import load_template_structure
from app.services.checklist_service import (
    ChecklistError,
    save_draft,
    submit_checklist,
    effective_scope_answers,
    producer_for,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/c", tags=["Public Checklist"])


async def get_checklist_by_token(db: AsyncSession, token: str) -> Checklist:
    result = await db.execute(select(Checklist).where(Checklist.public_token == token))
    checklist = result.scalar_one_or_none()
    if not checklist:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checklist not found"
        )
    return checklist


async def _load_structure(db: AsyncSession, checklist: Checklist):
    structure = await load_template_structure(db, checklist.template_id)
    if structure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return structure


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=message
    )


@router.get("/{token}")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def get_public_checklist(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db)
):
    """Checklist, estrutura do template, respostas e escopo para o formulário"""
    checklist = await get_checklist_by_token(db, token)
    structure = await _load_structure(db, checklist)
    responses = await load_responses(db, checklist.id)
    scope_answers = await effective_scope_answers(db, checklist)
    producer = await producer_for(db, checklist)

    return {
        "checklist": checklist.to_dict(),
        "template": structure.to_dict(),
        "producer": producer.to_dict(include_maps=True) if producer else None,
        "responses": [r.to_dict() for r in responses.values()],
        "scope_answers": [a.to_dict() for a in scope_answers],
    }


@router.post("/{token}/save")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def save_public_checklist(
    request: Request,
    token: str,
    data: SubmitRequest,
    db: AsyncSession = Depends(get_db)
):
    """Salva rascunho (somente enquanto SENT/IN_PROGRESS)"""
    checklist = await get_checklist_by_token(db, token)
    structure = await _load_structure(db, checklist)

    try:
        saved = await save_draft(db, checklist, data.responses, structure.item_ids)
    except ChecklistError as e:
        raise _bad_request(e.message)
    except InvalidResponseError as e:
        raise _bad_request(str(e))

    await db.commit()
    logger.info(f"Rascunho salvo: checklist {checklist.id} ({len(saved)} respostas)")
    return {"success": True, "status": checklist.status, "saved": len(saved)}


@router.post("/{token}/submit")
@limiter.limit(settings.PUBLIC_RATE_LIMIT)
async def submit_public_checklist(
    request: Request,
    token: str,
    data: SubmitRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Envio final do produtor. As respostas e o status PENDING_REVIEW são
    gravados juntos; os mapas de propriedade são copiados depois, best effort.
    """
    checklist = await get_checklist_by_token(db, token)
    structure = await _load_structure(db, checklist)

    try:
        saved = await submit_checklist(db, checklist, data.responses, structure.item_ids)
    except ChecklistError as e:
        raise _bad_request(e.message)
    except InvalidResponseError as e:
        raise _bad_request(str(e))

    await db.commit()

    result = {"success": True, "status": checklist.status, "saved": len(saved)}
    checklist_id = checklist.id
    producer_id = checklist.producer_id
    template_name = structure.template.name

    map_item_ids = {item.id for item in structure.items_of_type(ItemType.PROPERTY_MAP)}
    map_answers = [
        (row.item_id, row.answer)
        for row in saved
        if row.item_id in map_item_ids and row.field_id == GLOBAL_FIELD_ID and row.answer
    ]
    for item_id, answer in map_answers:
        await sync_property_map(db, checklist_id, item_id, producer_id, template_name, answer)

    logger.info(f"Checklist {checklist_id} enviado para revisão ({len(saved)} respostas)")
    return result
