"""
Checklist Server - AI API
Pré-análise de respostas por IA (apenas sugestão, não altera o status da revisão)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import User, Item, GLOBAL_FIELD_ID
from app.schemas import AIAnalyzeRequest
from app.core.ai_analyzer import AIAnalysisError, analyze_answer
from app.services.response_service import get_response, serialize_answer
from app.api.auth import get_reviewer
from app.api.checklists import get_accessible_checklist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post("/analyze")
async def analyze_response(
    data: AIAnalyzeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Analisa a resposta de um item e grava o parecer em ai_flag/ai_message/ai_confidence"""
    checklist = await get_accessible_checklist(db, user, data.checklist_id)

    item = await db.get(Item, data.item_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found"
        )

    field_id = data.field_id or GLOBAL_FIELD_ID
    response = await get_response(db, checklist.id, item.id, field_id)
    if not response:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Response not found"
        )

    answer = serialize_answer(data.answer) if data.answer is not None else response.answer
    try:
        analysis = await analyze_answer(
            item.name,
            answer,
            observation=data.observation or response.observation,
            item_description=item.reference,
            language=data.language,
        )
    except AIAnalysisError as e:
        logger.error(f"Falha na análise por IA (checklist {checklist.id}, item {item.id}): {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AI analysis failed"
        )

    response.ai_flag = analysis["status"]
    response.ai_message = analysis["reason"]
    response.ai_confidence = analysis["confidence"]
    await db.commit()

    return analysis
