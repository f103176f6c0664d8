"""
Checklist Server - Parent sync
Respostas revisadas de um checklist filho sobem para o checklist pai
"""
import logging
from datetime import datetime
from typing import Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Response
from app.models.enums import SYNCABLE_RESPONSE_STATUSES
from app.services.response_service import load_responses, upsert_response

logger = logging.getLogger(__name__)


async def sync_responses_to_parent(
    db: AsyncSession,
    parent_id: str,
    responses: Iterable[Response],
) -> List[Response]:
    """
    Copia para o pai apenas respostas APPROVED/REJECTED, pela chave
    (pai, item, talhão). A última escrita prevalece.
    """
    to_sync = [r for r in responses if r.status in SYNCABLE_RESPONSE_STATUSES]
    if not to_sync:
        return []

    parent_rows = await load_responses(db, parent_id)
    synced = []
    for resp in to_sync:
        key = (resp.item_id, resp.field_id)
        row = await upsert_response(
            db,
            parent_id,
            resp.item_id,
            resp.field_id,
            {
                "status": resp.status,
                "answer": resp.answer,
                "observation": resp.observation,
                "file_url": resp.file_url,
                "quantity": resp.quantity,
                "validity": resp.validity,
                "rejection_reason": resp.rejection_reason,
                "reviewed_at": resp.reviewed_at or datetime.utcnow(),
            },
            existing=parent_rows.get(key),
            lookup=False,
        )
        parent_rows[key] = row
        synced.append(row)

    logger.info(f"{len(synced)} respostas sincronizadas com o checklist pai {parent_id}")
    return synced
