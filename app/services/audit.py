"""
Checklist Server - Audit log
Registro best effort: falha ao auditar é logada e nunca desfaz a operação
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AuditLog

logger = logging.getLogger(__name__)


async def record_audit(
    db: AsyncSession,
    action: str,
    user_id: Optional[str] = None,
    workspace_id: Optional[str] = None,
    checklist_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> bool:
    """
    Grava o registro em transação própria. Deve ser chamado depois do commit
    da operação principal; em caso de erro a sessão é revertida e os objetos
    carregados ficam expirados.
    """
    try:
        db.add(AuditLog(
            user_id=user_id,
            workspace_id=workspace_id,
            checklist_id=checklist_id,
            action=action,
            details=details or {},
        ))
        await db.commit()
        return True
    except Exception as e:
        logger.error(f"Falha ao gravar audit log {action} (checklist {checklist_id}): {e}")
        await db.rollback()
        return False
