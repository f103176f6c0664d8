"""
Checklist Server - Dashboard API
Estatísticas dos workspaces acessíveis
"""
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.database import get_db
from app.models import User, Producer, Template, Checklist, AuditLog, ChecklistStatus
from app.core.workspace_context import get_accessible_workspace_ids, filter_by_workspace
from app.api.auth import get_reviewer, get_admin

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Totais de produtores, templates e checklists"""
    workspace_ids = await get_accessible_workspace_ids(db, user)

    # Produtores
    result = await db.execute(
        filter_by_workspace(select(func.count(Producer.id)), Producer.workspace_id, workspace_ids)
    )
    producers = result.scalar() or 0

    # Templates
    result = await db.execute(
        filter_by_workspace(select(func.count(Template.id)), Template.workspace_id, workspace_ids)
    )
    templates = result.scalar() or 0

    # Checklists
    result = await db.execute(
        filter_by_workspace(select(func.count(Checklist.id)), Checklist.workspace_id, workspace_ids)
    )
    checklists = result.scalar() or 0

    result = await db.execute(
        filter_by_workspace(
            select(func.count(Checklist.id)).where(Checklist.status == ChecklistStatus.FINALIZED.value),
            Checklist.workspace_id,
            workspace_ids,
        )
    )
    finalized = result.scalar() or 0

    # Checklists por status
    result = await db.execute(
        filter_by_workspace(
            select(Checklist.status, func.count(Checklist.id)).group_by(Checklist.status),
            Checklist.workspace_id,
            workspace_ids,
        )
    )
    by_status = {s.value: 0 for s in ChecklistStatus}
    by_status.update({row[0]: row[1] for row in result.all()})

    return {
        "producers": producers,
        "templates": templates,
        "checklists": checklists,
        "finalizedChecklists": finalized,
        "checklistsByStatus": by_status,
        "generated_at": datetime.utcnow().isoformat()
    }


@router.get("/recent-activity")
async def get_recent_activity(
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_admin)
):
    """Registros de auditoria mais recentes"""
    workspace_ids = await get_accessible_workspace_ids(db, user)
    result = await db.execute(
        filter_by_workspace(select(AuditLog), AuditLog.workspace_id, workspace_ids)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
    )
    logs = result.scalars().all()

    return [log.to_dict() for log in logs]
