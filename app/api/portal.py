"""
Checklist Server - Producer portal API
Checklists do produtor logado em todos os workspaces onde está cadastrado
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, UserRole, Producer, Checklist, Template, Workspace
from app.core.status import get_portal_status_info
from app.api.auth import get_current_user

router = APIRouter(prefix="/portal", tags=["Portal"])


@router.get("/checklists")
async def list_portal_checklists(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Checklists de todos os produtores com o CPF do usuário"""
    if user.role != UserRole.PRODUCER.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only producers can access the portal"
        )
    if not user.cpf:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CPF is required"
        )

    result = await db.execute(select(Producer).where(Producer.cpf == user.cpf))
    producers = list(result.scalars().all())
    if not producers:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Produtor não encontrado"
        )

    result = await db.execute(
        select(Checklist, Template.name, Workspace.name)
        .join(Template, Template.id == Checklist.template_id)
        .join(Workspace, Workspace.id == Checklist.workspace_id)
        .where(Checklist.producer_id.in_([p.id for p in producers]))
        .order_by(Checklist.created_at.desc())
    )

    checklists = []
    for checklist, template_name, workspace_name in result.all():
        item = checklist.to_dict()
        item["template_name"] = template_name
        item["workspace_name"] = workspace_name
        item["status_info"] = get_portal_status_info(checklist.status)
        checklists.append(item)

    return {
        "producer": {"name": producers[0].name, "cpf": producers[0].cpf},
        "checklists": checklists,
    }
