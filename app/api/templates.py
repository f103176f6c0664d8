"""
Checklist Server - Templates API
CRUD de templates com estrutura aninhada e duplicação
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func

from app.database import get_db
from app.models import User, Template, Checklist, Section, Workspace, TemplateStatus
from app.schemas import TemplateCreate, TemplateUpdate
from app.services.template_service import (
    TemplateStructure,
    TemplateValidationError,
    load_template_structure,
    create_template as create_template_structure,
    duplicate_template as duplicate_template_structure,
    delete_template as delete_template_structure,
)
from app.core.workspace_context import get_accessible_workspace_ids, has_workspace_access
from app.api.auth import get_reviewer, ensure_workspace_access, resolve_target_workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["Templates"])


async def _parent_workspace_id(db: AsyncSession, user: User) -> Optional[str]:
    if not user.workspace_id:
        return None
    workspace = await db.get(Workspace, user.workspace_id)
    return workspace.parent_workspace_id if workspace else None


async def get_readable_structure(db: AsyncSession, user: User, template_id: str) -> TemplateStructure:
    """Template do workspace do usuário ou do workspace pai (somente leitura)"""
    structure = await load_template_structure(db, template_id)
    if structure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    workspace_id = structure.template.workspace_id
    if not await has_workspace_access(db, user, workspace_id):
        if workspace_id != await _parent_workspace_id(db, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: workspace not accessible"
            )
    return structure


async def get_writable_structure(db: AsyncSession, user: User, template_id: str) -> TemplateStructure:
    structure = await load_template_structure(db, template_id)
    if structure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    await ensure_workspace_access(db, user, structure.template.workspace_id)
    return structure


@router.get("")
async def list_templates(
    search: Optional[str] = None,
    folder: Optional[str] = None,
    template_status: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """
    Lista templates dos workspaces acessíveis. Usuários de sub-workspace
    também veem os templates do workspace pai, marcados como somente leitura.
    """
    workspace_ids = await get_accessible_workspace_ids(db, user)
    parent_id = await _parent_workspace_id(db, user)

    query = select(Template)
    if workspace_ids is not None:
        visible = list(workspace_ids)
        if parent_id:
            visible.append(parent_id)
        query = query.where(Template.workspace_id.in_(visible))

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Template.name.ilike(pattern), Template.folder.ilike(pattern)))
    if folder:
        query = query.where(Template.folder == folder)
    if template_status:
        query = query.where(Template.status == template_status)

    result = await db.execute(query.order_by(Template.created_at.desc()))
    templates = list(result.scalars().all())

    checklist_counts = {}
    section_counts = {}
    if templates:
        ids = [t.id for t in templates]
        rows = await db.execute(
            select(Checklist.template_id, func.count(Checklist.id))
            .where(Checklist.template_id.in_(ids))
            .group_by(Checklist.template_id)
        )
        checklist_counts = dict(rows.all())
        rows = await db.execute(
            select(Section.template_id, func.count(Section.id))
            .where(Section.template_id.in_(ids))
            .group_by(Section.template_id)
        )
        section_counts = dict(rows.all())

    data = []
    for template in templates:
        item = template.to_dict()
        item["checklists_count"] = checklist_counts.get(template.id, 0)
        item["sections_count"] = section_counts.get(template.id, 0)
        item["is_read_only"] = bool(parent_id) and template.workspace_id == parent_id
        data.append(item)
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_template(
    data: TemplateCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Cria template com níveis, classificações, escopo, seções e itens"""
    workspace_id = resolve_target_workspace(user, data.workspace_id)
    await ensure_workspace_access(db, user, workspace_id)

    try:
        template = await create_template_structure(db, data, workspace_id, created_by_id=user.id)
    except TemplateValidationError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    await db.commit()
    structure = await load_template_structure(db, template.id)
    return structure.to_dict()


@router.get("/{template_id}")
async def get_template(
    template_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    structure = await get_readable_structure(db, user, template_id)
    return structure.to_dict()


@router.put("/{template_id}")
async def update_template(
    template_id: str,
    data: TemplateUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Atualiza metadados do template (a estrutura não muda)"""
    structure = await get_writable_structure(db, user, template_id)
    template = structure.template

    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.get("status")
    if new_status and new_status not in {s.value for s in TemplateStatus}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid status"
        )

    for field, value in update_data.items():
        setattr(template, field, value)

    await db.commit()
    logger.info(f"Template atualizado: {template.id}")
    return structure.to_dict()


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Remove o template; com checklists vinculados apenas inativa"""
    structure = await get_writable_structure(db, user, template_id)
    outcome = await delete_template_structure(db, structure)
    await db.commit()

    if outcome == TemplateStatus.INACTIVE.value:
        return {"message": "Template has checklists and was deactivated", "id": template_id, "status": outcome}
    return {"message": "Template deleted", "id": template_id, "status": outcome}


@router.post("/{template_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_template(
    template_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Cópia profunda do template numa única transação"""
    source = await get_writable_structure(db, user, template_id)
    template = await duplicate_template_structure(db, source, created_by_id=user.id)
    await db.commit()

    structure = await load_template_structure(db, template.id)
    return structure.to_dict()
