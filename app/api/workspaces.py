"""
Checklist Server - Workspaces API
Workspaces e sub-workspaces (um nível)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.database import get_db
from app.models import User, Workspace
from app.schemas import WorkspaceCreate, WorkspaceUpdate, SubworkspaceToggle
from app.core.workspace_context import get_accessible_workspace_ids, filter_by_workspace
from app.api.auth import get_current_user, get_admin, get_superadmin, ensure_workspace_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


async def _get_workspace(db: AsyncSession, workspace_id: str) -> Workspace:
    workspace = await db.get(Workspace, workspace_id)
    if not workspace:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found"
        )
    return workspace


async def _ensure_unique_slug(db: AsyncSession, slug: str):
    result = await db.execute(select(Workspace.id).where(Workspace.slug == slug))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Slug already in use"
        )


@router.get("")
async def list_workspaces(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    """Workspaces visíveis para o usuário"""
    workspace_ids = await get_accessible_workspace_ids(db, user)
    query = filter_by_workspace(select(Workspace), Workspace.id, workspace_ids)
    result = await db.execute(query.order_by(Workspace.name))
    return [w.to_dict() for w in result.scalars().all()]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_workspace(
    data: WorkspaceCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_superadmin)
):
    """Cria workspace raiz ou sub-workspace (apenas SUPERADMIN)"""
    await _ensure_unique_slug(db, data.slug)

    if data.parent_workspace_id:
        parent = await _get_workspace(db, data.parent_workspace_id)
        if parent.parent_workspace_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create subworkspace of a subworkspace"
            )
        if not parent.has_subworkspaces:
            parent.has_subworkspaces = True

    workspace = Workspace(
        name=data.name,
        slug=data.slug,
        cnpj=data.cnpj,
        logo_url=data.logo_url,
        parent_workspace_id=data.parent_workspace_id,
        has_subworkspaces=False,
    )
    db.add(workspace)
    await db.commit()

    logger.info(f"Workspace criado: {workspace.slug} por {admin.email}")
    return workspace.to_dict()


@router.get("/{workspace_id}")
async def get_workspace(
    workspace_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user)
):
    workspace = await _get_workspace(db, workspace_id)
    await ensure_workspace_access(db, user, workspace.id)
    return workspace.to_dict()


@router.put("/{workspace_id}")
async def update_workspace(
    workspace_id: str,
    data: WorkspaceUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin)
):
    workspace = await _get_workspace(db, workspace_id)
    await ensure_workspace_access(db, admin, workspace.id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(workspace, field, value)

    await db.commit()
    return workspace.to_dict()


@router.get("/{workspace_id}/subworkspaces")
async def list_subworkspaces(
    workspace_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_admin)
):
    workspace = await _get_workspace(db, workspace_id)
    await ensure_workspace_access(db, user, workspace.id)

    result = await db.execute(
        select(Workspace)
        .where(Workspace.parent_workspace_id == workspace.id)
        .order_by(Workspace.name)
    )
    return [w.to_dict() for w in result.scalars().all()]


@router.post("/{workspace_id}/toggle-subworkspaces")
async def toggle_subworkspaces(
    workspace_id: str,
    data: SubworkspaceToggle,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_superadmin)
):
    """Habilita/desabilita sub-workspaces (apenas SUPERADMIN)"""
    workspace = await _get_workspace(db, workspace_id)

    if workspace.parent_workspace_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subworkspaces cannot have their own subworkspaces"
        )

    if not data.has_subworkspaces:
        count = await db.scalar(
            select(func.count(Workspace.id)).where(Workspace.parent_workspace_id == workspace.id)
        )
        if count:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot disable subworkspaces while subworkspaces exist. Delete all subworkspaces first."
            )

    workspace.has_subworkspaces = data.has_subworkspaces
    await db.commit()

    return {"id": workspace.id, "has_subworkspaces": workspace.has_subworkspaces}
