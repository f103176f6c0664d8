"""
Checklist Server - Workspace context
Regras de acesso por workspace: SUPERADMIN vê tudo; os demais veem o próprio
workspace e, quando habilitado, os sub-workspaces dele
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User, UserRole, Workspace

SCOPE_OWN = "own"
SCOPE_SUBWORKSPACES = "subworkspaces"


def is_superadmin(user: User) -> bool:
    return user.role == UserRole.SUPERADMIN.value


def is_admin(user: User) -> bool:
    """SUPERADMIN ou ADMIN"""
    return user.has_role(UserRole.ADMIN)


async def get_subworkspace_ids(db: AsyncSession, workspace_id: str) -> List[str]:
    result = await db.execute(
        select(Workspace.id).where(Workspace.parent_workspace_id == workspace_id)
    )
    return list(result.scalars().all())


async def get_accessible_workspace_ids(
    db: AsyncSession,
    user: User,
    scope: Optional[str] = None,
) -> Optional[List[str]]:
    """
    Lista de workspaces visíveis para o usuário.

    Retorna None quando não há restrição (SUPERADMIN sem escopo). ``scope``
    restringe a ``own`` (só o workspace do usuário) ou ``subworkspaces``.
    """
    if is_superadmin(user) and (scope is None or not user.workspace_id):
        return None

    if not user.workspace_id:
        return []

    if scope == SCOPE_OWN:
        return [user.workspace_id]

    workspace = await db.get(Workspace, user.workspace_id)
    sub_ids = []
    if workspace and workspace.has_subworkspaces:
        sub_ids = await get_subworkspace_ids(db, workspace.id)

    if scope == SCOPE_SUBWORKSPACES:
        return sub_ids

    return [user.workspace_id] + sub_ids


def filter_by_workspace(query, column, workspace_ids: Optional[List[str]]):
    """Aplica o filtro de workspaces numa query (None = sem filtro)"""
    if workspace_ids is None:
        return query
    return query.where(column.in_(workspace_ids))


async def has_workspace_access(db: AsyncSession, user: User, workspace_id: Optional[str]) -> bool:
    if is_superadmin(user):
        return True
    if not workspace_id:
        return False
    accessible = await get_accessible_workspace_ids(db, user)
    return workspace_id in (accessible or [])
