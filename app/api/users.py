"""
Checklist Server - Users API
Contas gerenciadas pelos administradores do workspace
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, UserRole, Workspace
from app.schemas import UserCreate, UserUpdate
from app.core import get_password_hash
from app.core.workspace_context import get_accessible_workspace_ids, filter_by_workspace, is_superadmin
from app.api.auth import get_admin, ensure_workspace_access, resolve_target_workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

VALID_ROLES = {r.value for r in UserRole}


def _check_role_assignment(current: User, role: str):
    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role: {role}"
        )
    if role == UserRole.SUPERADMIN.value and not is_superadmin(current):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only superadmin can assign SUPERADMIN role"
        )


async def _get_managed_user(db: AsyncSession, current: User, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if not is_superadmin(current):
        await ensure_workspace_access(db, current, user.workspace_id)
        if user.role == UserRole.SUPERADMIN.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden"
            )
    return user


@router.get("")
async def list_users(
    db: AsyncSession = Depends(get_db),
    current: User = Depends(get_admin)
):
    """Lista usuários dos workspaces acessíveis"""
    workspace_ids = await get_accessible_workspace_ids(db, current)
    query = filter_by_workspace(select(User), User.workspace_id, workspace_ids)
    result = await db.execute(query.order_by(User.created_at.desc()))
    return [u.to_dict() for u in result.scalars().all()]


@router.get("/supervisors")
async def list_supervisors(
    db: AsyncSession = Depends(get_db),
    current: User = Depends(get_admin)
):
    """Supervisores disponíveis para designação a produtores"""
    workspace_ids = await get_accessible_workspace_ids(db, current)
    query = filter_by_workspace(
        select(User).where(User.role == UserRole.SUPERVISOR.value),
        User.workspace_id,
        workspace_ids
    )
    result = await db.execute(query.order_by(User.name))
    return [u.to_dict() for u in result.scalars().all()]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(get_admin)
):
    """Cria usuário no workspace do admin (ou no informado, se acessível)"""
    _check_role_assignment(current, data.role)

    result = await db.execute(select(User).where(User.email == data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    workspace_id = resolve_target_workspace(current, data.workspace_id)
    if not await db.get(Workspace, workspace_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workspace not found"
        )
    await ensure_workspace_access(db, current, workspace_id)

    user = User(
        email=data.email,
        hashed_password=get_password_hash(data.password),
        name=data.name,
        role=data.role,
        cpf=data.cpf,
        phone=data.phone,
        workspace_id=workspace_id,
        must_change_password=True,
    )
    db.add(user)
    await db.commit()

    logger.info(f"Usuário criado: {user.email} ({user.role}) por {current.email}")
    return user.to_dict()


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(get_admin)
):
    user = await _get_managed_user(db, current, user_id)
    update_data = data.model_dump(exclude_unset=True)

    if "role" in update_data:
        _check_role_assignment(current, update_data["role"])

    password = update_data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
        user.must_change_password = True

    for field, value in update_data.items():
        setattr(user, field, value)

    await db.commit()
    return user.to_dict()


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current: User = Depends(get_admin)
):
    """Desativa o usuário (mantém histórico de auditoria)"""
    if user_id == current.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    user = await _get_managed_user(db, current, user_id)
    user.is_active = False
    await db.commit()

    logger.info(f"Usuário desativado: {user.email}")
    return {"message": "User deactivated", "id": user.id}
