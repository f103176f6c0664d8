"""
Checklist Server - Auth API
Autenticação (JWT), usuário atual e dependências de permissão
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.database import get_db
from app.models import User, UserRole, Workspace
from app.schemas import LoginRequest, LoginResponse, SetupRequest, ChangePasswordRequest
from app.core import (
    verify_password,
    get_password_hash,
    create_access_token,
    verify_access_token,
    settings
)
from app.core.workspace_context import has_workspace_access, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency para obter usuário autenticado"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    user = await db.get(User, payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return user


def require_role(minimum: UserRole):
    """Dependency que exige papel mínimo (hierarquia SUPERADMIN > ADMIN > SUPERVISOR > PRODUCER)"""
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not user.has_role(minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return user
    return dependency


async def get_reviewer(user: User = Depends(require_role(UserRole.SUPERVISOR))) -> User:
    """Auditores: SUPERVISOR ou acima"""
    return user


async def get_admin(user: User = Depends(require_role(UserRole.ADMIN))) -> User:
    return user


async def get_superadmin(user: User = Depends(require_role(UserRole.SUPERADMIN))) -> User:
    return user


async def ensure_workspace_access(db: AsyncSession, user: User, workspace_id: Optional[str]) -> None:
    if not await has_workspace_access(db, user, workspace_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: workspace not accessible"
        )


def resolve_target_workspace(user: User, requested: Optional[str]) -> str:
    """
    Workspace onde um novo recurso será criado: o informado (validado depois
    por ensure_workspace_access) ou o do usuário.
    """
    workspace_id = requested or user.workspace_id
    if not workspace_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Workspace must be specified"
        )
    return workspace_id


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login por email e senha"""
    result = await db.execute(
        select(User).where(User.email == request.email)
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    # Atualiza último login
    user.last_login_at = datetime.utcnow()
    await db.commit()

    access_token = create_access_token(
        data={"sub": user.id, "email": user.email, "role": user.role}
    )

    return LoginResponse(
        access_token=access_token,
        token_type="bearer",
        user=user.to_dict()
    )


@router.get("/me")
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Retorna dados do usuário atual com o workspace"""
    data = user.to_dict()
    workspace = await db.get(Workspace, user.workspace_id) if user.workspace_id else None
    data["workspace"] = workspace.to_dict() if workspace else None
    data["is_admin"] = is_admin(user)
    return data


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Troca a senha do usuário atual"""
    if not verify_password(request.current_password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    user.hashed_password = get_password_hash(request.new_password)
    user.must_change_password = False
    await db.commit()

    logger.info(f"Senha alterada: {user.email}")
    return {"success": True}


@router.post("/setup")
async def initial_setup(
    request: Optional[SetupRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Setup inicial - cria o primeiro workspace e o SUPERADMIN se não existirem"""
    result = await db.execute(
        select(User).where(User.role == UserRole.SUPERADMIN.value).limit(1)
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup already completed"
        )

    request = request or SetupRequest()
    workspace = Workspace(name=request.workspace_name, slug=request.workspace_slug)
    db.add(workspace)
    await db.flush()

    email = request.email or settings.ADMIN_EMAIL
    admin = User(
        email=email,
        hashed_password=get_password_hash(request.password or settings.ADMIN_PASSWORD),
        name=request.name or "Administrator",
        role=UserRole.SUPERADMIN.value,
        workspace_id=workspace.id,
        must_change_password=request.password is None,
    )
    db.add(admin)
    await db.commit()

    logger.info(f"Setup inicial concluído: {email}")
    return {"message": "Setup completed", "email": email, "workspace_id": workspace.id}
