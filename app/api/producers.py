"""
Checklist Server - Producers API
Produtores rurais do workspace
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, func

from app.database import get_db
from app.models import User, UserRole, Producer, Checklist, producer_supervisors
from app.schemas import ProducerCreate, ProducerUpdate
from app.core.workspace_context import get_accessible_workspace_ids, filter_by_workspace, is_admin
from app.api.auth import get_reviewer, ensure_workspace_access, resolve_target_workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/producers", tags=["Producers"])


def assigned_producer_ids(user: User):
    """Subquery dos produtores designados ao supervisor"""
    return select(producer_supervisors.c.producer_id).where(producer_supervisors.c.user_id == user.id)


def is_assigned(producer: Producer, user: User) -> bool:
    return any(s.id == user.id for s in producer.assigned_supervisors)


async def get_accessible_producer(db: AsyncSession, user: User, producer_id: str) -> Producer:
    """Produtor visível para o usuário (404 se não existe, 403 se fora do escopo)"""
    producer = await db.get(Producer, producer_id)
    if not producer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Producer not found"
        )
    await ensure_workspace_access(db, user, producer.workspace_id)
    if not is_admin(user) and not is_assigned(producer, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Not assigned to this producer"
        )
    return producer


async def _load_supervisors(db: AsyncSession, supervisor_ids, workspace_id: str):
    if not supervisor_ids:
        return []
    result = await db.execute(select(User).where(User.id.in_(supervisor_ids)))
    supervisors = list(result.scalars().all())
    if len(supervisors) != len(set(supervisor_ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid supervisorIds"
        )
    return supervisors


async def _ensure_unique_cpf(db: AsyncSession, workspace_id: str, cpf: Optional[str], exclude_id: Optional[str] = None):
    if not cpf:
        return
    query = select(Producer.id).where(Producer.workspace_id == workspace_id, Producer.cpf == cpf)
    if exclude_id:
        query = query.where(Producer.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CPF already registered in this workspace"
        )


@router.get("")
async def list_producers(
    search: Optional[str] = None,
    scope: Optional[str] = Query(None, pattern="^(own|subworkspaces)$"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Lista produtores (supervisores veem apenas os designados)"""
    workspace_ids = await get_accessible_workspace_ids(db, user, scope)
    query = filter_by_workspace(select(Producer), Producer.workspace_id, workspace_ids)

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Producer.name.ilike(pattern),
            Producer.cpf.ilike(pattern),
            Producer.email.ilike(pattern),
        ))

    if not is_admin(user):
        query = query.where(Producer.id.in_(assigned_producer_ids(user)))

    result = await db.execute(query.order_by(Producer.name))
    producers = list(result.scalars().all())

    counts = {}
    if producers:
        rows = await db.execute(
            select(Checklist.producer_id, func.count(Checklist.id))
            .where(Checklist.producer_id.in_([p.id for p in producers]))
            .group_by(Checklist.producer_id)
        )
        counts = dict(rows.all())

    data = []
    for producer in producers:
        item = producer.to_dict()
        item["checklists_count"] = counts.get(producer.id, 0)
        data.append(item)
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_producer(
    data: ProducerCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Cria produtor; supervisor que cria fica designado automaticamente"""
    if data.country_code == "BR" and not data.cpf:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CPF is required for Brazilian producers"
        )

    workspace_id = resolve_target_workspace(user, data.workspace_id)
    await ensure_workspace_access(db, user, workspace_id)
    await _ensure_unique_cpf(db, workspace_id, data.cpf)

    supervisors = await _load_supervisors(db, data.supervisor_ids if is_admin(user) else None, workspace_id)
    if user.role == UserRole.SUPERVISOR.value and all(s.id != user.id for s in supervisors):
        supervisors.append(user)

    producer = Producer(
        workspace_id=workspace_id,
        name=data.name,
        country_code=data.country_code,
        cpf=data.cpf,
        email=data.email,
        phone=data.phone,
        city=data.city,
        state=data.state,
        assigned_supervisors=supervisors,
        maps=[],
    )
    db.add(producer)
    await db.commit()

    logger.info(f"Produtor criado: {producer.name} ({producer.id})")
    return producer.to_dict(include_maps=True)


@router.get("/{producer_id}")
async def get_producer(
    producer_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Produtor com mapas e checklists"""
    producer = await get_accessible_producer(db, user, producer_id)
    data = producer.to_dict(include_maps=True)

    result = await db.execute(
        select(Checklist)
        .where(Checklist.producer_id == producer.id)
        .order_by(Checklist.created_at.desc())
    )
    data["checklists"] = [c.to_dict() for c in result.scalars().all()]
    return data


@router.put("/{producer_id}")
async def update_producer(
    producer_id: str,
    data: ProducerUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    producer = await get_accessible_producer(db, user, producer_id)
    update_data = data.model_dump(exclude_unset=True)

    supervisor_ids = update_data.pop("supervisor_ids", None)
    if supervisor_ids is not None:
        if not is_admin(user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can change supervisors"
            )
        producer.assigned_supervisors = await _load_supervisors(db, supervisor_ids, producer.workspace_id)

    if update_data.get("cpf"):
        await _ensure_unique_cpf(db, producer.workspace_id, update_data["cpf"], exclude_id=producer.id)

    for field, value in update_data.items():
        setattr(producer, field, value)

    if producer.country_code == "BR" and not producer.cpf:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CPF is required for Brazilian producers"
        )

    await db.commit()
    return producer.to_dict(include_maps=True)


@router.delete("/{producer_id}")
async def delete_producer(
    producer_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    producer = await get_accessible_producer(db, user, producer_id)

    used = await db.scalar(select(func.count(Checklist.id)).where(Checklist.producer_id == producer.id))
    if used:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Producer has checklists and cannot be deleted"
        )

    await db.delete(producer)
    await db.commit()

    logger.info(f"Produtor removido: {producer.id}")
    return {"message": "Producer deleted", "id": producer.id}
