"""
Checklist Server - Checklist Service
Ciclo de vida do checklist: criação (com pré-preenchimento), submissão,
finalização, finalização parcial com checklists filhos e escopo
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import generate_public_token
from app.models import (
    Checklist,
    Response,
    ScopeAnswer,
    Report,
    Producer,
    PropertyMap,
    ChecklistStatus,
    ChecklistType,
    ResponseStatus,
    GLOBAL_FIELD_ID,
)
from app.models.enums import (
    CLOSED_CHILD_STATUSES,
    EDITABLE_CHECKLIST_STATUSES,
    PREFILL_SOURCE_STATUSES,
)
from app.services.response_service import apply_submission, load_responses
from app.services.sync_service import sync_responses_to_parent
from app.services.template_service import TemplateStructure

logger = logging.getLogger(__name__)

# Status que o revisor define manualmente
MANUAL_REVIEW_STATUSES = {ChecklistStatus.APPROVED.value, ChecklistStatus.REJECTED.value}


class ChecklistError(Exception):
    """Erro de regra de negócio do checklist (vira 400)"""

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra


class ChecklistClosedError(ChecklistError):
    pass


class OpenChildrenError(ChecklistError):
    def __init__(self, open_children: List[dict]):
        super().__init__(
            "Não é possível finalizar: existem checklists filhos em aberto que precisam ser finalizados primeiro.",
            openChildren=open_children,
        )
        self.open_children = open_children


def new_checklist(
    workspace_id: str,
    template_id: str,
    producer_id: Optional[str] = None,
    created_by_id: Optional[str] = None,
    checklist_type: ChecklistType = ChecklistType.ORIGINAL,
    parent_id: Optional[str] = None,
    **extra,
) -> Checklist:
    """Checklist já enviado (SENT) com token público novo"""
    return Checklist(
        workspace_id=workspace_id,
        template_id=template_id,
        producer_id=producer_id,
        created_by_id=created_by_id,
        public_token=generate_public_token(),
        status=ChecklistStatus.SENT.value,
        sent_at=datetime.utcnow(),
        type=checklist_type.value,
        parent_id=parent_id,
        **extra,
    )


async def prefill_from_checklist(db: AsyncSession, checklist: Checklist, source_id: str) -> int:
    """
    Copia respostas APPROVED de um checklist anterior (mesmo template e
    workspace) como PENDING_VERIFICATION, além das respostas de escopo.

    Returns:
        Quantidade de respostas copiadas
    """
    result = await db.execute(
        select(Checklist).where(
            Checklist.id == source_id,
            Checklist.workspace_id == checklist.workspace_id,
            Checklist.template_id == checklist.template_id,
            Checklist.status.in_(PREFILL_SOURCE_STATUSES),
        )
    )
    source = result.scalar_one_or_none()
    if source is None:
        logger.warning(f"Checklist {source_id} não serve para pré-preenchimento de {checklist.id}")
        return 0

    approved = await db.execute(
        select(Response).where(
            Response.checklist_id == source.id,
            Response.status == ResponseStatus.APPROVED.value,
        )
    )
    copied = 0
    for resp in approved.scalars().all():
        db.add(Response(
            checklist_id=checklist.id,
            item_id=resp.item_id,
            field_id=resp.field_id,
            answer=resp.answer,
            quantity=resp.quantity,
            observation=resp.observation,
            file_url=resp.file_url,
            validity=resp.validity,
            status=ResponseStatus.PENDING_VERIFICATION.value,
        ))
        copied += 1

    scope = await db.execute(select(ScopeAnswer).where(ScopeAnswer.checklist_id == source.id))
    for answer in scope.scalars().all():
        db.add(ScopeAnswer(
            checklist_id=checklist.id,
            scope_field_id=answer.scope_field_id,
            value=answer.value,
        ))

    await db.flush()
    logger.info(f"Checklist {checklist.id} pré-preenchido com {copied} respostas de {source.id}")
    return copied


async def save_draft(db: AsyncSession, checklist: Checklist, responses: dict, valid_item_ids: Optional[set] = None) -> List[Response]:
    """Rascunho do produtor: só enquanto SENT/IN_PROGRESS; SENT passa a IN_PROGRESS"""
    if checklist.status not in EDITABLE_CHECKLIST_STATUSES:
        raise ChecklistClosedError("Checklist is closed for editing")

    saved = await apply_submission(db, checklist.id, responses, valid_item_ids)
    if checklist.status == ChecklistStatus.SENT.value:
        checklist.status = ChecklistStatus.IN_PROGRESS.value
    return saved


async def submit_checklist(db: AsyncSession, checklist: Checklist, responses: dict, valid_item_ids: Optional[set] = None) -> List[Response]:
    """Envio final do produtor: grava tudo e move para PENDING_REVIEW"""
    if checklist.status == ChecklistStatus.FINALIZED.value:
        raise ChecklistClosedError("Checklist is already finalized")

    saved = await apply_submission(db, checklist.id, responses, valid_item_ids)
    checklist.status = ChecklistStatus.PENDING_REVIEW.value
    checklist.submitted_at = datetime.utcnow()
    return saved


def set_review_status(checklist: Checklist, status: str) -> None:
    """Aprovação/reprovação manual do checklist inteiro"""
    if status not in MANUAL_REVIEW_STATUSES:
        raise ChecklistError("Invalid status")
    if checklist.status == ChecklistStatus.FINALIZED.value:
        raise ChecklistClosedError("Checklist is already finalized")
    checklist.status = status


async def list_open_children(db: AsyncSession, checklist_id: str) -> List[dict]:
    result = await db.execute(
        select(Checklist).where(
            Checklist.parent_id == checklist_id,
            Checklist.status.notin_(CLOSED_CHILD_STATUSES),
        )
    )
    return [{"id": c.id, "type": c.type, "status": c.status} for c in result.scalars().all()]


async def finalize_checklist(db: AsyncSession, checklist: Checklist) -> str:
    """
    Finaliza o checklist. Bloqueado enquanto houver filhos em aberto;
    um filho sincroniza suas respostas com o pai antes.

    Returns:
        Ação de auditoria correspondente
    """
    open_children = await list_open_children(db, checklist.id)
    if open_children:
        raise OpenChildrenError(open_children)

    if checklist.parent_id:
        responses = await load_responses(db, checklist.id)
        await sync_responses_to_parent(db, checklist.parent_id, responses.values())

    checklist.status = ChecklistStatus.FINALIZED.value
    checklist.finalized_at = datetime.utcnow()
    await db.flush()

    if checklist.parent_id:
        return "CHILD_CHECKLIST_FINALIZED_WITH_PARENT_SYNC"
    return "CHECKLIST_FINALIZED"


async def producer_field_ids(db: AsyncSession, producer_id: Optional[str]) -> List[str]:
    """Ids de talhão de todos os mapas do produtor, sem repetição e na ordem"""
    if not producer_id:
        return []
    result = await db.execute(select(PropertyMap).where(PropertyMap.producer_id == producer_id))
    field_ids = []
    for property_map in result.scalars().all():
        for field in property_map.fields or []:
            field_id = field.get("id") if isinstance(field, dict) else None
            if field_id and field_id not in field_ids:
                field_ids.append(field_id)
    return field_ids


def classify_pending_items(
    structure: TemplateStructure,
    responses: Dict[tuple, Response],
    field_ids: List[str],
):
    """
    Separa os itens que precisam de correção (REJECTED) dos que precisam de
    complemento (sem resposta, MISSING ou PENDING_VERIFICATION).
    Seções que iteram por talhão geram uma entrada por talhão do produtor.
    """
    corrections = []
    completions = []
    completion_statuses = {ResponseStatus.MISSING.value, ResponseStatus.PENDING_VERIFICATION.value}

    for section in structure.sections:
        keys = field_ids if section.iterate_over_fields and field_ids else [GLOBAL_FIELD_ID]
        for field_id in keys:
            for item in structure.items_by_section.get(section.id, []):
                resp = responses.get((item.id, field_id))
                if resp is None or resp.status in completion_statuses:
                    completions.append((item.id, field_id, resp))
                elif resp.status == ResponseStatus.REJECTED.value:
                    corrections.append((item.id, field_id, resp))

    return corrections, completions


async def _create_child(
    db: AsyncSession,
    parent: Checklist,
    checklist_type: ChecklistType,
    entries: list,
    user_id: Optional[str],
) -> Checklist:
    child = new_checklist(
        workspace_id=parent.workspace_id,
        template_id=parent.template_id,
        producer_id=parent.producer_id,
        created_by_id=user_id,
        checklist_type=checklist_type,
        parent_id=parent.id,
        target_level_id=parent.target_level_id,
    )
    db.add(child)
    await db.flush()

    for item_id, field_id, resp in entries:
        db.add(Response(
            checklist_id=child.id,
            item_id=item_id,
            field_id=field_id,
            status=ResponseStatus.MISSING.value,
            answer=resp.answer if resp else None,
            observation=resp.observation if resp else None,
            rejection_reason=resp.rejection_reason if resp and checklist_type == ChecklistType.CORRECTION else None,
        ))

    await db.flush()
    logger.info(f"Checklist filho {checklist_type.value} {child.id} criado a partir de {parent.id} ({len(entries)} itens)")
    return child


async def partial_finalize_checklist(
    db: AsyncSession,
    checklist: Checklist,
    structure: TemplateStructure,
    create_correction: bool = False,
    create_completion: bool = False,
    user_id: Optional[str] = None,
) -> Dict[str, Optional[Checklist]]:
    """
    Finalização parcial: salva um relatório, sincroniza com o pai (se filho),
    marca PARTIALLY_FINALIZED e cria os checklists de correção/complemento.
    """
    if checklist.status == ChecklistStatus.FINALIZED.value:
        raise ChecklistClosedError("Checklist is already finalized")

    responses = await load_responses(db, checklist.id)

    db.add(Report(
        checklist_id=checklist.id,
        created_by_id=user_id,
        data={"responses": [r.to_dict() for r in responses.values()]},
    ))

    if checklist.parent_id:
        await sync_responses_to_parent(db, checklist.parent_id, responses.values())

    checklist.status = ChecklistStatus.PARTIALLY_FINALIZED.value

    field_ids = await producer_field_ids(db, checklist.producer_id)
    corrections, completions = classify_pending_items(structure, responses, field_ids)

    children = {"correction": None, "completion": None}
    if create_correction and corrections:
        children["correction"] = await _create_child(db, checklist, ChecklistType.CORRECTION, corrections, user_id)
    if create_completion and completions:
        children["completion"] = await _create_child(db, checklist, ChecklistType.COMPLETION, completions, user_id)

    await db.flush()
    return children


async def effective_scope_answers(db: AsyncSession, checklist: Checklist) -> List[ScopeAnswer]:
    """Respostas de escopo valem as do pai para checklists filhos"""
    target_id = checklist.parent_id or checklist.id
    result = await db.execute(select(ScopeAnswer).where(ScopeAnswer.checklist_id == target_id))
    return list(result.scalars().all())


async def save_scope_answers(db: AsyncSession, checklist: Checklist, answers: list) -> List[ScopeAnswer]:
    """Upsert das respostas de escopo; filhos não podem editar"""
    if checklist.parent_id:
        raise PermissionError(
            "Cannot modify scope answers on child checklists. Edit the parent checklist instead."
        )

    result = await db.execute(select(ScopeAnswer).where(ScopeAnswer.checklist_id == checklist.id))
    current = {a.scope_field_id: a for a in result.scalars().all()}

    saved = []
    for answer in answers:
        value = None if answer.value is None else str(answer.value)
        row = current.get(answer.scope_field_id)
        if row is None:
            row = ScopeAnswer(checklist_id=checklist.id, scope_field_id=answer.scope_field_id, value=value)
            db.add(row)
            current[answer.scope_field_id] = row
        else:
            row.value = value
        saved.append(row)

    await db.flush()
    return saved


async def response_summary(db: AsyncSession, checklist_id: str) -> Dict[str, int]:
    """Contagem de respostas por status (somente leitura)"""
    result = await db.execute(
        select(Response.status, func.count(Response.id))
        .where(Response.checklist_id == checklist_id)
        .group_by(Response.status)
    )
    summary = {s.value: 0 for s in ResponseStatus}
    for status, count in result.all():
        summary[status] = count
    return summary


async def producer_for(db: AsyncSession, checklist: Checklist) -> Optional[Producer]:
    if not checklist.producer_id:
        return None
    return await db.get(Producer, checklist.producer_id)
