"""
Checklist Server - Checklists API
Criação, revisão, finalização e consultas dos checklists
"""
import logging
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from app.database import get_db
from app.models import (
    User,
    Checklist,
    Response,
    Producer,
    Template,
    TemplateLevel,
    ItemType,
    ChecklistStatus,
    ChecklistType,
    ResponseStatus,
    GLOBAL_FIELD_ID,
)
from app.models.enums import PREFILL_SOURCE_STATUSES
from app.schemas import (
    ChecklistCreate,
    ChecklistStatusUpdate,
    PartialFinalizeRequest,
    ScopeAnswersUpdate,
    SendWhatsAppRequest,
    ReviewUpdateRequest,
)
from app.core import build_public_link
from app.core.status import get_status_label, get_status_variant, get_child_type_label, get_response_status_label
from app.core.whatsapp import WhatsAppError, build_checklist_message, send_whatsapp_message
from app.core.workspace_context import (
    get_accessible_workspace_ids,
    filter_by_workspace,
    has_workspace_access,
    is_admin,
)
from app.services.audit import record_audit
from app.services.map_sync import sync_property_map
from app.services.level_service import compute_level_achievement, global_response_status
from app.services.response_service import (
    InvalidResponseError,
    load_responses,
    upsert_response,
    review_values,
    review_audit_action,
)
from app.services.template_service import load_template_structure
from app.services.checklist_service import (
    ChecklistError,
    new_checklist,
    prefill_from_checklist,
    set_review_status,
    finalize_checklist as finalize_checklist_service,
    partial_finalize_checklist,
    effective_scope_answers,
    save_scope_answers,
    response_summary,
    producer_for,
)
from app.api.auth import get_reviewer, ensure_workspace_access, resolve_target_workspace
from app.api.producers import assigned_producer_ids, is_assigned

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checklists", tags=["Checklists"])


def checklist_error(e: ChecklistError) -> HTTPException:
    """Erro de regra de negócio como 400 (com os dados extras no corpo)"""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": e.message, **e.extra}
    )


async def get_accessible_checklist(db: AsyncSession, user: User, checklist_id: str) -> Checklist:
    checklist = await db.get(Checklist, checklist_id)
    if not checklist:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checklist not found"
        )
    await ensure_workspace_access(db, user, checklist.workspace_id)
    return checklist


async def _load_structure(db: AsyncSession, checklist: Checklist):
    structure = await load_template_structure(db, checklist.template_id)
    if structure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return structure


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_checklist(
    data: ChecklistCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Cria checklist já enviado (SENT), opcionalmente pré-preenchido"""
    workspace_id = resolve_target_workspace(user, data.workspace_id)
    await ensure_workspace_access(db, user, workspace_id)

    template = await db.get(Template, data.template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )

    if data.producer_id:
        producer = await db.get(Producer, data.producer_id)
        if not producer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Producer not found"
            )
        if not is_admin(user) and not is_assigned(producer, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: Not assigned to this producer"
            )

    if data.target_level_id:
        level = await db.get(TemplateLevel, data.target_level_id)
        if not level or level.template_id != template.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid targetLevelId"
            )

    checklist = new_checklist(
        workspace_id=workspace_id,
        template_id=template.id,
        producer_id=data.producer_id,
        created_by_id=user.id,
        sent_via=data.sent_via,
        sent_to=data.sent_to,
        target_level_id=data.target_level_id,
    )
    db.add(checklist)
    await db.flush()

    prefilled_count = 0
    if data.prefill_from_checklist_id:
        prefilled_count = await prefill_from_checklist(db, checklist, data.prefill_from_checklist_id)

    await db.commit()
    logger.info(f"Checklist criado: {checklist.id} (template {template.id})")

    return {
        "checklist": checklist.to_dict(),
        "link": build_public_link(checklist.public_token),
        "prefilled": bool(data.prefill_from_checklist_id),
        "prefilledCount": prefilled_count,
    }


@router.get("")
async def list_checklists(
    checklist_status: Optional[str] = Query(None, alias="status"),
    template_id: Optional[str] = Query(None, alias="templateId"),
    producer_search: Optional[str] = Query(None, alias="producer"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    subworkspace_id: Optional[str] = Query(None, alias="subworkspaceId"),
    scope: Optional[str] = Query(None, pattern="^(own|subworkspaces)$"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Lista checklists com filtros; supervisores veem apenas produtores designados"""
    if subworkspace_id:
        await ensure_workspace_access(db, user, subworkspace_id)
        workspace_ids = [subworkspace_id]
    else:
        workspace_ids = await get_accessible_workspace_ids(db, user, scope)

    query = (
        select(Checklist, Template.name, Producer.name, Producer.cpf)
        .join(Template, Template.id == Checklist.template_id)
        .outerjoin(Producer, Producer.id == Checklist.producer_id)
    )
    query = filter_by_workspace(query, Checklist.workspace_id, workspace_ids)

    if checklist_status:
        query = query.where(Checklist.status == checklist_status)
    if template_id:
        query = query.where(Checklist.template_id == template_id)
    if producer_search:
        pattern = f"%{producer_search}%"
        query = query.where(or_(Producer.name.ilike(pattern), Producer.cpf.ilike(pattern)))
    if date_from:
        query = query.where(Checklist.sent_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.where(Checklist.sent_at <= datetime.combine(date_to, time.max))

    if not is_admin(user):
        query = query.where(Checklist.producer_id.in_(assigned_producer_ids(user)))

    result = await db.execute(query.order_by(Checklist.created_at.desc()))
    rows = result.all()

    children = {}
    if rows:
        child_rows = await db.execute(
            select(Checklist)
            .where(Checklist.parent_id.in_([row[0].id for row in rows]))
            .order_by(Checklist.created_at.desc())
        )
        for child in child_rows.scalars().all():
            children.setdefault(child.parent_id, []).append({
                "id": child.id,
                "type": child.type,
                "type_label": get_child_type_label(child.type),
                "status": child.status,
                "public_token": child.public_token,
                "created_at": child.created_at.isoformat() if child.created_at else None,
            })

    data = []
    for checklist, template_name, producer_name, producer_cpf in rows:
        item = checklist.to_dict()
        item["template_name"] = template_name
        item["producer_name"] = producer_name
        item["producer_cpf"] = producer_cpf
        item["status_label"] = get_status_label(checklist.status)
        item["status_variant"] = get_status_variant(checklist.status)
        item["children"] = children.get(checklist.id, [])
        data.append(item)
    return data


@router.get("/available-for-prefill")
async def available_for_prefill(
    template_id: Optional[str] = Query(None, alias="templateId"),
    producer_id: Optional[str] = Query(None, alias="producerId"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Checklists originais concluídos com respostas aprovadas (últimos 20)"""
    if not template_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="templateId is required"
        )

    workspace_ids = await get_accessible_workspace_ids(db, user)
    approved_checklists = select(Response.checklist_id).where(Response.status == ResponseStatus.APPROVED.value)

    query = (
        select(Checklist, Producer.name)
        .outerjoin(Producer, Producer.id == Checklist.producer_id)
        .where(
            Checklist.template_id == template_id,
            Checklist.status.in_(PREFILL_SOURCE_STATUSES),
            Checklist.type == ChecklistType.ORIGINAL.value,
            Checklist.id.in_(approved_checklists),
        )
    )
    query = filter_by_workspace(query, Checklist.workspace_id, workspace_ids)
    if producer_id:
        query = query.where(Checklist.producer_id == producer_id)

    result = await db.execute(query.order_by(Checklist.finalized_at.desc()).limit(20))
    return [
        {
            "id": checklist.id,
            "status": checklist.status,
            "finalized_at": checklist.finalized_at.isoformat() if checklist.finalized_at else None,
            "created_at": checklist.created_at.isoformat() if checklist.created_at else None,
            "producer": {"id": checklist.producer_id, "name": producer_name} if checklist.producer_id else None,
        }
        for checklist, producer_name in result.all()
    ]


@router.get("/{checklist_id}")
async def get_checklist(
    checklist_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Checklist completo: template, respostas, escopo e resumo por status"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    structure = await _load_structure(db, checklist)
    responses = await load_responses(db, checklist.id)
    scope_answers = await effective_scope_answers(db, checklist)
    producer = await producer_for(db, checklist)

    child_rows = await db.execute(
        select(Checklist).where(Checklist.parent_id == checklist.id).order_by(Checklist.created_at)
    )

    data = checklist.to_dict()
    data["template"] = structure.to_dict()
    data["producer"] = producer.to_dict(include_maps=True) if producer else None
    data["responses"] = [
        dict(r.to_dict(), status_label=get_response_status_label(r.status)) for r in responses.values()
    ]
    data["scope_answers"] = [a.to_dict() for a in scope_answers]
    data["children"] = [c.to_dict() for c in child_rows.scalars().all()]
    data["response_summary"] = await response_summary(db, checklist.id)
    data["link"] = build_public_link(checklist.public_token)
    return data


@router.get("/{checklist_id}/responses-for-copy")
async def responses_for_copy(
    checklist_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Respostas aprovadas de um checklist concluído, para reaproveitamento"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    if checklist.status not in PREFILL_SOURCE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Checklist not found or not finalized"
        )

    template = await db.get(Template, checklist.template_id)
    producer = await producer_for(db, checklist)
    result = await db.execute(
        select(Response).where(
            Response.checklist_id == checklist.id,
            Response.status == ResponseStatus.APPROVED.value,
        )
    )

    return {
        "checklistId": checklist.id,
        "templateId": checklist.template_id,
        "templateName": template.name if template else None,
        "producerId": producer.id if producer else None,
        "producerName": producer.name if producer else None,
        "responses": [
            {
                "itemId": r.item_id,
                "fieldId": r.field_id,
                "answer": r.answer,
                "quantity": r.quantity,
                "observation": r.observation,
                "fileUrl": r.file_url,
                "validity": r.validity.isoformat() if r.validity else None,
            }
            for r in result.scalars().all()
        ],
    }


@router.put("/{checklist_id}/responses/{item_id}")
async def review_response(
    checklist_id: str,
    item_id: str,
    data: ReviewUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """
    Revisão de uma resposta pelo auditor (status, motivo de reprovação ou
    preenchimento interno). A auditoria e o mapa são gravados depois do commit.
    """
    checklist = await get_accessible_checklist(db, user, checklist_id)

    payload = data.model_dump(exclude_unset=True)
    field_id = payload.pop("field_id", None) or GLOBAL_FIELD_ID

    try:
        values = review_values(payload, user)
    except InvalidResponseError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    # Só itens do template do checklist
    structure = await _load_structure(db, checklist)
    item = next((i for i in structure.items if i.id == item_id), None)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown items: {item_id}"
        )

    template_name = structure.template.name
    workspace_id = checklist.workspace_id
    producer_id = checklist.producer_id

    response = await upsert_response(db, checklist.id, item_id, field_id, values)
    await db.commit()
    result = response.to_dict()

    await record_audit(
        db,
        review_audit_action(payload),
        user_id=user.id,
        workspace_id=workspace_id,
        checklist_id=checklist_id,
        details={
            "itemId": item_id,
            "fieldId": field_id,
            "status": result["status"],
            "rejectionReason": result["rejection_reason"],
        },
    )

    if item.type == ItemType.PROPERTY_MAP.value and payload.get("answer"):
        await sync_property_map(db, checklist_id, item_id, producer_id, template_name, payload["answer"])

    return result


@router.patch("/{checklist_id}/status")
async def update_checklist_status(
    checklist_id: str,
    data: ChecklistStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Aprovação ou reprovação manual do checklist"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    try:
        set_review_status(checklist, data.status)
    except ChecklistError as e:
        raise checklist_error(e)

    await db.commit()
    result = checklist.to_dict()

    await record_audit(
        db,
        f"CHECKLIST_{data.status}",
        user_id=user.id,
        workspace_id=result["workspace_id"],
        checklist_id=checklist_id,
    )
    return result


@router.post("/{checklist_id}/finalize")
async def finalize_checklist(
    checklist_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Finaliza o checklist (filhos sincronizam com o pai)"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    try:
        action = await finalize_checklist_service(db, checklist)
    except ChecklistError as e:
        raise checklist_error(e)

    await db.commit()
    result = checklist.to_dict()

    await record_audit(
        db,
        action,
        user_id=user.id,
        workspace_id=result["workspace_id"],
        checklist_id=checklist_id,
        details={"parentId": result["parent_id"]} if result["parent_id"] else None,
    )
    return {"success": True, "checklist": result}


@router.post("/{checklist_id}/partial-finalize")
async def partial_finalize(
    checklist_id: str,
    data: PartialFinalizeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Finalização parcial com criação opcional de checklists de correção e complemento"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    structure = await _load_structure(db, checklist)

    try:
        children = await partial_finalize_checklist(
            db,
            checklist,
            structure,
            create_correction=data.create_correction,
            create_completion=data.create_completion,
            user_id=user.id,
        )
    except ChecklistError as e:
        raise checklist_error(e)

    await db.commit()

    correction_id = children["correction"].id if children["correction"] else None
    completion_id = children["completion"].id if children["completion"] else None
    workspace_id = checklist.workspace_id

    await record_audit(
        db,
        "CHECKLIST_PARTIALLY_FINALIZED",
        user_id=user.id,
        workspace_id=workspace_id,
        checklist_id=checklist_id,
        details={"correctionId": correction_id, "completionId": completion_id},
    )

    return {
        "success": True,
        "checklistId": checklist_id,
        "childIds": [cid for cid in (correction_id, completion_id) if cid],
        "correctionId": correction_id,
        "completionId": completion_id,
        "generateActionPlan": data.generate_action_plan,
    }


@router.get("/{checklist_id}/scope-answers")
async def get_scope_answers(
    checklist_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    checklist = await get_accessible_checklist(db, user, checklist_id)
    answers = await effective_scope_answers(db, checklist)
    return [a.to_dict() for a in answers]


@router.put("/{checklist_id}/scope-answers")
async def update_scope_answers(
    checklist_id: str,
    data: ScopeAnswersUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Grava as respostas de escopo numa única transação"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    try:
        saved = await save_scope_answers(db, checklist, data.answers)
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )

    await db.commit()
    return [a.to_dict() for a in saved]


@router.get("/{checklist_id}/level-achievement")
async def level_achievement(
    checklist_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Nível de certificação alcançado e progresso por nível"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    structure = await _load_structure(db, checklist)
    if not structure.template.is_level_based:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Not a level-based checklist"
        )

    responses = await load_responses(db, checklist.id)
    scope_answers = await effective_scope_answers(db, checklist)

    achievement = compute_level_achievement(
        structure.levels,
        structure.classifications,
        structure.sections,
        structure.items_by_section,
        structure.conditions_by_item,
        global_response_status(responses.values()),
        {a.scope_field_id: a.value for a in scope_answers},
        accumulative=bool(structure.template.level_accumulative),
    )

    target = next((lv for lv in structure.levels if lv.id == checklist.target_level_id), None)
    achievement["checklistId"] = checklist.id
    achievement["targetLevel"] = {"id": target.id, "name": target.name, "order": target.order} if target else None
    return achievement


@router.post("/{checklist_id}/send-whatsapp")
async def send_whatsapp(
    checklist_id: str,
    data: Optional[SendWhatsAppRequest] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_reviewer)
):
    """Envia o link público ao produtor pela Evolution API"""
    checklist = await get_accessible_checklist(db, user, checklist_id)
    producer = await producer_for(db, checklist)
    if not producer or not producer.phone:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Produtor não possui telefone cadastrado."
        )

    template = await db.get(Template, checklist.template_id)
    language = data.language if data else "pt-BR"
    message = build_checklist_message(
        producer.name,
        template.name if template else "",
        build_public_link(checklist.public_token),
        language,
    )

    try:
        await send_whatsapp_message(producer.phone, message)
    except WhatsAppError as e:
        logger.error(f"Falha no envio por WhatsApp do checklist {checklist_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    checklist.sent_at = datetime.utcnow()
    checklist.sent_via = "WHATSAPP"
    checklist.sent_to = producer.phone
    if checklist.status == ChecklistStatus.DRAFT.value:
        checklist.status = ChecklistStatus.SENT.value
    await db.commit()

    logger.info(f"Checklist {checklist_id} enviado por WhatsApp para {producer.phone}")
    return {"success": True}
