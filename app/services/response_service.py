"""
Checklist Server - Response Service
Regras de escrita de respostas: normalização do payload do produtor,
trava de status REJECTED e atualização pelo revisor
"""
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Response, User
from app.models.enums import ResponseStatus, GLOBAL_FIELD_ID, REVIEWABLE_RESPONSE_STATUSES

logger = logging.getLogger(__name__)

SELECTED_FIELDS_KEY = "__selected_fields"
KEY_SEPARATOR = "::"

# Rótulos antigos do formulário
LEGACY_STATUS_LABELS = {
    "Pendente de verificação": ResponseStatus.PENDING_VERIFICATION.value,
    "Faltante": ResponseStatus.MISSING.value,
    "Aprovado": ResponseStatus.APPROVED.value,
    "Reprovado": ResponseStatus.REJECTED.value,
}

ResponseKey = Tuple[str, str]


class InvalidResponseError(ValueError):
    """Payload de resposta inválido (vira 400)"""


def sanitize_status(raw_status: Any) -> str:
    """Status do produtor: valor exato do enum ou rótulo antigo; o resto vira PENDING_VERIFICATION"""
    if raw_status in REVIEWABLE_RESPONSE_STATUSES:
        return raw_status
    return LEGACY_STATUS_LABELS.get(raw_status, ResponseStatus.PENDING_VERIFICATION.value)


def parse_response_key(key: str) -> ResponseKey:
    """``itemId`` ou ``itemId::fieldId``"""
    if KEY_SEPARATOR in key:
        item_id, field_id = key.split(KEY_SEPARATOR, 1)
        return item_id, field_id or GLOBAL_FIELD_ID
    return key, GLOBAL_FIELD_ID


def serialize_answer(answer: Any) -> str:
    """Objetos e listas são gravados como JSON; o resto como texto"""
    if isinstance(answer, (dict, list)):
        return json.dumps(answer, ensure_ascii=False)
    if answer is None or answer is False:
        return ""
    return str(answer)


def normalize_quantity(quantity: Any) -> Optional[str]:
    if quantity is None or quantity == "":
        return None
    return str(quantity)


def parse_validity(value: Any) -> Optional[date]:
    """Aceita data ISO (``2025-12-31``) ou datetime ISO"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidResponseError(f"Invalid validity date: {text}")


def resolve_submission_status(existing: Optional[Response], raw_answer: Any, serialized: str, requested: Any) -> str:
    """
    Status gravado numa submissão do produtor.

    Uma resposta REJECTED cuja resposta muda volta para PENDING_VERIFICATION,
    qualquer que seja o status enviado.
    """
    status = sanitize_status(requested)
    if (
        existing is not None
        and existing.status == ResponseStatus.REJECTED.value
        and raw_answer
        and serialized != (existing.answer or "")
    ):
        return ResponseStatus.PENDING_VERIFICATION.value
    return status


async def load_responses(db: AsyncSession, checklist_id: str) -> Dict[ResponseKey, Response]:
    result = await db.execute(select(Response).where(Response.checklist_id == checklist_id))
    return {(r.item_id, r.field_id): r for r in result.scalars().all()}


async def get_response(db: AsyncSession, checklist_id: str, item_id: str, field_id: str = GLOBAL_FIELD_ID) -> Optional[Response]:
    result = await db.execute(
        select(Response).where(
            Response.checklist_id == checklist_id,
            Response.item_id == item_id,
            Response.field_id == field_id,
        )
    )
    return result.scalar_one_or_none()


async def upsert_response(
    db: AsyncSession,
    checklist_id: str,
    item_id: str,
    field_id: str,
    values: dict,
    existing: Optional[Response] = None,
    lookup: bool = True,
) -> Response:
    """
    Grava a resposta pela chave (checklist, item, talhão): atualiza a linha
    existente ou cria uma nova. Única via de escrita de respostas.
    """
    field_id = field_id or GLOBAL_FIELD_ID
    if existing is None and lookup:
        existing = await get_response(db, checklist_id, item_id, field_id)

    if existing is not None:
        for attr, value in values.items():
            setattr(existing, attr, value)
        existing.updated_at = datetime.utcnow()
        return existing

    response = Response(checklist_id=checklist_id, item_id=item_id, field_id=field_id, **values)
    db.add(response)
    return response


def submission_values(entry: dict, existing: Optional[Response]) -> dict:
    """Campos gravados a partir de uma entrada do payload do produtor"""
    raw_answer = entry.get("answer")
    serialized = serialize_answer(raw_answer)
    return {
        "answer": serialized,
        "quantity": normalize_quantity(entry.get("quantity")),
        "observation": entry.get("observationValue") or None,
        "file_url": entry.get("fileUrl") or None,
        "validity": parse_validity(entry.get("validity")),
        "status": resolve_submission_status(existing, raw_answer, serialized, entry.get("status")),
    }


def iter_submission_entries(responses: Dict[str, Any]) -> Iterable[Tuple[str, str, dict]]:
    for key, entry in (responses or {}).items():
        if key == SELECTED_FIELDS_KEY:
            continue
        if not isinstance(entry, dict):
            raise InvalidResponseError(f"Invalid response entry for key: {key}")
        item_id, field_id = parse_response_key(key)
        yield item_id, field_id, entry


async def apply_submission(
    db: AsyncSession,
    checklist_id: str,
    responses: Dict[str, Any],
    valid_item_ids: Optional[set] = None,
) -> List[Response]:
    """
    Grava o lote de respostas do produtor (mesma transação da requisição).
    Todo o payload é validado antes de qualquer escrita.
    """
    entries = list(iter_submission_entries(responses))

    if valid_item_ids is not None:
        unknown = sorted({item_id for item_id, _, _ in entries if item_id not in valid_item_ids})
        if unknown:
            raise InvalidResponseError(f"Unknown items: {', '.join(unknown)}")

    current = await load_responses(db, checklist_id)
    prepared = []
    for item_id, field_id, entry in entries:
        existing = current.get((item_id, field_id))
        prepared.append((item_id, field_id, existing, submission_values(entry, existing)))

    saved = []
    for item_id, field_id, existing, values in prepared:
        row = await upsert_response(
            db, checklist_id, item_id, field_id, values,
            existing=current.get((item_id, field_id)),
            lookup=False,
        )
        current[(item_id, field_id)] = row
        saved.append(row)

    logger.info(f"Checklist {checklist_id}: {len(saved)} respostas gravadas")
    return saved


def review_values(payload: dict, user: User) -> dict:
    """
    Campos gravados pela atualização do revisor.

    ``payload`` contém apenas os campos enviados (exclude_unset).
    """
    status = payload.get("status")
    if status and status not in REVIEWABLE_RESPONSE_STATUSES:
        raise InvalidResponseError("Invalid status")

    values = {}
    if status:
        values["status"] = status
    if status == ResponseStatus.REJECTED.value:
        values["rejection_reason"] = payload.get("rejection_reason")
    if status == ResponseStatus.APPROVED.value:
        values["rejection_reason"] = None
        values["reviewed_at"] = datetime.utcnow()

    if payload.get("is_internal"):
        values["is_internal"] = True
        values["filled_by_id"] = user.id
        if "answer" in payload:
            values["answer"] = serialize_answer(payload["answer"])
        if "observation" in payload:
            values["observation"] = payload["observation"]
        if "quantity" in payload:
            values["quantity"] = normalize_quantity(payload["quantity"])
        if "file_url" in payload:
            values["file_url"] = payload["file_url"]
        if "validity" in payload:
            values["validity"] = parse_validity(payload["validity"])
        if not status:
            values["status"] = ResponseStatus.PENDING_VERIFICATION.value

    return values


def review_audit_action(payload: dict) -> str:
    if payload.get("is_internal"):
        return "INTERNAL_FILL"
    if payload.get("status"):
        return f"RESPONSE_{payload['status']}"
    return "RESPONSE_UPDATED"
