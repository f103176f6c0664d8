"""
Checklist Server - Level achievement
Cálculo do nível de certificação alcançado por um checklist
"""
from typing import Dict, Iterable, List, Optional

from app.models.enums import ConditionAction, ConditionOperator, ResponseStatus, GLOBAL_FIELD_ID


def _to_number(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def condition_matches(condition, scope_value: Optional[str]) -> bool:
    """
    Avalia uma condição de item contra a resposta de escopo.
    Sem resposta de escopo a condição nunca casa.
    """
    if not scope_value:
        return False

    operator = condition.operator
    if operator == ConditionOperator.EQ.value:
        return scope_value == condition.value
    if operator == ConditionOperator.NEQ.value:
        return scope_value != condition.value

    left = _to_number(scope_value)
    right = _to_number(condition.value)
    if left is None or right is None:
        return False
    if operator == ConditionOperator.GT.value:
        return left > right
    if operator == ConditionOperator.LT.value:
        return left < right
    if operator == ConditionOperator.GTE.value:
        return left >= right
    if operator == ConditionOperator.LTE.value:
        return left <= right
    return False


def _has_matching(conditions: Iterable, scope_answers: Dict[str, str], action: ConditionAction) -> bool:
    return any(
        c.action == action.value and condition_matches(c, scope_answers.get(c.scope_field_id))
        for c in conditions
    )


def is_item_active(conditions: Iterable, scope_answers: Dict[str, str]) -> bool:
    """Item removido por uma condição REMOVE que casa"""
    return not _has_matching(conditions, scope_answers, ConditionAction.REMOVE)


def is_item_optional(conditions: Iterable, scope_answers: Dict[str, str]) -> bool:
    return _has_matching(conditions, scope_answers, ConditionAction.OPTIONAL)


def compute_level_achievement(
    levels: List,
    classifications: List,
    sections: List,
    items_by_section: Dict[str, List],
    conditions_by_item: Dict[str, List],
    response_status: Dict[str, str],
    scope_answers: Dict[str, str],
    accumulative: bool = False,
) -> dict:
    """
    Progresso por nível e maior nível alcançado.

    ``response_status`` mapeia item_id -> status da resposta global (``__global__``).
    Um nível é alcançado quando todas as classificações atingem o percentual
    mínimo, todos os itens obrigatórios sem classificação estão aprovados e
    nenhum item bloqueia o nível.
    """
    levels = sorted(levels, key=lambda lv: lv.order or 0)
    classifications = sorted(classifications, key=lambda c: c.order or 0)
    level_order = {lv.id: lv.order or 0 for lv in levels}

    def approved(item) -> bool:
        return response_status.get(item.id) == ResponseStatus.APPROVED.value

    def required(item) -> bool:
        return bool(item.required) and not is_item_optional(conditions_by_item.get(item.id, []), scope_answers)

    progress = []
    for level in levels:
        current_order = level.order or 0
        level_sections = [
            s for s in sections
            if not s.level_id
            or (accumulative and level_order.get(s.level_id, current_order + 1) <= current_order)
            or (not accumulative and s.level_id == level.id)
        ]
        items = [
            item
            for s in level_sections
            for item in items_by_section.get(s.id, [])
            if is_item_active(conditions_by_item.get(item.id, []), scope_answers)
        ]

        blocked_by = []
        for item in items:
            block_level = item.blocks_advancement_to_level_id
            if block_level in level_order and level_order[block_level] <= current_order and not approved(item):
                blocked_by.append(item.name)

        class_progress = []
        for cls in classifications:
            cls_required = [it for it in items if it.classification_id == cls.id and required(it)]
            cls_approved = [it for it in cls_required if approved(it)]
            percentage = 100.0 if not cls_required else len(cls_approved) / len(cls_required) * 100
            class_progress.append({
                "classificationId": cls.id,
                "classificationName": cls.name,
                "classificationCode": cls.code,
                "requiredPercentage": cls.required_percentage,
                "totalItems": len(cls_required),
                "approvedItems": len(cls_approved),
                "achieved": percentage >= (cls.required_percentage or 0),
            })

        uncategorized = [it for it in items if not it.classification_id and required(it)]
        uncategorized_approved = [it for it in uncategorized if approved(it)]

        progress.append({
            "levelId": level.id,
            "levelName": level.name,
            "levelOrder": level.order,
            "achieved": (
                all(cp["achieved"] for cp in class_progress)
                and len(uncategorized_approved) == len(uncategorized)
                and not blocked_by
            ),
            "blocked": bool(blocked_by),
            "blockedByItems": blocked_by,
            "totalItems": sum(cp["totalItems"] for cp in class_progress) + len(uncategorized),
            "approvedItems": sum(cp["approvedItems"] for cp in class_progress) + len(uncategorized_approved),
            "classificationProgress": class_progress,
        })

    achieved = next((lp for lp in reversed(progress) if lp["achieved"]), None)
    return {
        "achievedLevel": {
            "id": achieved["levelId"],
            "name": achieved["levelName"],
            "order": achieved["levelOrder"],
        } if achieved else None,
        "levelProgress": progress,
    }


def global_response_status(responses: Iterable) -> Dict[str, str]:
    return {r.item_id: r.status for r in responses if r.field_id == GLOBAL_FIELD_ID}
