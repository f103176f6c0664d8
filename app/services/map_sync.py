"""
Checklist Server - Map sync
Cópia permanente dos mapas de talhões respondidos em checklists
"""
import json
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.geo import fill_field_areas
from app.models import PropertyMap

logger = logging.getLogger(__name__)


def map_id_for(checklist_id: str, item_id: str) -> str:
    return f"map-{checklist_id}-{item_id}"


def parse_map_answer(answer: Any) -> Optional[dict]:
    """Resposta de PROPERTY_MAP com ``fields``; qualquer outra coisa retorna None"""
    if isinstance(answer, str):
        try:
            answer = json.loads(answer)
        except ValueError:
            return None
    if isinstance(answer, dict) and answer.get("fields"):
        return answer
    return None


async def sync_property_map(
    db: AsyncSession,
    checklist_id: str,
    item_id: str,
    producer_id: Optional[str],
    template_name: Optional[str],
    answer: Any,
) -> bool:
    """
    Grava (ou atualiza) o mapa do produtor a partir da resposta.

    Roda em transação própria, depois do commit da operação principal.
    Best effort: erros são logados, a sessão é revertida e retorna False.
    """
    map_data = parse_map_answer(answer)
    if not map_data or not producer_id:
        return False

    map_id = map_id_for(checklist_id, item_id)
    try:
        values = {
            "fields": fill_field_areas(map_data["fields"]),
            "property_location": map_data.get("propertyLocation"),
            "city": map_data.get("city"),
            "state": map_data.get("state"),
        }

        property_map = await db.get(PropertyMap, map_id)
        if property_map is None:
            db.add(PropertyMap(
                id=map_id,
                producer_id=producer_id,
                name=f"Mapa do Checklist: {template_name or 'Geral'}",
                **values,
            ))
        else:
            for attr, value in values.items():
                setattr(property_map, attr, value)

        await db.commit()
        logger.info(f"Mapa {map_id} sincronizado para o produtor {producer_id}")
        return True
    except Exception as e:
        logger.error(f"Falha ao sincronizar mapa {map_id}: {e}")
        await db.rollback()
        return False
