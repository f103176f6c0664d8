"""
Checklist Server - Template Service
Leitura da estrutura completa, criação aninhada e duplicação de templates
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Template,
    TemplateLevel,
    TemplateClassification,
    ScopeField,
    Section,
    Item,
    ItemCondition,
    Checklist,
    ItemType,
    TemplateStatus,
)
from app.schemas.template import TemplateCreate

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Cópia)"


class TemplateValidationError(ValueError):
    """Referência inválida na criação aninhada"""


class TemplateStructure:
    """Template com níveis, classificações, escopo, seções, itens e condições"""

    def __init__(self, template, levels, classifications, scope_fields, sections, items, conditions):
        self.template = template
        self.levels = levels
        self.classifications = classifications
        self.scope_fields = scope_fields
        self.sections = sections
        self.items_by_section: Dict[str, List[Item]] = {s.id: [] for s in sections}
        for item in items:
            self.items_by_section.setdefault(item.section_id, []).append(item)
        self.conditions_by_item: Dict[str, List[ItemCondition]] = {}
        for condition in conditions:
            self.conditions_by_item.setdefault(condition.item_id, []).append(condition)

    @property
    def items(self) -> List[Item]:
        return [item for s in self.sections for item in self.items_by_section.get(s.id, [])]

    @property
    def item_ids(self) -> set:
        return {item.id for item in self.items}

    def items_of_type(self, item_type: ItemType) -> List[Item]:
        return [item for item in self.items if item.type == item_type.value]

    def to_dict(self):
        data = self.template.to_dict()
        data["levels"] = [lv.to_dict() for lv in self.levels]
        data["classifications"] = [c.to_dict() for c in self.classifications]
        data["scope_fields"] = [sf.to_dict() for sf in self.scope_fields]
        data["sections"] = []
        for section in self.sections:
            section_data = section.to_dict()
            section_data["items"] = []
            for item in self.items_by_section.get(section.id, []):
                item_data = item.to_dict()
                item_data["conditions"] = [c.to_dict() for c in self.conditions_by_item.get(item.id, [])]
                section_data["items"].append(item_data)
            data["sections"].append(section_data)
        return data


async def load_template_structure(db: AsyncSession, template_id: str) -> Optional[TemplateStructure]:
    template = await db.get(Template, template_id)
    if template is None:
        return None

    async def _all(query):
        return list((await db.execute(query)).scalars().all())

    levels = await _all(
        select(TemplateLevel).where(TemplateLevel.template_id == template_id).order_by(TemplateLevel.order)
    )
    classifications = await _all(
        select(TemplateClassification)
        .where(TemplateClassification.template_id == template_id)
        .order_by(TemplateClassification.order)
    )
    scope_fields = await _all(
        select(ScopeField).where(ScopeField.template_id == template_id).order_by(ScopeField.order)
    )
    sections = await _all(
        select(Section).where(Section.template_id == template_id).order_by(Section.order)
    )
    section_ids = [s.id for s in sections]
    items = []
    conditions = []
    if section_ids:
        items = await _all(
            select(Item).where(Item.section_id.in_(section_ids)).order_by(Item.order)
        )
    if items:
        conditions = await _all(
            select(ItemCondition).where(ItemCondition.item_id.in_([i.id for i in items]))
        )

    return TemplateStructure(template, levels, classifications, scope_fields, sections, items, conditions)


def _pick(collection: list, index: Optional[int], label: str):
    if index is None:
        return None
    if index >= len(collection):
        raise TemplateValidationError(f"Invalid {label} index: {index}")
    return collection[index]


async def create_template(
    db: AsyncSession,
    data: TemplateCreate,
    workspace_id: str,
    created_by_id: Optional[str] = None,
) -> Template:
    """Cria o template e toda a estrutura aninhada (flush, sem commit)"""
    template = Template(
        workspace_id=workspace_id,
        name=data.name,
        folder=data.folder,
        status=TemplateStatus.ACTIVE.value,
        requires_producer_identification=data.requires_producer_identification,
        is_continuous=data.is_continuous,
        is_level_based=data.is_level_based,
        level_accumulative=data.level_accumulative,
        created_by_id=created_by_id,
    )
    db.add(template)
    await db.flush()

    levels = [TemplateLevel(template_id=template.id, name=lv.name, order=lv.order) for lv in data.levels]
    classifications = [
        TemplateClassification(
            template_id=template.id,
            name=c.name,
            code=c.code,
            order=c.order,
            required_percentage=c.required_percentage,
        )
        for c in data.classifications
    ]
    scope_fields = [
        ScopeField(
            template_id=template.id,
            name=sf.name,
            type=sf.type.value,
            options=sf.options,
            order=sf.order,
        )
        for sf in data.scope_fields
    ]
    db.add_all(levels + classifications + scope_fields)
    await db.flush()

    for section_in in data.sections:
        level = _pick(levels, section_in.level_index, "level")
        section = Section(
            template_id=template.id,
            name=section_in.name,
            order=section_in.order,
            iterate_over_fields=section_in.iterate_over_fields,
            level_id=level.id if level else None,
        )
        db.add(section)
        await db.flush()

        for item_in in section_in.items:
            classification = _pick(classifications, item_in.classification_index, "classification")
            blocks_level = _pick(levels, item_in.blocks_advancement_to_level_index, "level")
            item = Item(
                section_id=section.id,
                name=item_in.name,
                type=item_in.type.value,
                order=item_in.order,
                required=item_in.required,
                validity_control=item_in.validity_control,
                observation_enabled=item_in.observation_enabled,
                request_artifact=item_in.request_artifact,
                artifact_required=item_in.artifact_required,
                ask_for_quantity=item_in.ask_for_quantity,
                options=item_in.options,
                database_source=item_in.database_source,
                allow_na=item_in.allow_na,
                responsible=item_in.responsible,
                reference=item_in.reference,
                classification_id=classification.id if classification else None,
                blocks_advancement_to_level_id=blocks_level.id if blocks_level else None,
            )
            db.add(item)
            await db.flush()

            for cond_in in item_in.conditions:
                scope_field = _pick(scope_fields, cond_in.scope_field_index, "scope field")
                db.add(ItemCondition(
                    item_id=item.id,
                    scope_field_id=scope_field.id,
                    operator=cond_in.operator.value,
                    value=str(cond_in.value),
                    action=cond_in.action.value,
                ))

    await db.flush()
    logger.info(f"Template criado: {template.name} ({template.id})")
    return template


async def duplicate_template(db: AsyncSession, source: TemplateStructure, created_by_id: Optional[str] = None) -> Template:
    """Cópia profunda com todos os ids remapeados (flush, sem commit)"""
    original = source.template
    template = Template(
        workspace_id=original.workspace_id,
        name=f"{original.name}{COPY_SUFFIX}",
        folder=original.folder,
        status=TemplateStatus.ACTIVE.value,
        requires_producer_identification=original.requires_producer_identification,
        is_continuous=original.is_continuous,
        is_level_based=original.is_level_based,
        level_accumulative=original.level_accumulative,
        created_by_id=created_by_id,
    )
    db.add(template)
    await db.flush()

    level_map = {}
    for lv in source.levels:
        new = TemplateLevel(template_id=template.id, name=lv.name, order=lv.order)
        db.add(new)
        level_map[lv.id] = new

    classification_map = {}
    for c in source.classifications:
        new = TemplateClassification(
            template_id=template.id,
            name=c.name,
            code=c.code,
            order=c.order,
            required_percentage=c.required_percentage,
        )
        db.add(new)
        classification_map[c.id] = new

    scope_map = {}
    for sf in source.scope_fields:
        new = ScopeField(template_id=template.id, name=sf.name, type=sf.type, options=sf.options, order=sf.order)
        db.add(new)
        scope_map[sf.id] = new

    await db.flush()

    def _mapped_id(mapping: dict, old_id: Optional[str]) -> Optional[str]:
        return mapping[old_id].id if old_id in mapping else None

    for section in source.sections:
        new_section = Section(
            template_id=template.id,
            name=section.name,
            order=section.order,
            iterate_over_fields=section.iterate_over_fields,
            level_id=_mapped_id(level_map, section.level_id),
        )
        db.add(new_section)
        await db.flush()

        for item in source.items_by_section.get(section.id, []):
            new_item = Item(
                section_id=new_section.id,
                name=item.name,
                type=item.type,
                order=item.order,
                required=item.required,
                validity_control=item.validity_control,
                observation_enabled=item.observation_enabled,
                request_artifact=item.request_artifact,
                artifact_required=item.artifact_required,
                ask_for_quantity=item.ask_for_quantity,
                options=item.options,
                database_source=item.database_source,
                allow_na=item.allow_na,
                responsible=item.responsible,
                reference=item.reference,
                classification_id=_mapped_id(classification_map, item.classification_id),
                blocks_advancement_to_level_id=_mapped_id(level_map, item.blocks_advancement_to_level_id),
            )
            db.add(new_item)
            await db.flush()

            for condition in source.conditions_by_item.get(item.id, []):
                scope_id = _mapped_id(scope_map, condition.scope_field_id)
                if scope_id is None:
                    continue
                db.add(ItemCondition(
                    item_id=new_item.id,
                    scope_field_id=scope_id,
                    operator=condition.operator,
                    value=condition.value,
                    action=condition.action,
                ))

    await db.flush()
    logger.info(f"Template {original.id} duplicado como {template.id}")
    return template


async def delete_template(db: AsyncSession, structure: TemplateStructure) -> str:
    """
    Remove o template. Com checklists vinculados apenas inativa.

    Returns:
        "INACTIVE" ou "DELETED"
    """
    template = structure.template
    used = await db.scalar(select(func.count(Checklist.id)).where(Checklist.template_id == template.id))
    if used:
        template.status = TemplateStatus.INACTIVE.value
        logger.info(f"Template {template.id} inativado ({used} checklists)")
        return TemplateStatus.INACTIVE.value

    item_ids = [i.id for i in structure.items]
    if item_ids:
        await db.execute(delete(ItemCondition).where(ItemCondition.item_id.in_(item_ids)))
        await db.execute(delete(Item).where(Item.id.in_(item_ids)))
    await db.execute(delete(Section).where(Section.template_id == template.id))
    await db.execute(delete(ScopeField).where(ScopeField.template_id == template.id))
    await db.execute(delete(TemplateClassification).where(TemplateClassification.template_id == template.id))
    await db.execute(delete(TemplateLevel).where(TemplateLevel.template_id == template.id))
    await db.delete(template)
    logger.info(f"Template {template.id} removido")
    return "DELETED"
