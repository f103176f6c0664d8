"""
Checklist Server - Template Models
Estrutura estática dos checklists: template -> seções -> itens,
mais campos de escopo, condições, níveis e classificações
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Text, JSON, Float

from app.database import Base
from app.models.enums import TemplateStatus, ItemType, ScopeFieldType, ConditionAction, ConditionOperator


def _new_id():
    return str(uuid.uuid4())


class Template(Base):
    """Modelo de Template de checklist"""
    __tablename__ = "templates"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    folder = Column(String(255))
    status = Column(String(20), default=TemplateStatus.ACTIVE.value)

    requires_producer_identification = Column(Boolean, default=True)
    is_continuous = Column(Boolean, default=False)
    is_level_based = Column(Boolean, default=False)
    level_accumulative = Column(Boolean, default=False)

    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "folder": self.folder,
            "status": self.status,
            "requires_producer_identification": self.requires_producer_identification,
            "is_continuous": self.is_continuous,
            "is_level_based": self.is_level_based,
            "level_accumulative": self.level_accumulative,
            "created_by_id": self.created_by_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class TemplateLevel(Base):
    """Nível de certificação de um template"""
    __tablename__ = "template_levels"

    id = Column(String(36), primary_key=True, default=_new_id)
    template_id = Column(String(36), ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    order = Column(Integer, default=0)

    def to_dict(self):
        return {"id": self.id, "template_id": self.template_id, "name": self.name, "order": self.order}


class TemplateClassification(Base):
    """Classificação de itens com percentual mínimo de aprovação"""
    __tablename__ = "template_classifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    template_id = Column(String(36), ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50))
    order = Column(Integer, default=0)
    required_percentage = Column(Float, default=100.0)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "name": self.name,
            "code": self.code,
            "order": self.order,
            "required_percentage": self.required_percentage,
        }


class ScopeField(Base):
    """Pergunta de escopo do template"""
    __tablename__ = "scope_fields"

    id = Column(String(36), primary_key=True, default=_new_id)
    template_id = Column(String(36), ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(20), default=ScopeFieldType.TEXT.value)
    options = Column(JSON, default=list)
    order = Column(Integer, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "name": self.name,
            "type": self.type,
            "options": self.options or [],
            "order": self.order,
        }


class Section(Base):
    """Seção do template"""
    __tablename__ = "sections"

    id = Column(String(36), primary_key=True, default=_new_id)
    template_id = Column(String(36), ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    order = Column(Integer, default=0)
    iterate_over_fields = Column(Boolean, default=False)
    level_id = Column(String(36), ForeignKey("template_levels.id"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "name": self.name,
            "order": self.order,
            "iterate_over_fields": self.iterate_over_fields,
            "level_id": self.level_id,
        }


class Item(Base):
    """Item (pergunta) de uma seção"""
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=_new_id)
    section_id = Column(String(36), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(500), nullable=False)
    type = Column(String(30), default=ItemType.TEXT.value)
    order = Column(Integer, default=0)
    required = Column(Boolean, default=True)
    validity_control = Column(Boolean, default=False)
    observation_enabled = Column(Boolean, default=False)
    request_artifact = Column(Boolean, default=False)
    artifact_required = Column(Boolean, default=False)
    ask_for_quantity = Column(Boolean, default=False)
    options = Column(JSON, default=list)
    database_source = Column(String(100))
    allow_na = Column(Boolean, default=False)
    responsible = Column(String(255))
    reference = Column(Text)

    classification_id = Column(String(36), ForeignKey("template_classifications.id"), nullable=True)
    blocks_advancement_to_level_id = Column(String(36), ForeignKey("template_levels.id"), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "section_id": self.section_id,
            "name": self.name,
            "type": self.type,
            "order": self.order,
            "required": self.required,
            "validity_control": self.validity_control,
            "observation_enabled": self.observation_enabled,
            "request_artifact": self.request_artifact,
            "artifact_required": self.artifact_required,
            "ask_for_quantity": self.ask_for_quantity,
            "options": self.options or [],
            "database_source": self.database_source,
            "allow_na": self.allow_na,
            "responsible": self.responsible,
            "reference": self.reference,
            "classification_id": self.classification_id,
            "blocks_advancement_to_level_id": self.blocks_advancement_to_level_id,
        }


class ItemCondition(Base):
    """Condição que remove ou torna opcional um item conforme o escopo"""
    __tablename__ = "item_conditions"

    id = Column(String(36), primary_key=True, default=_new_id)
    item_id = Column(String(36), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    scope_field_id = Column(String(36), ForeignKey("scope_fields.id", ondelete="CASCADE"), nullable=False)
    operator = Column(String(5), default=ConditionOperator.EQ.value)
    value = Column(String(255), nullable=False)
    action = Column(String(10), default=ConditionAction.REMOVE.value)

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "scope_field_id": self.scope_field_id,
            "operator": self.operator,
            "value": self.value,
            "action": self.action,
        }
