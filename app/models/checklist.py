"""
Checklist Server - Checklist Models
Instâncias de checklist, respostas, respostas de escopo, relatórios e auditoria
"""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, ForeignKey, Text, JSON, Float, UniqueConstraint,
)

from app.database import Base
from app.models.enums import ChecklistStatus, ChecklistType, ResponseStatus, GLOBAL_FIELD_ID


def _new_id():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class Checklist(Base):
    """Checklist enviado a um produtor"""
    __tablename__ = "checklists"

    id = Column(String(36), primary_key=True, default=_new_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("templates.id"), nullable=False, index=True)
    producer_id = Column(String(36), ForeignKey("producers.id"), nullable=True, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    public_token = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(30), default=ChecklistStatus.DRAFT.value, index=True)
    type = Column(String(20), default=ChecklistType.ORIGINAL.value)
    parent_id = Column(String(36), ForeignKey("checklists.id"), nullable=True, index=True)
    target_level_id = Column(String(36), ForeignKey("template_levels.id"), nullable=True)

    # Envio
    sent_at = Column(DateTime)
    sent_via = Column(String(20))
    sent_to = Column(String(255))

    submitted_at = Column(DateTime)
    finalized_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "template_id": self.template_id,
            "producer_id": self.producer_id,
            "created_by_id": self.created_by_id,
            "public_token": self.public_token,
            "status": self.status,
            "type": self.type,
            "parent_id": self.parent_id,
            "target_level_id": self.target_level_id,
            "sent_at": _iso(self.sent_at),
            "sent_via": self.sent_via,
            "sent_to": self.sent_to,
            "submitted_at": _iso(self.submitted_at),
            "finalized_at": _iso(self.finalized_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Response(Base):
    """Resposta de um item (uma linha por checklist/item/talhão)"""
    __tablename__ = "responses"
    __table_args__ = (
        UniqueConstraint("checklist_id", "item_id", "field_id", name="uq_response_checklist_item_field"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    checklist_id = Column(String(36), ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(String(36), ForeignKey("items.id"), nullable=False)
    field_id = Column(String(100), nullable=False, default=GLOBAL_FIELD_ID)

    answer = Column(Text)
    quantity = Column(String(50))
    observation = Column(Text)
    file_url = Column(String(1000))
    validity = Column(Date)

    status = Column(String(30), default=ResponseStatus.PENDING_VERIFICATION.value)
    rejection_reason = Column(Text)
    reviewed_at = Column(DateTime)

    # Preenchimento interno pelo auditor
    is_internal = Column(Boolean, default=False)
    filled_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Pré-análise por IA
    ai_flag = Column(String(30))
    ai_message = Column(Text)
    ai_confidence = Column(Float)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "checklist_id": self.checklist_id,
            "item_id": self.item_id,
            "field_id": self.field_id,
            "answer": self.answer,
            "quantity": self.quantity,
            "observation": self.observation,
            "file_url": self.file_url,
            "validity": _iso(self.validity),
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "reviewed_at": _iso(self.reviewed_at),
            "is_internal": bool(self.is_internal),
            "filled_by_id": self.filled_by_id,
            "ai_flag": self.ai_flag,
            "ai_message": self.ai_message,
            "ai_confidence": self.ai_confidence,
            "updated_at": _iso(self.updated_at),
        }


class ScopeAnswer(Base):
    """Resposta a um campo de escopo do template"""
    __tablename__ = "scope_answers"
    __table_args__ = (
        UniqueConstraint("checklist_id", "scope_field_id", name="uq_scope_answer_checklist_field"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    checklist_id = Column(String(36), ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    scope_field_id = Column(String(36), ForeignKey("scope_fields.id", ondelete="CASCADE"), nullable=False)
    value = Column(Text)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "checklist_id": self.checklist_id,
            "scope_field_id": self.scope_field_id,
            "value": self.value,
        }


class Report(Base):
    """Fotografia das respostas no momento da finalização parcial"""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=_new_id)
    checklist_id = Column(String(36), ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "checklist_id": self.checklist_id,
            "created_by_id": self.created_by_id,
            "data": self.data or {},
            "created_at": _iso(self.created_at),
        }


class AuditLog(Base):
    """Registro de auditoria das ações de revisão"""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=True, index=True)
    checklist_id = Column(String(36), ForeignKey("checklists.id", ondelete="CASCADE"), nullable=True, index=True)
    action = Column(String(100), nullable=False)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "workspace_id": self.workspace_id,
            "checklist_id": self.checklist_id,
            "action": self.action,
            "details": self.details or {},
            "created_at": _iso(self.created_at),
        }
