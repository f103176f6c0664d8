from .enums import (
    UserRole,
    ChecklistStatus,
    ChecklistType,
    ResponseStatus,
    ItemType,
    TemplateStatus,
    ScopeFieldType,
    ConditionOperator,
    ConditionAction,
    GLOBAL_FIELD_ID,
)
from .workspace import Workspace
from .user import User, producer_supervisors
from .producer import Producer, PropertyMap
from .template import (
    Template,
    TemplateLevel,
    TemplateClassification,
    ScopeField,
    Section,
    Item,
    ItemCondition,
)
from .checklist import Checklist, Response, ScopeAnswer, Report, AuditLog

__all__ = [
    "UserRole",
    "ChecklistStatus",
    "ChecklistType",
    "ResponseStatus",
    "ItemType",
    "TemplateStatus",
    "ScopeFieldType",
    "ConditionOperator",
    "ConditionAction",
    "GLOBAL_FIELD_ID",
    "Workspace",
    "User",
    "producer_supervisors",
    "Producer",
    "PropertyMap",
    "Template",
    "TemplateLevel",
    "TemplateClassification",
    "ScopeField",
    "Section",
    "Item",
    "ItemCondition",
    "Checklist",
    "Response",
    "ScopeAnswer",
    "Report",
    "AuditLog",
]
