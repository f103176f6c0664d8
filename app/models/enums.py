"""
Checklist Server - Enums
Conjuntos fechados de valores persistidos como string
"""
import enum


class UserRole(str, enum.Enum):
    """Papéis (hierarquia: SUPERADMIN > ADMIN > SUPERVISOR > PRODUCER)"""
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    PRODUCER = "PRODUCER"


class ChecklistStatus(str, enum.Enum):
    """Status do checklist"""
    DRAFT = "DRAFT"
    SENT = "SENT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PARTIALLY_FINALIZED = "PARTIALLY_FINALIZED"
    FINALIZED = "FINALIZED"


class ChecklistType(str, enum.Enum):
    """Tipo do checklist (filhos são CORRECTION/COMPLETION)"""
    ORIGINAL = "ORIGINAL"
    CORRECTION = "CORRECTION"
    COMPLETION = "COMPLETION"


class ResponseStatus(str, enum.Enum):
    """Status de revisão de uma resposta"""
    MISSING = "MISSING"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ItemType(str, enum.Enum):
    FILE = "FILE"
    TEXT = "TEXT"
    LONG_TEXT = "LONG_TEXT"
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    DATE = "DATE"
    PROPERTY_MAP = "PROPERTY_MAP"
    FIELD_SELECTOR = "FIELD_SELECTOR"
    DROPDOWN_SELECT = "DROPDOWN_SELECT"


class TemplateStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ScopeFieldType(str, enum.Enum):
    NUMBER = "NUMBER"
    YES_NO = "YES_NO"
    TEXT = "TEXT"
    SELECT = "SELECT"


class ConditionOperator(str, enum.Enum):
    EQ = "EQ"
    NEQ = "NEQ"
    GT = "GT"
    LT = "LT"
    GTE = "GTE"
    LTE = "LTE"


class ConditionAction(str, enum.Enum):
    REMOVE = "REMOVE"
    OPTIONAL = "OPTIONAL"


# Campo usado quando a resposta não pertence a um talhão específico
GLOBAL_FIELD_ID = "__global__"

# Status de resposta que o revisor pode atribuir
REVIEWABLE_RESPONSE_STATUSES = {s.value for s in ResponseStatus}

# Respostas de checklist filho que sobem para o pai
SYNCABLE_RESPONSE_STATUSES = {ResponseStatus.APPROVED.value, ResponseStatus.REJECTED.value}

# Filhos nestes status não bloqueiam a finalização do pai
CLOSED_CHILD_STATUSES = {ChecklistStatus.FINALIZED.value, ChecklistStatus.APPROVED.value}

# Checklists que podem servir de base para pré-preenchimento
PREFILL_SOURCE_STATUSES = {
    ChecklistStatus.APPROVED.value,
    ChecklistStatus.FINALIZED.value,
    ChecklistStatus.PARTIALLY_FINALIZED.value,
}

# Produtor só edita rascunho nestes status
EDITABLE_CHECKLIST_STATUSES = {ChecklistStatus.SENT.value, ChecklistStatus.IN_PROGRESS.value}
