"""
Checklist Server - Status labels
Tabelas de exibição para status de checklist, tipo de checklist filho e status de resposta
"""
from app.models.enums import ChecklistStatus, ChecklistType, ResponseStatus

CHECKLIST_STATUS_LABELS = {
    ChecklistStatus.DRAFT.value: "Rascunho",
    ChecklistStatus.SENT.value: "Enviado",
    ChecklistStatus.IN_PROGRESS.value: "Respondendo",
    ChecklistStatus.PENDING_REVIEW.value: "Revisão Pendente",
    ChecklistStatus.APPROVED.value: "Aprovado",
    ChecklistStatus.REJECTED.value: "Rejeitado",
    ChecklistStatus.PARTIALLY_FINALIZED.value: "Finalizado Parcialmente",
    ChecklistStatus.FINALIZED.value: "Finalizado",
}

CHECKLIST_STATUS_VARIANTS = {
    ChecklistStatus.APPROVED.value: "bg-emerald-50 text-emerald-600 border-emerald-100",
    ChecklistStatus.REJECTED.value: "bg-red-50 text-red-600 border-red-100",
    ChecklistStatus.PENDING_REVIEW.value: "bg-amber-50 text-amber-600 border-amber-100",
    ChecklistStatus.IN_PROGRESS.value: "bg-indigo-50 text-indigo-600 border-indigo-100",
    ChecklistStatus.PARTIALLY_FINALIZED.value: "bg-violet-50 text-violet-600 border-violet-100",
    ChecklistStatus.FINALIZED.value: "bg-slate-100 text-slate-600 border-slate-200",
}
DEFAULT_STATUS_VARIANT = "bg-slate-50 text-slate-500 border-slate-100"

# Visão do produtor (portal)
PORTAL_STATUS_INFO = {
    ChecklistStatus.SENT.value: {"label": "Pendente", "class": "bg-amber-100 text-amber-700"},
    ChecklistStatus.IN_PROGRESS.value: {"label": "Em Preenchimento", "class": "bg-blue-100 text-blue-700"},
    ChecklistStatus.REJECTED.value: {"label": "Revisão Necessária", "class": "bg-red-100 text-red-700"},
    ChecklistStatus.PENDING_REVIEW.value: {"label": "Em Auditoria", "class": "bg-indigo-100 text-indigo-700"},
    ChecklistStatus.APPROVED.value: {"label": "Aprovado", "class": "bg-emerald-100 text-emerald-700"},
    ChecklistStatus.FINALIZED.value: {"label": "Finalizado", "class": "bg-slate-100 text-slate-700"},
    ChecklistStatus.PARTIALLY_FINALIZED.value: {"label": "Parcialmente Finalizado", "class": "bg-violet-100 text-violet-700"},
}

CHECKLIST_TYPE_LABELS = {
    ChecklistType.ORIGINAL.value: "Original",
    ChecklistType.CORRECTION.value: "Correção",
    ChecklistType.COMPLETION.value: "Complemento",
}

RESPONSE_STATUS_LABELS = {
    ResponseStatus.MISSING.value: "Faltante",
    ResponseStatus.PENDING_VERIFICATION.value: "Pendente de verificação",
    ResponseStatus.APPROVED.value: "Aprovado",
    ResponseStatus.REJECTED.value: "Reprovado",
}


def get_status_label(status: str) -> str:
    """Label de status do checklist; status desconhecido volta como veio"""
    return CHECKLIST_STATUS_LABELS.get(status, status)


def get_status_variant(status: str) -> str:
    return CHECKLIST_STATUS_VARIANTS.get(status, DEFAULT_STATUS_VARIANT)


def get_portal_status_info(status: str) -> dict:
    return PORTAL_STATUS_INFO.get(status, {"label": status, "class": "bg-gray-100 text-gray-700"})


def get_child_type_label(checklist_type: str) -> str:
    return CHECKLIST_TYPE_LABELS.get(checklist_type, CHECKLIST_TYPE_LABELS[ChecklistType.ORIGINAL.value])


def get_response_status_label(status: str) -> str:
    return RESPONSE_STATUS_LABELS.get(status, status)
