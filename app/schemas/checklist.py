"""
Checklist Server - Checklist & Response Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class ChecklistCreate(BaseModel):
    template_id: str = Field(..., alias="templateId")
    producer_id: Optional[str] = Field(None, alias="producerId")
    workspace_id: Optional[str] = Field(None, alias="workspaceId")
    prefill_from_checklist_id: Optional[str] = Field(None, alias="prefillFromChecklistId")
    sent_via: Optional[str] = Field(None, max_length=20, alias="sentVia")
    sent_to: Optional[str] = Field(None, max_length=255, alias="sentTo")
    target_level_id: Optional[str] = Field(None, alias="targetLevelId")

    class Config:
        populate_by_name = True


class ChecklistStatusUpdate(BaseModel):
    status: str


class PartialFinalizeRequest(BaseModel):
    create_correction: bool = Field(False, alias="createCorrection")
    create_completion: bool = Field(False, alias="createCompletion")
    generate_action_plan: bool = Field(False, alias="generateActionPlan")

    class Config:
        populate_by_name = True


class ScopeAnswerIn(BaseModel):
    scope_field_id: str = Field(..., alias="scopeFieldId")
    value: Any = None

    class Config:
        populate_by_name = True


class ScopeAnswersUpdate(BaseModel):
    answers: List[ScopeAnswerIn]


class SendWhatsAppRequest(BaseModel):
    language: str = "pt-BR"


class SubmitRequest(BaseModel):
    """
    Respostas do produtor indexadas por ``itemId`` ou ``itemId::fieldId``.
    Cada valor aceita answer, quantity, observationValue, fileUrl, validity e status.
    """
    responses: Dict[str, Any] = {}


class ReviewUpdateRequest(BaseModel):
    status: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")
    answer: Any = None
    observation: Optional[str] = None
    quantity: Any = None
    file_url: Optional[str] = Field(None, alias="fileUrl")
    validity: Optional[str] = None
    is_internal: bool = Field(False, alias="isInternal")
    field_id: Optional[str] = Field(None, alias="fieldId")

    class Config:
        populate_by_name = True


class AIAnalyzeRequest(BaseModel):
    checklist_id: str = Field(..., alias="checklistId")
    item_id: str = Field(..., alias="itemId")
    field_id: Optional[str] = Field(None, alias="fieldId")
    answer: Any = None
    observation: Optional[str] = None
    language: str = "pt-BR"

    class Config:
        populate_by_name = True


class PresignRequest(BaseModel):
    workspace_id: str = Field(..., alias="workspaceId")
    checklist_id: str = Field(..., alias="checklistId")
    item_id: str = Field(..., alias="itemId")
    subworkspace_id: Optional[str] = Field(None, alias="subworkspaceId")
    field_id: Optional[str] = Field(None, alias="fieldId")
    filename: str = Field(..., min_length=1)
    content_type: str = Field(..., alias="contentType")

    class Config:
        populate_by_name = True
