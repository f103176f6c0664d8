from .auth import (
    LoginRequest,
    LoginResponse,
    SetupRequest,
    ChangePasswordRequest,
    UserCreate,
    UserUpdate
)
from .workspace import WorkspaceCreate, WorkspaceUpdate, SubworkspaceToggle
from .producer import ProducerCreate, ProducerUpdate
from .template import TemplateCreate, TemplateUpdate
from .checklist import (
    ChecklistCreate,
    ChecklistStatusUpdate,
    PartialFinalizeRequest,
    ScopeAnswersUpdate,
    SendWhatsAppRequest,
    SubmitRequest,
    ReviewUpdateRequest,
    AIAnalyzeRequest,
    PresignRequest
)

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "SetupRequest",
    "ChangePasswordRequest",
    "UserCreate",
    "UserUpdate",
    "WorkspaceCreate",
    "WorkspaceUpdate",
    "SubworkspaceToggle",
    "ProducerCreate",
    "ProducerUpdate",
    "TemplateCreate",
    "TemplateUpdate",
    "ChecklistCreate",
    "ChecklistStatusUpdate",
    "PartialFinalizeRequest",
    "ScopeAnswersUpdate",
    "SendWhatsAppRequest",
    "SubmitRequest",
    "ReviewUpdateRequest",
    "AIAnalyzeRequest",
    "PresignRequest"
]
