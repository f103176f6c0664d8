"""
Checklist Server - Template Schemas
Criação aninhada: itens referenciam níveis, classificações e campos de
escopo pela posição na lista enviada
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Any

from app.models.enums import ItemType, ScopeFieldType, ConditionOperator, ConditionAction


class LevelIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    order: int = 0


class ClassificationIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)
    order: int = 0
    required_percentage: float = Field(100.0, ge=0, le=100, alias="requiredPercentage")

    class Config:
        populate_by_name = True


class ScopeFieldIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: ScopeFieldType = ScopeFieldType.TEXT
    options: List[str] = []
    order: int = 0


class ConditionIn(BaseModel):
    scope_field_index: int = Field(..., ge=0, alias="scopeFieldIndex")
    operator: ConditionOperator = ConditionOperator.EQ
    value: Any
    action: ConditionAction = ConditionAction.REMOVE

    class Config:
        populate_by_name = True


class ItemIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    type: ItemType = ItemType.TEXT
    order: int = 0
    required: bool = True
    validity_control: bool = Field(False, alias="validityControl")
    observation_enabled: bool = Field(False, alias="observationEnabled")
    request_artifact: bool = Field(False, alias="requestArtifact")
    artifact_required: bool = Field(False, alias="artifactRequired")
    ask_for_quantity: bool = Field(False, alias="askForQuantity")
    options: List[str] = []
    database_source: Optional[str] = Field(None, alias="databaseSource")
    allow_na: bool = Field(False, alias="allowNA")
    responsible: Optional[str] = None
    reference: Optional[str] = None
    classification_index: Optional[int] = Field(None, ge=0, alias="classificationIndex")
    blocks_advancement_to_level_index: Optional[int] = Field(None, ge=0, alias="blocksAdvancementToLevelIndex")
    conditions: List[ConditionIn] = []

    class Config:
        populate_by_name = True


class SectionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    order: int = 0
    iterate_over_fields: bool = Field(False, alias="iterateOverFields")
    level_index: Optional[int] = Field(None, ge=0, alias="levelIndex")
    items: List[ItemIn] = []

    class Config:
        populate_by_name = True


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    folder: Optional[str] = Field(None, max_length=255)
    workspace_id: Optional[str] = Field(None, alias="workspaceId")
    requires_producer_identification: bool = Field(True, alias="requiresProducerIdentification")
    is_continuous: bool = Field(False, alias="isContinuous")
    is_level_based: bool = Field(False, alias="isLevelBased")
    level_accumulative: bool = Field(False, alias="levelAccumulative")
    levels: List[LevelIn] = []
    classifications: List[ClassificationIn] = []
    scope_fields: List[ScopeFieldIn] = Field([], alias="scopeFields")
    sections: List[SectionIn] = []

    class Config:
        populate_by_name = True


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    folder: Optional[str] = Field(None, max_length=255)
    status: Optional[str] = None
    requires_producer_identification: Optional[bool] = Field(None, alias="requiresProducerIdentification")
    is_continuous: Optional[bool] = Field(None, alias="isContinuous")
    is_level_based: Optional[bool] = Field(None, alias="isLevelBased")
    level_accumulative: Optional[bool] = Field(None, alias="levelAccumulative")

    class Config:
        populate_by_name = True
