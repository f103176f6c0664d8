"""
Checklist Server - Workspace Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    slug: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9-]+$")
    cnpj: Optional[str] = Field(None, max_length=20)
    logo_url: Optional[str] = Field(None, max_length=500, alias="logoUrl")
    parent_workspace_id: Optional[str] = Field(None, alias="parentWorkspaceId")

    class Config:
        populate_by_name = True


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    cnpj: Optional[str] = Field(None, max_length=20)
    logo_url: Optional[str] = Field(None, max_length=500, alias="logoUrl")

    class Config:
        populate_by_name = True


class SubworkspaceToggle(BaseModel):
    has_subworkspaces: bool = Field(..., alias="hasSubworkspaces")

    class Config:
        populate_by_name = True
