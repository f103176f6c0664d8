"""
Checklist Server - Auth & User Schemas
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class SetupRequest(BaseModel):
    """Setup inicial: primeiro workspace e SUPERADMIN (usa ADMIN_EMAIL/ADMIN_PASSWORD se omitidos)"""
    workspace_name: str = Field("Workspace Principal", min_length=2, max_length=255, alias="workspaceName")
    workspace_slug: str = Field("principal", min_length=2, max_length=100, alias="workspaceSlug")
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    name: Optional[str] = None

    class Config:
        populate_by_name = True


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., min_length=8, alias="newPassword")

    class Config:
        populate_by_name = True


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2, max_length=255)
    role: str = "SUPERVISOR"
    cpf: Optional[str] = Field(None, max_length=14)
    phone: Optional[str] = Field(None, max_length=20)
    workspace_id: Optional[str] = Field(None, alias="workspaceId")

    class Config:
        populate_by_name = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    role: Optional[str] = None
    cpf: Optional[str] = Field(None, max_length=14)
    phone: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = Field(None, alias="isActive")
    password: Optional[str] = Field(None, min_length=8)

    class Config:
        populate_by_name = True
