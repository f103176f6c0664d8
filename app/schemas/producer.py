"""
Checklist Server - Producer Schemas
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
import re


def _only_digits(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    numbers = re.sub(r'\D', '', value)
    return numbers or None


class ProducerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    country_code: str = Field("BR", min_length=2, max_length=2, alias="countryCode")
    cpf: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=2)
    workspace_id: Optional[str] = Field(None, alias="workspaceId")
    supervisor_ids: Optional[List[str]] = Field(None, alias="supervisorIds")

    class Config:
        populate_by_name = True

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v):
        numbers = _only_digits(v)
        if numbers is not None and len(numbers) != 11:
            raise ValueError('CPF deve ter 11 dígitos')
        return numbers

    @field_validator('country_code')
    @classmethod
    def upper_country(cls, v):
        return v.upper()


class ProducerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2, alias="countryCode")
    cpf: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=2)
    supervisor_ids: Optional[List[str]] = Field(None, alias="supervisorIds")

    class Config:
        populate_by_name = True

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v):
        numbers = _only_digits(v)
        if numbers is not None and len(numbers) != 11:
            raise ValueError('CPF deve ter 11 dígitos')
        return numbers
