from __future__ import annotations

import uuid
from datetime import datetime

from fastapi_users import schemas
from pydantic import EmailStr, Field, field_validator

from certissuer.schemas.common import CamelModel, Message


def _strip_required(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


class CustomerCreate(schemas.BaseUserCreate):
    """Internal create payload handed to the customer manager."""

    company_name: str
    api_key: str
    hashed_api_secret: str
    contact_person: str | None = None
    phone: str | None = None


class RegisterRequest(CamelModel):
    company_name: str = Field(..., max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1)
    contact_person: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)

    @field_validator("company_name")
    @classmethod
    def validate_company_name(cls, value: str) -> str:
        return _strip_required(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class CustomerSummary(CamelModel):
    id: uuid.UUID
    company_name: str
    email: str
    api_key: str


class RegisteredCustomer(CustomerSummary):
    api_secret: str


class RegisterResponse(Message):
    customer: RegisteredCustomer
    token: str


class LoginResponse(Message):
    customer: CustomerSummary
    token: str


class CustomerRead(CamelModel):
    """Profile view; hashed password and secret are never included."""

    id: uuid.UUID
    company_name: str
    email: str
    api_key: str
    is_active: bool
    is_superuser: bool
    contact_person: str | None = None
    phone: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileResponse(CamelModel):
    customer: CustomerRead


class CustomerListResponse(CamelModel):
    customers: list[CustomerRead]


class CustomerUpdate(CamelModel):
    company_name: str | None = Field(default=None, max_length=255)
    contact_person: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None


class CustomerUpdateResponse(Message):
    customer: CustomerRead


class CredentialsResponse(Message):
    api_key: str
    api_secret: str
