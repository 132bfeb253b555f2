"""Pydantic schemas for certificate templates."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from certissuer.schemas.common import CamelModel, Message


class _OpenModel(CamelModel):
    """Keeps unknown keys so templates can carry extra layout data."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="allow",
    )


class TemplateField(_OpenModel):
    key: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=255)
    type: str = "text"


class TemplateLayout(_OpenModel):
    orientation: Literal["portrait", "landscape"] | None = None
    font_size: float | None = Field(default=None, gt=0)
    font_family: str | None = None


class TemplateContent(_OpenModel):
    title: str | None = None
    fields: list[TemplateField] = Field(default_factory=list)
    layout: TemplateLayout | None = None

    def field_keys(self) -> list[str]:
        return [f.key for f in self.fields]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TemplateCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    content: TemplateContent
    placeholders: list[str] | None = None
    styling: dict[str, Any] | None = None


class TemplateUpdate(CamelModel):
    """Partial update; omitted fields keep their stored value."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    content: TemplateContent | None = None
    placeholders: list[str] | None = None
    styling: dict[str, Any] | None = None
    is_active: bool | None = None


class TemplateRead(CamelModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    name: str
    description: str | None = None
    content: dict[str, Any]
    placeholders: list[str]
    styling: dict[str, Any] | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TemplateResponse(Message):
    template: TemplateRead


class TemplateDetail(CamelModel):
    template: TemplateRead


class TemplateListResponse(CamelModel):
    templates: list[TemplateRead]
