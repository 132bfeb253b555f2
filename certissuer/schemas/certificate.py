"""Pydantic schemas for certificate issuance and verification."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, Field

from certissuer.schemas.common import CamelModel, Message


class CertificateRequest(CamelModel):
    template_id: uuid.UUID
    data: dict[str, Any] = Field(default_factory=dict)


class BatchRequest(CamelModel):
    template_id: uuid.UUID
    # validated by the issuer so a non-list answers 400, not 422
    certificates: Any = None


class PreviewField(CamelModel):
    label: str | None = None
    value: Any = None


class EstimatedOutput(CamelModel):
    title: str | None = None
    fields: list[PreviewField]


class Preview(CamelModel):
    template_name: str
    data: dict[str, Any]
    preview: bool = True
    estimated_output: EstimatedOutput


class SimulateResponse(Message):
    preview: Preview


class IssuedCertificate(CamelModel):
    id: uuid.UUID
    certificate_number: str
    verification_token: str
    status: str
    issued_at: datetime | None = None


class GenerateResponse(Message):
    certificate: IssuedCertificate


class BatchResult(CamelModel):
    index: int
    certificate_id: uuid.UUID
    certificate_number: str


class BatchError(CamelModel):
    index: int
    error: str


class BatchResponse(Message):
    results: list[BatchResult]
    errors: list[BatchError]


class TemplateRef(CamelModel):
    id: uuid.UUID
    name: str
    description: str | None = None


class CertificateRead(CamelModel):
    id: uuid.UUID
    certificate_number: str
    template_id: uuid.UUID
    customer_id: uuid.UUID
    data: dict[str, Any]
    signature: str
    verification_token: str
    file_path: str | None = None
    status: str
    issued_at: datetime | None = None
    revoked_at: datetime | None = None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
    )
    template: TemplateRef | None = None
    created_at: datetime | None = None


class CertificateDetail(CamelModel):
    certificate: CertificateRead


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class CertificateListResponse(CamelModel):
    certificates: list[CertificateRead]
    pagination: Pagination


class VerifiedCertificate(CamelModel):
    certificate_number: str
    template_name: str
    issued_at: datetime | None = None
    status: str
    data: dict[str, Any]


class VerifyResponse(CamelModel):
    valid: bool
    certificate: VerifiedCertificate


class RevokedCertificate(CamelModel):
    id: uuid.UUID
    status: str
    revoked_at: datetime | None = None


class RevokeResponse(Message):
    certificate: RevokedCertificate
