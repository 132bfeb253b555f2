from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import JSON, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certissuer.database import Base
from certissuer.models import UTCDateTime, utcnow

if TYPE_CHECKING:
    from certissuer.models.customer import Customer
    from certissuer.models.template import Template


class CertificateStatus(str, Enum):
    """Certificate lifecycle states. ``revoked`` is terminal."""

    DRAFT = "draft"
    GENERATED = "generated"
    ISSUED = "issued"
    REVOKED = "revoked"


class Certificate(Base):
    """An issued certificate.

    ``signature`` is the HMAC over the canonical payload built from
    ``template_id``, ``data``, ``certificate_number`` and ``customer_id``;
    none of those columns change after creation.
    """

    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)
    certificate_number: Mapped[str] = mapped_column(
        String(64), unique=True, index=True
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        GUID, ForeignKey("templates.id", ondelete="RESTRICT"), index=True
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSON)
    signature: Mapped[str] = mapped_column(String(128), unique=True)
    verification_token: Mapped[str] = mapped_column(
        String(255), unique=True, index=True
    )
    file_path: Mapped[str | None] = mapped_column(String(1024), default=None)
    status: Mapped[str] = mapped_column(
        String(20),
        default=CertificateStatus.DRAFT.value,
        server_default=CertificateStatus.DRAFT.value,
        index=True,
    )
    issued_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, default=None
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, default=None
    )
    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    template: Mapped[Template] = relationship(back_populates="certificates")
    customer: Mapped[Customer] = relationship(back_populates="certificates")

    @property
    def is_revoked(self) -> bool:
        return self.status == CertificateStatus.REVOKED.value
