"""Certificate templates owned by a customer."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certissuer.database import Base
from certissuer.models import UTCDateTime, utcnow

if TYPE_CHECKING:
    from certissuer.models.certificate import Certificate
    from certissuer.models.customer import Customer


class Template(Base):
    """Reusable certificate layout.

    ``content`` holds ``title``, an ordered list of ``fields``
    (``{"key", "label", "type"}``) and optional ``layout`` hints such as
    ``orientation``, ``fontSize`` and ``fontFamily``. ``placeholders`` lists
    the data keys a certificate must supply.
    """

    __tablename__ = "templates"

    id: Mapped[uuid.UUID] = mapped_column(GUID, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        GUID, ForeignKey("customers.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    content: Mapped[dict[str, Any]] = mapped_column(JSON)
    placeholders: Mapped[list[str]] = mapped_column(JSON, default=list)
    styling: Mapped[dict[str, Any] | None] = mapped_column(JSON, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    customer: Mapped[Customer] = relationship(back_populates="templates")
    certificates: Mapped[list[Certificate]] = relationship(
        back_populates="template", passive_deletes="all"
    )

    @property
    def fields(self) -> list[dict[str, Any]]:
        return list((self.content or {}).get("fields") or [])

    @property
    def layout(self) -> dict[str, Any]:
        return dict((self.content or {}).get("layout") or {})
