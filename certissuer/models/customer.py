"""Customer accounts: companies that own templates and certificates."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTableUUID
from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from certissuer.database import Base
from certissuer.models import UTCDateTime, utcnow

if TYPE_CHECKING:
    from certissuer.models.certificate import Certificate
    from certissuer.models.template import Template


class Customer(SQLAlchemyBaseUserTableUUID, Base):
    """A registered company.

    ``hashed_password`` and ``hashed_api_secret`` are produced by the
    fastapi-users password helper; plaintext values never reach this table.
    ``api_key`` identifies API callers and is stored as-is.
    """

    __tablename__ = "customers"

    company_name: Mapped[str] = mapped_column(String(255), unique=True)
    api_key: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    hashed_api_secret: Mapped[str] = mapped_column(String(1024))
    contact_person: Mapped[str | None] = mapped_column(String(255), default=None)
    phone: Mapped[str | None] = mapped_column(String(64), default=None)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    templates: Mapped[list[Template]] = relationship(
        back_populates="customer", cascade="all, delete-orphan", passive_deletes=True
    )
    certificates: Mapped[list[Certificate]] = relationship(
        back_populates="customer", passive_deletes=True
    )
