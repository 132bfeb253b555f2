"""Certificate issuance, listing, verification and revocation.

Every lookup that takes an owner id filters on it in the query itself, so a
resource belonging to another customer is reported exactly like one that
does not exist.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from certissuer.config import settings
from certissuer.models.certificate import Certificate, CertificateStatus
from certissuer.models.template import Template
from certissuer.observability.metrics import CERTIFICATES_ISSUED, VERIFICATIONS
from certissuer.services.pdf_certificate import CertificateRenderer
from certissuer.services.signing import (
    CertificateSigner,
    canonical_payload,
    generate_certificate_number,
    make_verification_token,
)
from certissuer.services.storage import CertificateStorage

logger = logging.getLogger(__name__)


class IssuanceError(Exception):
    """Base class for issuance failures surfaced to API callers."""


class TemplateNotFoundError(IssuanceError):
    def __init__(self) -> None:
        super().__init__("Template not found")


class CertificateNotFoundError(IssuanceError):
    def __init__(self) -> None:
        super().__init__("Certificate not found")


class MissingFieldsError(IssuanceError):
    def __init__(self, missing_fields: list[str]):
        self.missing_fields = missing_fields
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")


class BatchValidationError(IssuanceError):
    def __init__(self) -> None:
        super().__init__("Certificates array is required")


class CertificateIssueError(IssuanceError):
    """Rendering or persistence failed after the certificate was signed."""


class InvalidSignatureError(IssuanceError):
    def __init__(self, certificate: Certificate):
        self.certificate = certificate
        super().__init__("Certificate signature is invalid")


@dataclass
class BatchOutcome:
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Batch generation completed. {len(self.results)} successful, "
            f"{len(self.errors)} failed"
        )


def missing_fields(template: Template, data: dict[str, Any]) -> list[str]:
    """Placeholders that are absent from ``data`` or hold a falsy value."""
    return [key for key in template.placeholders or [] if not data.get(key)]


def build_preview(template: Template, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "template_name": template.name,
        "data": data,
        "preview": True,
        "estimated_output": {
            "title": (template.content or {}).get("title"),
            "fields": [
                {"label": f.get("label"), "value": data.get(f.get("key"))}
                for f in template.fields
            ],
        },
    }


class CertificateIssuer:
    """Orchestrates signer, renderer and persistence."""

    def __init__(
        self,
        signer: CertificateSigner,
        renderer: CertificateRenderer,
        batch_concurrency: int = 8,
        number_attempts: int = 3,
    ):
        self.signer = signer
        self.renderer = renderer
        self.batch_concurrency = batch_concurrency
        self.number_attempts = number_attempts

    # ── lookups ──────────────────────────────────────────────────

    async def load_template(
        self, session: AsyncSession, template_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Template:
        template = await session.scalar(
            select(Template).where(
                Template.id == template_id, Template.customer_id == owner_id
            )
        )
        if template is None:
            raise TemplateNotFoundError()
        return template

    async def get_certificate(
        self, session: AsyncSession, certificate_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Certificate:
        certificate = await session.scalar(
            select(Certificate)
            .options(selectinload(Certificate.template))
            .where(
                Certificate.id == certificate_id,
                Certificate.customer_id == owner_id,
            )
        )
        if certificate is None:
            raise CertificateNotFoundError()
        return certificate

    async def list_certificates(
        self,
        session: AsyncSession,
        owner_id: uuid.UUID,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Certificate], dict[str, int]]:
        """Owner's certificates, newest first, with a pagination summary."""
        conditions = [Certificate.customer_id == owner_id]
        if status:
            conditions.append(Certificate.status == status)

        total = await session.scalar(
            select(func.count()).select_from(Certificate).where(*conditions)
        )
        rows = await session.scalars(
            select(Certificate)
            .options(selectinload(Certificate.template))
            .where(*conditions)
            .order_by(Certificate.created_at.desc(), Certificate.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = total or 0
        pagination = {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
        }
        return list(rows), pagination

    # ── issuance ─────────────────────────────────────────────────

    async def simulate(
        self,
        session: AsyncSession,
        template_id: uuid.UUID,
        data: dict[str, Any],
        owner_id: uuid.UUID,
    ) -> dict[str, Any]:
        """Validate and preview without rendering or persisting anything."""
        template = await self.load_template(session, template_id, owner_id)
        missing = missing_fields(template, data)
        if missing:
            raise MissingFieldsError(missing)
        return build_preview(template, data)

    async def generate(
        self,
        session: AsyncSession,
        template_id: uuid.UUID,
        data: dict[str, Any],
        owner_id: uuid.UUID,
        channel: str = "api",
    ) -> Certificate:
        template = await self.load_template(session, template_id, owner_id)
        missing = missing_fields(template, data)
        if missing:
            raise MissingFieldsError(missing)
        certificate = await self._issue(session, template, data, owner_id)
        CERTIFICATES_ISSUED.labels(channel).inc()
        return certificate

    async def batch_generate(
        self,
        session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        template_id: uuid.UUID,
        items: Any,
        owner_id: uuid.UUID,
    ) -> BatchOutcome:
        """Issue every item concurrently and report per-item outcomes.

        A failing item never cancels its siblings; the call returns once all
        of them have settled.
        """
        if not isinstance(items, list) or not items:
            raise BatchValidationError()
        template = await self.load_template(session, template_id, owner_id)
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def run(index: int, item: Any) -> tuple[int, Certificate | Exception]:
            async with semaphore:
                try:
                    if not isinstance(item, dict):
                        raise IssuanceError("Certificate data must be an object")
                    missing = missing_fields(template, item)
                    if missing:
                        raise MissingFieldsError(missing)
                    async with session_factory() as item_session:
                        certificate = await self._issue(
                            item_session, template, item, owner_id
                        )
                    return index, certificate
                except Exception as exc:
                    logger.warning("Batch item %d failed: %s", index, exc)
                    return index, exc

        settled = await asyncio.gather(
            *(run(index, item) for index, item in enumerate(items))
        )

        outcome = BatchOutcome()
        for index, result in sorted(settled, key=lambda pair: pair[0]):
            if isinstance(result, Exception):
                outcome.errors.append({"index": index, "error": str(result)})
            else:
                outcome.results.append(
                    {
                        "index": index,
                        "certificate_id": result.id,
                        "certificate_number": result.certificate_number,
                    }
                )
        CERTIFICATES_ISSUED.labels("batch").inc(len(outcome.results))
        logger.info(
            "Batch for template %s: %d issued, %d failed",
            template.id,
            len(outcome.results),
            len(outcome.errors),
        )
        return outcome

    async def _issue(
        self,
        session: AsyncSession,
        template: Template,
        data: dict[str, Any],
        owner_id: uuid.UUID,
    ) -> Certificate:
        """Mint, sign, render and persist one certificate.

        A number collision is retried with a fresh number; the file rendered
        for a row that failed to persist is removed.
        """
        # read once: a rollback below expires ``template``
        template_id = template.id
        content = dict(template.content or {})
        styling = template.styling
        storage = self.renderer.storage

        for attempt in range(1, self.number_attempts + 1):
            number = generate_certificate_number()
            if storage.exists(number):
                logger.warning("Number %s already rendered, retrying", number)
                continue
            signature = self.signer.sign(
                canonical_payload(template_id, data, number, owner_id)
            )
            token = make_verification_token(number, signature)

            try:
                file_path = await self.renderer.render(
                    content, styling, data, number, token
                )
            except Exception as exc:
                logger.exception("Rendering failed for %s", number)
                raise CertificateIssueError("Failed to render certificate") from exc

            certificate = Certificate(
                certificate_number=number,
                template_id=template_id,
                customer_id=owner_id,
                data=data,
                signature=signature,
                verification_token=token,
                file_path=str(file_path),
                status=CertificateStatus.GENERATED.value,
                issued_at=datetime.now(UTC),
            )
            session.add(certificate)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                self.renderer.storage.delete(number)
                if attempt < self.number_attempts:
                    logger.warning("Number collision on %s, retrying", number)
                    continue
                raise CertificateIssueError("Failed to persist certificate") from exc
            except Exception as exc:
                await session.rollback()
                self.renderer.storage.delete(number)
                logger.exception("Persisting %s failed", number)
                raise CertificateIssueError("Failed to persist certificate") from exc

            logger.info("Issued certificate %s", number)
            return certificate
        raise CertificateIssueError("Failed to persist certificate")

    # ── verification & revocation ────────────────────────────────

    async def verify(self, session: AsyncSession, token: str) -> Certificate:
        """Public lookup by token; the stored fields must still match the signature."""
        certificate = await session.scalar(
            select(Certificate)
            .options(selectinload(Certificate.template))
            .where(Certificate.verification_token == token)
        )
        if certificate is None:
            VERIFICATIONS.labels("not_found").inc()
            raise CertificateNotFoundError()

        payload = canonical_payload(
            certificate.template_id,
            certificate.data,
            certificate.certificate_number,
            certificate.customer_id,
        )
        if not self.signer.verify(payload, certificate.signature):
            VERIFICATIONS.labels("invalid").inc()
            logger.warning(
                "Signature mismatch for certificate %s", certificate.certificate_number
            )
            raise InvalidSignatureError(certificate)
        VERIFICATIONS.labels("valid").inc()
        return certificate

    async def revoke(
        self, session: AsyncSession, certificate_id: uuid.UUID, owner_id: uuid.UUID
    ) -> Certificate:
        certificate = await self.get_certificate(session, certificate_id, owner_id)
        if certificate.is_revoked:
            return certificate
        certificate.status = CertificateStatus.REVOKED.value
        certificate.revoked_at = datetime.now(UTC)
        await session.commit()
        logger.info("Revoked certificate %s", certificate.certificate_number)
        return certificate


@lru_cache
def get_certificate_issuer() -> CertificateIssuer:
    """Process-wide issuer built from settings."""
    storage = CertificateStorage(Path(settings.certificates_dir))
    return CertificateIssuer(
        CertificateSigner(settings.resolved_signing_secret),
        CertificateRenderer(storage),
        batch_concurrency=settings.batch_concurrency,
        number_attempts=settings.certificate_number_attempts,
    )
