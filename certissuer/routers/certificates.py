import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from certissuer.auth import api_key_customer, current_customer
from certissuer.database_async import get_async_session, get_session_factory
from certissuer.models.certificate import CertificateStatus
from certissuer.models.customer import Customer
from certissuer.schemas.certificate import (
    BatchRequest,
    BatchResponse,
    CertificateDetail,
    CertificateListResponse,
    CertificateRequest,
    GenerateResponse,
    RevokeResponse,
    SimulateResponse,
    VerifyResponse,
)
from certissuer.security import limiter
from certissuer.services.issuance import (
    BatchValidationError,
    CertificateIssueError,
    CertificateIssuer,
    CertificateNotFoundError,
    InvalidSignatureError,
    MissingFieldsError,
    TemplateNotFoundError,
    get_certificate_issuer,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/certificates", tags=["certificates"])


def _missing_fields_error(exc: MissingFieldsError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={
            "message": "Missing required fields",
            "missingFields": exc.missing_fields,
        },
    )


async def _generate(
    payload: CertificateRequest,
    session: AsyncSession,
    issuer: CertificateIssuer,
    customer: Customer,
    channel: str,
):
    try:
        certificate = await issuer.generate(
            session, payload.template_id, payload.data, customer.id, channel=channel
        )
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except MissingFieldsError as exc:
        raise _missing_fields_error(exc) from exc
    except CertificateIssueError as exc:
        raise HTTPException(
            status_code=500, detail="Failed to generate certificate"
        ) from exc
    return {"message": "Certificate generated successfully", "certificate": certificate}


# ── Public verification ─────────────────────────────────────────


@router.get("/verify/{verification_token}", response_model=VerifyResponse)
@limiter.limit("60/minute")
async def verify_certificate(
    request: Request,
    verification_token: str,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
):
    """Confirm a certificate is authentic. No credentials required."""
    try:
        certificate = await issuer.verify(session, verification_token)
    except CertificateNotFoundError as exc:
        return JSONResponse(
            {"valid": False, "detail": str(exc)},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except InvalidSignatureError as exc:
        return JSONResponse(
            {"valid": False, "detail": str(exc)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return {
        "valid": True,
        "certificate": {
            "certificate_number": certificate.certificate_number,
            "template_name": certificate.template.name,
            "issued_at": certificate.issued_at,
            "status": certificate.status,
            "data": certificate.data,
        },
    }


# ── UI routes (session token) ───────────────────────────────────


@router.post("/simulate", response_model=SimulateResponse)
async def simulate_certificate(
    payload: CertificateRequest,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    """Preview a certificate without rendering or saving it."""
    try:
        preview = await issuer.simulate(
            session, payload.template_id, payload.data, customer.id
        )
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except MissingFieldsError as exc:
        raise _missing_fields_error(exc) from exc
    return {"message": "Certificate simulation successful", "preview": preview}


@router.post(
    "/generate-ui",
    response_model=GenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_certificate_ui(
    payload: CertificateRequest,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    return await _generate(payload, session, issuer, customer, channel="ui")


@router.get("", response_model=CertificateListResponse)
async def list_certificates(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: CertificateStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    rows, pagination = await issuer.list_certificates(
        session,
        customer.id,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )
    return {"certificates": rows, "pagination": pagination}


@router.get("/{certificate_id}", response_model=CertificateDetail)
async def get_certificate(
    certificate_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    try:
        certificate = await issuer.get_certificate(
            session, certificate_id, customer.id
        )
    except CertificateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"certificate": certificate}


@router.get("/{certificate_id}/download", response_class=FileResponse)
async def download_certificate(
    certificate_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    try:
        certificate = await issuer.get_certificate(
            session, certificate_id, customer.id
        )
    except CertificateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not certificate.file_path or not Path(certificate.file_path).exists():
        raise HTTPException(status_code=404, detail="Certificate file not found")
    return FileResponse(
        certificate.file_path,
        media_type="application/pdf",
        filename=f"{certificate.certificate_number}.pdf",
    )


@router.put("/{certificate_id}/revoke", response_model=RevokeResponse)
async def revoke_certificate(
    certificate_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(current_customer),
):
    try:
        certificate = await issuer.revoke(session, certificate_id, customer.id)
    except CertificateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Certificate revoked successfully", "certificate": certificate}


# ── API routes (key/secret) ─────────────────────────────────────


@router.post(
    "/generate", response_model=GenerateResponse, status_code=status.HTTP_201_CREATED
)
async def generate_certificate(
    payload: CertificateRequest,
    session: AsyncSession = Depends(get_async_session),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(api_key_customer),
):
    return await _generate(payload, session, issuer, customer, channel="api")


@router.post(
    "/batch-generate",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def batch_generate_certificates(
    payload: BatchRequest,
    session: AsyncSession = Depends(get_async_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    issuer: CertificateIssuer = Depends(get_certificate_issuer),
    customer: Customer = Depends(api_key_customer),
):
    """Issue many certificates from one template.

    Partial success is a normal outcome: failed items are listed in
    ``errors`` next to the successful ``results``.
    """
    try:
        outcome = await issuer.batch_generate(
            session,
            session_factory,
            payload.template_id,
            payload.certificates,
            customer.id,
        )
    except BatchValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "message": outcome.message,
        "results": outcome.results,
        "errors": outcome.errors,
    }
