"""Customer account management."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from certissuer.auth import (
    CustomerManager,
    current_customer,
    current_superuser,
    get_customer_manager,
)
from certissuer.database_async import get_async_session
from certissuer.models.customer import Customer
from certissuer.schemas.customer import (
    CredentialsResponse,
    CustomerListResponse,
    CustomerUpdate,
    CustomerUpdateResponse,
    ProfileResponse,
)
from certissuer.services.credentials import generate_api_credentials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])


async def _visible_customer(
    session: AsyncSession, customer_id: uuid.UUID, caller: Customer
) -> Customer:
    """Callers see themselves; superusers see everyone."""
    if customer_id != caller.id and not caller.is_superuser:
        raise HTTPException(status_code=404, detail="Customer not found")
    customer = await session.get(Customer, customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    session: AsyncSession = Depends(get_async_session),
    _: Customer = Depends(current_superuser),
):
    rows = await session.scalars(select(Customer).order_by(Customer.created_at))
    return {"customers": list(rows)}


@router.post("/regenerate-credentials", response_model=CredentialsResponse)
async def regenerate_credentials(
    session: AsyncSession = Depends(get_async_session),
    manager: CustomerManager = Depends(get_customer_manager),
    customer: Customer = Depends(current_customer),
):
    """Replace the caller's API key and secret; the old pair stops working."""
    api_key, api_secret = generate_api_credentials()
    customer.api_key = api_key
    customer.hashed_api_secret = manager.hash_secret(api_secret)
    await session.commit()
    logger.info("Customer %s regenerated API credentials", customer.id)
    return CredentialsResponse(
        message="API credentials regenerated successfully",
        api_key=api_key,
        api_secret=api_secret,
    )


@router.get("/{customer_id}", response_model=ProfileResponse)
async def get_customer(
    customer_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    caller: Customer = Depends(current_customer),
):
    return {"customer": await _visible_customer(session, customer_id, caller)}


@router.put("/{customer_id}", response_model=CustomerUpdateResponse)
async def update_customer(
    customer_id: uuid.UUID,
    payload: CustomerUpdate,
    session: AsyncSession = Depends(get_async_session),
    caller: Customer = Depends(current_customer),
):
    customer = await _visible_customer(session, customer_id, caller)
    if payload.is_active is not None and not caller.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )

    if payload.company_name:
        customer.company_name = payload.company_name
    if payload.contact_person:
        customer.contact_person = payload.contact_person
    if payload.phone:
        customer.phone = payload.phone
    if payload.is_active is not None:
        customer.is_active = payload.is_active

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=400, detail="Customer with this company name already exists"
        ) from exc
    await session.refresh(customer)
    return {"message": "Customer updated successfully", "customer": customer}
