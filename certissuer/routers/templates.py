"""Template CRUD, scoped to the authenticated customer."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from certissuer.auth import current_customer
from certissuer.database_async import get_async_session
from certissuer.models.certificate import Certificate
from certissuer.models.customer import Customer
from certissuer.models.template import Template
from certissuer.schemas.common import Message
from certissuer.schemas.template import (
    TemplateCreate,
    TemplateDetail,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


async def _owned_template(
    session: AsyncSession, template_id: uuid.UUID, owner_id: uuid.UUID
) -> Template:
    template = await session.scalar(
        select(Template).where(
            Template.id == template_id, Template.customer_id == owner_id
        )
    )
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreate,
    session: AsyncSession = Depends(get_async_session),
    customer: Customer = Depends(current_customer),
):
    """Create a template.

    When ``placeholders`` is omitted it is derived from the content's field
    keys, in field order.
    """
    placeholders = payload.placeholders
    if placeholders is None:
        placeholders = payload.content.field_keys()
    template = Template(
        customer_id=customer.id,
        name=payload.name,
        description=payload.description,
        content=payload.content.to_document(),
        placeholders=placeholders,
        styling=payload.styling,
    )
    session.add(template)
    await session.commit()
    await session.refresh(template)
    logger.info("Customer %s created template %s", customer.id, template.id)
    return {"message": "Template created successfully", "template": template}


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    session: AsyncSession = Depends(get_async_session),
    customer: Customer = Depends(current_customer),
):
    rows = await session.scalars(
        select(Template)
        .where(Template.customer_id == customer.id)
        .order_by(Template.created_at.desc())
    )
    return {"templates": list(rows)}


@router.get("/{template_id}", response_model=TemplateDetail)
async def get_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    customer: Customer = Depends(current_customer),
):
    return {"template": await _owned_template(session, template_id, customer.id)}


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    payload: TemplateUpdate,
    session: AsyncSession = Depends(get_async_session),
    customer: Customer = Depends(current_customer),
):
    template = await _owned_template(session, template_id, customer.id)
    changes = payload.model_dump(exclude_unset=True)

    if payload.name:
        template.name = payload.name
    if "description" in changes:
        template.description = payload.description
    if payload.content is not None:
        template.content = payload.content.to_document()
    if payload.placeholders is not None:
        template.placeholders = payload.placeholders
    if payload.styling is not None:
        template.styling = payload.styling
    if payload.is_active is not None:
        template.is_active = payload.is_active

    await session.commit()
    await session.refresh(template)
    return {"message": "Template updated successfully", "template": template}


@router.delete("/{template_id}", response_model=Message)
async def delete_template(
    template_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    customer: Customer = Depends(current_customer),
):
    """Delete a template that no certificate references."""
    template = await _owned_template(session, template_id, customer.id)
    in_use = await session.scalar(
        select(exists().where(Certificate.template_id == template.id))
    )
    if in_use:
        raise HTTPException(
            status_code=400,
            detail="Template has issued certificates and cannot be deleted",
        )
    await session.delete(template)
    await session.commit()
    logger.info("Customer %s deleted template %s", customer.id, template_id)
    return {"message": "Template deleted successfully"}
