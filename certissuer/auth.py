"""Customer authentication: session JWTs for the UI, key/secret for the API.

Both dependencies resolve to a live ``Customer`` row and never distinguish
failure causes in their responses.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from fastapi_users import BaseUserManager, UUIDIDMixin
from fastapi_users.authentication import BearerTransport, JWTStrategy
from fastapi_users.jwt import generate_jwt
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certissuer.config import settings
from certissuer.database_async import get_async_session
from certissuer.models.customer import Customer

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid authentication token"
API_CREDENTIALS_REQUIRED = "API credentials required"
INVALID_API_CREDENTIALS = "Invalid API credentials"
TOKEN_AUDIENCE = ["certissuer:auth"]


class CustomerManager(UUIDIDMixin, BaseUserManager[Customer, uuid.UUID]):
    reset_password_token_secret = settings.secret_key
    verification_token_secret = settings.secret_key

    def __init__(self, user_db: SQLAlchemyUserDatabase[Customer, uuid.UUID]):
        super().__init__(user_db)

    def hash_secret(self, secret: str) -> str:
        """Hash an API secret exactly like a password."""
        return self.password_helper.hash(secret)

    def verify_secret(self, secret: str, hashed: str) -> bool:
        verified, _ = self.password_helper.verify_and_update(secret, hashed)
        return verified

    async def on_after_register(
        self, user: Customer, request: Request | None = None
    ) -> None:
        logger.info("Registered customer %s", user.id)


async def get_customer_db(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[SQLAlchemyUserDatabase[Customer, uuid.UUID], None]:
    yield SQLAlchemyUserDatabase(session, Customer)


async def get_customer_manager(
    customer_db: SQLAlchemyUserDatabase[Customer, uuid.UUID] = Depends(
        get_customer_db
    ),
) -> AsyncGenerator[CustomerManager, None]:
    yield CustomerManager(customer_db)


class CustomerJWTStrategy(JWTStrategy[Customer, uuid.UUID]):
    """JWT strategy whose tokens also carry the customer's email."""

    async def write_token(self, user: Customer) -> str:
        data = {"sub": str(user.id), "email": user.email, "aud": self.token_audience}
        return generate_jwt(
            data, self.encode_key, self.lifetime_seconds, algorithm=self.algorithm
        )


def get_jwt_strategy() -> CustomerJWTStrategy:
    return CustomerJWTStrategy(
        secret=settings.secret_key,
        lifetime_seconds=settings.jwt_lifetime_seconds,
        token_audience=TOKEN_AUDIENCE,
    )


bearer_transport = BearerTransport(tokenUrl=f"{settings.api_prefix}/auth/login")
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
api_secret_header = APIKeyHeader(name="X-API-Secret", auto_error=False)


async def current_customer(
    token: str | None = Depends(bearer_transport.scheme),
    manager: CustomerManager = Depends(get_customer_manager),
    strategy: CustomerJWTStrategy = Depends(get_jwt_strategy),
) -> Customer:
    """Resolve the session token to an active customer.

    The token only claims an identity; the account is looked up again on
    every request so deactivation takes effect immediately.
    """
    customer = None
    if token:
        customer = await strategy.read_token(token, manager)
    if customer is None or not customer.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_TOKEN,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return customer


async def api_key_customer(
    api_key: str | None = Security(api_key_header),
    api_secret: str | None = Security(api_secret_header),
    session: AsyncSession = Depends(get_async_session),
    manager: CustomerManager = Depends(get_customer_manager),
) -> Customer:
    """Resolve ``X-API-Key``/``X-API-Secret`` to an active customer."""
    if not api_key or not api_secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=API_CREDENTIALS_REQUIRED,
        )
    customer = await session.scalar(select(Customer).where(Customer.api_key == api_key))
    if (
        customer is None
        or not customer.is_active
        or not manager.verify_secret(api_secret, customer.hashed_api_secret)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_API_CREDENTIALS,
        )
    return customer


async def current_superuser(customer: Customer = Depends(current_customer)) -> Customer:
    if not customer.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return customer
