import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi_users.exceptions import (
    InvalidPasswordException,
    UserAlreadyExists,
    UserNotExists,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from certissuer.auth import (
    CustomerJWTStrategy,
    CustomerManager,
    current_customer,
    get_customer_manager,
    get_jwt_strategy,
)
from certissuer.database_async import get_async_session
from certissuer.models.customer import Customer
from certissuer.schemas.customer import (
    CustomerCreate,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisteredCustomer,
    RegisterRequest,
    RegisterResponse,
)
from certissuer.security import limiter
from certissuer.services.credentials import generate_api_credentials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid credentials"


@router.post(
    "/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED
)
@limiter.limit("10/minute")
async def register(
    request: Request,
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_async_session),
    manager: CustomerManager = Depends(get_customer_manager),
    strategy: CustomerJWTStrategy = Depends(get_jwt_strategy),
):
    """Register a company and hand out its API credentials.

    The plain API secret is part of this response only; afterwards just its
    hash is kept.
    """
    api_key, api_secret = generate_api_credentials()
    try:
        customer = await manager.create(
            CustomerCreate(
                email=payload.email,
                password=payload.password,
                company_name=payload.company_name,
                contact_person=payload.contact_person,
                phone=payload.phone,
                api_key=api_key,
                hashed_api_secret=manager.hash_secret(api_secret),
            ),
            safe=True,
            request=request,
        )
    except UserAlreadyExists as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Customer with this email already exists",
        ) from exc
    except InvalidPasswordException as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=exc.reason
        ) from exc
    except IntegrityError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Customer with this company name already exists",
        ) from exc

    token = await strategy.write_token(customer)
    return RegisterResponse(
        message="Customer registered successfully",
        customer=RegisteredCustomer(
            id=customer.id,
            company_name=customer.company_name,
            email=customer.email,
            api_key=customer.api_key,
            api_secret=api_secret,
        ),
        token=token,
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    manager: CustomerManager = Depends(get_customer_manager),
    strategy: CustomerJWTStrategy = Depends(get_jwt_strategy),
):
    try:
        customer = await manager.get_by_email(payload.email)
    except UserNotExists:
        # hash anyway so unknown emails cost the same as wrong passwords
        manager.password_helper.hash(payload.password)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        ) from None

    verified, _ = manager.password_helper.verify_and_update(
        payload.password, customer.hashed_password
    )
    if not verified:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    if not customer.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated"
        )

    token = await strategy.write_token(customer)
    logger.info("Customer %s logged in", customer.id)
    return {"message": "Login successful", "customer": customer, "token": token}


@router.get("/profile", response_model=ProfileResponse)
async def profile(customer: Customer = Depends(current_customer)):
    return {"customer": customer}
