"""
ISP Manager - FastAPI Dependencies

Shared dependencies for authentication:
1. Admin (dashboard) requests: tenant taken from the access token
2. Customer portal requests: customer taken from the signed portal token
"""

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.models.customer import Customer
from app.services.customer_portal_service import CustomerPortalService
from app.utils.error_handling import AuthenticationException
from app.utils.security import customer_id_from_token, verify_access_token


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


def _bearer_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials:
        return credentials.credentials
    # Fallback to cookie
    token = request.cookies.get("access_token")
    if token and token.startswith("Bearer "):
        token = token[7:]
    return token


async def get_current_token_payload(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Verify the dashboard access token.

    Token can be provided via:
    1. Authorization: Bearer <token> header
    2. access_token cookie

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    token = _bearer_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


async def get_current_tenant_id(payload: dict = Depends(get_current_token_payload)) -> uuid.UUID:
    """Tenant the authenticated admin acts for."""
    tenant_id = payload.get("tenant_id")
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return uuid.UUID(str(tenant_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid tenant ID in token",
        )


async def get_current_user_id(payload: dict = Depends(get_current_token_payload)) -> Optional[uuid.UUID]:
    """Admin user id, recorded as approver/processor where one is kept."""
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None


async def get_current_customer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_session),
) -> Customer:
    """
    Customer from a portal token.

    Raises:
        AuthenticationException: No bearer token ("Unauthorized")
        TokenExpiredException / TokenInvalidException: Bad token
        NotFoundException: The customer no longer exists
    """
    if not credentials:
        raise AuthenticationException()
    customer_id = customer_id_from_token(credentials.credentials)
    return await CustomerPortalService(db).get_customer(customer_id)
