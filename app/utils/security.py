"""
ISP Manager - Security Utilities

JWT token management for dashboard (admin) and customer portal sessions.

Customer portal tokens are signed with the same secret as admin tokens
but carry `type: customer`, so one can never be used in place of the
other.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.utils.error_handling import TokenExpiredException, TokenInvalidException


ACCESS_TOKEN_TYPE = "access"
CUSTOMER_TOKEN_TYPE = "customer"


def _encode(to_encode: dict) -> str:
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token for a dashboard user.

    Args:
        data: Token payload; must include `sub` and `tenant_id`
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "type": ACCESS_TOKEN_TYPE})
    return _encode(to_encode)


def create_customer_token(
    customer_id: Union[str, UUID],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed customer portal session token.

    Args:
        customer_id: Customer the session belongs to
        expires_delta: Optional custom lifetime (defaults to
            `customer_token_expire_days`)

    Returns:
        Encoded JWT token string
    """
    lifetime = expires_delta or timedelta(days=settings.customer_token_expire_days)
    to_encode = {
        "sub": str(customer_id),
        "type": CUSTOMER_TOKEN_TYPE,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return _encode(to_encode)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and verify a JWT token.

    Args:
        token: JWT token string

    Returns:
        Token payload dict or None if invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
        return payload
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[dict]:
    """
    Verify a dashboard access token and return payload.

    Returns:
        Token payload dict or None if invalid
    """
    payload = decode_token(token)
    if payload and payload.get("type") == ACCESS_TOKEN_TYPE:
        return payload
    return None


def verify_customer_token(token: str) -> dict:
    """
    Verify a customer portal token.

    Unlike the access token helpers this raises, because the portal
    reports "Token expired" and "Invalid token" differently.

    Raises:
        TokenExpiredException: signature valid but `exp` has passed
        TokenInvalidException: bad signature, malformed, or wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError as e:
        raise TokenExpiredException() from e
    except JWTError as e:
        raise TokenInvalidException() from e

    if payload.get("type") != CUSTOMER_TOKEN_TYPE or not payload.get("sub"):
        raise TokenInvalidException()
    return payload


def customer_id_from_token(token: str) -> UUID:
    """Verify a customer portal token and return the customer id."""
    payload = verify_customer_token(token)
    try:
        return UUID(str(payload["sub"]))
    except ValueError as e:
        raise TokenInvalidException() from e
