"""
Bearer-token authentication for the academy API.

Tokens are issued by the identity service and signed with the shared
JWT_SECRET (HS256). The payload carries ``customer_id`` and, for staff,
a ``role`` claim.
"""

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, Request

from academy.config import ADMIN_ROLES, get_jwt_secret
from academy.errors import ForbiddenError, UnauthorizedError

JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24


def create_jwt(customer_id: int, role: str | None = None) -> str:
    """
    Create a signed JWT token for a customer.

    Used by tests and local tooling; production tokens come from the
    identity service.
    """
    secret = get_jwt_secret()
    if not secret:
        raise ValueError("JWT_SECRET environment variable not set")

    now = datetime.now(timezone.utc)
    payload = {
        "customer_id": customer_id,
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    secret = get_jwt_secret()
    if not secret:
        raise ValueError("JWT_SECRET environment variable not set")

    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_customer(request: Request) -> dict:
    """
    FastAPI dependency to get the authenticated customer.

    Returns:
        {"customer_id": int, "role": str | None}

    Raises:
        UnauthorizedError: missing, invalid or expired token, or no customer_id
    """
    token = _bearer_token(request)
    if not token:
        raise UnauthorizedError()

    payload = verify_jwt(token)
    if not payload:
        raise UnauthorizedError("Invalid or expired token.")

    customer_id = payload.get("customer_id")
    if isinstance(customer_id, bool):
        customer_id = None
    try:
        customer_id = int(customer_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Token has no customer.")

    return {"customer_id": customer_id, "role": payload.get("role")}


async def require_admin(customer: dict = Depends(get_current_customer)) -> dict:
    """FastAPI dependency: authenticated and carrying an admin role."""
    if customer.get("role") not in ADMIN_ROLES:
        raise ForbiddenError()
    return customer
