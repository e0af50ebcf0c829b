"""Household access guard for debt endpoints.

Tokens are issued by the identity provider; this module only verifies them
and checks the caller's household permissions.
"""

from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from components.core.security import (
    HouseholdContext,
    HouseholdPermission,
    context_from_payload,
    verify_token,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


async def get_household_context(token: str = Depends(oauth2_scheme)) -> HouseholdContext:
    """Get the caller's household and permissions from the JWT token."""
    payload = verify_token(token)
    context = context_from_payload(payload) if payload is not None else None
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


def require_permission(permission: HouseholdPermission) -> Callable:
    """Dependency factory rejecting callers without ``permission``."""

    async def guard(context: HouseholdContext = Depends(get_household_context)) -> HouseholdContext:
        if not context.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission.value}",
            )
        return context

    return guard
