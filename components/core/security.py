"""Security utilities for JWT handling and household permissions."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from jose import JWTError, jwt

from components.core.config import get_settings


class HouseholdPermission(str, Enum):
    """Household-scoped permissions for debt operations."""
    VIEW_DEBTS = "VIEW_DEBTS"
    CREATE_DEBTS = "CREATE_DEBTS"
    MANAGE_DEBTS = "MANAGE_DEBTS"
    DELETE_DEBTS = "DELETE_DEBTS"


@dataclass(frozen=True)
class HouseholdContext:
    """Caller identity resolved from an access token."""
    user_id: str
    household_id: str
    permissions: FrozenSet[HouseholdPermission] = field(default_factory=frozenset)

    def has_permission(self, permission: HouseholdPermission) -> bool:
        return permission in self.permissions


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a new JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Verify a JWT token and return its payload."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def parse_permissions(values: Iterable[str]) -> FrozenSet[HouseholdPermission]:
    """Map permission names to HouseholdPermission, ignoring unknown names."""
    known = {permission.value for permission in HouseholdPermission}
    return frozenset(HouseholdPermission(value) for value in values if value in known)


def context_from_payload(payload: dict) -> Optional[HouseholdContext]:
    """Build a HouseholdContext from token claims."""
    user_id = payload.get("sub")
    household_id = payload.get("household_id")
    if not user_id or not household_id:
        return None
    return HouseholdContext(
        user_id=str(user_id),
        household_id=str(household_id),
        permissions=parse_permissions(payload.get("permissions") or []),
    )
