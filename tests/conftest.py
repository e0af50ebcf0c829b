"""Pytest configuration and fixtures."""

from datetime import date
from typing import Callable, Iterable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from components.core.database import DatabaseManager
from components.core.money import to_cents
from components.core.security import HouseholdPermission, create_access_token
from components.debt.constants import DebtType
from components.debt.models import Debt, DebtPayment
from restapi.router import create_app

HOUSEHOLD_ID = "household-test-001"
OTHER_HOUSEHOLD_ID = "household-test-002"
ALL_PERMISSIONS = tuple(permission.value for permission in HouseholdPermission)


def build_debt(
    debt_type: DebtType = DebtType.CONVENTIONAL,
    principal: float = 12_000_000,
    balance: float = None,
    interest_rate: float = None,
    margin_rate: float = None,
    start_date: date = date(2024, 1, 1),
    maturity_date: date = None,
    currency: str = "IDR",
    is_active: bool = True,
    payments: Iterable[DebtPayment] = (),
    debt_id: str = "debt-test-001",
) -> Debt:
    """Build a transient Debt; rates default to a valid value for the type."""
    if debt_type == DebtType.CONVENTIONAL and interest_rate is None:
        interest_rate = 0.12
    if debt_type == DebtType.ISLAMIC and margin_rate is None:
        margin_rate = 0.06
    return Debt(
        id=debt_id,
        household_id=HOUSEHOLD_ID,
        type=debt_type,
        name=f"{debt_type.value.title()} loan",
        creditor="Bank Test",
        principal_amount_cents=to_cents(principal),
        current_balance_cents=to_cents(principal if balance is None else balance),
        currency=currency,
        interest_rate=interest_rate,
        margin_rate=margin_rate,
        start_date=start_date,
        maturity_date=maturity_date,
        is_active=is_active,
        details={},
        version=1,
        payments=list(payments),
    )


def build_payment(
    payment_date: date,
    principal: float,
    interest: float = 0,
    amount: float = None,
    debt_id: str = "debt-test-001",
) -> DebtPayment:
    """Build a transient DebtPayment; amount defaults to principal + interest."""
    if amount is None:
        amount = principal + interest
    return DebtPayment(
        debt_id=debt_id,
        amount_cents=to_cents(amount),
        principal_amount_cents=to_cents(principal),
        interest_amount_cents=to_cents(interest),
        currency="IDR",
        payment_date=payment_date,
    )


@pytest.fixture
def make_debt() -> Callable[..., Debt]:
    """Factory for transient debts."""
    return build_debt


@pytest.fixture
def make_payment() -> Callable[..., DebtPayment]:
    """Factory for transient payments."""
    return build_payment


@pytest.fixture
def db_manager() -> DatabaseManager:
    """DatabaseManager on a private in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return DatabaseManager(engine=engine)


@pytest.fixture
def client(db_manager: DatabaseManager) -> Iterator[TestClient]:
    """Test client for an app with freshly created tables."""
    app = create_app(db_manager=db_manager, create_tables=True)
    with TestClient(app) as test_client:
        yield test_client


def token_headers(
    household_id: str = HOUSEHOLD_ID,
    permissions: Iterable[str] = ALL_PERMISSIONS,
    user_id: str = "user-test-001",
) -> dict:
    """Authorization header for a household member."""
    token = create_access_token(
        {"sub": user_id, "household_id": household_id, "permissions": list(permissions)}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> dict:
    """Headers for a member of the test household holding every permission."""
    return token_headers()
