"""Debt and DebtPayment models for the database."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    desc,
)
from sqlalchemy.orm import relationship

from components.core.database import Base
from components.core.money import from_cents
from components.debt.constants import DebtType


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Debt(Base):
    """Debt model representing one liability owed by a household."""
    __tablename__ = "debts"

    id = Column(String(36), primary_key=True, default=_new_id)
    household_id = Column(String(64), nullable=False, index=True)
    type = Column(Enum(DebtType, name="debt_type"), nullable=False)
    name = Column(String(255), nullable=False)
    creditor = Column(String(255), nullable=False)
    principal_amount_cents = Column(BigInteger, nullable=False)
    current_balance_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    interest_rate = Column(Numeric(7, 5), nullable=True)  # Annual, fraction
    margin_rate = Column(Numeric(7, 5), nullable=True)  # Annual, fraction
    start_date = Column(Date, nullable=False)
    maturity_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    paid_off_at = Column(DateTime, nullable=True)
    details = Column("metadata", JSON, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationship with payments, newest first
    payments = relationship(
        "DebtPayment",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by=lambda: desc(DebtPayment.payment_date),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def principal_amount(self) -> float:
        return from_cents(self.principal_amount_cents)

    @property
    def current_balance(self) -> float:
        return from_cents(self.current_balance_cents)


class DebtPayment(Base):
    """Payment model for storing payments made against a debt."""
    __tablename__ = "debt_payments"

    id = Column(String(36), primary_key=True, default=_new_id)
    debt_id = Column(String(36), ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    principal_amount_cents = Column(BigInteger, nullable=False)
    interest_amount_cents = Column(BigInteger, nullable=False, default=0)  # Interest or margin
    currency = Column(String(3), nullable=False)
    payment_date = Column(Date, nullable=False)
    transaction_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    # Relationships
    debt = relationship("Debt", back_populates="payments")

    @property
    def amount(self) -> float:
        return from_cents(self.amount_cents)

    @property
    def principal_amount(self) -> float:
        return from_cents(self.principal_amount_cents)

    @property
    def interest_amount(self) -> float:
        return from_cents(self.interest_amount_cents)
