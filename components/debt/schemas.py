"""Pydantic schemas for debt data validation."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from components.debt.constants import DEFAULT_CURRENCY, DebtType


class DebtBase(BaseModel):
    """Base debt schema. Amounts are major units."""
    type: DebtType
    name: str = Field(..., min_length=1, max_length=255)
    creditor: str = Field(..., min_length=1, max_length=255)
    principal_amount: float
    currency: str = DEFAULT_CURRENCY
    interest_rate: Optional[float] = None
    margin_rate: Optional[float] = None
    start_date: date
    maturity_date: Optional[date] = None


class DebtCreate(DebtBase):
    """Schema for debt creation."""
    metadata: Optional[Dict] = None


class DebtUpdate(BaseModel):
    """Schema for debt update. Currency is fixed at creation."""
    type: Optional[DebtType] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    creditor: Optional[str] = Field(None, min_length=1, max_length=255)
    principal_amount: Optional[float] = None
    interest_rate: Optional[float] = None
    margin_rate: Optional[float] = None
    start_date: Optional[date] = None
    maturity_date: Optional[date] = None
    is_active: Optional[bool] = None
    metadata: Optional[Dict] = None


class DebtFilters(BaseModel):
    """Schema for debt list filters."""
    type: Optional[DebtType] = None
    is_active: Optional[bool] = None
    creditor: Optional[str] = None
    search: Optional[str] = None


class DebtPaymentCreate(BaseModel):
    """Schema for recording a payment. Amounts are major units."""
    amount: float = Field(..., gt=0)
    principal_amount: float = Field(..., ge=0)
    interest_amount: float = Field(0, ge=0)
    payment_date: date
    transaction_id: Optional[str] = None


class DebtPaymentRead(BaseModel):
    """Schema for payment response."""
    id: str
    debt_id: str
    amount_cents: int
    principal_amount_cents: int
    interest_amount_cents: int
    amount: float
    principal_amount: float
    interest_amount: float
    currency: str
    payment_date: date
    transaction_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DebtRead(BaseModel):
    """Schema for debt response."""
    id: str
    household_id: str
    type: DebtType
    name: str
    creditor: str
    principal_amount_cents: int
    current_balance_cents: int
    principal_amount: float
    current_balance: float
    currency: str
    interest_rate: Optional[float] = None
    margin_rate: Optional[float] = None
    start_date: date
    maturity_date: Optional[date] = None
    is_active: bool
    paid_off_at: Optional[datetime] = None
    metadata: Optional[Dict] = Field(None, validation_alias="details")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DebtWithPayments(DebtRead):
    """Schema for debt response including payment history."""
    payments: List[DebtPaymentRead] = Field(default_factory=list)


class PaymentScheduleItem(BaseModel):
    """One row of a payment schedule.

    Negative payment numbers are recorded payments, positive ones projected.
    For Islamic financing ``interest_amount`` holds the margin portion.
    """
    payment_number: int
    due_date: date
    payment_amount: float
    principal_amount: float
    interest_amount: float
    remaining_balance: float
    is_paid: bool
    actual_payment_date: Optional[date] = None


class PaymentScheduleSummary(BaseModel):
    """Totals for a payment schedule."""
    total_interest: float
    total_principal: float
    total_amount: float
    remaining_balance: float
    next_payment_due: Optional[date] = None
    payoff_date: Optional[date] = None


class PaymentScheduleResponse(BaseModel):
    """Schema for a computed payment schedule."""
    debt_id: str
    debt_name: str
    debt_type: DebtType
    currency: str
    total_payments: int
    monthly_payment: Optional[float] = None
    schedule: List[PaymentScheduleItem]
    summary: PaymentScheduleSummary


class DebtSummaryItem(BaseModel):
    """Schema for one debt inside a summary."""
    id: str
    name: str
    type: DebtType
    creditor: str
    current_balance: float
    original_amount: float
    currency: str
    next_payment_due: Optional[date] = None
    next_payment_amount: Optional[float] = None


class DebtSummaryByType(BaseModel):
    """Schema for debts grouped by type."""
    type: DebtType
    total_balance: float
    count: int
    debts: List[DebtSummaryItem]


class UpcomingPayments(BaseModel):
    """Schema for upcoming payment buckets."""
    due_today: List[DebtSummaryItem] = Field(default_factory=list)
    due_this_week: List[DebtSummaryItem] = Field(default_factory=list)
    due_this_month: List[DebtSummaryItem] = Field(default_factory=list)
    overdue: List[DebtSummaryItem] = Field(default_factory=list)


class PayoffProjection(BaseModel):
    """Schema for payoff projection."""
    total_interest_remaining: float = 0
    average_payoff_months: float = 0


class DebtSummaryResponse(BaseModel):
    """Schema for household debt summary."""
    total_debt: float
    currency: str
    totals_by_currency: Dict[str, float]
    by_type: List[DebtSummaryByType]
    upcoming_payments: UpcomingPayments
    payoff_projection: PayoffProjection


class DebtImportError(BaseModel):
    """Schema for debt import error."""
    row: int
    message: str


class DebtImportResponse(BaseModel):
    """Schema for debt import response."""
    success: bool
    message: str
    imported: int = 0
    errors: Optional[List[DebtImportError]] = None
