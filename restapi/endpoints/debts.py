"""Debt endpoints for the API."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.init_db import get_db
from components.core.schemas import ErrorResponse
from components.core.security import HouseholdContext, HouseholdPermission
from components.debt import schemas
from components.debt.constants import DebtType
from components.debt.repository import DebtRepository
from components.debt.service import DebtService
from restapi.endpoints.auth import require_permission

router = APIRouter(
    prefix="/debts",
    tags=["debts"],
    responses={
        400: {"model": ErrorResponse, "description": "Rejected by a business rule"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        404: {"model": ErrorResponse, "description": "Not found"},
        409: {"model": ErrorResponse, "description": "Concurrent modification"},
    },
)


def get_debt_service(db: AsyncSession = Depends(get_db)) -> DebtService:
    return DebtService(DebtRepository(db))


@router.post("", response_model=schemas.DebtRead, status_code=status.HTTP_201_CREATED)
async def create_debt(
    debt_in: schemas.DebtCreate,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.CREATE_DEBTS)),
):
    """
    Create a new debt for the caller's household.

    The current balance starts at the principal amount. Rates and maturity
    date must match the debt type:
    - PERSONAL: no interest or margin rate, maturity optional
    - CONVENTIONAL: interest rate between 0.001 and 0.5, maturity required
    - ISLAMIC: margin rate between 0.001 and 0.3, maturity required
    """
    return await service.create_debt(context.household_id, debt_in)


@router.get("", response_model=List[schemas.DebtRead])
async def list_debts(
    type: Optional[DebtType] = Query(None, description="Only debts of this type"),
    is_active: Optional[bool] = Query(None, description="Only active or inactive debts"),
    creditor: Optional[str] = Query(None, description="Creditor name contains"),
    search: Optional[str] = Query(None, description="Name or creditor contains"),
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.VIEW_DEBTS)),
):
    """List household debts, active first, then by current balance descending."""
    filters = schemas.DebtFilters(type=type, is_active=is_active, creditor=creditor, search=search)
    return await service.list_debts(context.household_id, filters)


@router.get("/summary", response_model=schemas.DebtSummaryResponse)
async def get_debt_summary(
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.VIEW_DEBTS)),
):
    """
    Get a summary of active household debts.

    Returns:
    - Total debt, overall and per currency
    - Balances grouped by debt type
    - Upcoming payments (overdue, due today, this week, this month)
    - Payoff projection (remaining interest, average months to payoff)
    """
    return await service.get_debt_summary(context.household_id)


@router.post("/import", response_model=schemas.DebtImportResponse)
async def import_debts(
    file: UploadFile = File(...),
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.CREATE_DEBTS)),
):
    """
    Import debts from a CSV file.

    The CSV file must have the following columns:
    - type: PERSONAL, CONVENTIONAL or ISLAMIC
    - name, creditor
    - principal_amount: Amount in major units
    - start_date: Date in YYYY-MM-DD format

    Optional columns: currency, interest_rate, margin_rate, maturity_date.

    Every row is validated like a single debt creation; nothing is imported
    if any row fails.
    """
    if not file.filename or not file.filename.endswith(".csv"):
        return schemas.DebtImportResponse(
            success=False,
            message="Invalid file format. Only CSV files (.csv) are supported.",
        )

    file_content = await file.read()
    success, message, imported, errors = await service.import_debts(context.household_id, file_content)

    if not success:
        return schemas.DebtImportResponse(
            success=False,
            message=message,
            errors=[schemas.DebtImportError(**error) for error in errors],
        )

    return schemas.DebtImportResponse(success=True, message=message, imported=imported)


@router.get("/{debt_id}", response_model=schemas.DebtWithPayments)
async def get_debt(
    debt_id: UUID,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.VIEW_DEBTS)),
):
    """Get a debt with its payment history, newest payment first."""
    return await service.get_debt_by_id(str(debt_id), context.household_id)


@router.get("/{debt_id}/schedule", response_model=schemas.PaymentScheduleResponse)
async def get_payment_schedule(
    debt_id: UUID,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.VIEW_DEBTS)),
):
    """
    Get the payment schedule of a debt.

    Recorded payments come first with negative payment numbers, followed by
    projected installments numbered from 1. Personal loans have no
    projection.
    """
    return await service.calculate_payment_schedule(str(debt_id), context.household_id)


@router.put("/{debt_id}", response_model=schemas.DebtRead)
async def update_debt(
    debt_id: UUID,
    debt_in: schemas.DebtUpdate,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.MANAGE_DEBTS)),
):
    """Update a debt. Currency cannot be changed."""
    return await service.update_debt(str(debt_id), context.household_id, debt_in)


@router.delete("/{debt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_debt(
    debt_id: UUID,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.DELETE_DEBTS)),
):
    """Delete a debt together with its payments."""
    await service.delete_debt(str(debt_id), context.household_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{debt_id}/payments",
    response_model=schemas.DebtPaymentRead,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    debt_id: UUID,
    payment_in: schemas.DebtPaymentCreate,
    service: DebtService = Depends(get_debt_service),
    context: HouseholdContext = Depends(require_permission(HouseholdPermission.MANAGE_DEBTS)),
):
    """
    Record a payment against a debt.

    The amount must equal principal plus interest (or margin) within 0.01.
    The debt balance is reduced by the principal portion.
    """
    return await service.record_payment(str(debt_id), context.household_id, payment_in)
