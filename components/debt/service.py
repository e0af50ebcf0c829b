"""Debt operations scoped to a household."""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Tuple

from components.core.config import Settings, get_settings
from components.core.exceptions import (
    DebtAccessDeniedError,
    DebtError,
    DebtNotFoundError,
    DebtValidationError,
)
from components.core.money import from_cents, to_cents
from components.debt import schemas
from components.debt.importer import parse_debts_csv
from components.debt.models import Debt, DebtPayment
from components.debt.payments import check_payment
from components.debt.repository import DebtRepository
from components.debt.schedule import compute_schedule
from components.debt.summary import summarize_debts
from components.debt.validation import (
    TYPE_RELEVANT_FIELDS,
    DebtCandidate,
    validate_debt_fields,
)

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = frozenset({"type", "name", "creditor", "start_date", "is_active"})


class DebtLockRegistry:
    """One asyncio.Lock per debt id, dropped once nobody holds it."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, debt_id: str) -> asyncio.Lock:
        lock = self._locks.get(debt_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[debt_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, debt_id: str) -> AsyncIterator[None]:
        lock = self.lock_for(debt_id)
        async with lock:
            yield


debt_locks = DebtLockRegistry()


class DebtService:
    """Applies validation and payment rules around the debt repository.

    Every operation takes the caller's household id; a debt from another
    household raises DebtAccessDeniedError.
    """

    def __init__(
        self,
        repository: DebtRepository,
        settings: Optional[Settings] = None,
        locks: Optional[DebtLockRegistry] = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.locks = locks or debt_locks

    async def create_debt(self, household_id: str, data: schemas.DebtCreate) -> Debt:
        try:
            validate_debt_fields(data)
        except DebtError as exc:
            logger.warning(
                "Debt creation rejected for household %s (%s, field=%s)",
                household_id, exc.code, exc.context.get("field"),
            )
            raise

        debt = await self.repository.create(household_id, data)
        logger.info("Created %s debt %s for household %s", debt.type.value, debt.id, household_id)
        return debt

    async def get_debt_by_id(self, debt_id: str, household_id: str) -> Debt:
        debt = await self.repository.get_by_id(debt_id)
        if debt is None:
            raise DebtNotFoundError(f"Debt with ID {debt_id} not found", debt_id=debt_id)
        if debt.household_id != household_id:
            raise DebtAccessDeniedError("Access denied to this debt", debt_id=debt_id)
        return debt

    async def list_debts(
        self,
        household_id: str,
        filters: Optional[schemas.DebtFilters] = None,
    ) -> List[Debt]:
        return await self.repository.list_by_household(household_id, filters)

    async def update_debt(self, debt_id: str, household_id: str, data: schemas.DebtUpdate) -> Debt:
        """Merge changes into a stored debt, re-validating type-relevant changes."""
        changes = data.model_dump(exclude_unset=True)

        async with self.locks.hold(debt_id):
            debt = await self.get_debt_by_id(debt_id, household_id)

            if TYPE_RELEVANT_FIELDS & changes.keys():
                validate_debt_fields(DebtCandidate.from_debt(debt, changes))

            values = self._column_values(debt, changes)
            if not values:
                return debt

            debt = await self.repository.update(debt, values)

        logger.info("Updated debt %s fields: %s", debt_id, ", ".join(sorted(changes)))
        return debt

    def _column_values(self, debt: Debt, changes: Dict) -> Dict:
        values = {}
        for key, value in changes.items():
            if key == "metadata":
                values["details"] = value or {}
            elif key == "principal_amount":
                if value is not None:
                    values.update(self._rebalance(debt, value))
            elif key in ("interest_rate", "margin_rate"):
                values[key] = value or None
            elif value is None and key in NON_NULLABLE_FIELDS:
                continue
            else:
                values[key] = value
        return values

    @staticmethod
    def _rebalance(debt: Debt, principal_amount: float) -> Dict:
        """Column values for a new principal, keeping the principal already paid."""
        principal_cents = to_cents(principal_amount)
        paid_cents = debt.principal_amount_cents - debt.current_balance_cents
        balance_cents = principal_cents - paid_cents
        if balance_cents < 0:
            raise DebtValidationError(
                "Principal amount cannot be less than the principal already paid",
                field="principal_amount",
                provided=principal_amount,
                expected=f">= {from_cents(paid_cents):.2f}",
            )
        values = {
            "principal_amount_cents": principal_cents,
            "current_balance_cents": balance_cents,
        }
        if balance_cents > 0:
            values["paid_off_at"] = None
        elif debt.paid_off_at is None:
            values["paid_off_at"] = datetime.now(timezone.utc)
        return values

    async def delete_debt(self, debt_id: str, household_id: str) -> None:
        async with self.locks.hold(debt_id):
            debt = await self.get_debt_by_id(debt_id, household_id)
            await self.repository.delete(debt)
        logger.info("Deleted debt %s for household %s", debt_id, household_id)

    async def record_payment(
        self,
        debt_id: str,
        household_id: str,
        data: schemas.DebtPaymentCreate,
        today: Optional[date] = None,
    ) -> DebtPayment:
        """Validate and record a payment, decrementing the balance by its principal.

        Payments against the same debt are serialized; the repository write is
        also guarded by the debt version so a concurrent writer in another
        process gets ConcurrentModificationError instead of a lost update.
        """
        async with self.locks.hold(debt_id):
            debt = await self.get_debt_by_id(debt_id, household_id)
            try:
                check_payment(
                    debt,
                    debt.payments,
                    data,
                    today=today,
                    duplicate_policy=self.settings.DUPLICATE_PAYMENT_POLICY,
                )
                payment = await self.repository.create_payment(debt, data)
            except DebtError as exc:
                logger.warning(
                    "Payment rejected for debt %s (%s, field=%s)",
                    debt_id, exc.code, exc.context.get("field"),
                )
                raise

        logger.info("Recorded payment %s on debt %s", payment.id, debt_id)
        return payment

    async def calculate_payment_schedule(
        self,
        debt_id: str,
        household_id: str,
        today: Optional[date] = None,
    ) -> schemas.PaymentScheduleResponse:
        debt = await self.get_debt_by_id(debt_id, household_id)
        payments = await self.repository.get_payments_by_debt(debt_id)
        return compute_schedule(debt, payments, today)

    async def get_debt_summary(
        self,
        household_id: str,
        today: Optional[date] = None,
    ) -> schemas.DebtSummaryResponse:
        debts = await self.repository.get_active_by_household(household_id)
        return summarize_debts(debts, today, default_currency=self.settings.DEFAULT_CURRENCY)

    async def import_debts(self, household_id: str, content: bytes) -> Tuple[bool, str, int, List[Dict]]:
        """
        Import debts from CSV content.

        Nothing is written unless every row is valid.

        Returns:
            Tuple containing:
            - Success status
            - Message
            - Number of imported debts
            - List of row errors
        """
        debts, errors = parse_debts_csv(content)
        if errors:
            logger.warning("Debt import rejected for household %s: %d invalid rows", household_id, len(errors))
            return False, f"Import failed: {len(errors)} rows with errors", 0, errors
        if not debts:
            return False, "CSV file contains no debts", 0, []

        created = await self.repository.create_many(household_id, debts)
        logger.info("Imported %d debts for household %s", len(created), household_id)
        return True, f"Successfully imported {len(created)} debts", len(created), []
