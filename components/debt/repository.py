"""Repository for debt operations."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from components.core.exceptions import ConcurrentModificationError
from components.core.money import to_cents
from components.debt.constants import DEFAULT_CURRENCY
from components.debt.models import Debt, DebtPayment
from components.debt import schemas


class DebtRepository:
    """Repository for debt operations.

    Amounts arrive in major units and are stored as integer cents.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(self, household_id: str, data: schemas.DebtCreate) -> Debt:
        """Create a new debt; the balance starts at the principal."""
        db_debt = self._build(household_id, data)
        self.session.add(db_debt)
        await self.session.commit()
        return await self.get_by_id(db_debt.id)

    async def create_many(self, household_id: str, items: List[schemas.DebtCreate]) -> List[Debt]:
        """Create several debts in one transaction."""
        db_debts = [self._build(household_id, data) for data in items]
        self.session.add_all(db_debts)
        await self.session.commit()
        return db_debts

    @staticmethod
    def _build(household_id: str, data: schemas.DebtCreate) -> Debt:
        principal_cents = to_cents(data.principal_amount)
        return Debt(
            household_id=household_id,
            type=data.type,
            name=data.name,
            creditor=data.creditor,
            principal_amount_cents=principal_cents,
            current_balance_cents=principal_cents,
            currency=data.currency or DEFAULT_CURRENCY,
            interest_rate=data.interest_rate or None,
            margin_rate=data.margin_rate or None,
            start_date=data.start_date,
            maturity_date=data.maturity_date,
            is_active=True,
            details=data.metadata or {},
        )

    async def get_by_id(self, debt_id: str) -> Optional[Debt]:
        """Get debt by ID with its payments, newest first."""
        result = await self.session.execute(
            select(Debt)
            .where(Debt.id == debt_id)
            .options(selectinload(Debt.payments))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_household(
        self,
        household_id: str,
        filters: Optional[schemas.DebtFilters] = None,
    ) -> List[Debt]:
        """Get household debts with optional filtering, active and largest first."""
        query = (
            select(Debt)
            .where(Debt.household_id == household_id)
            .options(selectinload(Debt.payments))
        )

        if filters:
            if filters.type:
                query = query.where(Debt.type == filters.type)
            if filters.is_active is not None:
                query = query.where(Debt.is_active == filters.is_active)
            if filters.creditor:
                query = query.where(func.lower(Debt.creditor).contains(filters.creditor.lower(), autoescape=True))
            if filters.search:
                term = filters.search.lower()
                query = query.where(or_(
                    func.lower(Debt.name).contains(term, autoescape=True),
                    func.lower(Debt.creditor).contains(term, autoescape=True),
                ))

        query = query.order_by(desc(Debt.is_active), desc(Debt.current_balance_cents))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_active_by_household(self, household_id: str) -> List[Debt]:
        """Get active debts for a household."""
        return await self.list_by_household(household_id, schemas.DebtFilters(is_active=True))

    async def update(self, db_debt: Debt, values: dict) -> Debt:
        """Apply column values to a debt.

        The mapper's version column makes the flush fail if the row changed
        since it was loaded.
        """
        debt_id = db_debt.id
        for key, value in values.items():
            setattr(db_debt, key, value)
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            raise ConcurrentModificationError(
                "Debt was modified by another request. Please reload and try again.",
                debt_id=debt_id,
            ) from None
        return await self.get_by_id(debt_id)

    async def delete(self, db_debt: Debt) -> None:
        """Delete a debt together with its payments."""
        debt_id = db_debt.id
        await self.session.delete(db_debt)
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            raise ConcurrentModificationError(
                "Debt was modified by another request. Please reload and try again.",
                debt_id=debt_id,
            ) from None

    async def create_payment(self, db_debt: Debt, data: schemas.DebtPaymentCreate) -> DebtPayment:
        """Record a payment and decrement the debt balance by its principal.

        The balance update only applies if the debt still has the version that
        was validated and enough balance for the principal; otherwise nothing
        is written and ConcurrentModificationError is raised.
        """
        debt_id = db_debt.id
        principal_cents = to_cents(data.principal_amount)
        result = await self.session.execute(
            update(Debt)
            .where(
                Debt.id == db_debt.id,
                Debt.version == db_debt.version,
                Debt.current_balance_cents >= principal_cents,
            )
            .values(
                current_balance_cents=Debt.current_balance_cents - principal_cents,
                version=Debt.version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise ConcurrentModificationError(
                "Debt was modified by another request. Please reload and try again.",
                debt_id=debt_id,
            )

        payment = DebtPayment(
            debt_id=debt_id,
            amount_cents=to_cents(data.amount),
            principal_amount_cents=principal_cents,
            interest_amount_cents=to_cents(data.interest_amount),
            currency=db_debt.currency,
            payment_date=data.payment_date,
            transaction_id=data.transaction_id,
        )
        self.session.add(payment)
        await self.session.flush()

        await self.session.refresh(db_debt, attribute_names=["current_balance_cents", "version"])
        if db_debt.current_balance_cents <= 0 and db_debt.paid_off_at is None:
            await self.session.execute(
                update(Debt)
                .where(Debt.id == db_debt.id)
                .values(current_balance_cents=0, paid_off_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )

        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def get_payments_by_debt(self, debt_id: str) -> List[DebtPayment]:
        """Get payments for a debt, newest first."""
        result = await self.session.execute(
            select(DebtPayment)
            .where(DebtPayment.debt_id == debt_id)
            .order_by(desc(DebtPayment.payment_date))
        )
        return list(result.scalars().all())

