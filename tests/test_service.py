"""Tests for the debt service and repository against SQLite."""

import asyncio
from datetime import date

import pytest
from sqlalchemy import update

from components.core.exceptions import (
    ConcurrentModificationError,
    DebtAccessDeniedError,
    DebtNotFoundError,
    DuplicatePaymentError,
)
from components.debt.models import Debt
from components.debt.repository import DebtRepository
from components.debt.schemas import DebtCreate, DebtPaymentCreate, DebtUpdate
from components.debt.service import DebtLockRegistry, DebtService

from conftest import HOUSEHOLD_ID, OTHER_HOUSEHOLD_ID

CAR_LOAN = DebtCreate(
    type="CONVENTIONAL",
    name="Car loan",
    creditor="Bank Test",
    principal_amount=12_000_000,
    interest_rate=0.12,
    start_date=date(2024, 1, 1),
    maturity_date=date(2024, 12, 31),
)


def run_with_service(db_manager, scenario):
    """Run ``scenario(service, repository, session)`` on fresh tables."""

    async def main():
        await db_manager.create_all()
        try:
            async with db_manager.get_db() as session:
                repository = DebtRepository(session)
                return await scenario(DebtService(repository), repository, session)
        finally:
            await db_manager.dispose()

    return asyncio.run(main())


class TestDebtLockRegistry:
    """Per-debt serialization."""

    def test_same_debt_is_serialized(self) -> None:
        registry = DebtLockRegistry()
        order = []

        async def worker(name: str) -> None:
            async with registry.hold("debt-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")

        async def main():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(main())
        assert order == ["a-start", "a-end", "b-start", "b-end"]

    def test_different_debts_do_not_share_a_lock(self) -> None:
        registry = DebtLockRegistry()
        first = registry.lock_for("debt-1")
        assert registry.lock_for("debt-1") is first
        assert registry.lock_for("debt-2") is not first


class TestGuardedBalanceUpdate:
    """Version and balance guard on payment writes."""

    def test_stale_version_is_rejected(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            debt_id = debt.id
            await session.execute(
                update(Debt)
                .where(Debt.id == debt_id)
                .values(version=Debt.version + 1)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            payment = DebtPaymentCreate(amount=100_000, principal_amount=100_000, payment_date=date(2024, 2, 1))
            with pytest.raises(ConcurrentModificationError):
                await repository.create_payment(debt, payment)

            # rollback expired the session, so reload before reading
            stored = await repository.get_by_id(debt_id)
            return stored.current_balance_cents, len(stored.payments)

        assert run_with_service(db_manager, scenario) == (1_200_000_000, 0)

    def test_balance_guard(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            payment = DebtPaymentCreate(
                amount=12_000_000.01,
                principal_amount=12_000_000.01,
                payment_date=date(2024, 2, 1),
            )
            with pytest.raises(ConcurrentModificationError):
                await repository.create_payment(debt, payment)

        run_with_service(db_manager, scenario)

    def test_payment_bumps_version(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            version = debt.version
            payment = DebtPaymentCreate(amount=100_000, principal_amount=100_000, payment_date=date(2024, 2, 1))
            await service.record_payment(debt.id, HOUSEHOLD_ID, payment, today=date(2024, 6, 1))
            stored = await repository.get_by_id(debt.id)
            return stored.version - version, stored.current_balance_cents

        assert run_with_service(db_manager, scenario) == (1, 1_190_000_000)


class TestDebtService:
    """Household scoping and business rules."""

    def test_unknown_debt(self, db_manager) -> None:
        async def scenario(service, repository, session):
            with pytest.raises(DebtNotFoundError):
                await service.get_debt_by_id("missing", HOUSEHOLD_ID)

        run_with_service(db_manager, scenario)

    def test_other_household(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            with pytest.raises(DebtAccessDeniedError):
                await service.calculate_payment_schedule(debt.id, OTHER_HOUSEHOLD_ID)

        run_with_service(db_manager, scenario)

    def test_duplicate_payment(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            payment = DebtPaymentCreate(amount=100_000, principal_amount=100_000, payment_date=date(2024, 2, 1))
            await service.record_payment(debt.id, HOUSEHOLD_ID, payment, today=date(2024, 6, 1))
            with pytest.raises(DuplicatePaymentError):
                await service.record_payment(debt.id, HOUSEHOLD_ID, payment, today=date(2024, 6, 1))

        run_with_service(db_manager, scenario)

    def test_update_without_changes(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            updated = await service.update_debt(debt.id, HOUSEHOLD_ID, DebtUpdate())
            return updated.version == debt.version

        assert run_with_service(db_manager, scenario)

    def test_schedule_uses_recorded_payments(self, db_manager) -> None:
        async def scenario(service, repository, session):
            debt = await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            payment = DebtPaymentCreate(
                amount=1_066_185.46,
                principal_amount=946_185.46,
                interest_amount=120_000,
                payment_date=date(2024, 2, 1),
            )
            await service.record_payment(debt.id, HOUSEHOLD_ID, payment, today=date(2024, 2, 1))
            return await service.calculate_payment_schedule(debt.id, HOUSEHOLD_ID, today=date(2024, 2, 1))

        schedule = run_with_service(db_manager, scenario)
        assert schedule.schedule[0].payment_number == -1
        assert schedule.schedule[0].remaining_balance == pytest.approx(11_053_814.54)
        assert schedule.summary.remaining_balance == pytest.approx(11_053_814.54)

    def test_summary_is_household_scoped(self, db_manager) -> None:
        async def scenario(service, repository, session):
            await service.create_debt(HOUSEHOLD_ID, CAR_LOAN)
            await service.create_debt(OTHER_HOUSEHOLD_ID, CAR_LOAN)
            return await service.get_debt_summary(HOUSEHOLD_ID, today=date(2024, 1, 1))

        summary = run_with_service(db_manager, scenario)
        assert summary.total_debt == 12_000_000

    def test_import_writes_nothing_on_error(self, db_manager) -> None:
        content = (
            b"type,name,creditor,principal_amount,start_date\n"
            b"PERSONAL,Loan,Budi,1000,2024-01-01\n"
            b"PERSONAL,Loan,Budi,0,2024-01-01\n"
        )

        async def scenario(service, repository, session):
            result = await service.import_debts(HOUSEHOLD_ID, content)
            debts = await repository.list_by_household(HOUSEHOLD_ID)
            return result, debts

        (success, message, imported, errors), debts = run_with_service(db_manager, scenario)
        assert success is False
        assert imported == 0
        assert errors[0]["row"] == 3
        assert debts == []
