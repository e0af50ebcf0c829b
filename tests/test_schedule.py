"""Tests for payment schedule computation."""

from datetime import date

import pytest

from components.core.exceptions import UnsupportedDebtTypeError
from components.debt.constants import DEBT_TYPE_POLICIES, DebtType
from components.debt.schedule import (
    amortized_payment,
    compute_schedule,
    remaining_term_months,
    term_months,
)

START = date(2024, 1, 1)


class TestTerms:
    """Term derivation."""

    def test_term_from_maturity_date(self, make_debt) -> None:
        # 365 days / 30.44 = 11.99, rounded up
        debt = make_debt(maturity_date=date(2024, 12, 31))
        assert term_months(debt, 12_000_000) == 12

    def test_partial_month_rounds_up(self, make_debt) -> None:
        debt = make_debt(maturity_date=date(2025, 1, 1))
        assert term_months(debt, 12_000_000) == 13

    @pytest.mark.parametrize("principal,months", [(10_000, 36), (10_001, 60), (50_000, 60), (50_001, 120)])
    def test_conventional_ladder(self, make_debt, principal: float, months: int) -> None:
        assert term_months(make_debt(principal=principal), principal) == months

    @pytest.mark.parametrize("principal,months", [(50_000, 60), (200_000, 120), (200_001, 240)])
    def test_islamic_ladder(self, principal: float, months: int) -> None:
        assert DEBT_TYPE_POLICIES[DebtType.ISLAMIC].default_term_months(principal) == months

    def test_remaining_term_counts_from_first_payment(self, make_debt, make_payment) -> None:
        debt = make_debt(maturity_date=date(2024, 12, 31))
        payments = [make_payment(date(2024, 3, 1), 1000), make_payment(date(2024, 2, 1), 1000)]
        # 2024-02-01 to 2024-06-15: 135 days, 4.43 months
        assert remaining_term_months(debt, payments, 12, date(2024, 6, 15)) == 8

    def test_remaining_term_without_payments_counts_from_start(self, make_debt) -> None:
        debt = make_debt(maturity_date=date(2024, 12, 31))
        assert remaining_term_months(debt, [], 12, date(2024, 4, 1)) == 10

    def test_remaining_term_floor(self, make_debt) -> None:
        debt = make_debt(maturity_date=date(2024, 12, 31))
        assert remaining_term_months(debt, [], 12, date(2030, 1, 1)) == 1

    def test_zero_rate_payment(self) -> None:
        assert amortized_payment(1200, 0, 12) == 100


class TestConventionalSchedule:
    """Reducing-balance amortization."""

    @pytest.fixture
    def schedule(self, make_debt):
        debt = make_debt(principal=12_000_000, interest_rate=0.12, maturity_date=date(2024, 12, 31))
        return compute_schedule(debt, [], today=START)

    def test_first_row_interest(self, schedule) -> None:
        assert schedule.schedule[0].interest_amount == 120_000.0

    def test_monthly_payment(self, schedule) -> None:
        assert schedule.monthly_payment == pytest.approx(1_066_185.46, abs=1)
        assert schedule.total_payments == 12

    def test_interest_decreases_principal_increases(self, schedule) -> None:
        rows = schedule.schedule
        for earlier, later in zip(rows, rows[1:]):
            assert later.interest_amount < earlier.interest_amount
            assert later.principal_amount > earlier.principal_amount

    def test_principal_is_conserved(self, schedule) -> None:
        projected_principal = sum(row.principal_amount for row in schedule.schedule)
        assert projected_principal == pytest.approx(12_000_000, abs=0.01 * len(schedule.schedule))
        assert schedule.schedule[-1].remaining_balance == 0

    def test_due_dates_follow_start_day(self, make_debt) -> None:
        debt = make_debt(start_date=date(2024, 1, 31), maturity_date=date(2025, 1, 31))
        schedule = compute_schedule(debt, [], today=date(2024, 1, 31))
        assert [row.due_date for row in schedule.schedule[:3]] == [
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_summary(self, schedule) -> None:
        projected_interest = sum(row.interest_amount for row in schedule.schedule)
        summary = schedule.summary
        assert summary.total_principal == 12_000_000
        assert summary.total_interest == pytest.approx(projected_interest, abs=0.01)
        assert summary.total_amount == pytest.approx(12_000_000 + projected_interest, abs=0.01)
        assert summary.remaining_balance == 12_000_000
        assert summary.next_payment_due == date(2024, 2, 1)
        assert summary.payoff_date == date(2025, 1, 1)

    def test_history_precedes_projection(self, make_debt, make_payment) -> None:
        payments = [
            make_payment(date(2024, 3, 1), 900_000, 110_000),
            make_payment(date(2024, 2, 1), 946_185.46, 120_000),
        ]
        debt = make_debt(
            principal=12_000_000,
            balance=12_000_000 - 946_185.46 - 900_000,
            maturity_date=date(2024, 12, 31),
            payments=payments,
        )
        schedule = compute_schedule(debt, payments, today=date(2024, 3, 15))
        rows = schedule.schedule

        assert [row.payment_number for row in rows[:3]] == [-2, -1, 1]
        assert rows[0].actual_payment_date == date(2024, 2, 1)
        assert rows[0].remaining_balance == pytest.approx(11_053_814.54, abs=0.01)
        assert rows[1].remaining_balance == pytest.approx(10_153_814.54, abs=0.01)
        assert all(row.is_paid for row in rows[:2])
        assert not rows[2].is_paid
        assert schedule.summary.total_interest == pytest.approx(
            230_000 + sum(row.interest_amount for row in rows[2:]), abs=0.01
        )

    def test_idempotent(self, make_debt, make_payment) -> None:
        payments = [make_payment(date(2024, 2, 1), 500_000, 120_000)]
        debt = make_debt(balance=11_500_000, maturity_date=date(2025, 12, 31), payments=payments)
        first = compute_schedule(debt, payments, today=date(2024, 5, 1))
        second = compute_schedule(debt, payments, today=date(2024, 5, 1))
        assert first.model_dump_json() == second.model_dump_json()


class TestIslamicSchedule:
    """Murabahah flat installments."""

    @pytest.fixture
    def debt(self, make_debt):
        return make_debt(
            debt_type=DebtType.ISLAMIC,
            principal=10_000_000,
            margin_rate=0.06,
            maturity_date=date(2024, 12, 31),
        )

    def test_selling_price(self, debt) -> None:
        summary = compute_schedule(debt, [], today=START).summary
        assert summary.total_interest == 600_000
        assert summary.total_amount == 10_600_000

    def test_flat_installments(self, debt) -> None:
        schedule = compute_schedule(debt, [], today=START)
        assert schedule.total_payments == 12
        assert schedule.monthly_payment == pytest.approx(883_333.33, abs=0.01)
        assert {row.payment_amount for row in schedule.schedule[:-1]} == {883_333.33}

    def test_split_is_proportional(self, debt) -> None:
        first = compute_schedule(debt, [], today=START).schedule[0]
        assert first.principal_amount == pytest.approx(833_333.33, abs=0.01)
        assert first.interest_amount == pytest.approx(50_000, abs=0.01)

    def test_final_row_clears_balance(self, debt) -> None:
        schedule = compute_schedule(debt, [], today=START)
        total_paid = sum(row.payment_amount for row in schedule.schedule)
        assert total_paid == pytest.approx(10_600_000, abs=0.01 * schedule.total_payments)
        assert schedule.schedule[-1].remaining_balance == 0

    def test_margin_paid_reduces_remaining_margin(self, make_debt, make_payment) -> None:
        payments = [make_payment(date(2024, 2, 1), 833_333.33, 50_000)]
        debt = make_debt(
            debt_type=DebtType.ISLAMIC,
            principal=10_000_000,
            balance=10_000_000 - 833_333.33,
            margin_rate=0.06,
            maturity_date=date(2024, 12, 31),
            payments=payments,
        )
        schedule = compute_schedule(debt, payments, today=date(2024, 2, 15))
        projected = [row for row in schedule.schedule if not row.is_paid]

        assert sum(row.interest_amount for row in projected) == pytest.approx(550_000, abs=0.12)
        assert schedule.summary.total_amount == 10_600_000


class TestPersonalSchedule:
    """History-only schedules."""

    def test_no_payments(self, make_debt) -> None:
        schedule = compute_schedule(make_debt(debt_type=DebtType.PERSONAL, principal=5000), [], today=START)
        assert schedule.schedule == []
        assert schedule.monthly_payment is None
        assert schedule.summary.total_amount == 5000
        assert schedule.summary.next_payment_due is None

    def test_history_rows(self, make_debt, make_payment) -> None:
        payments = [make_payment(date(2024, 3, 1), 1500), make_payment(date(2024, 2, 1), 1000)]
        debt = make_debt(debt_type=DebtType.PERSONAL, principal=5000, balance=2500, payments=payments)
        schedule = compute_schedule(debt, payments, today=date(2024, 4, 1))

        assert [row.payment_number for row in schedule.schedule] == [-2, -1]
        assert [row.remaining_balance for row in schedule.schedule] == [4000, 2500]
        assert all(row.interest_amount == 0 for row in schedule.schedule)
        assert schedule.summary.total_principal == 2500
        assert schedule.summary.remaining_balance == 2500


class TestDispatch:
    """Debt type to model dispatch."""

    def test_unknown_type(self, make_debt) -> None:
        debt = make_debt()
        debt.type = "PAYDAY"
        with pytest.raises(UnsupportedDebtTypeError):
            compute_schedule(debt, [], today=START)

    def test_response_identifies_debt(self, make_debt) -> None:
        schedule = compute_schedule(make_debt(maturity_date=date(2025, 1, 1)), [], today=START)
        assert schedule.debt_id == "debt-test-001"
        assert schedule.debt_type == DebtType.CONVENTIONAL
        assert schedule.currency == "IDR"
