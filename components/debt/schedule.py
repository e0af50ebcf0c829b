"""Payment schedule computation.

A schedule is computed on demand from a debt and its payment history and is
never persisted. Each debt type has its own ``ScheduleModel``:

- Personal loans carry no interest and no fixed term, so the schedule is
  just the payment history.
- Conventional loans amortize on a reducing balance at a fixed annual rate.
- Islamic financing (Murabahah) fixes the total margin at origination and
  repays principal plus remaining margin in flat installments, splitting
  each installment between principal and margin by their remaining shares.

Recorded payments appear first, numbered -N..-1 from oldest to newest,
followed by projected rows numbered from 1. Internal balances are carried
unrounded; every figure written to a row or summary is rounded to cents.
"""

import math
from abc import ABC, abstractmethod
from datetime import date
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence

from dateutil.relativedelta import relativedelta

from components.core.money import from_cents, round_cents
from components.debt.constants import (
    DAYS_PER_MONTH,
    DEBT_TYPE_POLICIES,
    DebtType,
    as_debt_type,
)
from components.debt.schemas import (
    PaymentScheduleItem,
    PaymentScheduleResponse,
    PaymentScheduleSummary,
)

BALANCE_EPSILON = 0.01


def months_between(start: date, end: date) -> float:
    """Number of average-length months between two dates."""
    return (end - start).days / DAYS_PER_MONTH


def term_months(debt, original_amount: float) -> int:
    """Contract term in months, from the maturity date or the type's default ladder."""
    if debt.maturity_date:
        return max(1, math.ceil(months_between(debt.start_date, debt.maturity_date)))
    return DEBT_TYPE_POLICIES[as_debt_type(debt.type)].default_term_months(original_amount)


def remaining_term_months(debt, payments: Sequence, original_term: int, today: date) -> int:
    """Months left on the term, counted from the first payment (or the start date)."""
    if payments:
        anchor = min(payment.payment_date for payment in payments)
    else:
        anchor = debt.start_date
    elapsed = max(0, math.floor(months_between(anchor, today)))
    return max(1, original_term - elapsed)


def amortized_payment(principal: float, monthly_rate: float, months: int) -> float:
    """Level monthly payment that repays ``principal`` over ``months``."""
    if monthly_rate == 0:
        return principal / months
    growth = math.pow(1 + monthly_rate, months)
    return principal * (monthly_rate * growth) / (growth - 1)


def projected_due_date(debt, today: date, number: int) -> date:
    """Due date of projected row ``number``, pinned to the start date's day of month."""
    return today + relativedelta(months=number, day=debt.start_date.day)


def historical_rows(debt, payments: Sequence, include_interest: bool = True) -> List[PaymentScheduleItem]:
    """Recorded payments as schedule rows, oldest first, with running balances."""
    ordered = sorted(payments, key=lambda payment: payment.payment_date)
    count = len(ordered)
    balance_cents = debt.principal_amount_cents
    rows = []
    for index, payment in enumerate(ordered):
        balance_cents -= payment.principal_amount_cents
        rows.append(PaymentScheduleItem(
            payment_number=-(count - index),
            due_date=payment.payment_date,
            payment_amount=from_cents(payment.amount_cents),
            principal_amount=from_cents(payment.principal_amount_cents),
            interest_amount=from_cents(payment.interest_amount_cents) if include_interest else 0.0,
            remaining_balance=from_cents(max(0, balance_cents)),
            is_paid=True,
            actual_payment_date=payment.payment_date,
        ))
    return rows


def projected_row(
    number: int,
    due_date: date,
    payment: float,
    principal: float,
    interest: float,
    balance: float,
) -> PaymentScheduleItem:
    return PaymentScheduleItem(
        payment_number=number,
        due_date=due_date,
        payment_amount=round_cents(payment),
        principal_amount=round_cents(principal),
        interest_amount=round_cents(interest),
        remaining_balance=round_cents(max(0.0, balance)),
        is_paid=False,
    )


class ScheduleModel(ABC):
    """Computes the schedule for one debt type."""

    debt_type: DebtType

    def compute(self, debt, payments: Sequence, today: date) -> PaymentScheduleResponse:
        original_amount = from_cents(debt.principal_amount_cents)
        current_balance = from_cents(debt.current_balance_cents)
        return self.build(debt, list(payments), today, original_amount, current_balance)

    @abstractmethod
    def build(
        self,
        debt,
        payments: List,
        today: date,
        original_amount: float,
        current_balance: float,
    ) -> PaymentScheduleResponse:
        raise NotImplementedError

    def response(
        self,
        debt,
        schedule: List[PaymentScheduleItem],
        summary: PaymentScheduleSummary,
        monthly_payment: Optional[float] = None,
    ) -> PaymentScheduleResponse:
        return PaymentScheduleResponse(
            debt_id=str(debt.id),
            debt_name=debt.name,
            debt_type=self.debt_type,
            currency=debt.currency,
            total_payments=len(schedule),
            monthly_payment=monthly_payment,
            schedule=schedule,
            summary=summary,
        )


class PersonalScheduleModel(ScheduleModel):
    """Flexible personal loans: no interest, no fixed term."""

    debt_type = DebtType.PERSONAL

    def build(self, debt, payments, today, original_amount, current_balance):
        schedule = historical_rows(debt, payments, include_interest=False)
        summary = PaymentScheduleSummary(
            total_interest=0.0,
            total_principal=round_cents(original_amount - current_balance),
            total_amount=round_cents(original_amount),
            remaining_balance=round_cents(current_balance),
        )
        return self.response(debt, schedule, summary)


class ConventionalScheduleModel(ScheduleModel):
    """Reducing-balance amortization at a fixed annual interest rate."""

    debt_type = DebtType.CONVENTIONAL

    def build(self, debt, payments, today, original_amount, current_balance):
        monthly_rate = float(debt.interest_rate or 0) / 12
        remaining_term = remaining_term_months(debt, payments, term_months(debt, original_amount), today)
        monthly_payment = amortized_payment(current_balance, monthly_rate, remaining_term)

        projected = []
        balance = current_balance
        for number in range(1, remaining_term + 1):
            if balance <= BALANCE_EPSILON:
                break
            interest = balance * monthly_rate
            principal = monthly_payment - interest
            if principal > balance:
                principal = balance
            balance -= principal
            projected.append(projected_row(
                number,
                projected_due_date(debt, today, number),
                principal + interest,
                principal,
                interest,
                balance,
            ))

        projected_interest = sum(row.interest_amount for row in projected)
        interest_paid = from_cents(sum(payment.interest_amount_cents for payment in payments))
        summary = PaymentScheduleSummary(
            total_interest=round_cents(projected_interest + interest_paid),
            total_principal=round_cents(original_amount),
            total_amount=round_cents(original_amount + projected_interest + interest_paid),
            remaining_balance=round_cents(current_balance),
            next_payment_due=projected[0].due_date if projected else None,
            payoff_date=projected[-1].due_date if projected else None,
        )
        schedule = historical_rows(debt, payments) + projected
        return self.response(debt, schedule, summary, round_cents(monthly_payment))


class IslamicScheduleModel(ScheduleModel):
    """Murabahah financing with a margin fixed at origination."""

    debt_type = DebtType.ISLAMIC

    def build(self, debt, payments, today, original_amount, current_balance):
        total_margin = original_amount * float(debt.margin_rate or 0)
        selling_price = original_amount + total_margin
        margin_paid = from_cents(sum(payment.interest_amount_cents for payment in payments))
        remaining_margin = max(0.0, total_margin - margin_paid)

        remaining_term = remaining_term_months(debt, payments, term_months(debt, original_amount), today)
        monthly_payment = (current_balance + remaining_margin) / remaining_term

        projected = []
        principal_left = current_balance
        margin_left = remaining_margin
        for number in range(1, remaining_term + 1):
            if principal_left <= BALANCE_EPSILON and margin_left <= BALANCE_EPSILON:
                break
            payment = monthly_payment
            principal_share = principal_left / (principal_left + margin_left)
            principal = min(payment * principal_share, principal_left)
            margin = min(payment - principal, margin_left)

            if number == remaining_term or principal_left + margin_left < monthly_payment:
                payment = principal_left + margin_left
                principal = principal_left
                margin = margin_left

            principal_left -= principal
            margin_left -= margin
            projected.append(projected_row(
                number,
                projected_due_date(debt, today, number),
                payment,
                principal,
                margin,
                principal_left,
            ))

        summary = PaymentScheduleSummary(
            total_interest=round_cents(total_margin),
            total_principal=round_cents(original_amount),
            total_amount=round_cents(selling_price),
            remaining_balance=round_cents(current_balance),
            next_payment_due=projected[0].due_date if projected else None,
            payoff_date=projected[-1].due_date if projected else None,
        )
        schedule = historical_rows(debt, payments) + projected
        return self.response(debt, schedule, summary, round_cents(monthly_payment))


SCHEDULE_MODELS: Mapping[DebtType, ScheduleModel] = MappingProxyType({
    model.debt_type: model
    for model in (PersonalScheduleModel(), ConventionalScheduleModel(), IslamicScheduleModel())
})


def compute_schedule(debt, payments: Sequence, today: Optional[date] = None) -> PaymentScheduleResponse:
    """Compute the full (recorded + projected) schedule for a debt."""
    model = SCHEDULE_MODELS[as_debt_type(debt.type)]
    return model.compute(debt, payments, today or date.today())
