"""Household debt summary."""

from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from components.core.money import from_cents, round_cents
from components.debt.constants import DEFAULT_CURRENCY, DebtType, as_debt_type
from components.debt.schedule import compute_schedule
from components.debt.schemas import (
    DebtSummaryByType,
    DebtSummaryItem,
    DebtSummaryResponse,
    PaymentScheduleResponse,
    PayoffProjection,
    UpcomingPayments,
)

WEEK = timedelta(days=7)
MONTH = timedelta(days=30)


def summarize_debts(
    debts: Sequence,
    today: Optional[date] = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> DebtSummaryResponse:
    """Roll up active debts by type, with upcoming payments and payoff projection.

    Debts must have their payments loaded; inactive debts are ignored.
    """
    today = today or date.today()
    active = [debt for debt in debts if debt.is_active]

    grouped: Dict[DebtType, List[DebtSummaryItem]] = defaultdict(list)
    balances_by_type: Dict[DebtType, int] = defaultdict(int)
    balances_by_currency: Dict[str, int] = defaultdict(int)
    upcoming = UpcomingPayments()
    interest_remaining = 0.0
    payoff_months: List[int] = []

    for debt in active:
        debt_type = as_debt_type(debt.type)
        schedule = compute_schedule(debt, debt.payments, today)
        item = summary_item(debt, schedule)

        grouped[debt_type].append(item)
        balances_by_type[debt_type] += debt.current_balance_cents
        balances_by_currency[debt.currency] += debt.current_balance_cents

        bucket_upcoming(upcoming, item, today)
        projected = [row for row in schedule.schedule if not row.is_paid]
        if projected:
            interest_remaining += sum(row.interest_amount for row in projected)
            payoff_months.append(len(projected))

    by_type = [
        DebtSummaryByType(
            type=debt_type,
            total_balance=from_cents(balances_by_type[debt_type]),
            count=len(grouped[debt_type]),
            debts=grouped[debt_type],
        )
        for debt_type in DebtType
        if grouped.get(debt_type)
    ]

    currencies = Counter(debt.currency for debt in active)
    currency = currencies.most_common(1)[0][0] if len(currencies) == 1 else default_currency

    return DebtSummaryResponse(
        total_debt=from_cents(sum(balances_by_type.values())),
        currency=currency,
        totals_by_currency={code: from_cents(cents) for code, cents in balances_by_currency.items()},
        by_type=by_type,
        upcoming_payments=upcoming,
        payoff_projection=PayoffProjection(
            total_interest_remaining=round_cents(interest_remaining),
            average_payoff_months=round(sum(payoff_months) / len(payoff_months), 1) if payoff_months else 0,
        ),
    )


def summary_item(debt, schedule: PaymentScheduleResponse) -> DebtSummaryItem:
    next_row = next((row for row in schedule.schedule if not row.is_paid), None)
    return DebtSummaryItem(
        id=str(debt.id),
        name=debt.name,
        type=as_debt_type(debt.type),
        creditor=debt.creditor,
        current_balance=from_cents(debt.current_balance_cents),
        original_amount=from_cents(debt.principal_amount_cents),
        currency=debt.currency,
        next_payment_due=next_due_date(debt) if next_row else None,
        next_payment_amount=next_row.payment_amount if next_row else None,
    )


def next_due_date(debt) -> date:
    """Installment due one month after the last recorded payment, or after the start date.

    Pinned to the start date's day of month, so a debt with no recent payment
    comes up as overdue.
    """
    anchor = max((payment.payment_date for payment in debt.payments), default=debt.start_date)
    return anchor + relativedelta(months=1, day=debt.start_date.day)


def bucket_upcoming(upcoming: UpcomingPayments, item: DebtSummaryItem, today: date) -> None:
    due = item.next_payment_due
    if due is None:
        return
    if due < today:
        upcoming.overdue.append(item)
    elif due == today:
        upcoming.due_today.append(item)
    elif due <= today + WEEK:
        upcoming.due_this_week.append(item)
    elif due <= today + MONTH:
        upcoming.due_this_month.append(item)
