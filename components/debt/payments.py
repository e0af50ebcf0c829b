"""Business rules applied before a payment is recorded against a debt.

``check_payment`` runs every rule in a fixed order and raises
``DebtPaymentError`` on the first violation, before anything is written.
Monetary comparisons use exact decimal values of the submitted amounts, so
sub-cent input is never rounded into range.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from components.core.exceptions import DebtPaymentError, DuplicatePaymentError
from components.core.money import decimal_from_cents, from_cents, to_decimal
from components.debt.constants import (
    INTEREST_SANITY_MULTIPLIER,
    PAYMENT_TOLERANCE,
    DebtType,
    as_debt_type,
    policy_for,
)

logger = logging.getLogger(__name__)


def check_payment(
    debt,
    payments: Iterable,
    data,
    today: Optional[date] = None,
    duplicate_policy: str = "reject",
) -> None:
    """Validate a payment against the debt's current state."""
    today = today or date.today()

    check_debt_is_active(debt)
    check_payment_date(debt, data.payment_date, today)
    check_principal_within_balance(debt, data.principal_amount)
    check_amount_matches_components(data)
    check_type_consistency(debt, data)
    check_interest_reasonable(debt, data)
    check_duplicate(debt, payments, data, duplicate_policy)


def check_debt_is_active(debt) -> None:
    if not debt.is_active:
        raise DebtPaymentError("Cannot record payment for inactive debt", debt_id=debt.id)


def check_payment_date(debt, payment_date: date, today: date) -> None:
    if payment_date < debt.start_date:
        raise DebtPaymentError(
            "Payment date cannot be before debt start date",
            debt_id=debt.id,
            field="payment_date",
            provided=payment_date.isoformat(),
            expected=f">= {debt.start_date.isoformat()}",
        )
    if payment_date > today:
        raise DebtPaymentError(
            "Payment date cannot be in the future",
            debt_id=debt.id,
            field="payment_date",
            provided=payment_date.isoformat(),
            expected=f"<= {today.isoformat()}",
        )


def check_principal_within_balance(debt, principal_amount: float) -> None:
    if to_decimal(principal_amount) > decimal_from_cents(debt.current_balance_cents):
        current_balance = from_cents(debt.current_balance_cents)
        raise DebtPaymentError(
            f"Principal payment amount ({principal_amount:.2f}) cannot exceed "
            f"current debt balance ({current_balance:.2f})",
            debt_id=debt.id,
            field="principal_amount",
            provided=principal_amount,
            expected=f"<= {current_balance:.2f}",
        )


def check_amount_matches_components(data) -> None:
    interest_amount = data.interest_amount or 0
    components = to_decimal(data.principal_amount) + to_decimal(interest_amount)
    if abs(to_decimal(data.amount) - components) > PAYMENT_TOLERANCE:
        raise DebtPaymentError(
            f"Total payment amount ({data.amount:.2f}) must equal principal ({data.principal_amount:.2f}) "
            f"+ interest/margin ({interest_amount:.2f}) = {float(components):.2f}",
            field="amount",
            provided=data.amount,
            expected=float(components),
        )


def check_type_consistency(debt, data) -> None:
    debt_type = as_debt_type(debt.type)
    interest_amount = data.interest_amount or 0

    if debt_type == DebtType.PERSONAL:
        if interest_amount > 0:
            raise DebtPaymentError(
                "Personal loans cannot have interest payments. Please set interest amount to 0.",
                debt_id=debt.id,
                field="interest_amount",
                provided=interest_amount,
                expected=0,
            )
    elif interest_amount == 0 and data.principal_amount > 0:
        logger.info("Principal-only payment recorded for %s debt %s", debt_type.value, debt.id)


def check_interest_reasonable(debt, data) -> None:
    """Reject interest/margin above twice the naive monthly charge on the balance."""
    interest_amount = data.interest_amount or 0
    rate_field = policy_for(debt.type).rate_field
    if rate_field is None or interest_amount <= 0:
        return

    rate = float(getattr(debt, rate_field) or 0)
    if rate <= 0:
        return

    current_balance = from_cents(debt.current_balance_cents)
    expected_max = current_balance * (rate / 12) * INTEREST_SANITY_MULTIPLIER
    if interest_amount > expected_max:
        raise DebtPaymentError(
            f"Interest/margin amount ({interest_amount:.2f}) seems unusually high. "
            f"Expected maximum based on current balance and rate: {expected_max:.2f}. "
            "Please verify the calculation.",
            debt_id=debt.id,
            field="interest_amount",
            provided=interest_amount,
            expected=f"<= {expected_max:.2f}",
        )


def check_duplicate(debt, payments: Iterable, data, policy: str = "reject") -> None:
    """Flag a payment within a cent of the total already paid on the same date."""
    if policy == "off":
        return

    same_day = [p for p in payments if p.payment_date == data.payment_date]
    if not same_day:
        return

    existing_cents = sum(p.amount_cents for p in same_day)
    if abs(decimal_from_cents(existing_cents) - to_decimal(data.amount)) > PAYMENT_TOLERANCE:
        return

    message = (
        f"A payment of similar amount ({from_cents(existing_cents):.2f}) already exists for this date. "
        "If this is intentional, please adjust the amount slightly or use a different date."
    )
    if policy == "warn":
        logger.warning("Possible duplicate payment on debt %s: %s", debt.id, message)
        return
    raise DuplicatePaymentError(
        message,
        debt_id=debt.id,
        field="payment_date",
        provided=data.payment_date.isoformat(),
    )
