"""Validation rules for debt fields.

Rules are applied on create, and on update whenever a type-relevant field
changes. The first failing rule raises ``DebtValidationError`` carrying the
offending field together with the provided value and the expected bounds.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from dateutil.relativedelta import relativedelta

from components.core.exceptions import DebtValidationError
from components.core.money import from_cents
from components.debt.constants import (
    DEFAULT_CURRENCY,
    EARLIEST_START_DATE,
    MAX_PRINCIPAL_BY_CURRENCY,
    MAX_TERM_YEARS,
    MIN_PRINCIPAL,
    RATE_FIELDS,
    SUPPORTED_CURRENCIES,
    DebtType,
    as_debt_type,
    policy_for,
)

_FORBIDDEN_RATE_MESSAGES = {
    (DebtType.PERSONAL, "interest_rate"): (
        "Personal loans cannot have interest rates. "
        "Personal loans are typically zero-interest arrangements between individuals."
    ),
    (DebtType.PERSONAL, "margin_rate"): (
        "Personal loans cannot have margin rates. "
        "Use conventional or Islamic debt types for commercial financing."
    ),
    (DebtType.CONVENTIONAL, "margin_rate"): (
        "Conventional debt cannot have margin rates. Margin rates are used for Islamic financing only."
    ),
    (DebtType.ISLAMIC, "interest_rate"): (
        "Islamic financing cannot have interest rates. Islamic finance uses profit margins instead of interest."
    ),
}

_REQUIRED_RATE_MESSAGES = {
    DebtType.CONVENTIONAL: (
        "Conventional debt must have an interest rate. "
        "Please specify the annual interest rate as a decimal (e.g., 0.12 for 12%)."
    ),
    DebtType.ISLAMIC: (
        "Islamic financing must have a margin rate. "
        "Please specify the profit margin rate as a decimal (e.g., 0.06 for 6%)."
    ),
}

_MISSING_MATURITY_MESSAGES = {
    DebtType.CONVENTIONAL: "Conventional debt should have a maturity date for proper payment schedule calculation.",
    DebtType.ISLAMIC: "Islamic financing should have a maturity date for proper Murabahah contract terms.",
}

_RATE_NAMES = {"interest_rate": "Interest rate", "margin_rate": "Margin rate"}


def validate_debt_fields(candidate) -> None:
    """Validate a debt candidate; raise DebtValidationError on the first violation."""
    validate_dates(candidate.start_date, candidate.maturity_date)
    validate_type_fields(candidate)
    validate_amount(candidate.principal_amount, candidate.currency)


def validate_dates(start_date, maturity_date) -> None:
    if start_date < EARLIEST_START_DATE:
        raise DebtValidationError(
            f"Start date cannot be before {EARLIEST_START_DATE.isoformat()}",
            field="start_date",
            provided=start_date.isoformat(),
            expected=f">= {EARLIEST_START_DATE.isoformat()}",
        )

    if maturity_date is None:
        return

    if maturity_date <= start_date:
        raise DebtValidationError(
            "Maturity date must be after start date",
            field="maturity_date",
            provided=maturity_date.isoformat(),
            expected=f"> {start_date.isoformat()}",
        )

    latest = start_date + relativedelta(years=MAX_TERM_YEARS)
    if maturity_date > latest:
        raise DebtValidationError(
            f"Debt term cannot exceed {MAX_TERM_YEARS} years",
            field="maturity_date",
            provided=maturity_date.isoformat(),
            expected=f"<= {latest.isoformat()}",
        )


def validate_type_fields(candidate) -> None:
    debt_type = as_debt_type(candidate.type)
    policy = policy_for(debt_type)

    for rate_field in RATE_FIELDS:
        value = getattr(candidate, rate_field, None)
        if rate_field != policy.rate_field and value is not None:
            raise DebtValidationError(
                _FORBIDDEN_RATE_MESSAGES[(debt_type, rate_field)],
                field=rate_field,
                provided=value,
                expected="not set",
            )

    if policy.rate_field is not None:
        rate_field = policy.rate_field
        value = getattr(candidate, rate_field, None)
        if value is None:
            raise DebtValidationError(
                _REQUIRED_RATE_MESSAGES[debt_type],
                field=rate_field,
                expected="required",
            )

        low, high = policy.rate_bounds
        if value < low:
            raise DebtValidationError(
                f"{_RATE_NAMES[rate_field]} seems unusually low. Please verify the rate is correct.",
                field=rate_field,
                provided=value,
                expected=f">= {low}",
            )
        if value > high:
            raise DebtValidationError(
                f"{_RATE_NAMES[rate_field]} exceeds reasonable limits ({high:.0%} annually). "
                "Please verify the rate is correct.",
                field=rate_field,
                provided=value,
                expected=f"<= {high}",
            )

    if policy.requires_maturity and candidate.maturity_date is None:
        raise DebtValidationError(
            _MISSING_MATURITY_MESSAGES[debt_type],
            field="maturity_date",
            expected="required",
        )


def validate_amount(principal_amount: float, currency) -> None:
    currency = currency or DEFAULT_CURRENCY
    if currency not in SUPPORTED_CURRENCIES:
        raise DebtValidationError(
            f"Currency {currency} is not supported. Supported currencies: {', '.join(SUPPORTED_CURRENCIES)}",
            field="currency",
            provided=currency,
            expected=list(SUPPORTED_CURRENCIES),
        )

    if principal_amount < MIN_PRINCIPAL:
        raise DebtValidationError(
            f"Principal amount must be at least {MIN_PRINCIPAL:.2f}",
            field="principal_amount",
            provided=principal_amount,
            expected=f">= {MIN_PRINCIPAL:.2f}",
        )

    max_amount = MAX_PRINCIPAL_BY_CURRENCY[currency]
    if principal_amount > max_amount:
        raise DebtValidationError(
            f"Principal amount exceeds maximum allowed for {currency}: {max_amount:,}",
            field="principal_amount",
            provided=principal_amount,
            expected=f"<= {max_amount}",
        )


TYPE_RELEVANT_FIELDS = frozenset({
    "type",
    "principal_amount",
    "interest_rate",
    "margin_rate",
    "start_date",
    "maturity_date",
})


@dataclass(frozen=True)
class DebtCandidate:
    """The fields validation looks at, for a stored debt with pending changes."""
    type: DebtType
    principal_amount: float
    currency: str
    interest_rate: Optional[float]
    margin_rate: Optional[float]
    start_date: date
    maturity_date: Optional[date]

    @classmethod
    def from_debt(cls, debt, changes: Mapping[str, Any]) -> "DebtCandidate":
        def pick(name: str, fallback):
            value = changes.get(name)
            return fallback if value is None else value

        def rate(name: str) -> Optional[float]:
            value = changes[name] if name in changes else getattr(debt, name)
            return None if value is None else float(value)

        return cls(
            type=pick("type", debt.type),
            principal_amount=pick("principal_amount", from_cents(debt.principal_amount_cents)),
            currency=debt.currency,
            interest_rate=rate("interest_rate"),
            margin_rate=rate("margin_rate"),
            start_date=pick("start_date", debt.start_date),
            maturity_date=changes["maturity_date"] if "maturity_date" in changes else debt.maturity_date,
        )
