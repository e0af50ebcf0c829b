"""Debt types and the policy tables that drive validation and scheduling."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from components.core.exceptions import UnsupportedDebtTypeError


class DebtType(str, Enum):
    """Kinds of debt a household can hold."""
    PERSONAL = "PERSONAL"
    CONVENTIONAL = "CONVENTIONAL"
    ISLAMIC = "ISLAMIC"


@dataclass(frozen=True)
class DebtTypePolicy:
    """Field requirements for one debt type.

    ``rate_field`` names the single rate the type requires (None when the type
    takes no rate). ``term_ladder`` is a sequence of (max principal, months)
    steps used when no maturity date is set; the last step has no ceiling.
    """
    rate_field: Optional[str]
    rate_bounds: Optional[Tuple[float, float]]
    requires_maturity: bool
    term_ladder: Tuple[Tuple[Optional[float], int], ...]

    def default_term_months(self, principal: float) -> int:
        for ceiling, months in self.term_ladder:
            if ceiling is None or principal <= ceiling:
                return months
        return self.term_ladder[-1][1] if self.term_ladder else 0


RATE_FIELDS = ("interest_rate", "margin_rate")

DEBT_TYPE_POLICIES: Mapping[DebtType, DebtTypePolicy] = MappingProxyType({
    DebtType.PERSONAL: DebtTypePolicy(
        rate_field=None,
        rate_bounds=None,
        requires_maturity=False,
        term_ladder=(),
    ),
    DebtType.CONVENTIONAL: DebtTypePolicy(
        rate_field="interest_rate",
        rate_bounds=(0.001, 0.5),
        requires_maturity=True,
        term_ladder=((10_000, 36), (50_000, 60), (None, 120)),
    ),
    DebtType.ISLAMIC: DebtTypePolicy(
        rate_field="margin_rate",
        rate_bounds=(0.001, 0.3),
        requires_maturity=True,
        term_ladder=((50_000, 60), (200_000, 120), (None, 240)),
    ),
})

DEFAULT_CURRENCY = "IDR"

# Largest principal accepted per currency, in major units
MAX_PRINCIPAL_BY_CURRENCY: Mapping[str, int] = MappingProxyType({
    "IDR": 999_999_999_999,
    "USD": 999_999_999,
    "EUR": 999_999_999,
    "SGD": 999_999_999,
    "MYR": 999_999_999,
    "THB": 999_999_999,
})

SUPPORTED_CURRENCIES: Tuple[str, ...] = tuple(MAX_PRINCIPAL_BY_CURRENCY)

MIN_PRINCIPAL = 1.0
EARLIEST_START_DATE = date(1900, 1, 1)
MAX_TERM_YEARS = 50

DAYS_PER_MONTH = 30.44
PAYMENT_TOLERANCE = Decimal("0.01")
INTEREST_SANITY_MULTIPLIER = 2


def as_debt_type(value) -> DebtType:
    """Coerce a value to DebtType, raising UnsupportedDebtTypeError for unknown types."""
    try:
        return DebtType(value)
    except ValueError:
        raise UnsupportedDebtTypeError(
            f"Unsupported debt type: {getattr(value, 'value', value)}",
            field="type",
            provided=getattr(value, "value", value),
            expected=[t.value for t in DebtType],
        ) from None


def policy_for(debt_type) -> DebtTypePolicy:
    """Return the policy for a debt type."""
    return DEBT_TYPE_POLICIES[as_debt_type(debt_type)]
