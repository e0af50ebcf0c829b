"""Bulk import of debts from CSV files."""

import io
from typing import Dict, List, Tuple

import pandas as pd
from pydantic import ValidationError

from components.core.exceptions import DebtValidationError
from components.debt.schemas import DebtCreate
from components.debt.validation import validate_debt_fields

REQUIRED_COLUMNS = ("type", "name", "creditor", "principal_amount", "start_date")
OPTIONAL_COLUMNS = ("currency", "interest_rate", "margin_rate", "maturity_date")


def parse_debts_csv(content: bytes) -> Tuple[List[DebtCreate], List[Dict]]:
    """
    Parse and validate debts from CSV content.

    The file needs a header row with at least the columns in REQUIRED_COLUMNS;
    dates are ISO formatted (YYYY-MM-DD) and amounts are major units.

    Returns:
        Tuple containing:
        - Debts that passed every validation rule
        - List of row errors ({"row": ..., "message": ...}); rows are counted
          from 2 to account for the header row
    """
    try:
        frame = pd.read_csv(io.BytesIO(content), dtype=str, skipinitialspace=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        return [], [{"row": 0, "message": f"Could not read CSV file: {exc}"}]

    frame.columns = [str(column).strip() for column in frame.columns]
    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        return [], [{"row": 1, "message": f"CSV file is missing columns: {', '.join(missing)}"}]

    debts: List[DebtCreate] = []
    errors: List[Dict] = []
    columns = [column for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if column in frame.columns]

    for row_num, (_, row) in enumerate(frame.iterrows(), start=2):
        values = {
            column: str(row[column]).strip()
            for column in columns
            if not pd.isna(row[column]) and str(row[column]).strip()
        }
        if "type" in values:
            values["type"] = values["type"].upper()
        if "currency" in values:
            values["currency"] = values["currency"].upper()

        try:
            debt = DebtCreate(**values)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            errors.append({"row": row_num, "message": f"{field}: {first['msg']}"})
            continue

        try:
            validate_debt_fields(debt)
        except DebtValidationError as exc:
            errors.append({"row": row_num, "message": exc.message})
            continue

        debts.append(debt)

    return debts, errors
