"""
CSV parsing utilities for turning uploaded text into transactions.

This module provides a ColumnMap class that resolves the Spanish column names
of the upload format, and parse_transactions() which reads every data row into
an immutable Transaction.

Amount cells are read permissively: anything that is not a number becomes 0,
and rows with neither income nor expense are dropped without error.
"""

import csv
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from .exceptions import EmptyInputError, InvalidDateError, MissingColumnsError
from .models import Transaction

DATE_COLUMN = "fecha"
INCOME_COLUMN = "ingreso"
EXPENSE_COLUMN = "gasto"
REQUIRED_COLUMNS = [DATE_COLUMN, INCOME_COLUMN, EXPENSE_COLUMN]

# Accented spelling first, unaccented fallback
DESCRIPTION_COLUMNS = ["descripción", "descripcion"]
CATEGORY_COLUMNS = ["categoría", "categoria"]

DEFAULT_DESCRIPTION = "N/A"
INCOME_CATEGORY = "Income"
UNCATEGORIZED = "Uncategorized"

ZERO = Decimal("0")

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%m/%d/%y",
    "%d-%m-%y",
    "%m-%d-%y",
]

_NON_NUMERIC = re.compile(r"[^0-9+\-,.]")
_NUMERIC_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")

SeparatorDetector = Callable[[str], str]


def sniff_header_separator(header_line: str) -> str:
    """Pick ';' when the header contains one, otherwise ','."""
    return ";" if ";" in header_line else ","


def split_line(line: str, separator: str) -> List[str]:
    """Split one line on the separator, keeping quoted separators inside their cell."""
    return next(csv.reader([line], delimiter=separator), [])


def clean_cell(value: str) -> str:
    """Trim a cell and strip the quotes around it."""
    return value.strip().strip('"').strip()


def parse_amount(value: Optional[str]) -> Decimal:
    """
    Read an amount cell, treating comma as the decimal separator.

    Args:
        value: Raw cell text, e.g. "15,50", "$1200", "-3.5"

    Returns:
        The amount as a Decimal, or 0 when the cell is empty or unreadable
    """
    if not value:
        return ZERO

    candidate = _NON_NUMERIC.sub("", value).replace(",", ".", 1)
    match = _NUMERIC_PREFIX.match(candidate)
    if not match:
        return ZERO
    return Decimal(match.group(0))


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Read a date cell.

    Args:
        value: Raw cell text, e.g. "2023-12-25" or "25/12/2023"

    Returns:
        The calendar date or None if no known format matches
    """
    if not value:
        return None

    candidate = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue

    # ISO datetimes such as 2023-12-25T10:30:00
    try:
        return datetime.fromisoformat(candidate).date()
    except ValueError:
        return None


class ColumnMap:
    """
    Resolves column positions from a header row.

    Header names are matched case-insensitively after trimming and
    stripping quotes.
    """

    def __init__(self, headers: List[str]):
        """
        Initialize the map from the split header row.

        Args:
            headers: Column names as they appear in the header line

        Raises:
            MissingColumnsError: if fecha, ingreso or gasto is absent
        """
        self.headers = [clean_cell(h).lower() for h in headers]

        missing = [col for col in REQUIRED_COLUMNS if col not in self.headers]
        if missing:
            raise MissingColumnsError(found=self.headers, missing=missing)

        self.date_index = self.headers.index(DATE_COLUMN)
        self.income_index = self.headers.index(INCOME_COLUMN)
        self.expense_index = self.headers.index(EXPENSE_COLUMN)
        self.description_index = self._find_optional(DESCRIPTION_COLUMNS)
        self.category_index = self._find_optional(CATEGORY_COLUMNS)

    def _find_optional(self, candidates: List[str]) -> Optional[int]:
        for name in candidates:
            if name in self.headers:
                return self.headers.index(name)
        return None

    @staticmethod
    def cell(values: List[str], index: Optional[int]) -> str:
        """Value at index, or "" when the column is absent or the row is short."""
        if index is None or index >= len(values):
            return ""
        return values[index]

    def build_transactions(self, values: List[str], line_number: int) -> List[Transaction]:
        """
        Turn one split data row into zero, one or two transactions.

        A row carrying both an income and an expense is split so each
        transaction has exactly one positive side.

        Args:
            values: Cleaned cell values of the row
            line_number: 1-based line number, for error messages

        Returns:
            The transactions the row produces, income before expense
        """
        income = max(parse_amount(self.cell(values, self.income_index)), ZERO)
        expense = max(parse_amount(self.cell(values, self.expense_index)), ZERO)
        if income <= ZERO and expense <= ZERO:
            return []

        raw_date = self.cell(values, self.date_index)
        parsed_date = parse_date(raw_date)
        if parsed_date is None:
            raise InvalidDateError(line_number, raw_date)

        description = self.cell(values, self.description_index) or DEFAULT_DESCRIPTION

        transactions = []
        if income > ZERO:
            transactions.append(
                Transaction(
                    date=parsed_date,
                    description=description,
                    income=income,
                    expense=ZERO,
                    category=INCOME_CATEGORY,
                )
            )
        if expense > ZERO:
            transactions.append(
                Transaction(
                    date=parsed_date,
                    description=description,
                    income=ZERO,
                    expense=expense,
                    category=self.cell(values, self.category_index) or UNCATEGORIZED,
                )
            )
        return transactions


def parse_transactions(
    raw_text: str, detect_separator: SeparatorDetector = sniff_header_separator
) -> List[Transaction]:
    """
    Parse delimited text into transactions, preserving file order.

    Args:
        raw_text: Whole file content, already decoded
        detect_separator: Picks the field separator from the header line

    Returns:
        Every kept transaction; may be empty if all rows were dropped

    Raises:
        EmptyInputError: fewer than two lines
        MissingColumnsError: a required column is absent
        InvalidDateError: a row with an amount has an unreadable date
    """
    lines = raw_text.replace("\r\n", "\n").replace("\r", "\n").strip().split("\n")
    if len(lines) < 2:
        raise EmptyInputError()

    header_line = lines[0].lstrip("\ufeff").strip()
    separator = detect_separator(header_line)
    columns = ColumnMap(split_line(header_line, separator))

    transactions: List[Transaction] = []
    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = [clean_cell(v) for v in split_line(line, separator)]
        transactions.extend(columns.build_transactions(values, line_number))

    return transactions
