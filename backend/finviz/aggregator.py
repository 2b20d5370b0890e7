"""Transaction aggregation: totals, monthly series and category breakdown."""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from .models import AnalysisResult, CategoryTotal, MonthlyTotals, Transaction

# es-ES short month names, January first
MONTH_ABBREVIATIONS = [
    "ene", "feb", "mar", "abr", "may", "jun",
    "jul", "ago", "sept", "oct", "nov", "dic",
]

ZERO = Decimal("0")

Period = Tuple[int, int]


def period_label(year: int, month: int) -> str:
    """Display label for a month bucket, e.g. "ene 2023"."""
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year:04d}"


class FinancialAggregator:
    """Builds an AnalysisResult from a sequence of transactions."""

    def aggregate(self, transactions: Iterable[Transaction]) -> AnalysisResult:
        """
        Aggregate transactions into totals, months and expense categories.

        Args:
            transactions: Parsed transactions, in any order

        Returns:
            A frozen AnalysisResult; all zeros and empty lists for no input
        """
        total_income = ZERO
        total_expenses = ZERO
        # dicts keep first-seen order, which the stable sort below relies on
        expenses_by_category: Dict[str, Decimal] = {}
        monthly: Dict[Period, Dict[str, Decimal]] = defaultdict(
            lambda: {"income": ZERO, "expense": ZERO}
        )

        for txn in transactions:
            total_income += txn.income
            total_expenses += txn.expense

            if txn.expense > ZERO:
                expenses_by_category[txn.category] = (
                    expenses_by_category.get(txn.category, ZERO) + txn.expense
                )

            bucket = monthly[(txn.date.year, txn.date.month)]
            bucket["income"] += txn.income
            bucket["expense"] += txn.expense

        return AnalysisResult(
            total_income=total_income,
            total_expenses=total_expenses,
            net_balance=total_income - total_expenses,
            income_expense_data=self._monthly_series(monthly),
            expense_category_data=self._category_breakdown(expenses_by_category),
        )

    @staticmethod
    def _monthly_series(monthly: Dict[Period, Dict[str, Decimal]]) -> List[MonthlyTotals]:
        return [
            MonthlyTotals(
                period_label=period_label(year, month),
                year=year,
                month=month,
                income=totals["income"],
                expense=totals["expense"],
            )
            for (year, month), totals in sorted(monthly.items())
        ]

    @staticmethod
    def _category_breakdown(expenses_by_category: Dict[str, Decimal]) -> List[CategoryTotal]:
        ranked = sorted(expenses_by_category.items(), key=lambda item: item[1], reverse=True)
        return [CategoryTotal(category=name, total_expense=total) for name, total in ranked]


def aggregate(transactions: Iterable[Transaction]) -> AnalysisResult:
    """Aggregate with a default FinancialAggregator."""
    return FinancialAggregator().aggregate(transactions)
