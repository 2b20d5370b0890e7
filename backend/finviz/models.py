# Data models for the finance visualizer
import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    description: str = "N/A"
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    category: str

    @model_validator(mode="after")
    def check_one_sided(self) -> "Transaction":
        if self.income < 0 or self.expense < 0:
            raise ValueError("income and expense must be non-negative")
        if (self.income > 0) == (self.expense > 0):
            raise ValueError("exactly one of income or expense must be positive")
        return self


class MonthlyTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    period_label: str
    year: int
    month: int
    income: Decimal
    expense: Decimal


class CategoryTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    total_expense: Decimal


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_income: Decimal
    total_expenses: Decimal
    net_balance: Decimal
    income_expense_data: List[MonthlyTotals] = Field(default_factory=list)
    expense_category_data: List[CategoryTotal] = Field(default_factory=list)


class AnalyzeRequest(BaseModel):
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class UploadResponse(BaseModel):
    session_id: str
    total_transactions: int
    transactions: List[Transaction]
    analysis: AnalysisResult


class InsightsResponse(BaseModel):
    session_id: str
    insights: str


class ChatResponse(BaseModel):
    session_id: str
    reply: str
