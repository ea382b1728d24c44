from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import (
    PaymentMethod,
    RecurringInterval,
    ReportStatus,
    TransactionStatus,
    TransactionType,
)


class UserIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)


class TransactionIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: TransactionType
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=100)
    date: datetime
    description: Optional[str] = None
    receipt_url: Optional[str] = Field(default=None, max_length=500)
    status: TransactionStatus = TransactionStatus.completed
    payment_method: PaymentMethod = PaymentMethod.cash
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None


class ReportSettingIn(BaseModel):
    is_enabled: bool


class CategorySpend(BaseModel):
    name: str
    amount: float
    percent: int


class ReportSummary(BaseModel):
    income: float
    expenses: float
    balance: float
    savings_rate: float
    top_categories: list[CategorySpend] = Field(default_factory=list)


class ReportOut(BaseModel):
    period: str
    summary: ReportSummary
    insights: list[str] = Field(default_factory=list)


class ReportRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period: str
    sent_date: datetime
    status: ReportStatus
    created_at: datetime


class Pagination(BaseModel):
    page_size: int
    page_number: int
    total_count: int
    total_pages: int
    skip: int


class ReportPage(BaseModel):
    reports: list[ReportRecordOut]
    pagination: Pagination


class JobResult(BaseModel):
    success: bool
    processed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    error: Optional[str] = None
