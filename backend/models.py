from pydantic import BaseModel, Field
from typing import Any, List, Optional, Union
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class InvestmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"
    refunded = "refunded"

class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    investment = "investment"
    dividend = "dividend"
    ret = "return"  # ROI payout

# Models
class Property(BaseModel):
    id: Optional[int] = None
    name: str
    location: str = ""
    property_type: str = "residential"
    target_return: Union[str, float]  # stored as text, e.g. "12.5%"
    funding_goal: float = 0.0
    funding_progress: float = 0.0
    min_investment: float = 0.0
    duration_months: Optional[int] = None
    status: str = "pending"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

class Investment(BaseModel):
    id: Optional[int] = None
    user_id: int
    property_id: int
    amount: float
    status: InvestmentStatus = InvestmentStatus.pending
    start_date: datetime = Field(default_factory=utcnow)
    earnings: Optional[float] = None  # accumulated payouts, if tracked
    monthly_returns: Optional[List[Any]] = None  # stored series, if any
    created_at: datetime = Field(default_factory=utcnow)

class Transaction(BaseModel):
    id: Optional[int] = None
    user_id: int
    investment_id: Optional[int] = None
    type: TransactionType
    amount: float
    status: str = "completed"
    created_at: datetime = Field(default_factory=utcnow)
