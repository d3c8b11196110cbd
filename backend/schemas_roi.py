"""
backend/schemas_roi.py

Pydantic schemas for the ROI endpoints.

Wire format is camelCase (propertyId, investmentAmount, ...); Python
attributes stay snake_case and map to the wire names through aliases.
Request constraints (positive amounts, non-empty id lists) are enforced
here so the handlers only ever see valid input.
"""

from __future__ import annotations

import math
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, validator

try:
    from backend.config import DEFAULT_DURATION_YEARS, MAX_DURATION_YEARS, MIN_ANNUAL_RATE_PCT
except ModuleNotFoundError:
    from config import DEFAULT_DURATION_YEARS, MAX_DURATION_YEARS, MIN_ANNUAL_RATE_PCT


class CamelModel(BaseModel):
    """Base for response payloads built from snake_case attributes."""

    class Config:
        populate_by_name = True


# ========================================================================
# REQUESTS
# ========================================================================

class PropertyROIRequest(BaseModel):
    """Projection of one investment into one property."""
    property_id: int = Field(..., alias="propertyId", description="Property to project against")
    investment_amount: float = Field(..., gt=0, allow_inf_nan=False, alias="investmentAmount", description="Principal")
    duration: float = Field(DEFAULT_DURATION_YEARS, gt=0, le=MAX_DURATION_YEARS, allow_inf_nan=False, description="Holding period in years")


class CompareROIRequest(BaseModel):
    """Same principal and duration run against several properties."""
    property_ids: List[int] = Field(..., min_length=1, alias="propertyIds", description="Properties to compare")
    investment_amount: float = Field(..., gt=0, allow_inf_nan=False, alias="investmentAmount", description="Principal")
    duration: float = Field(DEFAULT_DURATION_YEARS, gt=0, le=MAX_DURATION_YEARS, allow_inf_nan=False, description="Holding period in years")


class ScenarioOverrides(BaseModel):
    """Explicit annual rates (percent) replacing the derived scenario rates."""
    pessimistic: Optional[float] = Field(None, ge=MIN_ANNUAL_RATE_PCT, allow_inf_nan=False)
    realistic: Optional[float] = Field(None, ge=MIN_ANNUAL_RATE_PCT, allow_inf_nan=False)
    optimistic: Optional[float] = Field(None, ge=MIN_ANNUAL_RATE_PCT, allow_inf_nan=False)


class ForecastRequest(BaseModel):
    property_id: int = Field(..., alias="propertyId")
    investment_amount: float = Field(..., gt=0, allow_inf_nan=False, alias="investmentAmount")
    duration: float = Field(..., gt=0, le=MAX_DURATION_YEARS, allow_inf_nan=False, description="Holding period in years")
    scenarios: Optional[ScenarioOverrides] = None


class DistributionPreviewRequest(BaseModel):
    """
    Payout split preview for one property.

    override_rates is keyed by user id (as a string): a percentage for
    pro-rata, an absolute amount for fixed.
    """
    property_id: int = Field(..., alias="propertyId")
    total_amount: float = Field(..., gt=0, allow_inf_nan=False, alias="totalAmount")
    method: Literal["pro-rata", "fixed"] = "pro-rata"
    override_rates: Optional[Dict[str, float]] = Field(None, alias="overrideRates")

    @validator("override_rates")
    def validate_override_rates(cls, v):
        """Overrides must be finite and not negative."""
        if v:
            for user_id, rate in v.items():
                if not math.isfinite(rate):
                    raise ValueError(f"override for user {user_id} must be a finite number")
                if rate < 0:
                    raise ValueError(f"override for user {user_id} must not be negative")
        return v


# ========================================================================
# RESPONSES
# ========================================================================

class PropertySummary(CamelModel):
    id: int
    name: str
    target_return: Union[str, float] = Field(..., alias="targetReturn")


class InvestmentSummary(CamelModel):
    amount: float
    duration: float


class MonthlyPointOut(CamelModel):
    month: int
    value: float


class ReturnsOut(CamelModel):
    simple: float
    compound: float
    annualized_return: float = Field(..., alias="annualizedReturn")
    total_earnings: float = Field(..., alias="totalEarnings")
    total_value: float = Field(..., alias="totalValue")
    monthly_returns: List[MonthlyPointOut] = Field(default_factory=list, alias="monthlyReturns")


class PropertyROIResponse(CamelModel):
    property: PropertySummary
    investment: InvestmentSummary
    returns: ReturnsOut


class PortfolioTotals(CamelModel):
    total_invested: float = Field(..., alias="totalInvested")
    total_current_value: float = Field(..., alias="totalCurrentValue")
    portfolio_roi: float = Field(..., alias="portfolioROI")
    total_earnings: float = Field(..., alias="totalEarnings")


class HoldingOut(CamelModel):
    property_id: Optional[int] = Field(None, alias="propertyId")
    property_name: str = Field(..., alias="propertyName")
    investment_id: Optional[int] = Field(None, alias="investmentId")
    investment_amount: float = Field(..., alias="investmentAmount")
    current_value: float = Field(..., alias="currentValue")
    roi: float
    duration_years: float = Field(..., alias="durationYears")
    status: str
    accumulated_earnings: Optional[float] = Field(None, alias="accumulatedEarnings")


class PortfolioResponse(CamelModel):
    """status is "aggregated" with totals, or "empty" with portfolio=None."""
    status: Literal["aggregated", "empty"]
    message: Optional[str] = None
    portfolio: Optional[PortfolioTotals] = None
    investments: List[HoldingOut] = Field(default_factory=list)


class ComparisonOut(CamelModel):
    property_id: Optional[int] = Field(None, alias="propertyId")
    property_name: str = Field(..., alias="propertyName")
    location: str
    target_return: Union[str, float] = Field(..., alias="targetReturn")
    investment_amount: float = Field(..., alias="investmentAmount")
    duration: float
    simple_roi: float = Field(..., alias="simpleROI")
    compound_roi: float = Field(..., alias="compoundROI")
    total_return: float = Field(..., alias="totalReturn")
    annualized_return: float = Field(..., alias="annualizedReturn")


class CompareROIResponse(CamelModel):
    comparison: List[ComparisonOut] = Field(default_factory=list)


class ScenarioOut(CamelModel):
    return_rate: float = Field(..., alias="returnRate")
    total_earnings: float = Field(..., alias="totalEarnings")
    total_value: float = Field(..., alias="totalValue")
    monthly_returns: Optional[List[MonthlyPointOut]] = Field(None, alias="monthlyReturns")


class ScenariosOut(CamelModel):
    pessimistic: ScenarioOut
    realistic: ScenarioOut
    optimistic: ScenarioOut


class ForecastResponse(CamelModel):
    property: PropertySummary
    investment: InvestmentSummary
    scenarios: ScenariosOut


class InvestorStatsResponse(CamelModel):
    total_earnings: float = Field(..., alias="totalEarnings")
    last_month_earnings: float = Field(..., alias="lastMonthEarnings")
    average_roi: float = Field(..., alias="averageRoi")
    active_investments: int = Field(..., alias="activeInvestments")


class MonthlyEarningsOut(CamelModel):
    month: str = Field(..., description='Calendar month label, e.g. "Mar 2026"')
    amount: float


class EarningsChartResponse(CamelModel):
    months: List[MonthlyEarningsOut] = Field(default_factory=list)


class DistributionOut(CamelModel):
    investment_id: Optional[int] = Field(None, alias="investmentId")
    user_id: int = Field(..., alias="userId")
    amount: float
    percentage: float


class DistributionPreviewResponse(CamelModel):
    property_id: int = Field(..., alias="propertyId")
    total_amount: float = Field(..., alias="totalAmount")
    method: str
    distributions: List[DistributionOut] = Field(default_factory=list)
    total_distributed: float = Field(..., alias="totalDistributed")
