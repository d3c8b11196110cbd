"""
backend/roi_calc.py

ROI arithmetic for property investments.

This is the only place interest math lives; every route that needs a
projection, a forecast or a portfolio valuation imports from here.

Pure Python logic - no FastAPI imports, no database access. Inputs are
plain numbers or the pydantic models from backend.models; outputs are
dataclasses that the route layer turns into response payloads.

Conventions:
- Rates are annual percentages (12.5 means 12.5%), compounded monthly.
- Durations are in years and may be fractional.
- Money is float; no rounding is applied here.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

try:
    from backend.config import (
        DAYS_PER_YEAR,
        EARNINGS_CHART_MONTHS,
        IS_DEV,
        MIN_ANNUAL_RATE_PCT,
        OPTIMISTIC_FACTOR,
        PESSIMISTIC_FACTOR,
        PORTFOLIO_EXCLUDED_STATUSES,
    )
    from backend.models import Investment, Property, Transaction
except ModuleNotFoundError:
    from config import (
        DAYS_PER_YEAR,
        EARNINGS_CHART_MONTHS,
        IS_DEV,
        MIN_ANNUAL_RATE_PCT,
        OPTIMISTIC_FACTOR,
        PESSIMISTIC_FACTOR,
        PORTFOLIO_EXCLUDED_STATUSES,
    )
    from models import Investment, Property, Transaction


MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Optional sign, digits with optional decimals, optional trailing percent sign
_RATE_PATTERN = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))\s*%?\s*$")


# ============================================================================
# Errors
# ============================================================================

class MalformedRateError(ValueError):
    """A stored target return could not be read as a finite percentage."""

    def __init__(self, raw: Any):
        self.raw = raw
        super().__init__(f"Malformed return rate: {raw!r}")


class InvalidInputError(ValueError):
    """A calculator received a value outside its domain (e.g. non-positive principal)."""


# ============================================================================
# Result types
# ============================================================================

@dataclass(frozen=True)
class MonthlyPoint:
    month: int
    value: float


@dataclass
class Projection:
    simple: float
    compound: float
    annualized_return: float
    total_earnings: float
    total_value: float
    monthly_returns: List[MonthlyPoint]


@dataclass
class ScenarioResult:
    return_rate: float
    total_earnings: float
    total_value: float
    monthly_returns: Optional[List[MonthlyPoint]] = None


@dataclass
class Forecast:
    pessimistic: ScenarioResult
    realistic: ScenarioResult
    optimistic: ScenarioResult


@dataclass
class HoldingValuation:
    investment_id: Optional[int]
    property_id: Optional[int]
    property_name: str
    investment_amount: float
    current_value: float
    roi: float
    duration_years: float
    status: str
    accumulated_earnings: Optional[float] = None


@dataclass
class EmptyPortfolio:
    """The investor holds nothing that counts toward portfolio totals."""
    user_id: int
    is_empty: bool = field(default=True, init=False)


@dataclass
class AggregatedPortfolio:
    user_id: int
    total_invested: float
    total_current_value: float
    total_earnings: float
    portfolio_roi: float
    holdings: List[HoldingValuation]
    is_empty: bool = field(default=False, init=False)


PortfolioResult = Union[EmptyPortfolio, AggregatedPortfolio]


@dataclass
class ComparisonEntry:
    property_id: Optional[int]
    property_name: str
    location: str
    target_return: Union[str, float]
    investment_amount: float
    duration: float
    simple_roi: float
    compound_roi: float
    total_return: float
    annualized_return: float


@dataclass
class InvestorStats:
    total_earnings: float
    last_month_earnings: float
    average_roi: float
    active_investments: int


@dataclass
class Distribution:
    investment_id: Optional[int]
    user_id: int
    amount: float
    percentage: float


# ============================================================================
# Helpers
# ============================================================================

def _require_positive(name: str, value: float) -> float:
    # "not value > 0" also rejects NaN
    if isinstance(value, bool) or not value > 0 or math.isinf(value):
        raise InvalidInputError(f"{name} must be a positive finite number, got {value!r}")
    return float(value)


def _require_finite(name: str, value: float) -> float:
    if isinstance(value, bool) or not math.isfinite(value):
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _monthly_rate(annual_rate_pct: float) -> float:
    return annual_rate_pct / 100.0 / 12.0


def _growth_factor(annual_rate_pct: float, months: float) -> float:
    if annual_rate_pct < MIN_ANNUAL_RATE_PCT:
        # A negative base with a fractional exponent has no real result
        raise InvalidInputError(f"annual rate {annual_rate_pct}% is below {MIN_ANNUAL_RATE_PCT}%")
    return (1.0 + _monthly_rate(annual_rate_pct)) ** months


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _add_months(value: datetime, months: int) -> Tuple[int, int]:
    """(year, month) of the calendar month `months` away from `value`."""
    index = value.year * 12 + (value.month - 1) + months
    return index // 12, index % 12 + 1


def elapsed_years(start: datetime, now: datetime, days_per_year: int = DAYS_PER_YEAR) -> float:
    """Continuous years between start and now; future start dates count as zero."""
    seconds = (_as_utc(now) - _as_utc(start)).total_seconds()
    return max(0.0, seconds) / (days_per_year * 24 * 60 * 60)


# ============================================================================
# Rate parser
# ============================================================================

def parse_rate(raw: Any) -> float:
    """
    Read a property's stored target return as an annual percentage.

    "12.5%" -> 12.5, " 8 " -> 8.0, 7 -> 7.0

    Raises:
        MalformedRateError: for None, booleans, unparseable text, or NaN/inf
    """
    if raw is None or isinstance(raw, bool):
        raise MalformedRateError(raw)

    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    elif isinstance(raw, str):
        match = _RATE_PATTERN.match(raw)
        if not match:
            raise MalformedRateError(raw)
        value = float(match.group(1))
    else:
        raise MalformedRateError(raw)

    if not math.isfinite(value):
        raise MalformedRateError(raw)
    return value


# ============================================================================
# Calculators
# ============================================================================

def simple_return(principal: float, annual_rate_pct: float, years: float) -> float:
    """Simple (non-compounding) earnings: principal * rate/100 * years."""
    principal = _require_positive("principal", principal)
    years = _require_positive("years", years)
    annual_rate_pct = _require_finite("annual_rate_pct", annual_rate_pct)
    return principal * (annual_rate_pct / 100.0) * years


def compound_return(principal: float, annual_rate_pct: float, years: float) -> float:
    """
    Earnings under monthly compounding.

    final = principal * (1 + rate/100/12) ** (years * 12); returns final - principal.
    The month count is not rounded, so fractional durations are valued exactly.
    A zero rate yields zero, a negative rate models a loss.
    """
    principal = _require_positive("principal", principal)
    years = _require_positive("years", years)
    annual_rate_pct = _require_finite("annual_rate_pct", annual_rate_pct)
    return principal * _growth_factor(annual_rate_pct, years * 12.0) - principal


def monthly_schedule(principal: float, annual_rate_pct: float, years: float) -> List[MonthlyPoint]:
    """
    Month-by-month balance for charting.

    The running balance grows by balance * monthly_rate once per month, for
    every completed month in the duration (floor(years * 12) entries).
    """
    principal = _require_positive("principal", principal)
    years = _require_positive("years", years)
    annual_rate_pct = _require_finite("annual_rate_pct", annual_rate_pct)

    monthly_rate = _monthly_rate(annual_rate_pct)
    total_months = int(math.floor(years * 12.0 + 1e-9))

    schedule: List[MonthlyPoint] = []
    balance = principal
    for month in range(1, total_months + 1):
        balance += balance * monthly_rate
        schedule.append(MonthlyPoint(month=month, value=balance))
    return schedule


def annualized_return(principal: float, total_value: float, years: float) -> float:
    """Equivalent constant annual growth, in percent."""
    principal = _require_positive("principal", principal)
    years = _require_positive("years", years)
    if total_value < 0:
        raise InvalidInputError(f"total_value must not be negative, got {total_value!r}")
    return ((total_value / principal) ** (1.0 / years) - 1.0) * 100.0


def project_returns(principal: float, annual_rate_pct: float, years: float) -> Projection:
    """Full projection for a single property investment."""
    simple = simple_return(principal, annual_rate_pct, years)
    compound = compound_return(principal, annual_rate_pct, years)
    total_value = principal + compound
    return Projection(
        simple=simple,
        compound=compound,
        annualized_return=annualized_return(principal, total_value, years),
        total_earnings=compound,
        total_value=total_value,
        monthly_returns=monthly_schedule(principal, annual_rate_pct, years),
    )


# ============================================================================
# Scenario forecaster
# ============================================================================

def scenario_rates(
    base_rate: float,
    overrides: Optional[Mapping[str, Optional[float]]] = None,
    pessimistic_factor: float = PESSIMISTIC_FACTOR,
    optimistic_factor: float = OPTIMISTIC_FACTOR,
) -> Dict[str, float]:
    """Scenario rates derived from the base rate; explicit overrides win (0 included)."""
    rates = {
        "pessimistic": base_rate * pessimistic_factor,
        "realistic": base_rate,
        "optimistic": base_rate * optimistic_factor,
    }
    for name, value in (overrides or {}).items():
        if name in rates and value is not None:
            rates[name] = float(value)
    return rates


def forecast_scenarios(
    principal: float,
    base_rate: float,
    years: float,
    overrides: Optional[Mapping[str, Optional[float]]] = None,
) -> Forecast:
    """Independent compound runs for the pessimistic, realistic and optimistic rates."""
    rates = scenario_rates(base_rate, overrides)

    results: Dict[str, ScenarioResult] = {}
    for name, rate in rates.items():
        earnings = compound_return(principal, rate, years)
        results[name] = ScenarioResult(
            return_rate=rate,
            total_earnings=earnings,
            total_value=principal + earnings,
        )

    results["realistic"].monthly_returns = monthly_schedule(principal, rates["realistic"], years)
    return Forecast(**results)


# ============================================================================
# Portfolio aggregator
# ============================================================================

def value_holding(investment: Investment, prop: Property, now: datetime) -> HoldingValuation:
    """Current value of one investment, compounding over the time actually elapsed."""
    amount = _require_positive("investment amount", investment.amount)
    rate = parse_rate(prop.target_return)
    years = elapsed_years(investment.start_date, now)
    current_value = amount * _growth_factor(rate, years * 12.0)

    return HoldingValuation(
        investment_id=investment.id,
        property_id=prop.id,
        property_name=prop.name,
        investment_amount=amount,
        current_value=current_value,
        roi=(current_value - amount) / amount * 100.0,
        duration_years=years,
        status=_status_value(investment.status),
        accumulated_earnings=investment.earnings,
    )


def aggregate_portfolio(
    user_id: int,
    holdings: Iterable[Tuple[Investment, Property]],
    now: Optional[datetime] = None,
    excluded_statuses: Iterable[str] = PORTFOLIO_EXCLUDED_STATUSES,
) -> PortfolioResult:
    """
    Sum current values across one investor's holdings.

    `user_id` is the authenticated investor; it is carried into the result
    so callers never need request-scoped state to know whose portfolio this is.
    Holdings in an excluded status are skipped. When nothing is left the
    result is EmptyPortfolio and no ROI percentage is computed.
    """
    now = now or datetime.now(timezone.utc)
    excluded = set(excluded_statuses)

    valuations: List[HoldingValuation] = []
    for investment, prop in holdings:
        if _status_value(investment.status) in excluded:
            continue
        valuations.append(value_holding(investment, prop, now))

    total_invested = sum(v.investment_amount for v in valuations)
    if not valuations or total_invested <= 0:
        return EmptyPortfolio(user_id=user_id)

    total_current_value = sum(v.current_value for v in valuations)
    return AggregatedPortfolio(
        user_id=user_id,
        total_invested=total_invested,
        total_current_value=total_current_value,
        total_earnings=total_current_value - total_invested,
        portfolio_roi=(total_current_value - total_invested) / total_invested * 100.0,
        holdings=valuations,
    )


# ============================================================================
# Comparator
# ============================================================================

def compare_properties(properties: Sequence[Property], principal: float, years: float) -> List[ComparisonEntry]:
    """
    Same principal and duration run against each property, in the order given.

    Properties whose stored rate cannot be parsed are left out of the result.
    """
    principal = _require_positive("principal", principal)
    years = _require_positive("years", years)

    entries: List[ComparisonEntry] = []
    for prop in properties:
        try:
            rate = parse_rate(prop.target_return)
        except MalformedRateError as e:
            print(f"[ROI] Skipping property_id={prop.id} in comparison: {e}")
            continue

        compound = compound_return(principal, rate, years)
        total_return = principal + compound
        entries.append(ComparisonEntry(
            property_id=prop.id,
            property_name=prop.name,
            location=prop.location,
            target_return=prop.target_return,
            investment_amount=principal,
            duration=years,
            simple_roi=simple_return(principal, rate, years),
            compound_roi=compound,
            total_return=total_return,
            annualized_return=annualized_return(principal, total_return, years),
        ))
    return entries


# ============================================================================
# Investor statistics and earnings chart
# ============================================================================

def investor_stats(
    holdings: Iterable[Tuple[Investment, Property]],
    return_transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> InvestorStats:
    """
    Dashboard figures for one investor.

    average_roi is the mean target return of the distinct properties behind
    active or completed holdings, rounded to one decimal.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    year, month = _add_months(now, -1)
    # Same day one month back, clamped to the end of a shorter month
    day = min(now.day, _days_in_month(year, month))
    last_month_cutoff = now.replace(year=year, month=month, day=day)

    total_earnings = 0.0
    last_month_earnings = 0.0
    for tx in return_transactions:
        total_earnings += tx.amount
        if _as_utc(tx.created_at) >= last_month_cutoff:
            last_month_earnings += tx.amount

    rates_by_property: Dict[Any, float] = {}
    active_investments = 0
    for investment, prop in holdings:
        status = _status_value(investment.status)
        if status == "active":
            active_investments += 1
        if status in ("active", "completed"):
            rates_by_property[prop.id] = parse_rate(prop.target_return)

    average_roi = 0.0
    if rates_by_property:
        average_roi = round(sum(rates_by_property.values()) / len(rates_by_property), 1)

    return InvestorStats(
        total_earnings=total_earnings,
        last_month_earnings=last_month_earnings,
        average_roi=average_roi,
        active_investments=active_investments,
    )


def _days_in_month(year: int, month: int) -> int:
    next_year, next_month = (year + 1, 1) if month == 12 else (year, month + 1)
    return (datetime(next_year, next_month, 1) - datetime(year, month, 1)).days


def monthly_earnings(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
    months: int = EARNINGS_CHART_MONTHS,
) -> List[Dict[str, Any]]:
    """
    Payout totals per calendar month for the last `months` months.

    Oldest month first, current month last; months without payouts are 0.0.
    """
    if months < 1:
        raise InvalidInputError(f"months must be at least 1, got {months!r}")
    now = _as_utc(now or datetime.now(timezone.utc))

    buckets: Dict[Tuple[int, int], float] = {}
    for offset in range(months - 1, -1, -1):
        buckets[_add_months(now, -offset)] = 0.0

    for tx in transactions:
        created = _as_utc(tx.created_at)
        key = (created.year, created.month)
        if key in buckets:
            buckets[key] += tx.amount

    return [
        {"month": f"{MONTH_LABELS[month - 1]} {year}", "amount": amount}
        for (year, month), amount in buckets.items()
    ]


# ============================================================================
# Distribution preview
# ============================================================================

DISTRIBUTION_METHODS = ("pro-rata", "fixed")


def calculate_distributions(
    investments: Sequence[Investment],
    total_amount: float,
    method: str = "pro-rata",
    overrides: Optional[Mapping[str, float]] = None,
    excluded_statuses: Iterable[str] = PORTFOLIO_EXCLUDED_STATUSES,
) -> List[Distribution]:
    """
    Split a payout across a property's investors.

    pro-rata: each investment receives total_amount * pct / 100, where pct is
    its share of the invested capital unless overrides[str(user_id)] gives
    a percentage for that investor.
    fixed: each investment receives overrides[str(user_id)] (absolute
    amount) or nothing; percentage is that amount's share of total_amount.
    """
    if method not in DISTRIBUTION_METHODS:
        raise InvalidInputError(f"method must be one of {DISTRIBUTION_METHODS}, got {method!r}")
    total_amount = _require_positive("total_amount", total_amount)
    overrides = overrides or {}
    excluded = set(excluded_statuses)

    eligible = [inv for inv in investments if _status_value(inv.status) not in excluded]
    capital = sum(inv.amount for inv in eligible)

    distributions: List[Distribution] = []
    for inv in eligible:
        override = overrides.get(str(inv.user_id))
        if method == "pro-rata":
            stake = (inv.amount / capital * 100.0) if capital > 0 else 0.0
            percentage = float(override) if override is not None else stake
            amount = total_amount * percentage / 100.0
        else:
            amount = float(override) if override is not None else 0.0
            percentage = amount / total_amount * 100.0
        distributions.append(Distribution(
            investment_id=inv.id,
            user_id=inv.user_id,
            amount=amount,
            percentage=percentage,
        ))

    if IS_DEV:
        print(f"[ROI] Distribution preview: method={method}, investments={len(distributions)}, "
              f"total={sum(d.amount for d in distributions):.2f}")
    return distributions
