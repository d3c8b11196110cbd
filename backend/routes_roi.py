"""
backend/routes_roi.py

ROI projection, portfolio valuation and payout preview endpoints.

Security guarantees:
- All endpoints require authentication (require_auth_context)
- Projection endpoints require capability "roi:read"
- Portfolio endpoints require capability "roi:portfolio" and only ever read
  the caller's own investments (user id from the auth context, never the body)
- Distribution preview requires capability "roi:distribute" (admins)

Error mapping:
- invalid body -> 400 (handler registered in main.py)
- unknown property -> 404
- database failure -> 500 "Database error"
- calculation failure (malformed stored rate, overflow, ...) -> 500 with a
  generic message; the cause is printed, never returned
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

try:
    from backend.auth_context import AuthContext, require_auth_context
    from backend.config import EARNINGS_CHART_MONTHS, IS_DEV
    from backend.db import get_db_connection
    from backend.dependencies import require_capability
    from backend.models import TransactionType
    from backend.rbac import Capability
    from backend import roi_calc
    from backend.roi_calc import MonthlyPoint
    from backend import storage
    from backend.schemas_roi import (
        CompareROIRequest,
        CompareROIResponse,
        ComparisonOut,
        DistributionOut,
        DistributionPreviewRequest,
        DistributionPreviewResponse,
        EarningsChartResponse,
        ForecastRequest,
        ForecastResponse,
        HoldingOut,
        InvestmentSummary,
        InvestorStatsResponse,
        MonthlyEarningsOut,
        MonthlyPointOut,
        PortfolioResponse,
        PortfolioTotals,
        PropertyROIRequest,
        PropertyROIResponse,
        PropertySummary,
        ReturnsOut,
        ScenarioOut,
        ScenariosOut,
    )
except ModuleNotFoundError:
    from auth_context import AuthContext, require_auth_context
    from config import EARNINGS_CHART_MONTHS, IS_DEV
    from db import get_db_connection
    from dependencies import require_capability
    from models import TransactionType
    from rbac import Capability
    import roi_calc
    from roi_calc import MonthlyPoint
    import storage
    from schemas_roi import (
        CompareROIRequest,
        CompareROIResponse,
        ComparisonOut,
        DistributionOut,
        DistributionPreviewRequest,
        DistributionPreviewResponse,
        EarningsChartResponse,
        ForecastRequest,
        ForecastResponse,
        HoldingOut,
        InvestmentSummary,
        InvestorStatsResponse,
        MonthlyEarningsOut,
        MonthlyPointOut,
        PortfolioResponse,
        PortfolioTotals,
        PropertyROIRequest,
        PropertyROIResponse,
        PropertySummary,
        ReturnsOut,
        ScenarioOut,
        ScenariosOut,
    )


DB_ERRORS = (sqlite3.Error, SQLAlchemyError)
CALC_ERRORS = (ValueError, ArithmeticError)

router = APIRouter(
    prefix="/roi",
    tags=["roi"],
)


def _db_error(where: str, e: Exception) -> HTTPException:
    print(f"[ROI] DB error in {where}: {e}")
    return HTTPException(status_code=500, detail="Database error")


def _calc_error(where: str, message: str, e: Exception) -> HTTPException:
    print(f"[ROI] Calculation error in {where}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=message)


def _schedule_out(points: List[MonthlyPoint]) -> List[MonthlyPointOut]:
    return [MonthlyPointOut(month=p.month, value=p.value) for p in points]


def _property_summary(prop) -> PropertySummary:
    return PropertySummary(id=prop.id, name=prop.name, target_return=prop.target_return)


# ---------------------------------------------------------
# Projections
# ---------------------------------------------------------
@router.post("/property", response_model=PropertyROIResponse, dependencies=[Depends(require_capability(Capability.ROI_READ))])
def calculate_property_roi(
    request: PropertyROIRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> PropertyROIResponse:
    """
    Project simple and compound returns for one property.

    Raises:
        HTTPException(404): Property not found
        HTTPException(500): Database or calculation error
    """
    try:
        with get_db_connection() as conn:
            prop = storage.get_property(conn, request.property_id)
    except DB_ERRORS as e:
        raise _db_error("calculate_property_roi", e)

    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")

    try:
        rate = roi_calc.parse_rate(prop.target_return)
        projection = roi_calc.project_returns(request.investment_amount, rate, request.duration)
    except CALC_ERRORS as e:
        raise _calc_error("calculate_property_roi", "Error calculating ROI", e)

    if IS_DEV:
        print(f"[ROI] Projection: user_id={ctx.user_id}, property_id={prop.id}, "
              f"amount={request.investment_amount}, years={request.duration}")

    return PropertyROIResponse(
        property=_property_summary(prop),
        investment=InvestmentSummary(amount=request.investment_amount, duration=request.duration),
        returns=ReturnsOut(
            simple=projection.simple,
            compound=projection.compound,
            annualized_return=projection.annualized_return,
            total_earnings=projection.total_earnings,
            total_value=projection.total_value,
            monthly_returns=_schedule_out(projection.monthly_returns),
        ),
    )


@router.post("/compare", response_model=CompareROIResponse, dependencies=[Depends(require_capability(Capability.ROI_READ))])
def compare_property_roi(
    request: CompareROIRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> CompareROIResponse:
    """
    Compare the same investment across several properties.

    Unknown property ids (and properties with an unreadable stored rate) are
    dropped from the result instead of failing the batch. Order follows the
    request; callers sort by whichever field they need.
    """
    try:
        with get_db_connection() as conn:
            found = storage.get_properties(conn, request.property_ids)
    except DB_ERRORS as e:
        raise _db_error("compare_property_roi", e)

    properties = [found[pid] for pid in request.property_ids if pid in found]
    missing = [pid for pid in request.property_ids if pid not in found]
    if missing and IS_DEV:
        print(f"[ROI] Compare: dropping unknown property_ids={missing}")

    try:
        entries = roi_calc.compare_properties(properties, request.investment_amount, request.duration)
    except CALC_ERRORS as e:
        raise _calc_error("compare_property_roi", "Error comparing property ROI", e)

    return CompareROIResponse(
        comparison=[
            ComparisonOut(
                property_id=e.property_id,
                property_name=e.property_name,
                location=e.location,
                target_return=e.target_return,
                investment_amount=e.investment_amount,
                duration=e.duration,
                simple_roi=e.simple_roi,
                compound_roi=e.compound_roi,
                total_return=e.total_return,
                annualized_return=e.annualized_return,
            )
            for e in entries
        ]
    )


@router.post(
    "/forecast",
    response_model=ForecastResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_capability(Capability.ROI_READ))],
)
def calculate_roi_forecast(
    request: ForecastRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> ForecastResponse:
    """Pessimistic / realistic / optimistic projections for one property."""
    try:
        with get_db_connection() as conn:
            prop = storage.get_property(conn, request.property_id)
    except DB_ERRORS as e:
        raise _db_error("calculate_roi_forecast", e)

    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")

    overrides = request.scenarios.model_dump() if request.scenarios else None
    try:
        base_rate = roi_calc.parse_rate(prop.target_return)
        forecast = roi_calc.forecast_scenarios(
            request.investment_amount, base_rate, request.duration, overrides
        )
    except CALC_ERRORS as e:
        raise _calc_error("calculate_roi_forecast", "Error calculating ROI forecast", e)

    def _scenario(result: roi_calc.ScenarioResult) -> ScenarioOut:
        return ScenarioOut(
            return_rate=result.return_rate,
            total_earnings=result.total_earnings,
            total_value=result.total_value,
            monthly_returns=_schedule_out(result.monthly_returns) if result.monthly_returns is not None else None,
        )

    return ForecastResponse(
        property=_property_summary(prop),
        investment=InvestmentSummary(amount=request.investment_amount, duration=request.duration),
        scenarios=ScenariosOut(
            pessimistic=_scenario(forecast.pessimistic),
            realistic=_scenario(forecast.realistic),
            optimistic=_scenario(forecast.optimistic),
        ),
    )


# ---------------------------------------------------------
# Portfolio (caller's own investments only)
# ---------------------------------------------------------
def _load_holdings(user_id: int):
    """(investment, property) pairs for one investor; investments without a property are skipped."""
    with get_db_connection() as conn:
        investments = storage.get_user_investments(conn, user_id)
        properties = storage.get_properties(conn, {inv.property_id for inv in investments})

    holdings = []
    for inv in investments:
        prop = properties.get(inv.property_id)
        if prop is None:
            print(f"[ROI] Investment {inv.id} references missing property_id={inv.property_id}, skipping")
            continue
        holdings.append((inv, prop))
    return holdings


@router.get("/portfolio", response_model=PortfolioResponse, dependencies=[Depends(require_capability(Capability.ROI_PORTFOLIO))])
def calculate_portfolio_roi(ctx: AuthContext = Depends(require_auth_context)) -> PortfolioResponse:
    """
    Current value of the caller's portfolio.

    An investor with nothing to value gets status "empty" (HTTP 200) rather
    than an error or a division by zero.
    """
    try:
        holdings = _load_holdings(ctx.user_id)
    except DB_ERRORS as e:
        raise _db_error("calculate_portfolio_roi", e)

    try:
        result = roi_calc.aggregate_portfolio(ctx.user_id, holdings, datetime.now(timezone.utc))
    except CALC_ERRORS as e:
        raise _calc_error("calculate_portfolio_roi", "Error calculating portfolio ROI", e)

    if result.is_empty:
        if IS_DEV:
            print(f"[ROI] Portfolio empty: user_id={ctx.user_id}")
        return PortfolioResponse(status="empty", message="No investments found", portfolio=None, investments=[])

    if IS_DEV:
        print(f"[ROI] Portfolio: user_id={ctx.user_id}, holdings={len(result.holdings)}, "
              f"roi={result.portfolio_roi:.2f}%")

    return PortfolioResponse(
        status="aggregated",
        portfolio=PortfolioTotals(
            total_invested=result.total_invested,
            total_current_value=result.total_current_value,
            portfolio_roi=result.portfolio_roi,
            total_earnings=result.total_earnings,
        ),
        investments=[
            HoldingOut(
                property_id=h.property_id,
                property_name=h.property_name,
                investment_id=h.investment_id,
                investment_amount=h.investment_amount,
                current_value=h.current_value,
                roi=h.roi,
                duration_years=h.duration_years,
                status=h.status,
                accumulated_earnings=h.accumulated_earnings,
            )
            for h in result.holdings
        ],
    )


@router.get("/stats", response_model=InvestorStatsResponse, dependencies=[Depends(require_capability(Capability.ROI_PORTFOLIO))])
def get_roi_stats(ctx: AuthContext = Depends(require_auth_context)) -> InvestorStatsResponse:
    """Payout totals, average target return and active holding count for the caller."""
    try:
        holdings = _load_holdings(ctx.user_id)
        with get_db_connection() as conn:
            payouts = storage.get_user_transactions(conn, ctx.user_id, type=TransactionType.ret)
    except DB_ERRORS as e:
        raise _db_error("get_roi_stats", e)

    try:
        stats = roi_calc.investor_stats(holdings, payouts, datetime.now(timezone.utc))
    except CALC_ERRORS as e:
        raise _calc_error("get_roi_stats", "Error fetching ROI statistics", e)

    return InvestorStatsResponse(
        total_earnings=stats.total_earnings,
        last_month_earnings=stats.last_month_earnings,
        average_roi=stats.average_roi,
        active_investments=stats.active_investments,
    )


@router.get("/earnings/monthly", response_model=EarningsChartResponse, dependencies=[Depends(require_capability(Capability.ROI_PORTFOLIO))])
def get_monthly_earnings(ctx: AuthContext = Depends(require_auth_context)) -> EarningsChartResponse:
    """ROI payouts per calendar month for the chart on the investor dashboard."""
    try:
        with get_db_connection() as conn:
            payouts = storage.get_user_transactions(conn, ctx.user_id, type=TransactionType.ret)
    except DB_ERRORS as e:
        raise _db_error("get_monthly_earnings", e)

    try:
        series = roi_calc.monthly_earnings(payouts, datetime.now(timezone.utc), EARNINGS_CHART_MONTHS)
    except CALC_ERRORS as e:
        raise _calc_error("get_monthly_earnings", "Error fetching monthly earnings", e)

    return EarningsChartResponse(months=[MonthlyEarningsOut(**point) for point in series])


# ---------------------------------------------------------
# Admin: payout distribution preview
# ---------------------------------------------------------
@router.post(
    "/distribution/preview",
    response_model=DistributionPreviewResponse,
    dependencies=[Depends(require_capability(Capability.ROI_DISTRIBUTE))],
)
def preview_distribution(
    request: DistributionPreviewRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> DistributionPreviewResponse:
    """
    Split a payout across a property's investors without recording anything.

    Raises:
        HTTPException(404): Property not found
    """
    try:
        with get_db_connection() as conn:
            prop = storage.get_property(conn, request.property_id)
            investments = storage.get_property_investments(conn, request.property_id) if prop else []
    except DB_ERRORS as e:
        raise _db_error("preview_distribution", e)

    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")

    try:
        distributions = roi_calc.calculate_distributions(
            investments, request.total_amount, request.method, request.override_rates
        )
    except CALC_ERRORS as e:
        raise _calc_error("preview_distribution", "Error calculating ROI distribution", e)

    print(f"[ROI] Distribution preview by user_id={ctx.user_id}: property_id={prop.id}, "
          f"method={request.method}, recipients={len(distributions)}")

    return DistributionPreviewResponse(
        property_id=prop.id,
        total_amount=request.total_amount,
        method=request.method,
        distributions=[
            DistributionOut(
                investment_id=d.investment_id,
                user_id=d.user_id,
                amount=d.amount,
                percentage=d.percentage,
            )
            for d in distributions
        ],
        total_distributed=sum(d.amount for d in distributions),
    )
