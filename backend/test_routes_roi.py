"""
backend/test_routes_roi.py

Endpoint tests for /roi/* using TestClient against an isolated SQLite file.

Tests:
1. Auth is required and enforced from the token (401/403)
2. Validation failures return 400 with a field-level error list
3. Unknown properties return 404
4. Projection, comparison, forecast and portfolio payloads
5. Admin-only distribution preview

Run:
    pytest backend/test_routes_roi.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from backend import roi_calc, storage
from backend.roi_calc import InvalidInputError


@pytest.fixture
def property_id(conn):
    return storage.create_property(conn, "Harbor Lofts", "12%", location="Miami, FL", funding_goal=500000)


@pytest.fixture
def second_property_id(conn):
    return storage.create_property(conn, "Cedar Court", "8.5%", location="Denver, CO")


class TestAuth:

    def test_missing_token_rejected(self, client, conn):
        resp = client.get("/roi/portfolio")
        assert resp.status_code in (401, 403)

    def test_invalid_token_rejected(self, client, conn):
        resp = client.get("/roi/portfolio", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_unknown_user_rejected(self, client, conn, token_for):
        resp = client.get("/roi/portfolio", headers={"Authorization": f"Bearer {token_for(424242)}"})
        assert resp.status_code == 401

    def test_inactive_user_rejected(self, client, conn, token_for):
        user_id = storage.create_user(conn, "gone@example.com", is_active=False)
        resp = client.get("/roi/portfolio", headers={"Authorization": f"Bearer {token_for(user_id)}"})
        assert resp.status_code == 403

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestPropertyROI:

    def test_projection(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/property",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 100000, "duration": 1},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()

        assert data["property"] == {"id": property_id, "name": "Harbor Lofts", "targetReturn": "12%"}
        assert data["investment"] == {"amount": 100000, "duration": 1}
        returns = data["returns"]
        assert returns["simple"] == pytest.approx(12000.0)
        assert returns["compound"] == pytest.approx(12682.50, abs=0.01)
        assert returns["totalEarnings"] == pytest.approx(returns["compound"])
        assert returns["totalValue"] == pytest.approx(112682.50, abs=0.01)
        assert returns["annualizedReturn"] == pytest.approx(12.6825, abs=1e-3)
        assert len(returns["monthlyReturns"]) == 12
        assert returns["monthlyReturns"][-1]["month"] == 12
        assert returns["monthlyReturns"][-1]["value"] == pytest.approx(returns["totalValue"])

    def test_duration_defaults_to_five_years(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/property",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 1000},
        )
        assert resp.status_code == 200
        assert resp.json()["investment"]["duration"] == 5
        assert len(resp.json()["returns"]["monthlyReturns"]) == 60

    def test_unknown_property_404(self, client, auth_headers, conn):
        resp = client.post(
            "/roi/property",
            headers=auth_headers,
            json={"propertyId": 9999, "investmentAmount": 1000, "duration": 1},
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Property not found"

    @pytest.mark.parametrize("body", [
        {"propertyId": 1, "investmentAmount": -5, "duration": 1},
        {"propertyId": 1, "investmentAmount": 0, "duration": 1},
        {"propertyId": 1, "investmentAmount": 1000, "duration": 0},
        {"investmentAmount": 1000, "duration": 1},
        {"propertyId": "abc", "investmentAmount": 1000},
    ])
    def test_invalid_body_400(self, client, auth_headers, body):
        resp = client.post("/roi/property", headers=auth_headers, json=body)
        assert resp.status_code == 400
        data = resp.json()
        assert data["message"] == "Invalid input data"
        assert isinstance(data["errors"], list) and data["errors"]

    @pytest.mark.parametrize("raw_body", [
        '{"propertyId": %d, "investmentAmount": Infinity, "duration": 1}',
        '{"propertyId": %d, "investmentAmount": 1000, "duration": NaN}',
    ])
    def test_non_finite_numbers_400(self, client, auth_headers, property_id, raw_body):
        resp = client.post(
            "/roi/property",
            headers={**auth_headers, "Content-Type": "application/json"},
            content=raw_body % property_id,
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid input data"

    def test_duration_above_cap_400(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/property",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 1000, "duration": 100000},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["loc"][-1] == "duration"

    def test_malformed_stored_rate_500(self, client, auth_headers, conn):
        pid = storage.create_property(conn, "Mystery Tower", "TBD")
        resp = client.post(
            "/roi/property",
            headers=auth_headers,
            json={"propertyId": pid, "investmentAmount": 1000, "duration": 1},
        )
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Error calculating ROI"


class TestCompare:

    def test_invalid_id_silently_dropped(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/compare",
            headers=auth_headers,
            json={"propertyIds": [property_id, 9999], "investmentAmount": 10000, "duration": 3},
        )
        assert resp.status_code == 200
        comparison = resp.json()["comparison"]
        assert len(comparison) == 1
        assert comparison[0]["propertyId"] == property_id
        assert comparison[0]["location"] == "Miami, FL"
        assert comparison[0]["duration"] == 3

    def test_order_follows_request(self, client, auth_headers, property_id, second_property_id):
        resp = client.post(
            "/roi/compare",
            headers=auth_headers,
            json={"propertyIds": [second_property_id, property_id], "investmentAmount": 10000},
        )
        ids = [row["propertyId"] for row in resp.json()["comparison"]]
        assert ids == [second_property_id, property_id]
        first = resp.json()["comparison"][0]
        assert first["compoundROI"] >= first["simpleROI"]
        assert first["totalReturn"] == pytest.approx(10000 + first["compoundROI"])

    def test_duration_cap_is_inclusive(self, client, auth_headers, property_id):
        ok = client.post(
            "/roi/compare",
            headers=auth_headers,
            json={"propertyIds": [property_id], "investmentAmount": 1000, "duration": 100},
        )
        too_long = client.post(
            "/roi/compare",
            headers=auth_headers,
            json={"propertyIds": [property_id], "investmentAmount": 1000, "duration": 100.5},
        )
        assert ok.status_code == 200
        assert too_long.status_code == 400

    def test_empty_id_list_400(self, client, auth_headers):
        resp = client.post(
            "/roi/compare",
            headers=auth_headers,
            json={"propertyIds": [], "investmentAmount": 10000},
        )
        assert resp.status_code == 400


class TestForecast:

    def test_default_scenarios(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/forecast",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 50000, "duration": 2},
        )
        assert resp.status_code == 200, resp.text
        scenarios = resp.json()["scenarios"]

        assert scenarios["pessimistic"]["returnRate"] == pytest.approx(8.4)
        assert scenarios["realistic"]["returnRate"] == pytest.approx(12.0)
        assert scenarios["optimistic"]["returnRate"] == pytest.approx(15.6)
        assert (
            scenarios["pessimistic"]["totalEarnings"]
            <= scenarios["realistic"]["totalEarnings"]
            <= scenarios["optimistic"]["totalEarnings"]
        )
        assert len(scenarios["realistic"]["monthlyReturns"]) == 24
        assert "monthlyReturns" not in scenarios["pessimistic"]
        assert "monthlyReturns" not in scenarios["optimistic"]

    def test_explicit_overrides(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/forecast",
            headers=auth_headers,
            json={
                "propertyId": property_id,
                "investmentAmount": 1000,
                "duration": 1,
                "scenarios": {"pessimistic": 1.0, "optimistic": 30.0},
            },
        )
        scenarios = resp.json()["scenarios"]
        assert scenarios["pessimistic"]["returnRate"] == 1.0
        assert scenarios["realistic"]["returnRate"] == 12.0
        assert scenarios["optimistic"]["returnRate"] == 30.0

    @pytest.mark.parametrize("overrides", [
        {"pessimistic": -1300},
        {"optimistic": -1200.01},
    ])
    def test_override_below_rate_floor_400(self, client, auth_headers, property_id, overrides):
        resp = client.post(
            "/roi/forecast",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 1000, "duration": 1, "scenarios": overrides},
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["loc"][-2:] == ["scenarios", next(iter(overrides))]

    def test_override_at_rate_floor_allowed(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/forecast",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 1000, "duration": 1,
                  "scenarios": {"pessimistic": -1200}},
        )
        assert resp.status_code == 200
        assert resp.json()["scenarios"]["pessimistic"]["totalValue"] == pytest.approx(0.0)

    def test_duration_required(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/forecast",
            headers=auth_headers,
            json={"propertyId": property_id, "investmentAmount": 1000},
        )
        assert resp.status_code == 400


class TestPortfolio:

    def test_empty_portfolio_is_not_an_error(self, client, auth_headers):
        resp = client.get("/roi/portfolio", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "empty"
        assert data["portfolio"] is None
        assert data["investments"] == []

    def test_aggregates_own_investments_only(self, client, conn, auth_headers, investor_id, property_id, second_property_id):
        now = datetime.now(timezone.utc)
        storage.create_investment(conn, investor_id, property_id, 10000, now - timedelta(days=365), status="active", earnings=250.0)
        storage.create_investment(conn, investor_id, second_property_id, 5000, now - timedelta(days=10), status="cancelled")

        other = storage.create_user(conn, "other@example.com")
        storage.create_investment(conn, other, property_id, 777777, now - timedelta(days=100))

        resp = client.get("/roi/portfolio", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()

        assert data["status"] == "aggregated"
        portfolio = data["portfolio"]
        assert portfolio["totalInvested"] == 10000
        assert portfolio["totalCurrentValue"] == pytest.approx(10000 * 1.01 ** 12, rel=1e-6)
        assert portfolio["totalEarnings"] == pytest.approx(portfolio["totalCurrentValue"] - 10000)
        assert portfolio["portfolioROI"] == pytest.approx(12.6825, abs=1e-2)

        assert len(data["investments"]) == 1
        holding = data["investments"][0]
        assert holding["propertyName"] == "Harbor Lofts"
        assert holding["accumulatedEarnings"] == 250.0
        assert holding["durationYears"] == pytest.approx(1.0, abs=1e-4)


class TestInvestorDashboard:

    def test_stats(self, client, conn, auth_headers, investor_id, property_id):
        now = datetime.now(timezone.utc)
        inv = storage.create_investment(conn, investor_id, property_id, 10000, now - timedelta(days=200))
        storage.create_transaction(conn, investor_id, "return", 120.0, now - timedelta(days=3), investment_id=inv)
        storage.create_transaction(conn, investor_id, "return", 80.0, now - timedelta(days=120), investment_id=inv)
        storage.create_transaction(conn, investor_id, "deposit", 10000.0, now - timedelta(days=200))

        resp = client.get("/roi/stats", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalEarnings"] == pytest.approx(200.0)
        assert data["lastMonthEarnings"] == pytest.approx(120.0)
        assert data["averageRoi"] == pytest.approx(12.0)
        assert data["activeInvestments"] == 1

    def test_monthly_earnings_window(self, client, conn, auth_headers, investor_id):
        storage.create_transaction(conn, investor_id, "return", 42.0, datetime.now(timezone.utc))

        resp = client.get("/roi/earnings/monthly", headers=auth_headers)
        assert resp.status_code == 200
        months = resp.json()["months"]
        assert len(months) == 6
        assert months[-1]["amount"] == pytest.approx(42.0)
        assert sum(m["amount"] for m in months) == pytest.approx(42.0)

    def test_monthly_earnings_calculation_error_500(self, client, auth_headers, monkeypatch):
        def broken(*args, **kwargs):
            raise InvalidInputError("months must be at least 1, got 0")

        monkeypatch.setattr(roi_calc, "monthly_earnings", broken)
        resp = client.get("/roi/earnings/monthly", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Error fetching monthly earnings"


class TestDistributionPreview:

    def test_investor_forbidden(self, client, auth_headers, property_id):
        resp = client.post(
            "/roi/distribution/preview",
            headers=auth_headers,
            json={"propertyId": property_id, "totalAmount": 1000},
        )
        assert resp.status_code == 403

    def test_admin_pro_rata(self, client, conn, admin_headers, investor_id, property_id):
        other = storage.create_user(conn, "second@example.com")
        start = datetime.now(timezone.utc) - timedelta(days=30)
        storage.create_investment(conn, investor_id, property_id, 30000, start)
        storage.create_investment(conn, other, property_id, 10000, start)

        resp = client.post(
            "/roi/distribution/preview",
            headers=admin_headers,
            json={"propertyId": property_id, "totalAmount": 2000, "method": "pro-rata"},
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["method"] == "pro-rata"
        assert [d["amount"] for d in data["distributions"]] == [pytest.approx(1500.0), pytest.approx(500.0)]
        assert data["totalDistributed"] == pytest.approx(2000.0)

    def test_admin_unknown_property_404(self, client, admin_headers):
        resp = client.post(
            "/roi/distribution/preview",
            headers=admin_headers,
            json={"propertyId": 31337, "totalAmount": 1000},
        )
        assert resp.status_code == 404

    def test_negative_override_400(self, client, admin_headers, property_id):
        resp = client.post(
            "/roi/distribution/preview",
            headers=admin_headers,
            json={"propertyId": property_id, "totalAmount": 1000, "overrideRates": {"1": -5}},
        )
        assert resp.status_code == 400
