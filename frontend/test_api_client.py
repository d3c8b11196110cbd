"""
Tests for frontend/api_client.py.

requests is patched, so no backend needs to be running.

Run:
    pytest frontend/test_api_client.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from frontend import api_client


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload or {}
    return resp


@pytest.fixture(autouse=True)
def local_backend(monkeypatch):
    monkeypatch.setenv("BACKEND_URL", "http://127.0.0.1:8000/")
    monkeypatch.setattr("frontend.config.ENV", "local")


class TestApiRequest:

    def test_attaches_bearer_token(self):
        with patch("frontend.api_client.requests.get", return_value=_response()) as get:
            api_client.api_request("GET", "/roi/portfolio", token="abc123")

        url = get.call_args.args[0]
        headers = get.call_args.kwargs["headers"]
        assert url == "http://127.0.0.1:8000/roi/portfolio"
        assert headers["Authorization"] == "Bearer abc123"

    def test_no_token_no_header(self):
        with patch("frontend.api_client.requests.get", return_value=_response()) as get:
            api_client.api_request("GET", "/health")
        assert "Authorization" not in get.call_args.kwargs["headers"]

    def test_timeout_returns_none(self):
        with patch("frontend.api_client.requests.post", side_effect=requests.exceptions.Timeout()):
            assert api_client.api_request("POST", "/roi/compare", token="t", json={}) is None

    def test_connection_error_returns_none(self):
        with patch("frontend.api_client.requests.get", side_effect=requests.exceptions.ConnectionError()):
            assert api_client.api_request("GET", "/roi/stats", token="t") is None

    def test_unsupported_method(self):
        with pytest.raises(ValueError):
            api_client.api_request("DELETE", "/roi/portfolio")


class TestRoiWrappers:

    def test_project_property_roi_body(self):
        payload = {"returns": {"simple": 12000.0}}
        with patch("frontend.api_client.requests.post", return_value=_response(200, payload)) as post:
            result = api_client.project_property_roi("t", 5, 100000, duration=1)

        assert result == payload
        assert post.call_args.kwargs["json"] == {"propertyId": 5, "investmentAmount": 100000, "duration": 1}

    def test_duration_omitted_when_not_given(self):
        with patch("frontend.api_client.requests.post", return_value=_response()) as post:
            api_client.project_property_roi("t", 5, 1000)
        assert "duration" not in post.call_args.kwargs["json"]

    def test_compare_unwraps_rows(self):
        rows = [{"propertyId": 1}, {"propertyId": 2}]
        with patch("frontend.api_client.requests.post", return_value=_response(200, {"comparison": rows})):
            assert api_client.compare_properties("t", [1, 2, 99], 5000) == rows

    def test_error_status_returns_none(self):
        with patch("frontend.api_client.requests.post", return_value=_response(404, {"detail": "Property not found"})):
            assert api_client.forecast_roi("t", 99, 1000, 2) is None

    def test_forecast_passes_scenarios(self):
        with patch("frontend.api_client.requests.post", return_value=_response()) as post:
            api_client.forecast_roi("t", 1, 1000, 2, scenarios={"optimistic": 20.0})
        assert post.call_args.kwargs["json"]["scenarios"] == {"optimistic": 20.0}
