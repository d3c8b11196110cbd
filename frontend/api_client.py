"""
frontend/api_client.py
Centralized client for the ROI API.

This module ensures:
1. Every call attaches the Authorization header when a token is given
2. Consistent handling of timeouts and connection errors (no exceptions leak)
3. Centralized API base URL configuration (local/staging/prod)
4. One wrapper per ROI endpoint so dashboards never build URLs by hand
"""

from typing import Any, Dict, List, Literal, Optional

import requests

# Import config (robust fallback for different run contexts)
try:
    from frontend.config import get_api_base_url, IS_DEV
except ModuleNotFoundError:
    from config import get_api_base_url, IS_DEV


__all__ = [
    "api_request",
    "get_api_base_url",
    "project_property_roi",
    "get_portfolio_roi",
    "compare_properties",
    "forecast_roi",
    "get_roi_stats",
]


def api_request(
    method: Literal["GET", "POST"],
    path: str,
    token: Optional[str] = None,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = 20,
) -> Optional[requests.Response]:
    """
    Make an API request with auth header attachment and error handling.

    Security:
    - Never logs or prints tokens/auth headers

    Returns:
        Response object (any status code), or None on timeout/connection error

    Raises:
        ValueError: For an unsupported HTTP method (programming error)
    """
    try:
        base_url = get_api_base_url()
    except (RuntimeError, ValueError) as e:
        print(f"[API] Configuration error: {e}")
        return None

    url = f"{base_url}{path}"
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    if method == "GET":
        send = lambda: requests.get(url, headers=headers, params=params, timeout=timeout)
    elif method == "POST":
        send = lambda: requests.post(url, json=json, headers=headers, params=params, timeout=timeout)
    else:
        raise ValueError(f"Unsupported HTTP method: {method}")

    try:
        resp = send()
    except requests.exceptions.Timeout:
        print(f"[API] Timeout on {method} {path} after {timeout}s")
        return None
    except requests.exceptions.ConnectionError:
        print(f"[API] Cannot connect to backend at {base_url}")
        return None

    if IS_DEV and resp.status_code >= 400:
        print(f"[API] {method} {path} -> HTTP {resp.status_code}")
    return resp


def _json_or_none(resp: Optional[requests.Response]) -> Optional[Dict[str, Any]]:
    """Body of a 200 response, else None (errors were already reported)."""
    if resp is None or resp.status_code != 200:
        return None
    return resp.json()


def project_property_roi(token: str, property_id: int, investment_amount: float, duration: Optional[float] = None) -> Optional[Dict[str, Any]]:
    body: Dict[str, Any] = {"propertyId": property_id, "investmentAmount": investment_amount}
    if duration is not None:
        body["duration"] = duration
    return _json_or_none(api_request("POST", "/roi/property", token=token, json=body))


def get_portfolio_roi(token: str) -> Optional[Dict[str, Any]]:
    return _json_or_none(api_request("GET", "/roi/portfolio", token=token))


def compare_properties(token: str, property_ids: List[int], investment_amount: float, duration: Optional[float] = None) -> Optional[List[Dict[str, Any]]]:
    """Comparison rows, or None on failure. Unknown ids are dropped server-side."""
    body: Dict[str, Any] = {"propertyIds": list(property_ids), "investmentAmount": investment_amount}
    if duration is not None:
        body["duration"] = duration
    data = _json_or_none(api_request("POST", "/roi/compare", token=token, json=body))
    return data["comparison"] if data is not None else None


def forecast_roi(
    token: str,
    property_id: int,
    investment_amount: float,
    duration: float,
    scenarios: Optional[Dict[str, float]] = None,
) -> Optional[Dict[str, Any]]:
    body: Dict[str, Any] = {"propertyId": property_id, "investmentAmount": investment_amount, "duration": duration}
    if scenarios:
        body["scenarios"] = scenarios
    return _json_or_none(api_request("POST", "/roi/forecast", token=token, json=body))


def get_roi_stats(token: str) -> Optional[Dict[str, Any]]:
    return _json_or_none(api_request("GET", "/roi/stats", token=token))
