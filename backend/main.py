# ---------------------------------------------------------
# backend/main.py
# Property ROI backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLite (PostgreSQL when DATABASE_URL is set)
# - /roi/property  : simple + compound projection for one property
# - /roi/portfolio : current value of the caller's investments
# - /roi/compare   : same investment across several properties
# - /roi/forecast  : pessimistic / realistic / optimistic scenarios
# - /roi/stats, /roi/earnings/monthly : investor dashboard figures
# - /roi/distribution/preview : admin payout split preview
# ---------------------------------------------------------

from __future__ import annotations

import math
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

try:
    from backend.config import CORS_ORIGINS, IS_DEV, IS_PROD, ENV
    from backend.db import init_db
    from backend.routes_roi import router as roi_router
except ModuleNotFoundError:
    from config import CORS_ORIGINS, IS_DEV, IS_PROD, ENV
    from db import init_db
    from routes_roi import router as roi_router


app = FastAPI(title="Property ROI API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error handlers
# ---------------------------------------------------------
def _json_safe(value: Any) -> Any:
    """Replace NaN/Infinity (echoed back from the request body) with their string form."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing fields -> 400 with the field-level error list."""
    if IS_DEV:
        print(f"[API] Validation failed on {request.method} {request.url.path}: {len(exc.errors())} error(s)")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid input data", "errors": _json_safe(jsonable_encoder(exc.errors()))},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internals; the cause goes to the console only
    print(f"[API] Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


init_db()

app.include_router(roi_router)


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "env": ENV}
