"""
backend/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

Contains:
- AuthContext: Immutable identity of the caller (user id, role, capabilities)
- require_auth_context: FastAPI dependency for auth enforcement
- verify_token: JWT token verification

Tokens are issued by the auth service; this module only verifies them and
loads the user row they point at. Routes receive the caller as an explicit
AuthContext argument and pass ctx.user_id on to whatever needs it.
"""

from __future__ import annotations

from typing import Set

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

try:
    from backend.config import SECRET_KEY, ALGORITHM, IS_DEV
    from backend.db import get_db_connection, fetch_one
    from backend.rbac import effective_capabilities
except ModuleNotFoundError:
    from config import SECRET_KEY, ALGORITHM, IS_DEV
    from db import get_db_connection, fetch_one
    from rbac import effective_capabilities

# Security scheme for HTTPBearer
security = HTTPBearer()


# ---------------------------------------------------------
# JWT Token Verification
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Identity of the authenticated caller, derived from the JWT and the users table.

    This is the ONLY source of truth for user_id in protected endpoints.
    Never trust a user id from request bodies or query params.
    """
    user_id: int
    email: str
    role: str
    capabilities: Set[str]


def require_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthContext:
    """
    Auth dependency for protected routes.

    Process:
    1. Verify JWT token signature and expiration
    2. Extract user_id from the "sub" claim
    3. Fetch user record from database (source of truth for role)
    4. Reject inactive users
    5. Return AuthContext with role capabilities

    Raises:
        HTTPException(401): If token is invalid, expired, or user not found
        HTTPException(403): If user is inactive
    """
    payload = verify_token(credentials.credentials)
    raw_user_id = payload.get("sub")

    try:
        user_id = int(raw_user_id)
    except (TypeError, ValueError):
        print("[AUTH] Missing or non-numeric user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    with get_db_connection() as conn:
        user_row = fetch_one(
            conn,
            "SELECT id, email, role, is_active FROM users WHERE id = :id",
            {"id": user_id},
        )

    if not user_row:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    if not user_row["is_active"]:
        print(f"[AUTH] Inactive user attempted access: user_id={user_id}")
        raise HTTPException(status_code=403, detail="Account inactive")

    role = user_row["role"] or "investor"
    ctx = AuthContext(
        user_id=user_row["id"],
        email=user_row["email"],
        role=role,
        capabilities=effective_capabilities(role),
    )

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, role={ctx.role}, "
              f"capabilities={len(ctx.capabilities)}")

    return ctx
