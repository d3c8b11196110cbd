"""
backend/dependencies.py

Reusable FastAPI dependencies for capability enforcement.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException

try:
    from backend.auth_context import require_auth_context, AuthContext
    from backend.config import IS_DEV
except ModuleNotFoundError:
    from auth_context import require_auth_context, AuthContext
    from config import IS_DEV


def require_capability(capability: str) -> Callable:
    """
    FastAPI dependency factory for role-based capability authorization.

    Usage in routes:
        @router.post("/distribution/preview",
                     dependencies=[Depends(require_capability(Capability.ROI_DISTRIBUTE))])
        def preview(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(403): If the user's role lacks the capability
    """
    def _check_capability(ctx: AuthContext = Depends(require_auth_context)) -> AuthContext:
        if capability not in ctx.capabilities:
            if IS_DEV:
                print(f"[AUTHZ] Capability denied: capability={capability}, role={ctx.role}")
            raise HTTPException(
                status_code=403,
                detail="Insufficient permissions - this feature is not available for your role",
            )

        if IS_DEV:
            print(f"[AUTHZ] Capability granted: capability={capability}, role={ctx.role}")
        return ctx

    return _check_capability
