"""
backend/rbac.py

Role-Based Access Control (RBAC) for the ROI endpoints.

Every authenticated user gets the capabilities of their role; routes that
go beyond an investor's own numbers declare the capability they need via
dependencies.require_capability().

Pure Python logic - no FastAPI imports, no database access.
"""

from typing import Set


# ============================================================================
# Capability Definitions
# ============================================================================

class Capability:
    """Capability constants for ROI features."""
    ROI_READ = "roi:read"                # property projections, comparisons, forecasts
    ROI_PORTFOLIO = "roi:portfolio"      # own portfolio valuation and stats
    ROI_DISTRIBUTE = "roi:distribute"    # payout distribution previews


# ============================================================================
# Role Definitions
# ============================================================================

class Role:
    """Role constants for RBAC."""
    INVESTOR = "investor"
    ADMIN = "admin"


ROLE_CAPABILITIES: dict[str, Set[str]] = {
    "investor": {
        Capability.ROI_READ,
        Capability.ROI_PORTFOLIO,
    },
    "admin": {
        Capability.ROI_READ,
        Capability.ROI_PORTFOLIO,
        Capability.ROI_DISTRIBUTE,
    },
}


def effective_capabilities(role: str) -> Set[str]:
    """
    Capabilities granted to a role.

    Unknown roles fall back to investor capabilities so a new role
    string in the users table never grants admin access by accident.
    """
    return set(ROLE_CAPABILITIES.get(role, ROLE_CAPABILITIES[Role.INVESTOR]))


def has_capability(role: str, capability: str) -> bool:
    return capability in effective_capabilities(role)
