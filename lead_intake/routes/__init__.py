"""
HTTP route handlers.
"""

from lead_intake.routes.diagnostics import router as diagnostics_router
from lead_intake.routes.health import router as health_router
from lead_intake.routes.leads import router as leads_router

__all__ = [
    "diagnostics_router",
    "health_router",
    "leads_router",
]
