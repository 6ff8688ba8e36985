"""
PageHost — API Routes Package
==============================
Aggregates the lifecycle, view and proxy routers.
"""

from pagehost.api.routes.services import router as services_router
from pagehost.api.routes.view import router as view_router
from pagehost.api.routes.proxy import router as proxy_router

__all__ = [
    "services_router",
    "view_router",
    "proxy_router",
]
