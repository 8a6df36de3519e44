"""API v1 route aggregation.

Each sub-router declares its own `prefix` and `tags`. Paths are mounted at
the root (`/auth`, `/service`, `/admin`) because browsers and the downstream
application link to them directly.
"""
from fastapi import APIRouter

from .admin import router as admin_router
from .auth import router as auth_router
from .service import router as service_router

ROUTERS = [
    auth_router,
    service_router,
    admin_router,
]

api_router = APIRouter()
for router in ROUTERS:
    api_router.include_router(router)

__all__ = ["api_router"]
