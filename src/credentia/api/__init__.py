"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Every route here is open at the router level. The only route that
needs an identity (/users/me) declares it itself with
Depends(get_current_account_id), since registration, login and the
reset flow are by definition used without a session.
"""

from fastapi import APIRouter

from credentia.api.health import router as health_router
from credentia.api.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])
