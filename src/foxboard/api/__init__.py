"""API route aggregation.

All routers registered here get mounted in main.py.

Auth is applied at the include_router level: every protected router
depends on record_activity, which resolves the bearer token (401 if it
fails) and refreshes the session's user agent and address. Handlers that
need the caller ask for get_current_user again; FastAPI caches it per
request. Health and login are open.
"""

from fastapi import APIRouter, Depends

from foxboard.api.health import router as health_router
from foxboard.api.projects import router as projects_router
from foxboard.api.tasks import router as tasks_router
from foxboard.api.users import login_router
from foxboard.api.users import router as users_router
from foxboard.auth.dependencies import record_activity

# All protected routers require a session
_auth = [Depends(record_activity)]

api_router = APIRouter()

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(login_router, tags=["auth"])

# Protected routes: require a valid bearer token
api_router.include_router(users_router, tags=["users", "auth"], dependencies=_auth)
api_router.include_router(projects_router, tags=["projects"], dependencies=_auth)
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
