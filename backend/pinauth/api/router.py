from fastapi import APIRouter

from pinauth.api.health import router as health_router
from pinauth.api.pin_code import router as pin_code_router
from pinauth.api.session import router as session_router

api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router, tags=["health"])
api_router.include_router(pin_code_router)
api_router.include_router(session_router)
