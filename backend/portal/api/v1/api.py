from fastapi import APIRouter

from portal.api.v1.routes import admin, auth, catalog, health, proxy, teams

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
api_router.include_router(teams.router, prefix="/teams", tags=["teams"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(proxy.router, prefix="/proxy", tags=["proxy"])
