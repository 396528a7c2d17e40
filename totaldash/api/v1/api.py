"""API routes for the FastAPI application."""

from totaldash.api.router import TrailingSlashRouter
from totaldash.api.v1.endpoints import admin, health, plans, subscriptions, webhooks

api_router = TrailingSlashRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
