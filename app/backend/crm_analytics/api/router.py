"""Top-level API router."""

from fastapi import APIRouter

from crm_analytics.api.routes.analytics import router as analytics_router
from crm_analytics.api.routes.custom_reports import router as custom_reports_router
from crm_analytics.api.routes.dashboard import router as dashboard_router
from crm_analytics.api.routes.exports import router as exports_router
from crm_analytics.api.routes.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(analytics_router)
api_router.include_router(custom_reports_router)
api_router.include_router(dashboard_router)
api_router.include_router(exports_router)
