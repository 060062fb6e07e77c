"""Health check endpoints."""

from fastapi import APIRouter, Depends

from crm_analytics.core.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Liveness plus the report defaults the process is running with."""

    return {
        "status": "ok",
        "environment": settings.app_env,
        "default_date_range": settings.report_default_date_range,
    }
