"""Health check endpoint — verifies backend + asset service and cache connections."""

from fastapi import APIRouter

from backend.core import asset_client, redis_client

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check backend status and connectivity to the asset service and Redis."""
    assets_ok = asset_client.check_connection()
    redis_ok = redis_client.check_connection()

    return {
        "status": "ok" if assets_ok and redis_ok else "degraded",
        "services": {
            "asset_service": "ok" if assets_ok else "error",
            "redis": "ok" if redis_ok else "error",
        }
    }
