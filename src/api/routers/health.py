"""
Health check endpoints for monitoring and diagnostics.
"""

import time
from fastapi import APIRouter, Depends

from ..models.common import HealthStatus
from ..dependencies.services import get_image_job_client, get_model_manager, get_uploader
from src.models.manager import ModelManager
from src.models.services.storage import StorageUploader
from src.pipeline.image_jobs.client import ImageJobClient

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


def _credential_status(configured: bool) -> str:
    return "configured" if configured else "missing credentials"


@router.get("/", response_model=HealthStatus)
async def health_check(
    model_manager: ModelManager = Depends(get_model_manager),
    job_client: ImageJobClient = Depends(get_image_job_client),
    uploader: StorageUploader = Depends(get_uploader)
):
    """
    Basic health check endpoint.

    Reports configuration state only; no upstream call is made.
    """
    dependencies = {
        "model_tasks": ", ".join(sorted(model_manager.config.get("tasks", {}))),
        "image_jobs": _credential_status(bool(job_client.settings.access_key and job_client.settings.secret_key)),
        "storage": _credential_status(uploader.configured),
    }

    return HealthStatus(
        status="healthy",
        version="1.0.0",
        uptime=time.time() - _server_start_time,
        dependencies=dependencies
    )


@router.get("/ready")
async def readiness_check(model_manager: ModelManager = Depends(get_model_manager)):
    """Asks each configured chat/image provider whether it is reachable."""
    providers = await model_manager.health_check()
    if not all(providers.values()):
        down = [name for name, ok in providers.items() if not ok]
        return {"ready": False, "reason": f"Providers unavailable: {', '.join(down)}"}

    return {"ready": True, "message": "Service ready to handle requests"}
